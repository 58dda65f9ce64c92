"""Main entry point for the PingSource Operator.

Run with ``kopf run -m pingsource_operator.main``.
"""

from __future__ import annotations

import logging
from typing import Any

import kopf

from . import health
from . import logging as structured_logging
from .config import OperatorConfig
from .handlers.pingsource import PingSourceHandler, install_handler
from .services.kube import load_kube_config
from .tracing import initialize_tracing

# Registers the PingSource and watch handlers.
from . import handlers  # noqa: F401

logger = logging.getLogger(__name__)


@kopf.on.startup()
def configure(settings: kopf.OperatorSettings, **_: Any) -> None:
    """Configure the operator."""
    # Set up structured JSON logging
    structured_logging.setup_structured_logging()
    initialize_tracing()

    # Use AnnotationsProgressStorage to avoid conflicts with status updates
    settings.persistence.progress_storage = kopf.AnnotationsProgressStorage()
    settings.persistence.diffbase_storage = kopf.AnnotationsDiffBaseStorage()

    settings.posting.level = logging.INFO
    settings.networking.request_timeout = 30.0
    settings.execution.max_workers = 4

    load_kube_config()
    operator_config = OperatorConfig.from_env()
    install_handler(PingSourceHandler.from_config(operator_config))
    logger.info(
        "PingSource operator configured (system namespace %s, deprecated name migration %s)",
        operator_config.system_namespace,
        "on" if operator_config.migrate_deprecated_adapter_names else "off",
    )

    # Metrics and health check endpoints
    health.start_health_server(operator_config.metrics_port)
    health.set_ready()


@kopf.on.cleanup()
def shutdown(**_: Any) -> None:
    """Stop reporting ready once the operator begins shutting down."""
    health.set_ready(False)
