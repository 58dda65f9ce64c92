"""Watches on objects that PingSources depend on."""

from __future__ import annotations

import logging
from typing import Any

import kopf

from ..constants import (
    CONFIGMAP_LOGGING,
    CONFIGMAP_OBSERVABILITY,
    KIND_DEPLOYMENT,
    KIND_PING_SOURCE,
    LABEL_SOURCE,
    SOURCE_CONTROLLER_AGENT,
)
from ..tracker import ObjectKey, Reference
from ..utils.errors import KUBE_API_ERRORS, describe_api_exception, is_not_found
from .pingsource import PingSourceHandler, installed_handler

logger = logging.getLogger(__name__)


def controlling_source(obj: dict[str, Any]) -> ObjectKey | None:
    """Return the PingSource controlling ``obj``, if any."""
    metadata = obj.get("metadata", {})
    for ref in metadata.get("ownerReferences") or []:
        if ref.get("controller") and ref.get("kind") == KIND_PING_SOURCE:
            return ObjectKey(metadata.get("namespace", ""), ref.get("name", ""))
    return None


def requeue_sources(handler: PingSourceHandler, keys: list[ObjectKey]) -> None:
    """Ask for another reconcile of each PingSource in ``keys``.

    A failed requeue is logged and skipped; the next change to the watched
    object or the next resync picks the source up again.
    """
    for key in keys:
        try:
            handler.client.requeue_source(key.namespace, key.name)
        except KUBE_API_ERRORS as e:
            if is_not_found(e):
                handler.tracker.untrack(key.namespace, key.name)
                continue
            logger.warning("Failed to requeue PingSource %s/%s: %s", key.namespace, key.name, describe_api_exception(e))


def on_deployment_event(handler: PingSourceHandler, event_type: str | None, deployment: dict[str, Any]) -> list[ObjectKey]:
    """Refresh the lister and requeue the sources interested in a Deployment.

    Returns:
        The PingSources that were requeued
    """
    metadata = deployment.get("metadata", {})
    namespace = metadata.get("namespace", "")
    name = metadata.get("name", "")

    if event_type == "DELETED":
        handler.lister.forget(KIND_DEPLOYMENT, namespace, name)
    else:
        handler.lister.observe(KIND_DEPLOYMENT, deployment)

    # The initial listing only warms the cache.
    if event_type is None:
        return []

    keys = set(handler.tracker.dependents_of(Reference("apps/v1", KIND_DEPLOYMENT, namespace, name)))
    owner = controlling_source(deployment)
    if owner is not None:
        keys.add(owner)
    requeued = sorted(keys)
    requeue_sources(handler, requeued)
    return requeued


@kopf.on.event("apps/v1", "deployments", labels={LABEL_SOURCE: SOURCE_CONTROLLER_AGENT})
def watch_adapter_deployments(event: dict[str, Any], body: kopf.Body, **_: Any) -> None:
    """Propagate receive adapter changes to the PingSources using them."""
    handler = installed_handler()
    if handler is None:
        return
    on_deployment_event(handler, event.get("type"), dict(body))


def is_observability_configmap(name: str, namespace: str, **_: Any) -> bool:
    """Match the logging and observability ConfigMaps in the system namespace."""
    handler = installed_handler()
    if handler is None:
        return False
    return namespace == handler.operator_config.system_namespace and name in (
        CONFIGMAP_LOGGING,
        CONFIGMAP_OBSERVABILITY,
    )


def on_configmap_event(handler: PingSourceHandler, event_type: str | None, configmap: dict[str, Any]) -> bool:
    """Reload adapter configuration from an observability ConfigMap.

    Returns:
        True if the configuration was replaced
    """
    if event_type == "DELETED":
        return False

    name = configmap.get("metadata", {}).get("name")
    if name == CONFIGMAP_LOGGING:
        return handler.config_store.update_from_logging_configmap(configmap)
    if name == CONFIGMAP_OBSERVABILITY:
        return handler.config_store.update_from_metrics_configmap(configmap)
    return False


@kopf.on.event("v1", "configmaps", when=is_observability_configmap)
def watch_observability_configmaps(event: dict[str, Any], body: kopf.Body, **_: Any) -> None:
    """Keep the adapter logging and metrics configuration current."""
    handler = installed_handler()
    if handler is None:
        return
    on_configmap_event(handler, event.get("type"), dict(body))
