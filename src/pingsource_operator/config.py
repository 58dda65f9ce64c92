"""Operator configuration and hot-reloadable observability settings."""

from __future__ import annotations

import json
import logging
import os
import threading
from dataclasses import dataclass, replace
from typing import Any, Mapping

from . import metrics
from .constants import COMPONENT, CONFIGMAP_EXAMPLE_KEY, METRICS_DOMAIN

logger = logging.getLogger(__name__)

ZAP_LOGGER_CONFIG_KEY = "zap-logger-config"
LOGLEVEL_PREFIX = "loglevel."
LOG_LEVELS = {"debug", "info", "warn", "error", "dpanic", "panic", "fatal"}

METRICS_BACKEND_KEYS = ("metrics.backend-destination", "metrics.request-metrics-backend-destination")
METRICS_BACKENDS = {"prometheus", "opencensus", "stackdriver", "none"}
METRICS_PERIOD_KEYS = ("metrics.reporting-period-seconds",)

DEFAULT_ZAP_LOGGER_CONFIG: dict[str, Any] = {
    "level": "info",
    "development": False,
    "outputPaths": ["stdout"],
    "errorOutputPaths": ["stderr"],
    "encoding": "json",
    "encoderConfig": {
        "timeKey": "ts",
        "levelKey": "level",
        "nameKey": "logger",
        "callerKey": "caller",
        "messageKey": "msg",
        "stacktraceKey": "stacktrace",
        "lineEnding": "",
        "levelEncoder": "",
        "timeEncoder": "iso8601",
        "durationEncoder": "",
        "callerEncoder": "",
    },
}

DEFAULT_LEADER_ELECTION_CONFIG: dict[str, Any] = {
    "resourceLock": "leases",
    "leaseDuration": "15s",
    "renewDeadline": "10s",
    "retryPeriod": "2s",
    "buckets": 1,
}


class ConfigParseError(ValueError):
    """Raised when an observability ConfigMap cannot be parsed."""


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class OperatorConfig:
    """Static process configuration read once from the environment."""

    adapter_image: str
    mt_adapter_image: str
    system_namespace: str = "knative-eventing"
    leader_election_config: str = json.dumps(DEFAULT_LEADER_ELECTION_CONFIG)
    migrate_deprecated_adapter_names: bool = True
    metrics_port: int = 8080

    @classmethod
    def from_env(cls) -> OperatorConfig:
        """Build the configuration from environment variables.

        Raises:
            ValueError: If a required image is missing or the leader election
                config is not valid JSON
        """
        adapter_image = os.getenv("PING_IMAGE", "")
        mt_adapter_image = os.getenv("MT_PING_IMAGE", "")
        if not adapter_image or not mt_adapter_image:
            raise ValueError("PING_IMAGE and MT_PING_IMAGE must be set")

        le_config = os.getenv("K_LEADER_ELECTION_CONFIG")
        if le_config:
            # Adapters parse this verbatim.
            json.loads(le_config)
        else:
            le_config = json.dumps(DEFAULT_LEADER_ELECTION_CONFIG)

        return cls(
            adapter_image=adapter_image,
            mt_adapter_image=mt_adapter_image,
            system_namespace=os.getenv("SYSTEM_NAMESPACE", "knative-eventing"),
            leader_election_config=le_config,
            migrate_deprecated_adapter_names=_env_bool("MIGRATE_DEPRECATED_ADAPTER_NAMES", True),
            metrics_port=int(os.getenv("METRICS_PORT", "8080")),
        )


@dataclass(frozen=True)
class ConfigSnapshot:
    """Serialized observability configuration handed to receive adapters."""

    logging_config: str
    metrics_config: str
    leader_election_config: str


def _configmap_data(cfg: Mapping[str, Any] | None) -> dict[str, str]:
    """Copy a ConfigMap's data without the reserved example key."""
    if not cfg:
        return {}
    data = dict(cfg.get("data") or {})
    data.pop(CONFIGMAP_EXAMPLE_KEY, None)
    return data


def parse_logging_config(data: Mapping[str, str]) -> str:
    """Parse logging ConfigMap data into the serialized adapter logging config.

    Raises:
        ConfigParseError: If the zap config is not a JSON object or a level is unknown
    """
    zap_config = DEFAULT_ZAP_LOGGER_CONFIG
    raw = data.get(ZAP_LOGGER_CONFIG_KEY)
    if raw:
        try:
            zap_config = json.loads(raw)
        except json.JSONDecodeError as e:
            raise ConfigParseError(f"invalid {ZAP_LOGGER_CONFIG_KEY}: {e}") from e
        if not isinstance(zap_config, dict):
            raise ConfigParseError(f"{ZAP_LOGGER_CONFIG_KEY} must be a JSON object")

    levels = {}
    for key, value in data.items():
        if not key.startswith(LOGLEVEL_PREFIX):
            continue
        level = str(value).strip().lower()
        if level not in LOG_LEVELS:
            raise ConfigParseError(f"invalid log level {value!r} for {key}")
        levels[key[len(LOGLEVEL_PREFIX):]] = level

    return json.dumps(
        {ZAP_LOGGER_CONFIG_KEY: json.dumps(zap_config), "loglevel": dict(sorted(levels.items()))},
        sort_keys=True,
    )


def parse_metrics_config(data: Mapping[str, str]) -> str:
    """Parse observability ConfigMap data into the serialized adapter metrics config.

    Raises:
        ConfigParseError: If a backend or reporting period is invalid
    """
    for key in METRICS_BACKEND_KEYS:
        backend = data.get(key)
        if backend is not None and str(backend).strip().lower() not in METRICS_BACKENDS:
            raise ConfigParseError(f"unsupported {key}: {backend!r}")

    for key in METRICS_PERIOD_KEYS:
        period = data.get(key)
        if period is None:
            continue
        try:
            int(period)
        except (TypeError, ValueError) as e:
            raise ConfigParseError(f"{key} must be an integer, got {period!r}") from e

    return json.dumps(
        {"Domain": METRICS_DOMAIN, "Component": COMPONENT, "ConfigMap": dict(sorted(data.items()))},
        sort_keys=True,
    )


class ConfigStore:
    """Holds the current observability configuration for reconcilers.

    The two update callbacks may be invoked from watch threads while
    reconciles read; reconciles take one snapshot up front so logging and
    metrics settings never tear within a single run.
    """

    def __init__(self, leader_election_config: str = json.dumps(DEFAULT_LEADER_ELECTION_CONFIG)):
        self._lock = threading.Lock()
        self._snapshot = ConfigSnapshot(
            logging_config=parse_logging_config({}),
            metrics_config=parse_metrics_config({}),
            leader_election_config=leader_election_config,
        )

    def snapshot(self) -> ConfigSnapshot:
        """Return the current immutable configuration snapshot."""
        with self._lock:
            return self._snapshot

    def _replace(self, **changes: str) -> None:
        with self._lock:
            self._snapshot = replace(self._snapshot, **changes)

    def update_from_logging_configmap(self, cfg: Mapping[str, Any] | None) -> bool:
        """Reload the adapter logging configuration.

        Returns:
            True if the configuration was replaced, False if it was rejected
        """
        name = (cfg or {}).get("metadata", {}).get("name", "unknown")
        try:
            logging_config = parse_logging_config(_configmap_data(cfg))
        except ConfigParseError as e:
            logger.warning("Failed to create logging config from configmap %s: %s", name, e)
            metrics.config_reload_total.labels(config="logging", result="rejected").inc()
            return False

        self._replace(logging_config=logging_config)
        metrics.config_reload_total.labels(config="logging", result="success").inc()
        logger.debug("Update from logging ConfigMap %s", name)
        return True

    def update_from_metrics_configmap(self, cfg: Mapping[str, Any] | None) -> bool:
        """Reload the adapter metrics configuration.

        Returns:
            True if the configuration was replaced, False if it was rejected
        """
        name = (cfg or {}).get("metadata", {}).get("name", "unknown")
        try:
            metrics_config = parse_metrics_config(_configmap_data(cfg))
        except ConfigParseError as e:
            logger.warning("Failed to create metrics config from configmap %s: %s", name, e)
            metrics.config_reload_total.labels(config="metrics", result="rejected").inc()
            return False

        self._replace(metrics_config=metrics_config)
        metrics.config_reload_total.labels(config="metrics", result="success").inc()
        logger.debug("Update from metrics ConfigMap %s", name)
        return True
