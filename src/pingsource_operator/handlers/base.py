"""Base handler class with common functionality for reconcile handlers."""

from __future__ import annotations

import logging
import time
from typing import Any, Callable, Mapping

from .. import metrics
from ..constants import CONTROLLER_NAME
from ..logging import log_resource_event
from ..utils.errors import ReconcileError
from ..utils.events import emit_reconcile_failed
from .outcome import Outcome


class BaseHandler:
    """Base class for handlers with structured logging and metrics."""

    def __init__(self, kind: str):
        """Initialize base handler.

        Args:
            kind: The Kubernetes resource kind (e.g., "PingSource")
        """
        self.kind = kind
        self.logger = logging.getLogger(__name__)

    def _get_resource_context(self, meta: Mapping[str, Any]) -> dict[str, Any]:
        """Extract common resource context from metadata.

        Args:
            meta: Kubernetes resource metadata

        Returns:
            Dictionary with resource context fields
        """
        return {
            "name": meta.get("name", "unknown"),
            "namespace": meta.get("namespace", "default"),
            "uid": meta.get("uid", "unknown"),
        }

    def _log(
        self,
        level: int,
        meta: Mapping[str, Any],
        message: str,
        event: str,
        reason: str,
        **kwargs: Any,
    ) -> None:
        ctx = self._get_resource_context(meta)
        log_resource_event(
            self.logger,
            controller=CONTROLLER_NAME,
            resource_kind=self.kind,
            resource_name=ctx["name"],
            namespace=ctx["namespace"],
            uid=ctx["uid"],
            event=event,
            reason=reason,
            message=message,
            level=level,
            **kwargs,
        )

    def log_debug(self, meta: Mapping[str, Any], message: str, event: str = "debug", reason: str = "Debug", **kwargs: Any) -> None:
        """Log a debug-level structured log message."""
        self._log(logging.DEBUG, meta, message, event, reason, **kwargs)

    def log_info(self, meta: Mapping[str, Any], message: str, event: str = "info", reason: str = "Info", **kwargs: Any) -> None:
        """Log an info-level structured log message.

        Args:
            meta: Kubernetes resource metadata
            message: Log message
            event: Event type (default: "info")
            reason: Reason for the event (default: "Info")
            **kwargs: Additional fields to include in the log
        """
        self._log(logging.INFO, meta, message, event, reason, **kwargs)

    def log_warning(
        self,
        meta: Mapping[str, Any],
        message: str,
        event: str = "warning",
        reason: str = "Warning",
        **kwargs: Any,
    ) -> None:
        """Log a warning-level structured log message."""
        self._log(logging.WARNING, meta, message, event, reason, **kwargs)

    def log_error(
        self,
        meta: Mapping[str, Any],
        message: str,
        error: Exception | None = None,
        event: str = "error",
        reason: str = "Error",
        **kwargs: Any,
    ) -> None:
        """Log an error-level structured log message.

        Args:
            meta: Kubernetes resource metadata
            message: Log message
            error: Optional exception whose details are included
            event: Event type (default: "error")
            reason: Reason for the event (default: "Error")
            **kwargs: Additional fields to include in the log
        """
        log_data = kwargs.copy()
        if error is not None:
            log_data["error"] = str(error)
            log_data["error_type"] = type(error).__name__
        self._log(logging.ERROR, meta, message, event, reason, **log_data)

    def report_failure(self, body: Mapping[str, Any], error: ReconcileError) -> None:
        """Log, count and publish a reconcile failure as a Warning event.

        Args:
            body: The resource being reconciled
            error: The failure that ended the reconcile
        """
        meta = body.get("metadata", {})
        self.log_error(
            meta,
            f"Reconciliation failed: {error}",
            error=error,
            reason=error.reason,
            retryable=error.retryable,
        )
        emit_reconcile_failed(body, str(error), reason=error.reason)
        metrics.error_total.labels(kind=self.kind, error_type=type(error).__name__).inc()

    def reconcile_with_metrics(
        self,
        meta: Mapping[str, Any],
        reconcile_fn: Callable[[], Outcome],
    ) -> Outcome:
        """Execute reconciliation with metrics and error logging.

        Args:
            meta: Kubernetes resource metadata
            reconcile_fn: Function to execute for reconciliation

        Returns:
            The outcome returned by ``reconcile_fn``
        """
        metrics.reconcile_total.labels(kind=self.kind, result="started").inc()

        start_time = time.time()
        try:
            outcome = reconcile_fn()
            metrics.reconcile_total.labels(kind=self.kind, result=outcome.result.value).inc()
            return outcome
        except Exception as e:
            metrics.error_total.labels(kind=self.kind, error_type=type(e).__name__).inc()
            self.log_error(meta, "Reconciliation failed unexpectedly", error=e, reason="ReconciliationFailed")
            metrics.reconcile_total.labels(kind=self.kind, result="error").inc()
            raise
        finally:
            duration = time.time() - start_time
            metrics.reconcile_duration_seconds.labels(kind=self.kind).observe(duration)

    def record_resource_status(self, ready: bool) -> None:
        """Count the readiness observed at the end of a reconcile."""
        metrics.resource_status_total.labels(kind=self.kind, status="ready" if ready else "not_ready").inc()
