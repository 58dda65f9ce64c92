"""Error types raised while reconciling PingSources."""

from __future__ import annotations

import json
from typing import Any

from kubernetes.client.exceptions import ApiException
from urllib3.exceptions import HTTPError

from ..constants import (
    EVENT_REASON_OWNERSHIP_CONFLICT,
    EVENT_REASON_RECONCILE_FAILED,
    EVENT_REASON_SINK_NOT_FOUND,
)

# API error responses and transport failures of a kubernetes client call
KUBE_API_ERRORS = (ApiException, HTTPError)


class ReconcileError(Exception):
    """Base class for reconcile failures.

    Attributes:
        reason: Event reason code reported on the PingSource
        retryable: Whether the invoker should requeue the PingSource
    """

    reason = EVENT_REASON_RECONCILE_FAILED
    retryable = True

    def __init__(self, message: str, reason: str | None = None):
        super().__init__(message)
        if reason is not None:
            self.reason = reason


class SinkNotFoundError(ReconcileError):
    """The destination could not be resolved to an address."""

    reason = EVENT_REASON_SINK_NOT_FOUND

    def __init__(self, destination: dict[str, Any]):
        self.destination = destination
        super().__init__(f"Sink not found: {json.dumps(destination, sort_keys=True)}")


class OwnershipConflictError(ReconcileError):
    """An object already exists at the expected name but is controlled by someone else."""

    reason = EVENT_REASON_OWNERSHIP_CONFLICT
    retryable = False

    def __init__(self, kind: str, namespace: str, name: str, owner_name: str):
        self.kind = kind
        self.namespace = namespace
        self.name = name
        super().__init__(f'{kind.lower()} "{namespace}/{name}" is not owned by PingSource "{owner_name}"')


class ManagedObjectError(ReconcileError):
    """A cluster call for a managed object failed."""

    def __init__(self, message: str, reason: str | None = None, cause: Exception | None = None):
        super().__init__(message, reason)
        self.cause = cause

    @property
    def status(self) -> int | None:
        """HTTP status of the underlying API error, if any."""
        if isinstance(self.cause, ApiException):
            return self.cause.status
        return None


class TrackingError(ReconcileError):
    """Registering a dependency on a watched object failed."""


def is_not_found(error: Exception) -> bool:
    """Check whether an API error means the object does not exist."""
    return isinstance(error, ApiException) and error.status == 404


def is_conflict(error: Exception) -> bool:
    """Check whether an API error is an AlreadyExists or optimistic-concurrency conflict."""
    return isinstance(error, ApiException) and error.status == 409


def describe_api_exception(error: Exception) -> str:
    """Short human-readable description of an API error."""
    if isinstance(error, ApiException):
        reason = error.reason or "Error"
        return f"{error.status} {reason}"
    return str(error)
