"""Utilities for emitting Kubernetes events."""

from __future__ import annotations

import logging
from typing import Any, Mapping

import kopf

from ..constants import (
    EVENT_REASON_DEPLOYMENT_CREATED,
    EVENT_REASON_DEPLOYMENT_DELETED,
    EVENT_REASON_DEPLOYMENT_UPDATED,
    EVENT_REASON_RECONCILE_FAILED,
    EVENT_REASON_ROLE_BINDING_CREATED,
    EVENT_REASON_SERVICE_ACCOUNT_CREATED,
)

logger = logging.getLogger(__name__)


def emit_event(
    body: Mapping[str, Any],
    reason: str,
    message: str,
    type_: str = "Normal",
) -> None:
    """Emit a Kubernetes event.

    Events are best-effort: a posting failure is logged and never
    propagates into the reconcile that emitted it.

    Args:
        body: Involved object (apiVersion, kind and metadata are required)
        reason: Event reason
        message: Event message
        type_: Event type (Normal or Warning)
    """
    try:
        kopf.event(
            body,
            reason=reason,
            message=message,
            type=type_,
        )
    except Exception as e:
        logger.debug("Dropping %s event %s: %s", type_, reason, e)


def emit_reconcile_failed(body: Mapping[str, Any], message: str, reason: str = EVENT_REASON_RECONCILE_FAILED) -> None:
    """Emit reconcile failed event."""
    emit_event(body, reason, message, type_="Warning")


def emit_service_account_created(body: Mapping[str, Any]) -> None:
    """Emit service account created event."""
    emit_event(body, EVENT_REASON_SERVICE_ACCOUNT_CREATED, "PingSource ServiceAccount created")


def emit_role_binding_created(body: Mapping[str, Any]) -> None:
    """Emit role binding created event."""
    emit_event(body, EVENT_REASON_ROLE_BINDING_CREATED, "PingSource RoleBinding created")


def emit_deployment_created(body: Mapping[str, Any], namespace: str, name: str) -> None:
    """Emit deployment created event."""
    emit_event(body, EVENT_REASON_DEPLOYMENT_CREATED, f'Deployment "{namespace}/{name}" created')


def emit_deployment_updated(body: Mapping[str, Any], namespace: str, name: str) -> None:
    """Emit deployment updated event."""
    emit_event(body, EVENT_REASON_DEPLOYMENT_UPDATED, f'Deployment "{namespace}/{name}" updated')


def emit_deprecated_deployment_deleted(body: Mapping[str, Any], namespace: str, name: str) -> None:
    """Emit deprecated deployment removed event."""
    emit_event(body, EVENT_REASON_DEPLOYMENT_DELETED, f'Deprecated deployment removed: "{namespace}/{name}"')
