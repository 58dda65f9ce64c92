"""Utilities for managing PingSource status conditions."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from ..constants import (
    COND_DEPLOYED,
    COND_READY,
    COND_SINK_PROVIDED,
    COND_VALID_SCHEDULE,
    PING_SOURCE_EVENT_TYPE,
)

# Conditions that must all be True for the PingSource to be Ready.
DEPENDENT_CONDITIONS = (COND_SINK_PROVIDED, COND_VALID_SCHEDULE, COND_DEPLOYED)


def update_condition(
    conditions: list[dict[str, Any]],
    condition_type: str,
    status: str,
    reason: str,
    message: str,
    observed_generation: int | None = None,
) -> list[dict[str, Any]]:
    """Update or add a condition to the conditions list.

    Args:
        conditions: List of existing conditions
        condition_type: Type of condition
        status: Status of condition ("True", "False", "Unknown")
        reason: Reason for the condition
        message: Human-readable message
        observed_generation: Generation when condition was observed

    Returns:
        Updated list of conditions
    """
    now = datetime.now(timezone.utc).isoformat()

    existing_idx = None
    for idx, cond in enumerate(conditions):
        if cond.get("type") == condition_type:
            existing_idx = idx
            break

    new_condition = {
        "type": condition_type,
        "status": status,
        "reason": reason,
        "message": message,
        "lastTransitionTime": now,
    }

    if observed_generation is not None:
        new_condition["observedGeneration"] = observed_generation

    if existing_idx is not None:
        existing = conditions[existing_idx]
        # Only update lastTransitionTime if status changed
        if existing.get("status") == status:
            new_condition["lastTransitionTime"] = existing.get("lastTransitionTime", now)
        conditions[existing_idx] = new_condition
    else:
        conditions.append(new_condition)

    return conditions


def get_condition(status: dict[str, Any], condition_type: str) -> dict[str, Any] | None:
    """Find a condition by type in a status block."""
    for cond in status.get("conditions", []):
        if cond.get("type") == condition_type:
            return cond
    return None


def _set(status: dict[str, Any], condition_type: str, value: str, reason: str, message: str) -> None:
    conditions = status.setdefault("conditions", [])
    update_condition(conditions, condition_type, value, reason, message)


def mark_sink(status: dict[str, Any], sink_uri: str) -> None:
    """Record the resolved sink address."""
    status["sinkUri"] = sink_uri
    if sink_uri:
        _set(status, COND_SINK_PROVIDED, "True", "SinkProvided", "")
    else:
        _set(status, COND_SINK_PROVIDED, "Unknown", "SinkEmpty", "Sink has resolved to empty.")


def mark_no_sink(status: dict[str, Any], reason: str, message: str) -> None:
    """Record that the sink could not be resolved."""
    status.pop("sinkUri", None)
    _set(status, COND_SINK_PROVIDED, "False", reason, message)


def mark_schedule(status: dict[str, Any]) -> None:
    """Record that the schedule is valid.

    Schedules are validated at admission, so reaching reconcile implies validity.
    """
    _set(status, COND_VALID_SCHEDULE, "True", "ValidSchedule", "")


def mark_deployed(status: dict[str, Any]) -> None:
    """Record that the receive adapter is available."""
    _set(status, COND_DEPLOYED, "True", "Deployed", "")


def mark_not_deployed(status: dict[str, Any], reason: str, message: str) -> None:
    """Record that the receive adapter is not available."""
    _set(status, COND_DEPLOYED, "False", reason, message)


def is_deployment_available(deployment: dict[str, Any]) -> bool:
    """Check the Deployment's own Available condition."""
    for cond in deployment.get("status", {}).get("conditions") or []:
        if cond.get("type") == "Available":
            return cond.get("status") == "True"
    return False


def propagate_deployment_availability(status: dict[str, Any], deployment: dict[str, Any]) -> None:
    """Mirror the receive adapter Deployment's availability onto the PingSource."""
    if is_deployment_available(deployment):
        mark_deployed(status)
        return
    name = deployment.get("metadata", {}).get("name", "")
    mark_not_deployed(status, "DeploymentUnavailable", f"The Deployment '{name}' is unavailable.")


def set_ce_attributes(status: dict[str, Any], namespace: str, name: str) -> None:
    """Replace the CloudEvent attributes the PingSource emits."""
    status["ceAttributes"] = [
        {
            "type": PING_SOURCE_EVENT_TYPE,
            "source": ping_source_event_source(namespace, name),
        }
    ]


def ping_source_event_source(namespace: str, name: str) -> str:
    """CloudEvent source attribute for a PingSource."""
    return f"/apis/v1/namespaces/{namespace}/pingsources/{name}"


def compute_ready_condition(status: dict[str, Any]) -> None:
    """Derive the Ready condition from the dependent conditions.

    Ready is False as soon as any dependent is False, Unknown while any is
    missing or Unknown, and True only when all are True.
    """
    unknown = None
    for condition_type in DEPENDENT_CONDITIONS:
        cond = get_condition(status, condition_type)
        if cond is None:
            unknown = unknown or ("NotReconciled", f"{condition_type} has not been reconciled")
            continue
        if cond.get("status") == "False":
            _set(status, COND_READY, "False", cond.get("reason", condition_type), cond.get("message", ""))
            return
        if cond.get("status") != "True":
            unknown = unknown or (cond.get("reason", ""), cond.get("message", ""))

    if unknown is not None:
        reason, message = unknown
        _set(status, COND_READY, "Unknown", reason, message)
        return
    _set(status, COND_READY, "True", "Ready", "")
