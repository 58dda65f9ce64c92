"""Get-or-create-or-update of objects managed on behalf of PingSources."""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Mapping

from .. import metrics
from ..constants import (
    EVENT_REASON_DEPLOYMENT_FAILED,
    EVENT_REASON_ROLE_BINDING_FAILED,
    EVENT_REASON_SERVICE_ACCOUNT_FAILED,
    KIND_DEPLOYMENT,
    KIND_PING_SOURCE,
    KIND_ROLE_BINDING,
    KIND_SERVICE_ACCOUNT,
)
from ..services.kube.client import ClusterClient
from ..services.kube.lister import CachedLister
from ..tracing import trace_span
from ..utils.drift import has_drifted
from ..utils.errors import (
    KUBE_API_ERRORS,
    ManagedObjectError,
    OwnershipConflictError,
    describe_api_exception,
    is_conflict,
)
from ..utils.events import (
    emit_deployment_created,
    emit_deployment_updated,
    emit_role_binding_created,
    emit_service_account_created,
)

logger = logging.getLogger(__name__)

Notify = Callable[[Mapping[str, Any], Mapping[str, Any]], None]


class Action(str, Enum):
    CREATED = "created"
    UPDATED = "updated"
    UNCHANGED = "unchanged"


@dataclass(frozen=True)
class ManagedKind:
    """How one kind of managed object is reconciled.

    Attributes:
        kind: Kubernetes kind handled by the cluster client
        per_source: Whether each object is controlled by a single PingSource
        failure_reason: Event reason reported when a cluster call fails
        notify_created: Emits the creation event on the PingSource
        notify_updated: Emits the update event on the PingSource
        owned_fields: Projects the fields this operator owns; None means the
            object is never updated after creation
        apply_owned_fields: Copies the owned fields from desired onto live
    """

    kind: str
    per_source: bool
    failure_reason: str
    notify_created: Notify
    notify_updated: Notify | None = None
    owned_fields: Callable[[Mapping[str, Any]], Any] | None = None
    apply_owned_fields: Callable[[dict[str, Any], Mapping[str, Any]], None] | None = None


def deployment_template_fields(deployment: Mapping[str, Any]) -> dict[str, Any]:
    """The pod template fields owned on adapter Deployments."""
    template = deployment.get("spec", {}).get("template", {})
    return {
        "labels": template.get("metadata", {}).get("labels") or {},
        "spec": template.get("spec") or {},
    }


def apply_deployment_template_fields(live: dict[str, Any], desired: Mapping[str, Any]) -> None:
    """Overwrite the live pod spec and merge in the desired pod labels."""
    desired_template = desired["spec"]["template"]
    template = live.setdefault("spec", {}).setdefault("template", {})
    template["spec"] = copy.deepcopy(desired_template["spec"])
    template_metadata = template.setdefault("metadata", {})
    template_metadata["labels"] = {
        **(template_metadata.get("labels") or {}),
        **desired_template.get("metadata", {}).get("labels", {}),
    }


def _notify_deployment_created(source: Mapping[str, Any], obj: Mapping[str, Any]) -> None:
    metadata = obj.get("metadata", {})
    emit_deployment_created(source, metadata.get("namespace", ""), metadata.get("name", ""))


def _notify_deployment_updated(source: Mapping[str, Any], obj: Mapping[str, Any]) -> None:
    metadata = obj.get("metadata", {})
    emit_deployment_updated(source, metadata.get("namespace", ""), metadata.get("name", ""))


SERVICE_ACCOUNT = ManagedKind(
    kind=KIND_SERVICE_ACCOUNT,
    per_source=True,
    failure_reason=EVENT_REASON_SERVICE_ACCOUNT_FAILED,
    notify_created=lambda source, _: emit_service_account_created(source),
)

ROLE_BINDING = ManagedKind(
    kind=KIND_ROLE_BINDING,
    per_source=True,
    failure_reason=EVENT_REASON_ROLE_BINDING_FAILED,
    notify_created=lambda source, _: emit_role_binding_created(source),
)

RECEIVE_ADAPTER = ManagedKind(
    kind=KIND_DEPLOYMENT,
    per_source=True,
    failure_reason=EVENT_REASON_DEPLOYMENT_FAILED,
    notify_created=_notify_deployment_created,
    notify_updated=_notify_deployment_updated,
    owned_fields=deployment_template_fields,
    apply_owned_fields=apply_deployment_template_fields,
)

MT_RECEIVE_ADAPTER = ManagedKind(
    kind=KIND_DEPLOYMENT,
    per_source=False,
    failure_reason=EVENT_REASON_DEPLOYMENT_FAILED,
    notify_created=_notify_deployment_created,
    notify_updated=_notify_deployment_updated,
    owned_fields=deployment_template_fields,
    apply_owned_fields=apply_deployment_template_fields,
)


def is_controlled_by(obj: Mapping[str, Any], owner: Mapping[str, Any]) -> bool:
    """Check whether ``owner`` is the controller of ``obj``."""
    owner_uid = owner.get("metadata", {}).get("uid")
    for ref in obj.get("metadata", {}).get("ownerReferences") or []:
        if ref.get("controller") and ref.get("uid") == owner_uid:
            return True
    return False


class ManagedObjectReconciler:
    """Drives one managed object toward its desired state.

    Reads go through the lister, which may be stale; writes go through the
    cluster client, whose duplicate and conflict detection is relied on for
    correctness when several PingSources converge the same object.
    """

    def __init__(self, lister: CachedLister, cluster_client: ClusterClient):
        self.lister = lister
        self.client = cluster_client

    def _failure(self, managed: ManagedKind, verb: str, namespace: str, name: str, error: Exception) -> ManagedObjectError:
        metrics.managed_object_operations_total.labels(kind=managed.kind, operation=verb, result="error").inc()
        return ManagedObjectError(
            f"{verb} {managed.kind} {namespace}/{name}: {describe_api_exception(error)}",
            reason=managed.failure_reason,
            cause=error,
        )

    def ensure(
        self,
        managed: ManagedKind,
        desired: dict[str, Any],
        source: Mapping[str, Any],
        before_create: Callable[[], None] | None = None,
    ) -> tuple[dict[str, Any], Action]:
        """Make the object described by ``desired`` exist and match its owned fields.

        Args:
            managed: Kind-specific behaviour
            desired: Freshly built desired object; never mutated
            source: PingSource being reconciled; the expected controller of
                per-source kinds and the target of notifications
            before_create: Hook run only when the object has to be created

        Returns:
            The live object and what was done to it

        Raises:
            OwnershipConflictError: If a per-source object is controlled by someone else
            ManagedObjectError: If a cluster call fails
        """
        namespace = desired["metadata"]["namespace"]
        name = desired["metadata"]["name"]

        with trace_span(f"ensure_{managed.kind.lower()}", kind=managed.kind, attributes={"object.name": name}):
            try:
                live = self.lister.get(managed.kind, namespace, name)
            except KUBE_API_ERRORS as e:
                raise self._failure(managed, "getting", namespace, name, e) from e

            if live is None:
                if before_create is not None:
                    before_create()
                created = self._create(managed, desired, source)
                if created is not None:
                    return created, Action.CREATED
                # Lost a create race; continue with the winner's object.
                live = self._get_authoritative(managed, namespace, name)

            if managed.per_source and not is_controlled_by(live, source):
                raise OwnershipConflictError(
                    managed.kind, namespace, name, source.get("metadata", {}).get("name", "")
                )

            if managed.owned_fields is None or not has_drifted(managed.owned_fields(desired), managed.owned_fields(live)):
                logger.debug("Reusing existing %s %s/%s", managed.kind, namespace, name)
                return live, Action.UNCHANGED

            metrics.drift_detected_total.labels(kind=KIND_PING_SOURCE, resource_type=managed.kind).inc()
            return self._update(managed, live, desired, source), Action.UPDATED

    def _create(
        self,
        managed: ManagedKind,
        desired: dict[str, Any],
        source: Mapping[str, Any],
    ) -> dict[str, Any] | None:
        """Create the object, returning None if it already exists."""
        namespace = desired["metadata"]["namespace"]
        name = desired["metadata"]["name"]
        try:
            created = self.client.create(managed.kind, copy.deepcopy(desired))
        except KUBE_API_ERRORS as e:
            if is_conflict(e):
                metrics.managed_object_operations_total.labels(kind=managed.kind, operation="create", result="exists").inc()
                logger.debug("%s %s/%s already exists", managed.kind, namespace, name)
                return None
            raise self._failure(managed, "creating", namespace, name, e) from e

        self.lister.observe(managed.kind, created)
        metrics.managed_object_operations_total.labels(kind=managed.kind, operation="create", result="success").inc()
        managed.notify_created(source, created)
        return created

    def _get_authoritative(self, managed: ManagedKind, namespace: str, name: str) -> dict[str, Any]:
        try:
            live = self.client.get(managed.kind, namespace, name)
        except KUBE_API_ERRORS as e:
            raise self._failure(managed, "getting", namespace, name, e) from e
        if live is None:
            raise ManagedObjectError(
                f"{managed.kind} {namespace}/{name} was deleted while being created",
                reason=managed.failure_reason,
            )
        self.lister.observe(managed.kind, live)
        return live

    def _update(
        self,
        managed: ManagedKind,
        live: Mapping[str, Any],
        desired: Mapping[str, Any],
        source: Mapping[str, Any],
    ) -> dict[str, Any]:
        namespace = desired["metadata"]["namespace"]
        name = desired["metadata"]["name"]
        updated = copy.deepcopy(dict(live))
        managed.apply_owned_fields(updated, desired)
        try:
            result = self.client.update(managed.kind, updated)
        except KUBE_API_ERRORS as e:
            # The cached copy is stale or gone; re-read on the next reconcile.
            self.lister.forget(managed.kind, namespace, name)
            raise self._failure(managed, "updating", namespace, name, e) from e

        self.lister.observe(managed.kind, result)
        metrics.managed_object_operations_total.labels(kind=managed.kind, operation="update", result="success").inc()
        if managed.notify_updated is not None:
            managed.notify_updated(source, result)
        return result
