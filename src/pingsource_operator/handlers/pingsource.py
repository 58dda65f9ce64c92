"""Handler for PingSource resources."""

from __future__ import annotations

import copy
from typing import Any, Mapping

import kopf

from ..builders.adapter import (
    MTReceiveAdapterArgs,
    ReceiveAdapterArgs,
    make_mt_receive_adapter,
    make_receive_adapter,
)
from ..builders.names import deprecated_receive_adapter_name, receive_adapter_name
from ..builders.rbac import make_role_binding, make_service_account
from ..config import ConfigSnapshot, ConfigStore, OperatorConfig
from ..constants import (
    API_GROUP_VERSION,
    EVENT_REASON_DEPLOYMENT_FAILED,
    KIND_DEPLOYMENT,
    KIND_PING_SOURCE,
    SCOPE_CLUSTER,
    ST_ADAPTER_CLUSTER_ROLE_NAME,
)
from ..services.kube.client import ClusterClient
from ..services.kube.lister import CachedLister
from ..services.resolver import SinkResolver, resolve_sink
from ..tracing import set_span_status, trace_span
from ..tracker import Reference, Tracker
from ..utils.conditions import (
    compute_ready_condition,
    get_condition,
    mark_no_sink,
    mark_not_deployed,
    mark_schedule,
    mark_sink,
    propagate_deployment_availability,
    set_ce_attributes,
)
from ..utils.errors import (
    KUBE_API_ERRORS,
    ManagedObjectError,
    OwnershipConflictError,
    ReconcileError,
    SinkNotFoundError,
    describe_api_exception,
)
from ..utils.events import emit_deprecated_deployment_deleted
from ..utils.scope import route_scope
from .base import BaseHandler
from .managed import (
    MT_RECEIVE_ADAPTER,
    RECEIVE_ADAPTER,
    ROLE_BINDING,
    SERVICE_ACCOUNT,
    ManagedObjectReconciler,
)
from .outcome import Outcome


class PingSourceHandler(BaseHandler):
    """Reconciles a PingSource into a running receive adapter.

    Each reconcile resolves the sink, routes the source to the shared or a
    dedicated adapter, converges the adapter's objects and projects the
    result onto the source status. Every step is idempotent, so a failed
    reconcile is simply run again from the top.
    """

    def __init__(
        self,
        operator_config: OperatorConfig,
        config_store: ConfigStore,
        cluster_client: ClusterClient,
        lister: CachedLister,
        resolver: SinkResolver,
        tracker: Tracker,
    ):
        super().__init__(KIND_PING_SOURCE)
        self.operator_config = operator_config
        self.config_store = config_store
        self.client = cluster_client
        self.lister = lister
        self.resolver = resolver
        self.tracker = tracker
        self.managed = ManagedObjectReconciler(lister, cluster_client)

    @classmethod
    def from_config(cls, operator_config: OperatorConfig) -> PingSourceHandler:
        """Wire a handler against the current kube config."""
        cluster_client = ClusterClient()
        return cls(
            operator_config=operator_config,
            config_store=ConfigStore(operator_config.leader_election_config),
            cluster_client=cluster_client,
            lister=CachedLister(cluster_client),
            resolver=SinkResolver(cluster_client.api_client),
            tracker=Tracker(),
        )

    def reconcile(self, source: dict[str, Any]) -> Outcome:
        """Reconcile a PingSource, writing the result into ``source["status"]``.

        Args:
            source: The PingSource; only its status is modified

        Returns:
            Success, a retryable failure or a terminal failure
        """
        metadata = source["metadata"]
        status = source.setdefault("status", {})
        snapshot = self.config_store.snapshot()

        with trace_span("reconcile_pingsource", kind=KIND_PING_SOURCE, attributes={"pingsource.name": metadata["name"]}):
            try:
                self._reconcile(source, status, snapshot)
                outcome = Outcome.success()
            except OwnershipConflictError as e:
                mark_not_deployed(status, "OwnershipConflict", str(e))
                self.report_failure(source, e)
                outcome = Outcome.from_error(e)
            except ReconcileError as e:
                self.report_failure(source, e)
                outcome = Outcome.from_error(e)
            set_span_status(outcome.ok, outcome.detail)

        set_ce_attributes(status, metadata["namespace"], metadata["name"])
        compute_ready_condition(status)
        status["observedGeneration"] = metadata.get("generation", 0)
        ready = (get_condition(status, "Ready") or {}).get("status") == "True"
        self.record_resource_status(ready)
        return outcome

    def _reconcile(self, source: dict[str, Any], status: dict[str, Any], snapshot: ConfigSnapshot) -> None:
        metadata = source["metadata"]
        try:
            sink_uri = resolve_sink(self.resolver, metadata["namespace"], source.get("spec", {}).get("sink"))
        except SinkNotFoundError as e:
            mark_no_sink(status, "NotFound", str(e))
            raise
        mark_sink(status, sink_uri)
        mark_schedule(status)

        if route_scope(source) == SCOPE_CLUSTER:
            deployment = self._reconcile_cluster_scope(source, snapshot)
        else:
            deployment = self._reconcile_resource_scope(source, sink_uri, snapshot)
        propagate_deployment_availability(status, deployment)

    def _reconcile_cluster_scope(self, source: dict[str, Any], snapshot: ConfigSnapshot) -> dict[str, Any]:
        """Converge the shared adapter and subscribe the source to its changes."""
        expected = make_mt_receive_adapter(
            MTReceiveAdapterArgs(
                namespace=self.operator_config.system_namespace,
                image=self.operator_config.mt_adapter_image,
                logging_config=snapshot.logging_config,
                metrics_config=snapshot.metrics_config,
                leader_election_config=snapshot.leader_election_config,
            )
        )
        deployment, action = self.managed.ensure(MT_RECEIVE_ADAPTER, expected, source)
        self.log_debug(source["metadata"], f"Cluster-scoped deployment {action.value}", reason="SharedAdapter")

        self.tracker.track(
            Reference("apps/v1", KIND_DEPLOYMENT, deployment["metadata"]["namespace"], deployment["metadata"]["name"]),
            source,
        )
        return deployment

    def _reconcile_resource_scope(
        self,
        source: dict[str, Any],
        sink_uri: str,
        snapshot: ConfigSnapshot,
    ) -> dict[str, Any]:
        """Converge the identity, permissions and dedicated adapter of a source."""
        metadata = source["metadata"]
        name = receive_adapter_name(metadata["name"], metadata["uid"])

        self.managed.ensure(SERVICE_ACCOUNT, make_service_account(source, name), source)
        self.managed.ensure(ROLE_BINDING, make_role_binding(source, name, ST_ADAPTER_CLUSTER_ROLE_NAME), source)

        expected = make_receive_adapter(
            ReceiveAdapterArgs(
                name=name,
                image=self.operator_config.adapter_image,
                source=source,
                sink_uri=sink_uri,
                logging_config=snapshot.logging_config,
                metrics_config=snapshot.metrics_config,
            )
        )
        before_create = None
        if self.operator_config.migrate_deprecated_adapter_names:
            before_create = lambda: self._delete_deprecated_adapter(source, name)  # noqa: E731
        deployment, action = self.managed.ensure(RECEIVE_ADAPTER, expected, source, before_create=before_create)
        self.log_debug(metadata, f"Receive adapter {action.value}", reason="ReceiveAdapter")
        return deployment

    def _delete_deprecated_adapter(self, source: Mapping[str, Any], expected_name: str) -> None:
        """Remove an adapter still running under the pre-child_name naming scheme.

        Gated by MIGRATE_DEPRECATED_ADAPTER_NAMES; drop this method and the
        deprecated name builder together once no such adapters remain.
        """
        metadata = source["metadata"]
        namespace = metadata["namespace"]
        deprecated_name = deprecated_receive_adapter_name(metadata["name"], metadata["uid"])
        if deprecated_name == expected_name:
            return

        try:
            deleted = self.client.delete(KIND_DEPLOYMENT, namespace, deprecated_name)
        except KUBE_API_ERRORS as e:
            raise ManagedObjectError(
                f"deleting deprecated named deployment {namespace}/{deprecated_name}: {describe_api_exception(e)}",
                reason=EVENT_REASON_DEPLOYMENT_FAILED,
                cause=e,
            ) from e

        self.lister.forget(KIND_DEPLOYMENT, namespace, deprecated_name)
        if deleted:
            self.log_info(metadata, f"Deprecated deployment {deprecated_name} removed", reason="DeprecatedDeploymentDeleted")
            emit_deprecated_deployment_deleted(source, namespace, deprecated_name)


# Global handler instance, installed by the startup hook once kube config is loaded
_handler: PingSourceHandler | None = None


def install_handler(handler: PingSourceHandler | None) -> None:
    """Install the handler used by the kopf entry points."""
    global _handler
    _handler = handler


def installed_handler() -> PingSourceHandler | None:
    """Return the installed handler, or None during startup."""
    return _handler


def get_handler() -> PingSourceHandler:
    """Return the installed handler.

    Raises:
        kopf.TemporaryError: If the operator has not finished starting up
    """
    if _handler is None:
        raise kopf.TemporaryError("PingSource handler is not initialized yet", delay=5)
    return _handler


def patch_status(patch: kopf.Patch, old_status: Mapping[str, Any] | None, new_status: Mapping[str, Any]) -> None:
    """Write a recomputed status as a merge patch, deleting dropped keys."""
    for key in old_status or {}:
        if key not in new_status:
            patch.status[key] = None
    patch.status.update(copy.deepcopy(dict(new_status)))


@kopf.on.create(API_GROUP_VERSION, KIND_PING_SOURCE)
@kopf.on.update(API_GROUP_VERSION, KIND_PING_SOURCE)
@kopf.on.resume(API_GROUP_VERSION, KIND_PING_SOURCE)
def handle_pingsource(
    body: kopf.Body,
    meta: kopf.Meta,
    patch: kopf.Patch,
    **kwargs: Any,
) -> None:
    """Handle PingSource resource reconciliation."""
    handler = get_handler()
    source = copy.deepcopy(dict(body))
    outcome = handler.reconcile_with_metrics(meta, lambda: handler.reconcile(source))
    patch_status(patch, body.get("status"), source["status"])
    outcome.raise_for_kopf()


@kopf.on.delete(API_GROUP_VERSION, KIND_PING_SOURCE, optional=True)
def handle_pingsource_delete(
    meta: kopf.Meta,
    **kwargs: Any,
) -> None:
    """Forget a deleted PingSource's dependencies.

    Managed objects carry owner references, so garbage collection removes them.
    """
    handler = installed_handler()
    if handler is None:
        return
    handler.tracker.untrack(meta.get("namespace", ""), meta.get("name", ""))
    handler.log_info(meta, "PingSource deleted", event="deletion", reason="Deletion")
