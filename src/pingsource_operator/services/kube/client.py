"""Authoritative Kubernetes client for PingSource managed objects."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable

from kubernetes import client, config
from kubernetes.client.exceptions import ApiException
from urllib3.exceptions import HTTPError

from ... import metrics
from ...constants import (
    ANNOTATION_RESYNC,
    API_GROUP,
    API_VERSION,
    KIND_DEPLOYMENT,
    KIND_ROLE_BINDING,
    KIND_SERVICE_ACCOUNT,
    PLURAL_PING_SOURCES,
)
from ...utils.rate_limit import rate_limit_k8s

logger = logging.getLogger(__name__)


def load_kube_config() -> None:
    """Load in-cluster config, falling back to the local kubeconfig."""
    try:
        config.load_incluster_config()
    except config.ConfigException:
        config.load_kube_config()


@dataclass(frozen=True)
class _KindOperations:
    read: Callable[..., Any]
    create: Callable[..., Any]
    replace: Callable[..., Any]
    delete: Callable[..., Any]


class ClusterClient:
    """Strongly-consistent create/read/update/delete against the API server.

    Every object crosses this boundary as a plain camelCase dict. Updates are
    full replaces carrying the object's resourceVersion, so a concurrent
    writer makes them fail with 409 instead of being silently overwritten.
    """

    def __init__(self, api_client: client.ApiClient | None = None):
        self.api_client = api_client or client.ApiClient()
        core = client.CoreV1Api(self.api_client)
        rbac = client.RbacAuthorizationV1Api(self.api_client)
        apps = client.AppsV1Api(self.api_client)
        self.custom = client.CustomObjectsApi(self.api_client)
        self._kinds = {
            KIND_SERVICE_ACCOUNT: _KindOperations(
                read=core.read_namespaced_service_account,
                create=core.create_namespaced_service_account,
                replace=core.replace_namespaced_service_account,
                delete=core.delete_namespaced_service_account,
            ),
            KIND_ROLE_BINDING: _KindOperations(
                read=rbac.read_namespaced_role_binding,
                create=rbac.create_namespaced_role_binding,
                replace=rbac.replace_namespaced_role_binding,
                delete=rbac.delete_namespaced_role_binding,
            ),
            KIND_DEPLOYMENT: _KindOperations(
                read=apps.read_namespaced_deployment,
                create=apps.create_namespaced_deployment,
                replace=apps.replace_namespaced_deployment,
                delete=apps.delete_namespaced_deployment,
            ),
        }

    def _operations(self, kind: str) -> _KindOperations:
        try:
            return self._kinds[kind]
        except KeyError:
            raise ValueError(f"Unsupported managed object kind: {kind}") from None

    def _call(self, operation: str, fn: Callable[..., Any], **kwargs: Any) -> Any:
        """Invoke an API method with rate limiting and call metrics."""
        start_time = time.time()
        try:
            result = rate_limit_k8s(fn)(**kwargs)
            metrics.api_call_total.labels(api_type="k8s", operation=operation, result="success").inc()
            return result
        except ApiException as e:
            result = "not_found" if e.status == 404 else "conflict" if e.status == 409 else "error"
            metrics.api_call_total.labels(api_type="k8s", operation=operation, result=result).inc()
            raise
        except HTTPError:
            metrics.api_call_total.labels(api_type="k8s", operation=operation, result="error").inc()
            raise
        finally:
            duration = time.time() - start_time
            metrics.api_call_duration_seconds.labels(api_type="k8s", operation=operation).observe(duration)

    def _to_dict(self, obj: Any) -> dict[str, Any]:
        return self.api_client.sanitize_for_serialization(obj)

    def get(self, kind: str, namespace: str, name: str) -> dict[str, Any] | None:
        """Read an object, returning None if it does not exist.

        Raises:
            ApiException: For any error other than 404
        """
        try:
            obj = self._call(f"read_{kind.lower()}", self._operations(kind).read, name=name, namespace=namespace)
        except ApiException as e:
            if e.status == 404:
                return None
            raise
        return self._to_dict(obj)

    def create(self, kind: str, body: dict[str, Any]) -> dict[str, Any]:
        """Create an object.

        Raises:
            ApiException: 409 if the name is already taken, or any other API error
        """
        namespace = body["metadata"]["namespace"]
        obj = self._call(f"create_{kind.lower()}", self._operations(kind).create, namespace=namespace, body=body)
        return self._to_dict(obj)

    def update(self, kind: str, body: dict[str, Any]) -> dict[str, Any]:
        """Replace an object guarded by its resourceVersion.

        Raises:
            ApiException: 409 on a resourceVersion conflict, or any other API error
        """
        metadata = body["metadata"]
        obj = self._call(
            f"replace_{kind.lower()}",
            self._operations(kind).replace,
            name=metadata["name"],
            namespace=metadata["namespace"],
            body=body,
        )
        return self._to_dict(obj)

    def delete(self, kind: str, namespace: str, name: str) -> bool:
        """Delete an object.

        Returns:
            True if the object was deleted, False if it was already gone

        Raises:
            ApiException: For any error other than 404
        """
        try:
            self._call(
                f"delete_{kind.lower()}",
                self._operations(kind).delete,
                name=name,
                namespace=namespace,
                body=client.V1DeleteOptions(propagation_policy="Background"),
            )
        except ApiException as e:
            if e.status == 404:
                return False
            raise
        return True

    def requeue_source(self, namespace: str, name: str) -> None:
        """Touch a PingSource so the operator reconciles it again.

        Raises:
            ApiException: If the PingSource cannot be patched
        """
        body = {"metadata": {"annotations": {ANNOTATION_RESYNC: datetime.now(timezone.utc).isoformat()}}}
        self._call(
            "patch_pingsource",
            self.custom.patch_namespaced_custom_object,
            group=API_GROUP,
            version=API_VERSION,
            namespace=namespace,
            plural=PLURAL_PING_SOURCES,
            name=name,
            body=body,
        )
        logger.debug("Requeued PingSource %s/%s", namespace, name)
