"""Builders for the receive adapter identity and permissions."""

from __future__ import annotations

from typing import Any, Mapping

import kopf


def make_service_account(source: Mapping[str, Any], name: str) -> dict[str, Any]:
    """Create the ServiceAccount a dedicated receive adapter runs as.

    Args:
        source: Owning PingSource
        name: ServiceAccount name

    Returns:
        ServiceAccount manifest controlled by the PingSource
    """
    service_account = {
        "apiVersion": "v1",
        "kind": "ServiceAccount",
        "metadata": {
            "name": name,
            "namespace": source["metadata"]["namespace"],
        },
    }
    kopf.append_owner_reference(service_account, owner=source)
    return service_account


def make_role_binding(source: Mapping[str, Any], name: str, cluster_role_name: str) -> dict[str, Any]:
    """Bind the receive adapter ServiceAccount to the adapter ClusterRole.

    Args:
        source: Owning PingSource
        name: RoleBinding name, also the ServiceAccount name
        cluster_role_name: Pre-existing ClusterRole granting adapter permissions

    Returns:
        RoleBinding manifest controlled by the PingSource
    """
    namespace = source["metadata"]["namespace"]
    role_binding = {
        "apiVersion": "rbac.authorization.k8s.io/v1",
        "kind": "RoleBinding",
        "metadata": {
            "name": name,
            "namespace": namespace,
        },
        "roleRef": {
            "apiGroup": "rbac.authorization.k8s.io",
            "kind": "ClusterRole",
            "name": cluster_role_name,
        },
        "subjects": [
            {
                "kind": "ServiceAccount",
                "name": name,
                "namespace": namespace,
            }
        ],
    }
    kopf.append_owner_reference(role_binding, owner=source)
    return role_binding
