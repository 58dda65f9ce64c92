"""Builders for receive adapter Deployments."""

from __future__ import annotations

import copy
import json
from dataclasses import dataclass
from typing import Any, Mapping

import kopf

from ..constants import (
    ADAPTER_CONTAINER_NAME,
    LABEL_SOURCE,
    LABEL_SOURCE_NAME,
    LABEL_SOURCE_ROLE,
    METRICS_DOMAIN,
    METRICS_PORT,
    METRICS_PORT_NAME,
    MT_ADAPTER_NAME,
    SOURCE_CONTROLLER_AGENT,
)

# Quantities are written in canonical form so the API server echoes them back unchanged.
ADAPTER_RESOURCES = {
    "requests": {"cpu": "125m", "memory": "64Mi"},
    "limits": {"cpu": "1", "memory": "2Gi"},
}


def labels(source_name: str) -> dict[str, str]:
    """Labels identifying a dedicated receive adapter."""
    return {
        LABEL_SOURCE: SOURCE_CONTROLLER_AGENT,
        LABEL_SOURCE_NAME: source_name,
    }


def mt_labels() -> dict[str, str]:
    """Labels identifying the shared receive adapter."""
    return {
        LABEL_SOURCE: SOURCE_CONTROLLER_AGENT,
        LABEL_SOURCE_ROLE: "adapter",
    }


@dataclass(frozen=True)
class ReceiveAdapterArgs:
    """Inputs for a dedicated receive adapter."""

    name: str
    image: str
    source: Mapping[str, Any]
    sink_uri: str
    logging_config: str
    metrics_config: str


@dataclass(frozen=True)
class MTReceiveAdapterArgs:
    """Inputs for the shared receive adapter."""

    namespace: str
    image: str
    logging_config: str
    metrics_config: str
    leader_election_config: str
    name: str = MT_ADAPTER_NAME
    service_account_name: str = MT_ADAPTER_NAME


def _env(name: str, value: str) -> dict[str, Any]:
    return {"name": name, "value": value}


def _container(image: str, env: list[dict[str, Any]]) -> dict[str, Any]:
    return {
        "name": ADAPTER_CONTAINER_NAME,
        "image": image,
        "env": env,
        "ports": [{"name": METRICS_PORT_NAME, "containerPort": METRICS_PORT}],
        "resources": copy.deepcopy(ADAPTER_RESOURCES),
    }


def _deployment(
    name: str,
    namespace: str,
    deployment_labels: dict[str, str],
    pod_spec: dict[str, Any],
    pod_annotations: dict[str, str] | None = None,
) -> dict[str, Any]:
    template_metadata: dict[str, Any] = {"labels": dict(deployment_labels)}
    if pod_annotations:
        template_metadata["annotations"] = pod_annotations
    return {
        "apiVersion": "apps/v1",
        "kind": "Deployment",
        "metadata": {
            "name": name,
            "namespace": namespace,
            "labels": dict(deployment_labels),
        },
        "spec": {
            "replicas": 1,
            "selector": {"matchLabels": dict(deployment_labels)},
            "template": {
                "metadata": template_metadata,
                "spec": pod_spec,
            },
        },
    }


def make_receive_adapter(args: ReceiveAdapterArgs) -> dict[str, Any]:
    """Create the Deployment for a PingSource's dedicated receive adapter.

    Args:
        args: Adapter inputs; ``args.name`` is also the ServiceAccount name

    Returns:
        Deployment manifest controlled by the PingSource
    """
    metadata = args.source["metadata"]
    spec = args.source.get("spec", {})

    env = [
        _env("SCHEDULE", spec.get("schedule", "")),
        _env("DATA", spec.get("jsonData", "")),
        _env("K_SINK", args.sink_uri),
        _env("NAME", metadata["name"]),
        _env("NAMESPACE", metadata["namespace"]),
        _env("K_LOGGING_CONFIG", args.logging_config),
        _env("K_METRICS_CONFIG", args.metrics_config),
        _env("METRICS_DOMAIN", METRICS_DOMAIN),
    ]
    if spec.get("ceOverrides"):
        env.append(_env("K_CE_OVERRIDES", json.dumps(spec["ceOverrides"], sort_keys=True)))

    deployment = _deployment(
        name=args.name,
        namespace=metadata["namespace"],
        deployment_labels=labels(metadata["name"]),
        pod_spec={
            "serviceAccountName": args.name,
            "containers": [_container(args.image, env)],
        },
        pod_annotations={"sidecar.istio.io/inject": "true"},
    )
    kopf.append_owner_reference(deployment, owner=args.source)
    return deployment


def make_mt_receive_adapter(args: MTReceiveAdapterArgs) -> dict[str, Any]:
    """Create the Deployment for the shared receive adapter.

    The result depends only on static configuration, so every PingSource
    computes the same manifest and it is owned by none of them.
    """
    env = [
        {
            "name": "SYSTEM_NAMESPACE",
            "valueFrom": {"fieldRef": {"fieldPath": "metadata.namespace"}},
        },
        _env("NAMESPACE", args.namespace),
        _env("K_LOGGING_CONFIG", args.logging_config),
        _env("K_METRICS_CONFIG", args.metrics_config),
        _env("K_LEADER_ELECTION_CONFIG", args.leader_election_config),
        _env("METRICS_DOMAIN", METRICS_DOMAIN),
    ]
    return _deployment(
        name=args.name,
        namespace=args.namespace,
        deployment_labels=mt_labels(),
        pod_spec={
            "serviceAccountName": args.service_account_name,
            "containers": [_container(args.image, env)],
        },
    )
