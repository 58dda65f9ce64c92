"""Routing of PingSources to the shared or dedicated receive adapter."""

from __future__ import annotations

from typing import Any, Mapping

from ..constants import ANNOTATION_SCOPE, SCOPE_CLUSTER, SCOPE_RESOURCE


def route_scope(source: Mapping[str, Any]) -> str:
    """Decide which receive adapter serves a PingSource.

    Returns SCOPE_RESOURCE only when the scope annotation asks for it;
    a missing or unrecognized value routes to the shared cluster adapter.
    """
    annotations = source.get("metadata", {}).get("annotations") or {}
    if annotations.get(ANNOTATION_SCOPE) == SCOPE_RESOURCE:
        return SCOPE_RESOURCE
    return SCOPE_CLUSTER
