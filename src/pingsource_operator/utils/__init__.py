"""Utility functions for the PingSource Operator."""

from .cache import (
    get_cached_object,
    invalidate_cache,
    invalidate_cached_object,
    make_cache_key,
    set_cached_object,
)
from .conditions import (
    compute_ready_condition,
    mark_no_sink,
    mark_schedule,
    mark_sink,
    propagate_deployment_availability,
    set_ce_attributes,
    update_condition,
)
from .drift import has_drifted, is_derivative
from .events import emit_event
from .rate_limit import rate_limit_k8s
from .scope import route_scope

__all__ = [
    "update_condition",
    "mark_sink",
    "mark_no_sink",
    "mark_schedule",
    "propagate_deployment_availability",
    "set_ce_attributes",
    "compute_ready_condition",
    "emit_event",
    "get_cached_object",
    "set_cached_object",
    "invalidate_cache",
    "invalidate_cached_object",
    "make_cache_key",
    "rate_limit_k8s",
    "has_drifted",
    "is_derivative",
    "route_scope",
]
