"""Read-through cache over the cluster client."""

from __future__ import annotations

import logging
from typing import Any, Mapping

from ... import metrics
from ...utils.cache import get_cached_object, invalidate_cached_object, make_cache_key, set_cached_object
from .client import ClusterClient

logger = logging.getLogger(__name__)


class CachedLister:
    """Answers "get object by key" from a TTL cache.

    Entries may be stale: callers must rely on the API server rejecting
    duplicate creates and stale updates rather than on read-your-writes.
    Watch handlers keep entries fresh through ``observe`` and ``forget``.
    """

    def __init__(self, cluster_client: ClusterClient):
        self._client = cluster_client

    def get(self, kind: str, namespace: str, name: str) -> dict[str, Any] | None:
        """Get an object by key, returning None if it does not exist.

        Raises:
            ApiException: If the object is not cached and the read fails
        """
        cache_key = make_cache_key(kind, namespace, name)
        cached = get_cached_object(cache_key)
        if cached is not None:
            metrics.api_call_total.labels(api_type="k8s", operation=f"list_{kind.lower()}", result="cache_hit").inc()
            return cached

        obj = self._client.get(kind, namespace, name)
        if obj is not None:
            set_cached_object(cache_key, obj)
        return obj

    def observe(self, kind: str, obj: Mapping[str, Any]) -> None:
        """Record the latest known state of an object."""
        metadata = obj.get("metadata", {})
        set_cached_object(make_cache_key(kind, metadata.get("namespace", ""), metadata.get("name", "")), dict(obj))

    def forget(self, kind: str, namespace: str, name: str) -> None:
        """Drop an object so the next lookup reads the API server."""
        invalidate_cached_object(make_cache_key(kind, namespace, name))
