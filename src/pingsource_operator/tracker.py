"""Dependency tracking between PingSources and the objects they rely on."""

from __future__ import annotations

import threading
from typing import Any, Mapping, NamedTuple

from .utils.errors import TrackingError


class Reference(NamedTuple):
    """Identity of a watched object."""

    api_version: str
    kind: str
    namespace: str
    name: str

    @classmethod
    def from_object(cls, obj: Mapping[str, Any]) -> Reference:
        metadata = obj.get("metadata", {})
        return cls(obj.get("apiVersion", ""), obj.get("kind", ""), metadata.get("namespace", ""), metadata.get("name", ""))


class ObjectKey(NamedTuple):
    """Namespace and name of a dependent object."""

    namespace: str
    name: str


class Tracker:
    """Subscription table mapping watched objects to their dependents.

    Watch handlers call ``dependents_of`` when a watched object changes and
    requeue every dependent returned.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._subscriptions: dict[Reference, set[ObjectKey]] = {}

    def track(self, reference: Reference, dependent: Mapping[str, Any]) -> None:
        """Register interest of ``dependent`` in changes to ``reference``.

        Raises:
            TrackingError: If the reference or dependent is incomplete
        """
        missing = [field for field, value in reference._asdict().items() if not value]
        if missing:
            raise TrackingError(f"invalid tracker reference, missing {', '.join(missing)}")

        metadata = dependent.get("metadata", {})
        if not metadata.get("namespace") or not metadata.get("name"):
            raise TrackingError("invalid tracker dependent, missing namespace or name")

        key = ObjectKey(metadata["namespace"], metadata["name"])
        with self._lock:
            self._subscriptions.setdefault(reference, set()).add(key)

    def dependents_of(self, reference: Reference) -> list[ObjectKey]:
        """Return the dependents interested in ``reference``."""
        with self._lock:
            return sorted(self._subscriptions.get(reference, ()))

    def untrack(self, namespace: str, name: str) -> None:
        """Forget every subscription held by a dependent."""
        key = ObjectKey(namespace, name)
        with self._lock:
            for reference in list(self._subscriptions):
                dependents = self._subscriptions[reference]
                dependents.discard(key)
                if not dependents:
                    del self._subscriptions[reference]
