"""In-memory API server and PingSource factories shared by the tests."""

from __future__ import annotations

import copy
import threading
from typing import Any

from kubernetes.client.exceptions import ApiException

from pingsource_operator.constants import ANNOTATION_SCOPE, API_GROUP_VERSION, KIND_PING_SOURCE
from pingsource_operator.services.resolver import SinkResolutionError

SINK_URI = "http://sink.ns.svc.cluster.local/"


class FakeClusterClient:
    """In-memory stand-in for ClusterClient with API server semantics.

    Creates of an existing name fail with 409, updates carrying a stale
    resourceVersion fail with 409, and every write bumps the resourceVersion.
    Each call is atomic, as it is on a real API server.
    """

    def __init__(self) -> None:
        self.objects: dict[tuple[str, str, str], dict[str, Any]] = {}
        self.calls: list[tuple[str, str, str, str]] = []
        self.failures: dict[tuple[str, str], Exception] = {}
        self.requeued: list[tuple[str, str]] = []
        self.api_client = None
        self._version = 0
        self._lock = threading.RLock()

    def _bump(self, obj: dict[str, Any]) -> None:
        self._version += 1
        obj["metadata"]["resourceVersion"] = str(self._version)

    def _maybe_fail(self, verb: str, kind: str) -> None:
        error = self.failures.get((verb, kind))
        if error is not None:
            raise error

    def put(self, kind: str, obj: dict[str, Any]) -> dict[str, Any]:
        """Seed an object as if another actor had written it."""
        with self._lock:
            obj = copy.deepcopy(obj)
            obj["metadata"].setdefault("uid", f"uid-{len(self.objects)}")
            self._bump(obj)
            self.objects[(kind, obj["metadata"]["namespace"], obj["metadata"]["name"])] = obj
            return copy.deepcopy(obj)

    def verbs(self, verb: str, kind: str | None = None) -> list[tuple[str, str, str, str]]:
        return [c for c in self.calls if c[0] == verb and (kind is None or c[1] == kind)]

    def get(self, kind: str, namespace: str, name: str) -> dict[str, Any] | None:
        with self._lock:
            self.calls.append(("get", kind, namespace, name))
            self._maybe_fail("get", kind)
            obj = self.objects.get((kind, namespace, name))
            return copy.deepcopy(obj) if obj is not None else None

    def create(self, kind: str, body: dict[str, Any]) -> dict[str, Any]:
        with self._lock:
            namespace, name = body["metadata"]["namespace"], body["metadata"]["name"]
            self.calls.append(("create", kind, namespace, name))
            self._maybe_fail("create", kind)
            if (kind, namespace, name) in self.objects:
                raise ApiException(status=409, reason="AlreadyExists")
            return self.put(kind, body)

    def update(self, kind: str, body: dict[str, Any]) -> dict[str, Any]:
        with self._lock:
            namespace, name = body["metadata"]["namespace"], body["metadata"]["name"]
            self.calls.append(("update", kind, namespace, name))
            self._maybe_fail("update", kind)
            current = self.objects.get((kind, namespace, name))
            if current is None:
                raise ApiException(status=404, reason="NotFound")
            if body["metadata"].get("resourceVersion") != current["metadata"]["resourceVersion"]:
                raise ApiException(status=409, reason="Conflict")
            obj = copy.deepcopy(body)
            self._bump(obj)
            self.objects[(kind, namespace, name)] = obj
            return copy.deepcopy(obj)

    def delete(self, kind: str, namespace: str, name: str) -> bool:
        with self._lock:
            self.calls.append(("delete", kind, namespace, name))
            self._maybe_fail("delete", kind)
            return self.objects.pop((kind, namespace, name), None) is not None

    def requeue_source(self, namespace: str, name: str) -> None:
        self._maybe_fail("requeue", KIND_PING_SOURCE)
        self.requeued.append((namespace, name))


class FakeResolver:
    """Resolves any destination with a ref or uri to a fixed address."""

    def __init__(self, uri: str = SINK_URI) -> None:
        self.uri = uri
        self.destinations: list[dict[str, Any]] = []

    def uri_from_destination(self, destination: dict[str, Any]) -> str:
        self.destinations.append(destination)
        if not destination.get("ref") and not destination.get("uri"):
            raise SinkResolutionError("destination missing ref and uri")
        if self.uri is None:
            raise SinkResolutionError("address not set")
        return self.uri


def make_source(
    name: str = "p1",
    namespace: str = "ns",
    uid: str = "abc",
    scope: str | None = None,
    sink: dict[str, Any] | None = None,
    schedule: str = "*/1 * * * *",
    json_data: str = '{"hello": "world"}',
    generation: int = 1,
) -> dict[str, Any]:
    """Build a PingSource object as the API server would return it."""
    metadata: dict[str, Any] = {
        "name": name,
        "namespace": namespace,
        "uid": uid,
        "generation": generation,
    }
    if scope is not None:
        metadata["annotations"] = {ANNOTATION_SCOPE: scope}
    return {
        "apiVersion": API_GROUP_VERSION,
        "kind": KIND_PING_SOURCE,
        "metadata": metadata,
        "spec": {
            "schedule": schedule,
            "jsonData": json_data,
            "sink": sink if sink is not None else {"ref": {"apiVersion": "v1", "kind": "Service", "name": "sink"}},
        },
    }


