"""Resolution of PingSource sink destinations to addresses."""

from __future__ import annotations

import copy
import logging
from typing import Any, Mapping
from urllib.parse import urljoin, urlparse

from kubernetes import client
from kubernetes.client.exceptions import ApiException
from kubernetes.dynamic import DynamicClient
from kubernetes.dynamic.exceptions import ResourceNotFoundError, ResourceNotUniqueError
from urllib3.exceptions import HTTPError

from ..utils.errors import SinkNotFoundError

logger = logging.getLogger(__name__)


class SinkResolutionError(Exception):
    """A destination could not be turned into an address."""


def normalize_destination(destination: Mapping[str, Any] | None, source_namespace: str) -> dict[str, Any]:
    """Copy a destination, defaulting an unscoped ref to the source namespace.

    An explicit ref namespace is never overridden.
    """
    dest = copy.deepcopy(dict(destination or {}))
    ref = dest.get("ref")
    if ref is not None and not ref.get("namespace"):
        ref["namespace"] = source_namespace
    return dest


def _is_absolute(uri: str) -> bool:
    parsed = urlparse(uri)
    return bool(parsed.scheme and parsed.netloc)


class SinkResolver:
    """Resolves Knative-style destinations (``ref`` and/or ``uri``) to URIs.

    A ref to a core Service resolves to its cluster-local hostname; any
    other ref must be Addressable and publish ``status.address.url``.
    """

    def __init__(self, api_client: client.ApiClient | None = None):
        self._api_client = api_client
        self._dynamic: DynamicClient | None = None

    @property
    def dynamic(self) -> DynamicClient:
        # Discovery runs on construction, so defer it until the first lookup.
        if self._dynamic is None:
            self._dynamic = DynamicClient(self._api_client or client.ApiClient())
        return self._dynamic

    def _get_referent(self, ref: Mapping[str, Any]) -> dict[str, Any]:
        try:
            resource = self.dynamic.resources.get(api_version=ref["apiVersion"], kind=ref["kind"])
            return resource.get(name=ref["name"], namespace=ref["namespace"]).to_dict()
        except (ApiException, ResourceNotFoundError, ResourceNotUniqueError, HTTPError) as e:
            raise SinkResolutionError(
                f"failed to get ref {ref['kind']} {ref['namespace']}/{ref['name']}: {e}"
            ) from e

    def _address_of(self, ref: Mapping[str, Any]) -> str:
        for field in ("apiVersion", "kind", "name", "namespace"):
            if not ref.get(field):
                raise SinkResolutionError(f"ref is missing {field}")

        referent = self._get_referent(ref)
        if ref["apiVersion"] == "v1" and ref["kind"] == "Service":
            return f"http://{ref['name']}.{ref['namespace']}.svc.cluster.local/"

        address = (referent.get("status") or {}).get("address") or {}
        if address.get("url"):
            return address["url"]
        if address.get("hostname"):
            return f"http://{address['hostname']}/"
        raise SinkResolutionError(f"address not set for {ref['kind']} {ref['namespace']}/{ref['name']}")

    def uri_from_destination(self, destination: Mapping[str, Any]) -> str:
        """Resolve a namespace-complete destination to a URI.

        Raises:
            SinkResolutionError: If the destination cannot be resolved
        """
        ref = destination.get("ref")
        uri = destination.get("uri")

        if ref:
            base = self._address_of(ref)
            if uri:
                return urljoin(base, uri)
            return base

        if uri:
            if not _is_absolute(uri):
                raise SinkResolutionError(f"URI is not absolute (both scheme and host should be non-empty): {uri!r}")
            return uri

        raise SinkResolutionError("destination missing ref and uri")


def resolve_sink(resolver: SinkResolver, source_namespace: str, destination: Mapping[str, Any] | None) -> str:
    """Resolve a PingSource's sink.

    Raises:
        SinkNotFoundError: Carrying the namespace-defaulted destination
    """
    dest = normalize_destination(destination, source_namespace)
    try:
        return resolver.uri_from_destination(dest)
    except SinkResolutionError as e:
        logger.debug("Sink resolution failed: %s", e)
        raise SinkNotFoundError(dest) from e
