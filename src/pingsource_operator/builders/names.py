"""Deterministic names for per-source managed objects."""

from __future__ import annotations

import hashlib

DNS_LABEL_MAX_LENGTH = 63
_MD5_HEX_LENGTH = 32
_HEAD_LENGTH = DNS_LABEL_MAX_LENGTH - _MD5_HEX_LENGTH


def _md5_hex(value: str) -> str:
    return hashlib.md5(value.encode("utf-8")).hexdigest()


def child_name(parent: str, suffix: str) -> str:
    """Join parent and suffix into a valid DNS label.

    Short combinations are returned as-is. Longer ones replace the tail of
    the parent with an md5 digest so that distinct inputs stay distinct
    while the result fits in 63 characters.
    """
    if len(parent) + len(suffix) <= DNS_LABEL_MAX_LENGTH:
        return parent + suffix

    if len(suffix) >= _HEAD_LENGTH:
        # Suffix too long to keep whole: hash everything, pad with the suffix head.
        name = parent[:_HEAD_LENGTH] + _md5_hex(parent + suffix)
        name += suffix[: DNS_LABEL_MAX_LENGTH - len(name)]
        return name.rstrip("-")

    return parent[: _HEAD_LENGTH - len(suffix)] + _md5_hex(parent) + suffix


def receive_adapter_name(source_name: str, source_uid: str) -> str:
    """Name shared by a PingSource's ServiceAccount, RoleBinding and Deployment."""
    return child_name(f"pingsource-{source_name}-", source_uid)


def deprecated_receive_adapter_name(source_name: str, source_uid: str) -> str:
    """Deployment name used before adapters were named with child_name.

    Only consulted by the deprecated-name migration in the Deployment
    reconciler; remove both once no cluster runs adapters named this way.
    """
    prefix = f"pingsource-{source_name}"
    return prefix[: max(DNS_LABEL_MAX_LENGTH - len(source_uid), 0)] + source_uid
