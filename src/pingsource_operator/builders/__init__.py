"""Builders for the desired state of PingSource managed objects."""

from .adapter import (
    MTReceiveAdapterArgs,
    ReceiveAdapterArgs,
    make_mt_receive_adapter,
    make_receive_adapter,
)
from .names import deprecated_receive_adapter_name, receive_adapter_name
from .rbac import make_role_binding, make_service_account

__all__ = [
    "ReceiveAdapterArgs",
    "MTReceiveAdapterArgs",
    "make_receive_adapter",
    "make_mt_receive_adapter",
    "make_service_account",
    "make_role_binding",
    "receive_adapter_name",
    "deprecated_receive_adapter_name",
]
