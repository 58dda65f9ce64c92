"""Kubernetes read and write paths."""

from .client import ClusterClient, load_kube_config
from .lister import CachedLister

__all__ = ["ClusterClient", "CachedLister", "load_kube_config"]
