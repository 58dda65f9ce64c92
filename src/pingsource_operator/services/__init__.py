"""Cluster-facing services used by the PingSource reconciler."""
