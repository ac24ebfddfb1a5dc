"""Cluster API access for the benchmark runner."""

from kb_runner.kube.client import ClusterClient
from kb_runner.kube.factory import build_cluster_client

__all__ = ["ClusterClient", "build_cluster_client"]
