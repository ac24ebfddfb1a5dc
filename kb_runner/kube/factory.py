"""Construction of the cluster client from transport settings."""

from __future__ import annotations

import logging
import ssl
from importlib import metadata

import urllib3
from kubernetes import client as k8s_client
from kubernetes import config as k8s_config

from kb_common.errors import ClusterSetupError
from kb_runner.kube.client import ClusterClient
from kb_runner.models.config import TransportConfig


logger = logging.getLogger(__name__)

_TLS_VERSIONS = {
    "TLSv1": ssl.TLSVersion.TLSv1,
    "TLSv1.1": ssl.TLSVersion.TLSv1_1,
    "TLSv1.2": ssl.TLSVersion.TLSv1_2,
    "TLSv1.3": ssl.TLSVersion.TLSv1_3,
}


def transport_versions() -> dict[str, str]:
    """Return installed versions of the client and transport libraries."""
    versions: dict[str, str] = {}
    for dist in ("kubernetes", "urllib3"):
        try:
            versions[dist] = metadata.version(dist)
        except metadata.PackageNotFoundError:
            versions[dist] = "unknown"
    return versions


def tls_bounds(tls_versions: list[str]) -> tuple[ssl.TLSVersion, ssl.TLSVersion]:
    """Map an allowed-versions list to (minimum, maximum) TLS versions."""
    resolved = sorted(_TLS_VERSIONS[name] for name in tls_versions)
    return resolved[0], resolved[-1]


def load_configuration() -> k8s_client.Configuration:
    """Load in-cluster credentials, falling back to the local kubeconfig."""
    configuration = k8s_client.Configuration()
    try:
        k8s_config.load_incluster_config(client_configuration=configuration)
        logger.info("Using in-cluster configuration")
    except k8s_config.ConfigException:
        k8s_config.load_kube_config(client_configuration=configuration)
        logger.info("Using kubeconfig configuration")
    return configuration


def apply_transport(configuration: k8s_client.Configuration, transport: TransportConfig) -> None:
    """Apply certificate and pool settings to a client configuration."""
    if transport.trust_certs:
        configuration.verify_ssl = False
        urllib3.disable_warnings(urllib3.exceptions.InsecureRequestWarning)
    configuration.connection_pool_maxsize = min(
        transport.max_concurrent_requests, transport.max_concurrent_requests_per_host
    )


def build_cluster_client(transport: TransportConfig) -> ClusterClient:
    """Build a ClusterClient for the current kube context."""
    logger.info("Detected transport libraries: %s", transport_versions())
    try:
        configuration = load_configuration()
    except Exception as exc:
        raise ClusterSetupError("Cannot load cluster configuration", cause=exc) from exc

    apply_transport(configuration, transport)
    api_client = k8s_client.ApiClient(configuration)

    minimum, maximum = tls_bounds(transport.tls_versions)
    pool_kw = api_client.rest_client.pool_manager.connection_pool_kw
    pool_kw["ssl_minimum_version"] = minimum
    pool_kw["ssl_maximum_version"] = maximum
    logger.info(
        "Client transport: pool size %s, TLS %s..%s, verify_ssl=%s",
        configuration.connection_pool_maxsize,
        minimum.name,
        maximum.name,
        configuration.verify_ssl,
    )
    return ClusterClient(k8s_client.CoreV1Api(api_client), transport)
