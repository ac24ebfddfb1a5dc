"""
Thin facade over the kubernetes CoreV1Api.

Every call made by the benchmark goes through this class so request
timeouts are applied uniformly and the rest of the runner only deals with
names, cursors and plain dictionaries.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Tuple

from kubernetes import client as k8s_client
from kubernetes.client import ApiException

from kb_common.errors import ClusterSetupError
from kb_runner.models.config import TransportConfig


logger = logging.getLogger(__name__)

LOG_TAIL_LINES = 100


class ClusterClient:
    """Namespaced record CRUD, paginated listing and streams on one CoreV1Api."""

    def __init__(self, core_api: Any, transport: TransportConfig | None = None):
        self.core_api = core_api
        self.transport = transport or TransportConfig()

    @property
    def _unary_timeout(self) -> Tuple[int, int]:
        return (
            self.transport.connect_timeout_seconds,
            self.transport.request_timeout_seconds,
        )

    @property
    def _stream_timeout(self) -> Tuple[int, int]:
        return (
            self.transport.connect_timeout_seconds,
            self.transport.websocket_timeout_seconds,
        )

    # --- Namespace ---

    def ensure_namespace(self, name: str) -> bool:
        """
        Get-or-create the namespace; a concurrent creation is not an error.

        Returns False when both calls fail; the failure is logged, not raised.
        """
        try:
            self.core_api.read_namespace(name, _request_timeout=self._unary_timeout)
            return True
        except ApiException as exc:
            if exc.status != 404:
                logger.warning("Reading namespace %s failed (%s); trying to create it", name, exc.status)
        except Exception as exc:
            logger.warning("Reading namespace %s failed (%s); trying to create it", name, exc)

        body = k8s_client.V1Namespace(metadata=k8s_client.V1ObjectMeta(name=name))
        try:
            self.core_api.create_namespace(body, _request_timeout=self._unary_timeout)
            logger.info("Created namespace %s", name)
            return True
        except ApiException as exc:
            if exc.status == 409:
                logger.debug("Namespace %s already exists", name)
                return True
            error = ClusterSetupError(
                f"Cannot ensure namespace {name}",
                context={"namespace": name, "status": exc.status},
                cause=exc,
            )
        except Exception as exc:
            error = ClusterSetupError(
                f"Cannot ensure namespace {name}", context={"namespace": name}, cause=exc
            )
        logger.error("%s: %s (context=%s)", error, error.__cause__, error.context)
        return False

    # --- Key-value records (ConfigMaps) ---

    def create_record(self, namespace: str, name: str, data: Dict[str, str]) -> None:
        body = k8s_client.V1ConfigMap(
            metadata=k8s_client.V1ObjectMeta(name=name),
            data=data,
        )
        self.core_api.create_namespaced_config_map(
            namespace, body, _request_timeout=self._unary_timeout
        )

    def update_record(self, namespace: str, name: str, data: Dict[str, str]) -> None:
        self.core_api.patch_namespaced_config_map(
            name, namespace, {"data": data}, _request_timeout=self._unary_timeout
        )

    def delete_record(self, namespace: str, name: str) -> None:
        self.core_api.delete_namespaced_config_map(
            name, namespace, _request_timeout=self._unary_timeout
        )

    def list_record_names(self, namespace: str) -> List[str]:
        result = self.core_api.list_namespaced_config_map(
            namespace, _request_timeout=self._unary_timeout
        )
        return [item.metadata.name for item in result.items or [] if item.metadata and item.metadata.name]

    # --- Listing ---

    def list_pods_page(self, limit: int, cursor: Optional[str]) -> Optional[str]:
        """Fetch one cluster-wide page of pods and return the next cursor."""
        result = self.core_api.list_pod_for_all_namespaces(
            limit=limit, _continue=cursor, _request_timeout=self._unary_timeout
        )
        return _next_cursor(result)

    def list_services_page(self, limit: int, cursor: Optional[str]) -> Optional[str]:
        """Fetch one cluster-wide page of services and return the next cursor."""
        result = self.core_api.list_service_for_all_namespaces(
            limit=limit, _continue=cursor, _request_timeout=self._unary_timeout
        )
        return _next_cursor(result)

    def list_namespace_pods(self, namespace: str) -> int:
        result = self.core_api.list_namespaced_pod(namespace, _request_timeout=self._unary_timeout)
        return len(result.items or [])

    def list_all_pods(self) -> List[Any]:
        result = self.core_api.list_pod_for_all_namespaces(_request_timeout=self._unary_timeout)
        return list(result.items or [])

    # --- Streams ---

    def open_pod_watch(self) -> Any:
        """Open a cluster-wide pod watch and return the raw streaming response."""
        return self.core_api.list_pod_for_all_namespaces(
            watch=True,
            _preload_content=False,
            _request_timeout=self._stream_timeout,
        )

    def open_log_stream(self, namespace: str, pod: str, container: str) -> Any:
        """Follow a container log, starting from its last lines."""
        return self.core_api.read_namespaced_pod_log(
            pod,
            namespace,
            container=container,
            follow=True,
            tail_lines=LOG_TAIL_LINES,
            _preload_content=False,
            _request_timeout=self._stream_timeout,
        )

    def close(self) -> None:
        api_client = getattr(self.core_api, "api_client", None)
        if api_client is not None and hasattr(api_client, "close"):
            api_client.close()


def _next_cursor(result: Any) -> Optional[str]:
    metadata = getattr(result, "metadata", None)
    if metadata is None:
        return None
    return getattr(metadata, "_continue", None) or None
