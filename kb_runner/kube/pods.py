"""Pod selection helpers for the log tail."""

from __future__ import annotations

from typing import Any, Iterable, Optional


def find_first_running_pod(pods: Iterable[Any]) -> Optional[Any]:
    """Return the first Running pod ordered by ``namespace/name``."""
    running = [
        pod
        for pod in pods
        if pod.status is not None and pod.status.phase == "Running" and pod.metadata is not None
    ]
    running.sort(key=lambda pod: f"{pod.metadata.namespace}/{pod.metadata.name}")
    return running[0] if running else None


def first_ready_container(pod: Any) -> Optional[str]:
    """Return the name of the first container reporting ready, if any."""
    if pod.status is None or not pod.status.container_statuses:
        return None
    for status in pod.status.container_statuses:
        if status.ready is True:
            return status.name
    return None
