"""
Background observer: a no-op cluster-wide pod watch plus a log tail.

Both streams are drained by daemon threads for the life of one run. Setup
is best-effort: anything that fails to open is logged and left out of the
handle, so ``detach`` is always safe to call.
"""

from __future__ import annotations

import logging
import socket
import threading
from pathlib import Path
from typing import Any, BinaryIO, List, Optional

from kb_runner.kube.client import ClusterClient
from kb_runner.kube.pods import find_first_running_pod, first_ready_container


logger = logging.getLogger(__name__)

CHUNK_SIZE = 4096
JOIN_TIMEOUT_SECONDS = 5.0


class StreamPump:
    """Drain a streaming HTTP response on a daemon thread, optionally into a sink."""

    def __init__(self, name: str, response: Any, sink: Optional[BinaryIO] = None) -> None:
        self.name = name
        self._response = response
        self._sink = sink
        self._closing = threading.Event()
        self._thread = threading.Thread(target=self._pump, name=f"kb-observer-{name}", daemon=True)
        self.bytes_read = 0

    def start(self) -> "StreamPump":
        self._thread.start()
        return self

    @property
    def running(self) -> bool:
        return self._thread.is_alive()

    def _pump(self) -> None:
        try:
            for chunk in self._response.stream(CHUNK_SIZE):
                self.bytes_read += len(chunk)
                if self._sink is not None:
                    self._sink.write(chunk)
                    self._sink.flush()
        except Exception as exc:
            if not self._closing.is_set():
                logger.debug("Stream %s ended with error: %s", self.name, exc)

    def stop(self, timeout: float = JOIN_TIMEOUT_SECONDS) -> None:
        """Close the response, wait for the thread, then close the sink."""
        self._closing.set()
        try:
            _interrupt(self._response)
            self._response.close()
            if hasattr(self._response, "release_conn"):
                self._response.release_conn()
        finally:
            self._thread.join(timeout=timeout)
            if self._thread.is_alive():
                logger.warning("Stream %s did not stop within %ss", self.name, timeout)
            if self._sink is not None:
                self._sink.close()


class ObserverHandle:
    """The streams opened for one run."""

    def __init__(self, pumps: List[StreamPump] | None = None, log_file: Path | None = None) -> None:
        self.pumps = pumps or []
        self.log_file = log_file

    @property
    def active(self) -> bool:
        return bool(self.pumps)

    def detach(self) -> None:
        """Stop every stream; individual failures are logged and skipped."""
        pumps, self.pumps = self.pumps, []
        for pump in pumps:
            try:
                pump.stop()
            except Exception as exc:
                logger.warning("Stopping stream %s failed: %s", pump.name, exc)


class BackgroundObserver:
    """Attach a watch and a log tail for the duration of a run."""

    def __init__(self, client: ClusterClient) -> None:
        self._client = client

    def attach(self, run_dir: Path) -> ObserverHandle:
        handle = ObserverHandle()
        watch = self._open_watch()
        if watch is not None:
            handle.pumps.append(watch)
        tail = self._open_log_tail(run_dir)
        if tail is not None:
            pump, log_file = tail
            handle.pumps.append(pump)
            handle.log_file = log_file
        return handle

    def detach(self, handle: ObserverHandle) -> None:
        handle.detach()

    def _open_watch(self) -> Optional[StreamPump]:
        try:
            response = self._client.open_pod_watch()
        except Exception as exc:
            logger.warning("Pod watch could not be opened: %s", exc)
            return None
        return StreamPump("pod-watch", response).start()

    def _open_log_tail(self, run_dir: Path) -> Optional[tuple[StreamPump, Path]]:
        try:
            pod = find_first_running_pod(self._client.list_all_pods())
            if pod is None:
                logger.info("No running pod found; skipping log tail")
                return None
            container = first_ready_container(pod)
            if container is None:
                logger.info("Pod %s/%s has no ready container; skipping log tail", pod.metadata.namespace, pod.metadata.name)
                return None
            namespace, name = pod.metadata.namespace, pod.metadata.name
            log_file = run_dir / f"logtail-{namespace}-{name}.log"
            response = self._client.open_log_stream(namespace, name, container)
        except Exception as exc:
            logger.warning("Log tail could not be started: %s", exc)
            return None

        try:
            sink = log_file.open("wb")
        except OSError as exc:
            logger.warning("Log tail file %s could not be opened: %s", log_file, exc)
            response.close()
            return None
        logger.info("Tailing %s/%s[%s] into %s", namespace, name, container, log_file)
        return StreamPump(f"logtail-{name}", response, sink).start(), log_file


def _interrupt(response: Any) -> None:
    """Shut down the response socket so a blocked read returns immediately."""
    connection = getattr(response, "connection", None)
    sock = getattr(connection, "sock", None)
    if sock is None:
        return
    try:
        sock.shutdown(socket.SHUT_RDWR)
    except OSError as exc:
        logger.debug("Socket shutdown failed: %s", exc)
