"""Tests for the background watch and log tail."""

import socket
import time
from unittest.mock import MagicMock

import pytest

from kb_runner.kube.client import ClusterClient
from kb_runner.kube.pods import find_first_running_pod, first_ready_container
from kb_runner.services.observer import BackgroundObserver, ObserverHandle, StreamPump
from tests.helpers.fake_cluster import FakeCoreV1Api, FakeStream, running_pod

pytestmark = pytest.mark.unit_runner


def _wait_for(predicate, timeout=5.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return False


def test_first_running_pod_is_ordered_by_namespace_and_name():
    pods = [
        running_pod("zeta", "a"),
        running_pod("alpha", "b"),
        running_pod("alpha", "a", phase="Pending"),
    ]
    chosen = find_first_running_pod(pods)
    assert (chosen.metadata.namespace, chosen.metadata.name) == ("alpha", "b")
    assert find_first_running_pod([]) is None


def test_first_ready_container():
    assert first_ready_container(running_pod("ns", "p")) == "main"
    assert first_ready_container(running_pod("ns", "p", ready=False)) is None


def test_pump_copies_stream_into_sink_and_stops(tmp_path):
    stream = FakeStream([b"abc", b"def"])
    sink = (tmp_path / "out.log").open("wb")
    pump = StreamPump("test", stream, sink).start()
    assert _wait_for(lambda: pump.bytes_read == 6)
    assert pump.running
    pump.stop(timeout=2)
    assert not pump.running
    assert stream.closed and stream.released
    assert sink.closed
    assert (tmp_path / "out.log").read_bytes() == b"abcdef"


def test_pump_interrupts_blocked_socket():
    sock = MagicMock()
    response = MagicMock()
    response.connection.sock = sock
    response.stream.return_value = iter(())
    pump = StreamPump("watch", response).start()
    pump.stop(timeout=1)
    sock.shutdown.assert_called_once_with(socket.SHUT_RDWR)
    response.close.assert_called_once()


def test_attach_opens_watch_and_log_tail(tmp_path):
    api = FakeCoreV1Api(pods=[running_pod("kube-system", "coredns")])
    observer = BackgroundObserver(ClusterClient(api))
    handle = observer.attach(tmp_path)
    assert handle.active
    assert len(handle.pumps) == 2
    assert handle.log_file == tmp_path / "logtail-kube-system-coredns.log"
    assert _wait_for(lambda: all(p.bytes_read > 0 for p in handle.pumps))

    observer.detach(handle)
    assert not handle.active
    assert all(stream.closed for stream in api.streams)
    assert handle.log_file.read_bytes() == b"line 1\nline 2\n"


def test_attach_without_running_pod_only_watches(tmp_path):
    api = FakeCoreV1Api()
    handle = BackgroundObserver(ClusterClient(api)).attach(tmp_path)
    assert [p.name for p in handle.pumps] == ["pod-watch"]
    assert handle.log_file is None
    handle.detach()


def test_attach_survives_api_failures(tmp_path):
    api = FakeCoreV1Api(pods=[running_pod("ns", "p")])
    api.failing = True
    handle = BackgroundObserver(ClusterClient(api)).attach(tmp_path)
    assert not handle.active
    handle.detach()


def test_detach_continues_when_a_stream_fails_to_stop():
    broken = MagicMock(spec=StreamPump)
    broken.name = "broken"
    broken.stop.side_effect = RuntimeError("boom")
    healthy = MagicMock(spec=StreamPump)
    handle = ObserverHandle([broken, healthy])
    handle.detach()
    healthy.stop.assert_called_once()
    assert handle.pumps == []
