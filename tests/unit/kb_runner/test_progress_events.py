"""Tests for run progress events."""

import json
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from kb_runner.engine.progress import RunProgressEmitter
from kb_runner.models.events import RunEvent, StdoutEmitter
from kb_runner.models.run import PhaseSnapshot, RunIdentity, RunResult

pytestmark = pytest.mark.unit_runner


def test_stdout_marker_is_json(capsys):
    StdoutEmitter().emit(RunEvent("r1", "label", 1, 3, "running"))
    line = capsys.readouterr().out.strip()
    assert line.startswith("KB_EVENT ")
    payload = json.loads(line[len("KB_EVENT "):])
    assert payload["run_id"] == "r1"
    assert payload["status"] == "running"


def test_emitter_notifies_callback_and_stdout():
    events = []
    stdout = MagicMock()
    RunProgressEmitter("label", events.append, stdout).emit("r1", 1, 2, "done", message="ok")
    assert events[0].label == "label"
    assert events[0].status == "done"
    assert events[0].timestamp > 0
    stdout.emit.assert_called_once_with(events[0])


def test_callback_errors_are_not_raised():
    def broken(event):
        raise RuntimeError("listener gone")

    stdout = MagicMock()
    RunProgressEmitter("label", broken, stdout).emit("r1", 1, 1, "failed")
    stdout.emit.assert_called_once()


def test_run_result_success_and_dict():
    identity = RunIdentity("r1", 1, Path("/tmp/r1"))
    result = RunResult(identity, snapshots=[PhaseSnapshot("start", Path("/tmp/r1/start"))])
    assert result.success
    assert result.to_dict()["phases"] == ["start"]
    result.workload_error = "worker crashed"
    assert not result.success
    assert result.to_dict()["success"] is False
