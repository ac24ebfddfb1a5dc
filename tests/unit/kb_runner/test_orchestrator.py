"""Tests for RunOrchestrator sequencing."""

from concurrent.futures import Future
from unittest.mock import MagicMock

import pytest
from kubernetes.client import ApiException

from kb_common.errors import WorkloadError
from kb_runner.engine.orchestrator import RunOrchestrator, RunState
from kb_runner.kube.client import ClusterClient
from kb_runner.models.config import RunConfig
from kb_runner.models.run import PhaseSnapshot
from kb_runner.services.observer import ObserverHandle
from tests.helpers.fake_cluster import FakeCoreV1Api

pytestmark = pytest.mark.unit_runner


class Recorder:
    """Collaborator doubles that log every call into one timeline."""

    def __init__(self, workload_error=None, snapshot_error_phase=None):
        self.calls = []
        self.workload_error = workload_error
        self.snapshot_error_phase = snapshot_error_phase

        self.observer = MagicMock()
        self.observer.attach.side_effect = self._attach
        self.observer.detach.side_effect = lambda handle: self.calls.append("detach")

        self.snapshots = MagicMock()
        self.snapshots.snapshot.side_effect = self._snapshot
        self.snapshots.record_profile.side_effect = self._profile

    def _attach(self, run_dir):
        self.calls.append("attach")
        return ObserverHandle()

    def _snapshot(self, run_dir, phase):
        self.calls.append(f"snapshot-{phase}")
        if phase == self.snapshot_error_phase:
            raise RuntimeError(f"{phase} exploded")
        return PhaseSnapshot(phase=phase, directory=run_dir / phase)

    def _profile(self, run_dir, seconds):
        self.calls.append(f"profile-{seconds}")
        return run_dir / "midrun-profile.speedscope.json"

    def start_workload(self, client, namespace, config):
        self.calls.append("workload-start")
        future = Future()
        if self.workload_error is not None:
            future.set_exception(self.workload_error)
        else:
            future.set_result(None)
        return future

    def sleep(self, seconds):
        self.calls.append(f"sleep-{seconds}")


def _orchestrator(tmp_path, recorder, api=None, events=None, **overrides):
    values = {
        "output_dir": tmp_path,
        "label": "test-transport",
        "repeats": 1,
        "warmup_seconds": 0,
        "duration_seconds": 4,
        "cooldown_seconds": 0,
    }
    values.update(overrides)
    api = api or FakeCoreV1Api(namespaces=["ab-harness"])
    return RunOrchestrator(
        ClusterClient(api),
        RunConfig(**values),
        snapshots=recorder.snapshots,
        observer=recorder.observer,
        workload_starter=recorder.start_workload,
        progress_callback=events.append if events is not None else None,
        sleep=recorder.sleep,
    )


def test_run_sequence_with_profiling(tmp_path):
    recorder = Recorder()
    orch = _orchestrator(tmp_path, recorder, profile_seconds=0.5)
    results = orch.run()

    assert recorder.calls == [
        "attach",
        "snapshot-start",
        "workload-start",
        "sleep-2.0",
        "snapshot-mid",
        "profile-0.5",
        "snapshot-end",
        "detach",
    ]
    assert orch.state is RunState.DONE
    assert len(results) == 1
    result = results[0]
    assert result.success
    assert [s.phase for s in result.snapshots] == ["start", "mid", "end"]
    assert result.profile.name == "midrun-profile.speedscope.json"
    assert result.identity.run_dir.parent == tmp_path / "test-transport"


def test_midpoint_has_a_one_second_floor(tmp_path):
    recorder = Recorder()
    _orchestrator(tmp_path, recorder, duration_seconds=0.5).run()
    assert "sleep-1.0" in recorder.calls
    assert not any(call.startswith("profile") for call in recorder.calls)


def test_cooldown_only_between_repeats(tmp_path):
    recorder = Recorder()
    events = []
    results = _orchestrator(tmp_path, recorder, events=events, repeats=2, cooldown_seconds=3).run()
    assert len(results) == 2
    assert recorder.calls.count("sleep-3.0") == 1
    assert [e.status for e in events] == ["running", "done", "running", "done", "complete"]
    assert events[-1].message == "2/2 runs succeeded"
    assert len({r.identity.run_dir for r in results}) == 2


def test_workload_failure_is_recorded_and_run_continues(tmp_path):
    recorder = Recorder(workload_error=WorkloadError("pool rejected a task"))
    events = []
    results = _orchestrator(tmp_path, recorder, events=events).run()
    assert results[0].workload_error == "pool rejected a task"
    assert "snapshot-end" in recorder.calls
    assert recorder.calls[-1] == "detach"
    assert [e.status for e in events] == ["running", "failed", "complete"]


def test_setup_failure_still_detaches_and_sweeps(tmp_path):
    recorder = Recorder(snapshot_error_phase="start")
    api = FakeCoreV1Api(namespaces=["ab-harness"])
    api.config_maps["ab-harness"] = {"ab-leftover": {}, "other": {}}
    results = _orchestrator(tmp_path, recorder, api=api, repeats=2).run()

    assert len(results) == 2
    assert all(r.setup_error == "start exploded" for r in results)
    assert recorder.calls.count("detach") == 2
    assert "workload-start" not in recorder.calls
    assert results[0].swept_records == 1
    assert api.live_records("ab-harness") == ["other"]


def test_warmup_runs_before_first_repeat(tmp_path):
    recorder = Recorder()
    api = FakeCoreV1Api(namespaces=["ab-harness"])
    orch = _orchestrator(tmp_path, recorder, api=api, warmup_seconds=0.05)
    orch.run()
    assert api.calls["list_namespaced_pod"] >= 1
    assert recorder.calls.index("sleep-0.2") < recorder.calls.index("attach")


def test_namespace_failure_does_not_stop_the_session(tmp_path, mocker):
    api = FakeCoreV1Api(namespaces=["ab-harness"])
    mocker.patch.object(api, "read_namespace", side_effect=ApiException(status=403))
    mocker.patch.object(api, "create_namespace", side_effect=ApiException(status=403))
    recorder = Recorder()
    events = []
    orch = _orchestrator(tmp_path, recorder, api=api, events=events, repeats=2)
    results = orch.run()

    assert orch.state is RunState.DONE
    assert [r.success for r in results] == [True, True]
    assert recorder.calls.count("workload-start") == 2
    assert len(list((tmp_path / "test-transport").iterdir())) == 2
    assert events[-1].message == "2/2 runs succeeded"


def test_unwritable_output_skips_repeats(tmp_path):
    blocker = tmp_path / "blocker"
    blocker.write_text("not a directory")
    recorder = Recorder()
    events = []
    results = _orchestrator(tmp_path, recorder, events=events, output_dir=blocker, repeats=2).run()
    assert results == []
    assert [e.status for e in events] == ["failed", "failed", "complete"]
    assert events[-1].message == "0/2 runs succeeded"


def test_orchestrator_is_single_use(tmp_path):
    orch = _orchestrator(tmp_path, Recorder())
    orch.run()
    with pytest.raises(RuntimeError):
        orch.run()
