"""
Run orchestrator for the transport benchmark.

This module sequences warmup, the measured repeats (observer, phase
snapshots, workload, profiling, cleanup) and the cooldown between them.
"""

from __future__ import annotations

import logging
import time
from enum import Enum
from typing import Callable, List, Optional

from kb_runner.engine.churn import sweep_records
from kb_runner.engine.planning import RunPlanner
from kb_runner.engine.progress import RunProgressEmitter
from kb_runner.engine.warmup import run_warmup
from kb_runner.engine.workload import WorkloadHandle, start_workload
from kb_runner.kube.client import ClusterClient
from kb_runner.models.config import RunConfig
from kb_runner.models.events import RunEvent
from kb_runner.models.run import RunIdentity, RunResult
from kb_runner.services.observer import BackgroundObserver, ObserverHandle
from kb_runner.services.snapshots import SnapshotCollector


logger = logging.getLogger(__name__)

MIN_MIDPOINT_SECONDS = 1.0

WorkloadStarter = Callable[[ClusterClient, str, RunConfig], WorkloadHandle]


class RunState(str, Enum):
    IDLE = "idle"
    WARMUP = "warmup"
    RUN_SETUP = "run-setup"
    RUN_ACTIVE = "run-active"
    RUN_SNAPSHOTTING = "run-snapshotting"
    RUN_TEARDOWN = "run-teardown"
    DONE = "done"


class RunOrchestrator:
    """Drive one benchmark session from warmup to the final completion marker."""

    def __init__(
        self,
        client: ClusterClient,
        config: RunConfig,
        *,
        snapshots: SnapshotCollector | None = None,
        observer: BackgroundObserver | None = None,
        workload_starter: WorkloadStarter = start_workload,
        progress_callback: Optional[Callable[[RunEvent], None]] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.client = client
        self.config = config
        self.snapshots = snapshots or SnapshotCollector(config.snapshots)
        self.observer = observer or BackgroundObserver(client)
        self._start_workload = workload_starter
        self._sleep = sleep
        self._planner = RunPlanner(config.label_dir)
        self._progress = RunProgressEmitter(label=config.label, callback=progress_callback)
        self._state = RunState.IDLE
        self.results: List[RunResult] = []

    @property
    def state(self) -> RunState:
        return self._state

    def _transition(self, state: RunState) -> None:
        logger.debug("State %s -> %s", self._state.value, state.value)
        self._state = state

    def run(self) -> List[RunResult]:
        """
        Run warmup and every configured repeat.

        A namespace that cannot be ensured is logged and the session goes on;
        failures inside a repeat are recorded on its RunResult.
        """
        if self._state is not RunState.IDLE:
            raise RuntimeError(f"Orchestrator already used (state={self._state.value})")
        cfg = self.config
        if not self.client.ensure_namespace(cfg.namespace):
            logger.warning("Continuing without a confirmed namespace %s", cfg.namespace)

        self._transition(RunState.WARMUP)
        run_warmup(self.client, cfg.namespace, cfg.warmup_seconds, sleep=self._sleep)

        for sequence in range(1, cfg.repeats + 1):
            result = self._run_repeat(sequence)
            if result is not None:
                self.results.append(result)
            if sequence < cfg.repeats and cfg.cooldown_seconds > 0:
                logger.info("Cooldown period: %s seconds", cfg.cooldown_seconds)
                self._sleep(cfg.cooldown_seconds)

        self._transition(RunState.DONE)
        failed = sum(1 for r in self.results if not r.success)
        self._progress.emit(
            "",
            cfg.repeats,
            cfg.repeats,
            "complete",
            message=f"{len(self.results) - failed}/{cfg.repeats} runs succeeded",
        )
        logger.info("All runs complete. Artifacts available under %s", cfg.label_dir)
        return self.results

    def _run_repeat(self, sequence: int) -> Optional[RunResult]:
        total = self.config.repeats
        self._transition(RunState.RUN_SETUP)
        try:
            identity = self._planner.allocate(sequence)
        except Exception as exc:
            logger.error("Skipping repetition %s: cannot create run directory: %s", sequence, exc)
            self._progress.emit("", sequence, total, "failed", message=str(exc))
            return None

        logger.info("Starting run %s in %s", identity.run_id, identity.run_dir)
        self._progress.emit(identity.run_id, sequence, total, "running")
        result = RunResult(identity=identity)
        try:
            self._measure(identity, result)
        except Exception as exc:
            result.setup_error = str(exc)
            logger.error("Run %s aborted: %s", identity.run_id, exc, exc_info=True)

        status = "done" if result.success else "failed"
        self._progress.emit(identity.run_id, sequence, total, status, message=result.workload_error or result.setup_error or "")
        logger.info("Completed run %s (%s)", identity.run_id, status)
        return result

    def _measure(self, identity: RunIdentity, result: RunResult) -> None:
        cfg = self.config
        run_dir = identity.run_dir
        handle: ObserverHandle = self.observer.attach(run_dir)
        workload: Optional[WorkloadHandle] = None
        try:
            result.snapshots.append(self.snapshots.snapshot(run_dir, "start"))

            self._transition(RunState.RUN_ACTIVE)
            workload = self._start_workload(self.client, cfg.namespace, cfg)
            self._sleep(max(MIN_MIDPOINT_SECONDS, cfg.duration_seconds / 2))
            result.snapshots.append(self.snapshots.snapshot(run_dir, "mid"))
            if cfg.profile_seconds > 0:
                result.profile = self.snapshots.record_profile(run_dir, cfg.profile_seconds)
            result.workload_error = self._await_workload(workload)

            self._transition(RunState.RUN_SNAPSHOTTING)
            result.snapshots.append(self.snapshots.snapshot(run_dir, "end"))
        finally:
            # Workers must be stopped before the sweep touches their records.
            if workload is not None and not workload.done():
                self._await_workload(workload)
            self._transition(RunState.RUN_TEARDOWN)
            self._teardown(handle, result)

    def _await_workload(self, workload: WorkloadHandle) -> Optional[str]:
        try:
            workload.result()
        except Exception as exc:
            logger.error("Workload failed: %s", exc)
            return str(exc)
        return None

    def _teardown(self, handle: ObserverHandle, result: RunResult) -> None:
        try:
            self.observer.detach(handle)
        except Exception as exc:
            logger.warning("Observer detach failed: %s", exc)
        result.swept_records = sweep_records(self.client, self.config.namespace)
