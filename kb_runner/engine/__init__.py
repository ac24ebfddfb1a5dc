"""Run orchestration and workload generation."""

from kb_runner.engine.orchestrator import RunOrchestrator, RunState
from kb_runner.engine.workload import WorkloadHandle, plan_tasks, start_workload

__all__ = ["RunOrchestrator", "RunState", "WorkloadHandle", "plan_tasks", "start_workload"]
