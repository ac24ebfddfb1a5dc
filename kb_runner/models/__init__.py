"""Data models for the benchmark runner."""

from kb_runner.models.config import (
    DiagnosticTool,
    ProfilerConfig,
    RunConfig,
    SnapshotConfig,
    TransportConfig,
)
from kb_runner.models.events import RunEvent, StdoutEmitter
from kb_runner.models.run import PHASES, PhaseSnapshot, RunIdentity, RunResult

__all__ = [
    "DiagnosticTool",
    "PHASES",
    "PhaseSnapshot",
    "ProfilerConfig",
    "RunConfig",
    "RunEvent",
    "RunIdentity",
    "RunResult",
    "SnapshotConfig",
    "StdoutEmitter",
    "TransportConfig",
]
