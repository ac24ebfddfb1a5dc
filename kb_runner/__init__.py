"""Runner facade for kube-transport-bench.

Re-exports the types needed to drive a benchmark session from code.
"""

from kb_runner.engine.orchestrator import RunOrchestrator, RunState
from kb_runner.kube.client import ClusterClient
from kb_runner.models.config import RunConfig, SnapshotConfig, TransportConfig
from kb_runner.models.events import RunEvent
from kb_runner.models.run import RunResult

__all__ = [
    "ClusterClient",
    "RunConfig",
    "RunEvent",
    "RunOrchestrator",
    "RunResult",
    "RunState",
    "SnapshotConfig",
    "TransportConfig",
]
