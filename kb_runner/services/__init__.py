"""Best-effort instrumentation services: snapshots and background observers."""

from kb_runner.services.observer import BackgroundObserver, ObserverHandle
from kb_runner.services.snapshots import SnapshotCollector

__all__ = ["BackgroundObserver", "ObserverHandle", "SnapshotCollector"]
