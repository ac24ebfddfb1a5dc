"""Per-run records produced by the orchestrator."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

PHASES = ("start", "mid", "end")


@dataclass(frozen=True)
class RunIdentity:
    """Identifier and directory of one repeat."""

    run_id: str
    sequence: int
    run_dir: Path


@dataclass
class PhaseSnapshot:
    """Diagnostic artifacts written for one phase of a run."""

    phase: str
    directory: Path
    artifacts: Dict[str, Path] = field(default_factory=dict)
    failures: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def complete(self) -> bool:
        return not self.failures


@dataclass
class RunResult:
    """Outcome of a single repeat."""

    identity: RunIdentity
    snapshots: List[PhaseSnapshot] = field(default_factory=list)
    profile: Optional[Path] = None
    workload_error: Optional[str] = None
    setup_error: Optional[str] = None
    swept_records: int = 0

    @property
    def success(self) -> bool:
        return self.workload_error is None and self.setup_error is None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "run_id": self.identity.run_id,
            "sequence": self.identity.sequence,
            "run_dir": str(self.identity.run_dir),
            "phases": [s.phase for s in self.snapshots],
            "profile": str(self.profile) if self.profile else None,
            "workload_error": self.workload_error,
            "setup_error": self.setup_error,
            "swept_records": self.swept_records,
            "success": self.success,
        }
