"""Run identity allocation."""

from __future__ import annotations

from datetime import UTC, datetime
from pathlib import Path
from typing import Callable

from kb_runner.models.run import RunIdentity


def generate_run_id(sequence: int, now: datetime | None = None) -> str:
    """Generate a timestamp-plus-sequence run id, e.g. ``20250101-120000-rep1``."""
    stamp = (now or datetime.now(UTC)).strftime("%Y%m%d-%H%M%S")
    return f"{stamp}-rep{sequence}"


class RunPlanner:
    """Allocate a fresh identity and directory for each repeat."""

    def __init__(self, label_dir: Path, now: Callable[[], datetime] | None = None) -> None:
        self._label_dir = label_dir
        self._now = now or (lambda: datetime.now(UTC))

    def allocate(self, sequence: int) -> RunIdentity:
        """Create the run directory; an existing directory is never reused."""
        if sequence <= 0:
            raise ValueError("Repetition index must be a positive integer")
        run_id = generate_run_id(sequence, self._now())
        run_dir = self._label_dir / run_id
        run_dir.mkdir(parents=True, exist_ok=False)
        return RunIdentity(run_id=run_id, sequence=sequence, run_dir=run_dir)
