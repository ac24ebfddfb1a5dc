"""Structured events for run progress tracking."""

from __future__ import annotations

from dataclasses import dataclass, asdict
from typing import Any
import json


@dataclass
class RunEvent:
    """A structured event emitted during a benchmark session."""
    run_id: str
    label: str
    repetition: int
    total_repetitions: int
    status: str  # running | done | failed | complete
    message: str = ""
    timestamp: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    def to_json(self) -> str:
        return json.dumps(self.to_dict())


class StdoutEmitter:
    """Emit progress markers to stdout for parsing by wrapper scripts."""

    def emit(self, event: RunEvent) -> None:
        print(f"KB_EVENT {event.to_json()}", flush=True)
