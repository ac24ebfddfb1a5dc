"""Deadline-bounded retry loop used by every workload worker."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LoopStats:
    """Iteration counters reported by a finished loop."""

    iterations: int
    failures: int


def run_until(
    deadline: float,
    operation: Callable[[], object],
    *,
    name: str = "operation",
    clock: Callable[[], float] = time.monotonic,
) -> LoopStats:
    """
    Invoke ``operation`` repeatedly until ``clock()`` reaches ``deadline``.

    Any exception raised by a single iteration is discarded; there is no
    backoff and no iteration cap. ``deadline`` is expressed on ``clock``.
    """
    iterations = 0
    failures = 0
    while clock() < deadline:
        try:
            operation()
        except Exception as exc:
            failures += 1
            logger.debug("%s iteration failed: %s", name, exc)
        iterations += 1
    return LoopStats(iterations=iterations, failures=failures)
