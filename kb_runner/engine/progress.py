"""Helpers for emitting structured run progress events."""

from __future__ import annotations

import logging
import time
from typing import Callable

from kb_runner.models.events import RunEvent, StdoutEmitter


logger = logging.getLogger(__name__)


class RunProgressEmitter:
    """Emit progress events to callbacks and stdout."""

    def __init__(
        self,
        label: str,
        callback: Callable[[RunEvent], None] | None = None,
        stdout_emitter: StdoutEmitter | None = None,
    ) -> None:
        self._label = label
        self._callback = callback
        self._stdout_emitter = stdout_emitter or StdoutEmitter()

    def emit(
        self,
        run_id: str,
        repetition: int,
        total_repetitions: int,
        status: str,
        message: str = "",
    ) -> None:
        """Notify progress callback and stdout marker for wrapper scripts."""
        event = RunEvent(
            run_id=run_id,
            label=self._label,
            repetition=repetition,
            total_repetitions=total_repetitions,
            status=status,
            message=message,
            timestamp=time.time(),
        )
        if self._callback:
            try:
                self._callback(event)
            except Exception as exc:
                logger.debug("Progress callback failed: %s", exc)
        try:
            self._stdout_emitter.emit(event)
        except Exception as exc:
            logger.debug("Progress marker could not be written: %s", exc)
