"""
Phase snapshots and the mid-run profiler.

Each snapshot runs the configured diagnostics against the harness process
and stores their combined stdout/stderr under ``{run_dir}/{phase}/``.
Collection is best-effort: failures are logged and recorded on the
returned PhaseSnapshot, never raised.
"""

from __future__ import annotations

import logging
import os
import shutil
import signal
import subprocess
import sys
import sysconfig
import time
from pathlib import Path
from typing import Callable, Dict, List, Optional

from kb_common.errors import DiagnosticError, error_to_payload
from kb_runner.models.config import DiagnosticTool, SnapshotConfig
from kb_runner.models.run import PhaseSnapshot


logger = logging.getLogger(__name__)


def resolve_tool(name: str) -> str:
    """
    Resolve a bare tool name against the running interpreter's installation.

    Looks next to ``sys.executable``, then in the interpreter's scripts
    directory, then on PATH. Paths and unresolved names are returned as-is.
    """
    if os.sep in name:
        return name
    candidates = [Path(sys.executable).parent / name]
    scripts = sysconfig.get_path("scripts")
    if scripts:
        candidates.append(Path(scripts) / name)
    for candidate in candidates:
        if candidate.is_file() and os.access(candidate, os.X_OK):
            return str(candidate)
    return shutil.which(name) or name


def _substitute(part: str, values: Dict[str, str]) -> str:
    for placeholder, value in values.items():
        part = part.replace(placeholder, value)
    return part


def render_argv(argv: List[str], pid: int, output: Optional[Path] = None) -> List[str]:
    """
    Substitute placeholders and resolve the executable.

    Only ``{pid}``, ``{python}`` and ``{output}`` are replaced; any other
    brace in an argument is passed through untouched.
    """
    values = {"{pid}": str(pid), "{python}": sys.executable, "{output}": str(output or "")}
    rendered = [_substitute(part, values) for part in argv]
    if rendered and argv[0] != "{python}":
        rendered[0] = resolve_tool(rendered[0])
    return rendered


class SnapshotCollector:
    """Run per-phase diagnostics and the optional profiler."""

    def __init__(
        self,
        config: SnapshotConfig | None = None,
        pid: int | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.config = config or SnapshotConfig()
        self.pid = pid or os.getpid()
        self._sleep = sleep

    def snapshot(self, run_dir: Path, phase: str) -> PhaseSnapshot:
        """Create ``run_dir/phase`` and run every diagnostic into it."""
        phase_dir = run_dir / phase
        snapshot = PhaseSnapshot(phase=phase, directory=phase_dir)
        try:
            phase_dir.mkdir(parents=True, exist_ok=False)
        except OSError as exc:
            error = DiagnosticError(
                f"Cannot create snapshot directory {phase_dir}",
                context={"phase": phase, "path": phase_dir},
                cause=exc,
            )
            logger.warning("%s: %s", error, exc)
            snapshot.failures.append(error_to_payload(error))
            return snapshot

        logger.info("Collecting '%s' snapshot in %s", phase, phase_dir)
        for tool in self.config.tools:
            error = self._run_tool(tool, phase_dir)
            if error is None:
                snapshot.artifacts[tool.name] = phase_dir / tool.filename
            else:
                snapshot.failures.append(error_to_payload(error))
        return snapshot

    def _run_tool(self, tool: DiagnosticTool, phase_dir: Path) -> Optional[DiagnosticError]:
        argv = render_argv(tool.argv, self.pid)
        out_path = phase_dir / tool.filename
        context: Dict[str, object] = {"tool": tool.name, "argv": argv, "output": out_path}
        try:
            with out_path.open("wb") as sink:
                result = subprocess.run(
                    argv,
                    stdout=sink,
                    stderr=subprocess.STDOUT,
                    timeout=self.config.timeout_seconds,
                    check=False,
                )
        except subprocess.TimeoutExpired as exc:
            logger.warning("Diagnostic %s timed out after %ss", tool.name, self.config.timeout_seconds)
            return DiagnosticError(f"{tool.name} timed out", context=context, cause=exc)
        except OSError as exc:
            logger.warning("Diagnostic %s could not be started: %s", tool.name, exc)
            return DiagnosticError(f"{tool.name} could not be started", context=context, cause=exc)

        if result.returncode != 0:
            logger.warning("Diagnostic %s exited with status %s", tool.name, result.returncode)
            context["returncode"] = result.returncode
            return DiagnosticError(f"{tool.name} exited with status {result.returncode}", context=context)
        return None

    def record_profile(self, run_dir: Path, seconds: float) -> Optional[Path]:
        """
        Start the profiler, keep it running for ``seconds``, then stop it.

        Returns the recording path when the profiler produced it.
        """
        profiler = self.config.profiler
        output = run_dir / profiler.filename
        argv = render_argv(profiler.argv, self.pid, output=output)
        logger.info("Recording %ss profile to %s", seconds, output)
        try:
            process = subprocess.Popen(argv, stdout=subprocess.DEVNULL, stderr=subprocess.DEVNULL)
        except OSError as exc:
            logger.warning("Profiler could not be started: %s", exc)
            return None

        try:
            self._sleep(seconds)
        finally:
            self._stop_profiler(process)

        if output.exists():
            return output
        logger.warning("Profiler exited with status %s without writing %s", process.returncode, output)
        return None

    def _stop_profiler(self, process: subprocess.Popen) -> None:
        if process.poll() is None:
            process.send_signal(signal.SIGINT)
        try:
            process.wait(timeout=self.config.timeout_seconds)
        except subprocess.TimeoutExpired:
            logger.warning("Profiler did not stop within %ss; killing it", self.config.timeout_seconds)
            process.kill()
            process.wait()
