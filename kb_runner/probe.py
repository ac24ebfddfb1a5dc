"""
Out-of-process diagnostic probe.

Invoked by the snapshot collector as ``python -m kb_runner.probe`` so that
memory and runtime usage of the harness process are sampled from outside
it, the same way the thread dump is.
"""

from __future__ import annotations

import json
from collections import Counter, defaultdict
from typing import Any, Dict

import psutil
import typer

MEMORY_MAPS_TOP = 20

app = typer.Typer(help="Sample memory and runtime usage of a process.", no_args_is_help=True)


def memory_summary(pid: int) -> Dict[str, Any]:
    """Full memory info plus the largest mappings by RSS."""
    proc = psutil.Process(pid)
    summary: Dict[str, Any] = {"pid": pid, "memory": proc.memory_full_info()._asdict()}
    by_path: Dict[str, int] = defaultdict(int)
    try:
        for mapping in proc.memory_maps(grouped=True):
            by_path[mapping.path or "[anon]"] += mapping.rss
    except (psutil.AccessDenied, NotImplementedError) as exc:
        summary["maps_error"] = str(exc)
    top = sorted(by_path.items(), key=lambda item: item[1], reverse=True)[:MEMORY_MAPS_TOP]
    summary["top_mappings_rss"] = dict(top)
    return summary


def runtime_usage(pid: int, interval: float = 1.0) -> Dict[str, Any]:
    """One-shot CPU, thread, descriptor and connection sample."""
    proc = psutil.Process(pid)
    with proc.oneshot():
        usage: Dict[str, Any] = {
            "pid": pid,
            "num_threads": proc.num_threads(),
            "num_fds": proc.num_fds() if hasattr(proc, "num_fds") else None,
            "ctx_switches": proc.num_ctx_switches()._asdict(),
            "cpu_times": proc.cpu_times()._asdict(),
        }
    usage["cpu_percent"] = proc.cpu_percent(interval=interval)
    connections = proc.net_connections(kind="inet")
    usage["connections_total"] = len(connections)
    usage["connections_by_status"] = dict(Counter(conn.status for conn in connections))
    return usage


@app.command("memory")
def memory(pid: int = typer.Argument(..., help="Process to inspect.")) -> None:
    """Print the memory summary of PID as JSON."""
    typer.echo(json.dumps(memory_summary(pid), indent=2, default=str))


@app.command("usage")
def usage(
    pid: int = typer.Argument(..., help="Process to inspect."),
    interval: float = typer.Option(1.0, "--interval", help="CPU sampling window in seconds."),
) -> None:
    """Print a one-shot runtime usage sample of PID as JSON."""
    typer.echo(json.dumps(runtime_usage(pid, interval=interval), indent=2, default=str))


def main() -> None:
    app()


if __name__ == "__main__":
    main()
