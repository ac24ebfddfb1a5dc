"""
Command-line interface for kube-transport-bench.

Resolves a RunConfig from defaults, an optional config file and explicit
options, builds the cluster client and hands both to the orchestrator.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional

import typer
from rich.console import Console
from rich.table import Table

from kb_common.config.env import parse_csv
from kb_common.errors import ClusterSetupError, ConfigurationError
from kb_common.logging import configure_logging
from kb_runner.engine.orchestrator import RunOrchestrator
from kb_runner.kube.factory import build_cluster_client
from kb_runner.models.config import RunConfig, read_config_file
from kb_runner.models.run import RunResult


logger = logging.getLogger(__name__)

DEFAULT_LABEL = "urllib3-unknown"
TRANSPORT_ENV = "KB_TRANSPORT_ID"

EXIT_FATAL = 1

app = typer.Typer(help="Benchmark a cluster API client transport under synthetic load.", no_args_is_help=True)
config_app = typer.Typer(help="Inspect benchmark configuration.", no_args_is_help=True)
app.add_typer(config_app, name="config")


def resolve_config(
    config_path: Optional[Path],
    overrides: Dict[str, Any],
    transport_overrides: Dict[str, Any],
) -> RunConfig:
    """Merge file values, explicit options and the ambient default label."""
    data: Dict[str, Any] = read_config_file(config_path) if config_path else {}
    data.update({k: v for k, v in overrides.items() if v is not None})
    transport = dict(data.get("transport") or {})
    transport.update({k: v for k, v in transport_overrides.items() if v is not None})
    if transport:
        data["transport"] = transport
    if not data.get("label"):
        data["label"] = os.environ.get(TRANSPORT_ENV) or DEFAULT_LABEL
    return RunConfig.from_dict(data)


def render_summary(results: List[RunResult], console: Console | None = None) -> None:
    console = console or Console()
    table = Table(title="Benchmark runs", show_header=True, header_style="bold magenta")
    table.add_column("Run", style="cyan")
    table.add_column("Phases")
    table.add_column("Profile")
    table.add_column("Swept", justify="right")
    table.add_column("Status")
    for result in results:
        table.add_row(
            result.identity.run_id,
            ",".join(s.phase for s in result.snapshots),
            result.profile.name if result.profile else "-",
            str(result.swept_records),
            "[green]ok[/green]" if result.success else f"[red]{result.workload_error or result.setup_error}[/red]",
        )
    console.print(table)


@app.command("run")
def run_command(
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="YAML or JSON config file."),
    label: Optional[str] = typer.Option(None, "--label", help=f"Transport label (default: ${TRANSPORT_ENV} or {DEFAULT_LABEL})."),
    namespace: Optional[str] = typer.Option(None, "--namespace", help="Namespace for churn records."),
    out: Optional[Path] = typer.Option(None, "--out", help="Output root directory."),
    repeats: Optional[int] = typer.Option(None, "--repeats", help="Number of measured runs."),
    warmup: Optional[float] = typer.Option(None, "--warmup", help="Warmup seconds."),
    duration: Optional[float] = typer.Option(None, "--duration", help="Workload seconds per run."),
    cooldown: Optional[float] = typer.Option(None, "--cooldown", help="Pause between runs in seconds."),
    threads: Optional[int] = typer.Option(None, "--threads", help="Workload worker count."),
    profile: Optional[float] = typer.Option(None, "--profile", help="Mid-run profiling seconds (0 disables)."),
    trust_certs: Optional[bool] = typer.Option(None, "--trust-certs/--verify-certs", help="Skip TLS verification."),
    req_timeout: Optional[int] = typer.Option(None, "--req-timeout", help="Request timeout seconds."),
    conn_timeout: Optional[int] = typer.Option(None, "--conn-timeout", help="Connect timeout seconds."),
    ws_timeout: Optional[int] = typer.Option(None, "--ws-timeout", help="Streaming read timeout seconds."),
    max_requests: Optional[int] = typer.Option(None, "--max-requests", help="Global connection cap."),
    max_requests_per_host: Optional[int] = typer.Option(None, "--max-requests-per-host", help="Per-host connection cap."),
    tls: Optional[str] = typer.Option(None, "--tls", help="Comma-separated TLS versions, e.g. TLSv1.2,TLSv1.3."),
    log_level: Optional[str] = typer.Option(None, "--log-level", help="Log level (default: $KB_LOG_LEVEL or INFO)."),
    json_logs: Optional[bool] = typer.Option(None, "--json-logs/--console-logs", help="Render logs as JSON."),
) -> None:
    """Run warmup and the configured repeats against the current kube context."""
    configure_logging(level=log_level, json=json_logs, force=True)
    try:
        cfg = resolve_config(
            config,
            {
                "label": label,
                "namespace": namespace,
                "output_dir": out,
                "repeats": repeats,
                "warmup_seconds": warmup,
                "duration_seconds": duration,
                "cooldown_seconds": cooldown,
                "worker_count": threads,
                "profile_seconds": profile,
            },
            {
                "trust_certs": trust_certs,
                "request_timeout_seconds": req_timeout,
                "connect_timeout_seconds": conn_timeout,
                "websocket_timeout_seconds": ws_timeout,
                "max_concurrent_requests": max_requests,
                "max_concurrent_requests_per_host": max_requests_per_host,
                "tls_versions": parse_csv(tls) if tls is not None else None,
            },
        )
    except ConfigurationError as exc:
        logger.error("%s: %s", exc, exc.__cause__)
        raise typer.Exit(EXIT_FATAL)

    try:
        client = build_cluster_client(cfg.transport)
    except ClusterSetupError as exc:
        logger.error("Cannot build cluster client: %s (%s)", exc, exc.__cause__)
        raise typer.Exit(EXIT_FATAL)

    try:
        results = RunOrchestrator(client, cfg).run()
    finally:
        client.close()

    render_summary(results)
    failed = cfg.repeats - sum(1 for r in results if r.success)
    if failed:
        logger.warning("%s of %s runs failed; see the summary above", failed, cfg.repeats)
    logger.info("Finished all runs.")


@config_app.command("show")
def config_show(
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="YAML or JSON config file."),
) -> None:
    """Print the effective configuration as JSON."""
    try:
        cfg = resolve_config(config, {}, {})
    except ConfigurationError as exc:
        typer.echo(f"{exc}: {exc.__cause__}", err=True)
        raise typer.Exit(EXIT_FATAL)
    typer.echo(json.dumps(cfg.model_dump(mode="json"), indent=2))


def main() -> None:
    """Console script entrypoint (Typer app)."""
    app()


if __name__ == "__main__":  # pragma: no cover
    main()
