"""Benchmark configuration (resolved once, read-only afterwards)."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, List

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from kb_common.errors import ConfigurationError

KNOWN_TLS_VERSIONS = ("TLSv1", "TLSv1.1", "TLSv1.2", "TLSv1.3")

# --- Pydantic Models for Configuration ---


class TransportConfig(BaseModel):
    """Tuning handed to the cluster client transport."""

    model_config = ConfigDict(frozen=True)

    trust_certs: bool = Field(default=False, description="Skip TLS certificate verification")
    request_timeout_seconds: int = Field(default=30, gt=0, description="Read timeout for unary API calls")
    connect_timeout_seconds: int = Field(default=10, gt=0, description="TCP/TLS connect timeout")
    websocket_timeout_seconds: int = Field(
        default=600, gt=0, description="Read timeout for streaming calls (watch, log tail)"
    )
    max_concurrent_requests: int = Field(default=64, gt=0, description="Global cap on pooled connections")
    max_concurrent_requests_per_host: int = Field(default=32, gt=0, description="Per-host cap on pooled connections")
    tls_versions: List[str] = Field(
        default_factory=lambda: ["TLSv1.2", "TLSv1.3"],
        description="Allowed TLS protocol versions",
    )

    @field_validator("tls_versions")
    @classmethod
    def _validate_tls_versions(cls, value: List[str]) -> List[str]:
        if not value:
            raise ValueError("tls_versions must not be empty")
        unknown = [v for v in value if v not in KNOWN_TLS_VERSIONS]
        if unknown:
            raise ValueError(f"unknown TLS versions: {', '.join(unknown)}")
        return value


class DiagnosticTool(BaseModel):
    """An external diagnostic invoked once per phase against the harness PID."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(description="Short name used in logs")
    filename: str = Field(description="Output file written inside the phase directory")
    argv: List[str] = Field(description="Command line; supports {pid} and {python} placeholders")


class ProfilerConfig(BaseModel):
    """Start/stop profiling session run once per repeat at the midpoint."""

    model_config = ConfigDict(frozen=True)

    argv: List[str] = Field(
        default_factory=lambda: [
            "py-spy",
            "record",
            "--pid",
            "{pid}",
            "--format",
            "speedscope",
            "--output",
            "{output}",
        ],
        description="Command that records until interrupted; supports {pid}, {python}, {output}",
    )
    filename: str = Field(
        default="midrun-profile.speedscope.json",
        description="Recording file written in the run directory",
    )


def _default_tools() -> List[DiagnosticTool]:
    return [
        DiagnosticTool(
            name="thread-dump",
            filename="thread_dump.txt",
            argv=["py-spy", "dump", "--pid", "{pid}"],
        ),
        DiagnosticTool(
            name="memory-summary",
            filename="memory_summary.txt",
            argv=["{python}", "-m", "kb_runner.probe", "memory", "{pid}"],
        ),
        DiagnosticTool(
            name="runtime-usage",
            filename="runtime_usage.txt",
            argv=["{python}", "-m", "kb_runner.probe", "usage", "{pid}"],
        ),
    ]


class SnapshotConfig(BaseModel):
    """Configuration for phase snapshots and the mid-run profiler."""

    model_config = ConfigDict(frozen=True)

    tools: List[DiagnosticTool] = Field(default_factory=_default_tools, description="Per-phase diagnostics")
    profiler: ProfilerConfig = Field(default_factory=ProfilerConfig, description="Mid-run profiler")
    timeout_seconds: float = Field(default=30.0, gt=0, description="Bounded wait per tool invocation")


class RunConfig(BaseModel):
    """Main configuration for a benchmark session."""

    model_config = ConfigDict(frozen=True)

    label: str = Field(default="urllib3-unknown", min_length=1, description="Transport label; groups run directories")
    namespace: str = Field(default="ab-harness", min_length=1, description="Namespace receiving churn records")
    output_dir: Path = Field(default=Path("out"), description="Root directory for all run artifacts")

    repeats: int = Field(default=3, gt=0, description="Number of measured runs")
    warmup_seconds: float = Field(default=15, ge=0, description="Unmeasured warmup before the first run")
    duration_seconds: float = Field(default=120, gt=0, description="Workload duration of each run")
    cooldown_seconds: float = Field(default=10, ge=0, description="Pause between runs")
    worker_count: int = Field(default=4, ge=1, description="Workload pool size (raised to 3 when smaller)")
    profile_seconds: float = Field(default=0, ge=0, description="Mid-run profiling duration; 0 disables")

    transport: TransportConfig = Field(default_factory=TransportConfig, description="Client transport tuning")
    snapshots: SnapshotConfig = Field(default_factory=SnapshotConfig, description="Diagnostics configuration")

    @property
    def label_dir(self) -> Path:
        """Directory grouping every run of this label."""
        return self.output_dir / self.label

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RunConfig":
        try:
            return cls.model_validate(data)
        except ValidationError as exc:
            raise ConfigurationError("Invalid run configuration", cause=exc) from exc

    @classmethod
    def load(cls, filepath: Path) -> "RunConfig":
        return cls.from_dict(read_config_file(filepath))

    def save(self, filepath: Path) -> None:
        filepath.write_text(self.model_dump_json(indent=2))


def read_config_file(filepath: Path) -> Dict[str, Any]:
    """Read a YAML or JSON mapping from disk."""
    try:
        text = filepath.read_text()
    except OSError as exc:
        raise ConfigurationError(
            f"Cannot read config file {filepath}", context={"path": filepath}, cause=exc
        ) from exc
    try:
        if filepath.suffix.lower() in {".yaml", ".yml"}:
            data = yaml.safe_load(text) or {}
        else:
            data = json.loads(text)
    except (yaml.YAMLError, json.JSONDecodeError) as exc:
        raise ConfigurationError(
            f"Cannot parse config file {filepath}", context={"path": filepath}, cause=exc
        ) from exc
    if not isinstance(data, dict):
        raise ConfigurationError(
            f"Config file {filepath} must contain a mapping", context={"path": filepath}
        )
    return data
