"""Configuration schema for construct git sync.

Configuration is process-level: loaded from an optional YAML file (pointed to
by ``CONSTRUCT_SYNC_CONFIG``) and then adjusted by environment overrides. A
sync call itself only ever takes ``(url, ref)``.
"""

from __future__ import annotations

import os
from pathlib import Path

import yaml
from pydantic import BaseModel, Field, field_validator

DEFAULT_SCHEMA_PATH = ".claude/schemas/construct.schema.json"


class SourceConfig(BaseModel):
    """Where constructs may be cloned from."""

    # Phase 1: a single git host.
    allowed_hosts: list[str] = Field(default_factory=lambda: ["github.com"])

    @field_validator("allowed_hosts")
    @classmethod
    def validate_allowed_hosts(cls, v: list[str]) -> list[str]:
        hosts = [h.strip().lower() for h in v if h and h.strip()]
        if not hosts:
            raise ValueError("allowed_hosts must contain at least one host")
        return hosts


class CloneConfig(BaseModel):
    """Git clone behavior."""

    timeout_seconds: float = Field(default=30.0, gt=0)
    git_executable: str = "git"


class LimitsConfig(BaseModel):
    """Hard ceilings applied while validating and collecting a tree."""

    max_files: int = Field(default=100, gt=0)
    max_file_size_bytes: int = Field(default=256 * 1024, gt=0)
    max_total_size_bytes: int = Field(default=5 * 1024 * 1024, gt=0)
    max_path_length: int = Field(default=255, gt=0)


class ManifestConfig(BaseModel):
    """Manifest validation settings."""

    # Relative paths resolve against the process working directory.
    schema_path: str = DEFAULT_SCHEMA_PATH

    def resolved_schema_path(self) -> Path:
        return Path(self.schema_path).expanduser().resolve()


class TelemetryConfig(BaseModel):
    """JSONL event log for sync runs."""

    enabled: bool = False
    log_path: str = ".construct-sync/telemetry.jsonl"


class SyncConfig(BaseModel):
    """Complete construct sync configuration."""

    source: SourceConfig = Field(default_factory=SourceConfig)
    clone: CloneConfig = Field(default_factory=CloneConfig)
    limits: LimitsConfig = Field(default_factory=LimitsConfig)
    manifest: ManifestConfig = Field(default_factory=ManifestConfig)
    telemetry: TelemetryConfig = Field(default_factory=TelemetryConfig)

    @classmethod
    def load_from_file(cls, config_path: Path | str) -> SyncConfig:
        """Load configuration from YAML file."""
        config_path = Path(config_path)
        if not config_path.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")

        with open(config_path, encoding="utf-8") as f:
            data = yaml.safe_load(f)

        return cls(**(data or {}))

    def apply_env_overrides(self) -> None:
        """Apply environment variable overrides to configuration."""
        if hosts := os.getenv("CONSTRUCT_SYNC_ALLOWED_HOSTS"):
            self.source = SourceConfig(allowed_hosts=hosts.split(","))

        if timeout := os.getenv("CONSTRUCT_SYNC_CLONE_TIMEOUT_SECONDS"):
            value = float(timeout)
            if value <= 0:
                raise ValueError("CONSTRUCT_SYNC_CLONE_TIMEOUT_SECONDS must be positive")
            self.clone.timeout_seconds = value
        if git := os.getenv("CONSTRUCT_SYNC_GIT_EXECUTABLE"):
            self.clone.git_executable = git

        if schema_path := os.getenv("CONSTRUCT_SYNC_SCHEMA_PATH"):
            self.manifest.schema_path = schema_path

        if os.getenv("CONSTRUCT_SYNC_TELEMETRY") == "1":
            self.telemetry.enabled = True
        if log_path := os.getenv("CONSTRUCT_SYNC_TELEMETRY_PATH"):
            self.telemetry.log_path = log_path


def load_config(config_path: Path | str | None = None) -> SyncConfig:
    """
    Load sync configuration.

    Args:
        config_path: Optional YAML file; defaults to ``$CONSTRUCT_SYNC_CONFIG``

    Returns:
        Loaded and validated configuration (defaults when no file is given)
    """
    config_path = config_path or os.getenv("CONSTRUCT_SYNC_CONFIG")
    config = SyncConfig.load_from_file(config_path) if config_path else SyncConfig()
    config.apply_env_overrides()
    return config
