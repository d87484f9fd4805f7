# pyright: reportExplicitAny=false
"""Configuration management for Mixcut."""

from __future__ import annotations

import os
import re
import tempfile
from enum import Enum
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator

_ENV_VAR_PATTERN = r"\$\{([^}]+)\}"


class StorageBackendName(str, Enum):
    """Supported object store backends."""

    S3 = "s3"
    LOCAL = "local"


class QueueBackendName(str, Enum):
    """Supported message queue backends."""

    SQS = "sqs"
    LOCAL = "local"


class StorageConfig(BaseModel):
    """Object store configuration."""

    backend: StorageBackendName = StorageBackendName.LOCAL
    uploads_location: str = Field(default="", description="Bucket holding job source files")
    outputs_location: str = Field(default="", description="Bucket receiving cut tracks")
    endpoint_url: str | None = Field(
        default=None, description="Custom S3 endpoint (R2, MinIO); AWS when unset"
    )
    region_name: str | None = None
    local_root: str = Field(
        default="media", description="Root directory for the local backend (one folder per location)"
    )

    @model_validator(mode="after")
    def validate_s3_locations(self) -> StorageConfig:
        """S3 backend needs both buckets; the local backend falls back to folder names."""
        if self.backend is StorageBackendName.S3:
            if not self.uploads_location or not self.outputs_location:
                raise ValueError(
                    "storage.uploads_location and storage.outputs_location are required for the s3 backend"
                )
        else:
            self.uploads_location = self.uploads_location or "uploads"
            self.outputs_location = self.outputs_location or "outputs"
        return self


class QueueConfig(BaseModel):
    """Message queue configuration."""

    backend: QueueBackendName = QueueBackendName.LOCAL
    queue_url: str | None = None
    region_name: str | None = None
    max_receive_count: int = Field(
        default=3, description="Receives before a message is diverted to the dead-letter channel"
    )
    visibility_timeout_seconds: int = 900
    wait_time_seconds: int = Field(default=20, ge=0, le=20)

    @field_validator("max_receive_count")
    @classmethod
    def validate_max_receive_count(cls, v: int) -> int:
        """Validate receive count is positive."""
        if v < 1:
            raise ValueError(f"max_receive_count must be at least 1, got {v}")
        return v

    @model_validator(mode="after")
    def validate_queue_url(self) -> QueueConfig:
        """Validate that SQS has a queue URL."""
        if self.backend is QueueBackendName.SQS and not self.queue_url:
            raise ValueError("queue.queue_url is required for the sqs backend")
        return self


class WorkerConfig(BaseModel):
    """Processing worker configuration."""

    workspace_root: str = Field(default_factory=tempfile.gettempdir)
    cutter_executable: str = "m4acut"
    tagger_executable: str = "AtomicParsley"
    output_extension: str = ".m4a"
    output_prefix: str = "jobs"
    artwork_filenames: list[str] = Field(
        default_factory=lambda: ["artwork.png", "artwork.jpg", "artwork.jpeg"]
    )
    tool_timeout_seconds: float | None = Field(
        default=None, description="Kill an external tool that runs longer than this"
    )
    retry_transient_errors: bool = Field(
        default=False,
        description="Hand transient infrastructure errors back to the queue instead of failing the job",
    )

    @field_validator("output_extension")
    @classmethod
    def validate_output_extension(cls, v: str) -> str:
        """Validate extension looks like '.m4a'."""
        if not v.startswith(".") or len(v) < 2:
            raise ValueError(f"output_extension must start with a dot, got {v!r}")
        return v.lower()

    @field_validator("output_prefix")
    @classmethod
    def strip_output_prefix(cls, v: str) -> str:
        """Normalize prefix without surrounding slashes."""
        return v.strip("/")


class Config(BaseModel):
    """Global configuration."""

    database_url: str = Field(..., description="Async SQLAlchemy database URL")
    storage: StorageConfig = Field(default_factory=StorageConfig)
    queue: QueueConfig = Field(default_factory=QueueConfig)
    worker: WorkerConfig = Field(default_factory=WorkerConfig)
    log_level: str = "INFO"

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level name."""
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {v}")
        return level

    @classmethod
    def _collect_required_env_vars(cls, data: Any, collected: set[str] | None = None) -> set[str]:
        """Recursively collect all ${VAR_NAME} references from config data.

        Args:
            data: YAML data structure (dict, list, str, etc.)
            collected: Set of variable names found so far

        Returns:
            Set of all environment variable names referenced in config
        """
        if collected is None:
            collected = set()

        if isinstance(data, dict):
            for v in data.values():
                cls._collect_required_env_vars(v, collected)
        elif isinstance(data, list):
            for item in data:
                cls._collect_required_env_vars(item, collected)
        elif isinstance(data, str):
            collected.update(re.findall(_ENV_VAR_PATTERN, data))

        return collected

    @classmethod
    def _substitute_env_vars(cls, data: Any, environ: dict[str, str]) -> Any:
        """Recursively substitute ${VAR_NAME} with environment variables."""
        if isinstance(data, dict):
            return {k: cls._substitute_env_vars(v, environ) for k, v in data.items()}
        elif isinstance(data, list):
            return [cls._substitute_env_vars(item, environ) for item in data]
        elif isinstance(data, str):
            return re.sub(_ENV_VAR_PATTERN, lambda m: environ[m.group(1)], data)
        else:
            return data

    @classmethod
    def load(cls, config_path: str | Path = "config.yaml", environ: dict[str, str] | None = None) -> Config:
        """Load configuration from YAML file.

        Note: Assumes environment variables are already loaded (e.g., via load_dotenv()).
        """
        path = Path(config_path)
        if not path.exists():
            raise FileNotFoundError(f"Configuration file not found: {config_path}")

        with open(path, "r") as f:
            data: dict[str, Any] = yaml.safe_load(f) or {}

        env = dict(os.environ) if environ is None else environ

        missing_vars = [var for var in cls._collect_required_env_vars(data) if var not in env]
        if missing_vars:
            raise ValueError(
                f"Missing required environment variables: {', '.join(sorted(missing_vars))}\n"
                + "Please set these in your .env file or environment.\n"
                + "See .env.example for reference."
            )

        return cls(**cls._substitute_env_vars(data, env))
