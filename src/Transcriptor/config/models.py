"""
Pydantic v2 configuration models for Transcriptor.

Every section forbids unknown keys so that typos in a config file surface
as validation errors instead of being silently ignored. Defaults mirror the
production behavior of the CLI; a config file, environment variables, or
CLI overrides can replace any of them (see :mod:`Transcriptor.config.loader`).
"""

from __future__ import annotations

import hashlib
import json
from pathlib import Path
from typing import ClassVar, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

__all__ = [
    "HttpSettings",
    "RetrySettings",
    "StorageSettings",
    "CacheSettings",
    "LoggingSettings",
    "TranscriptorConfig",
]

MAX_ARTIFACT_BYTES = 10 * 1024 * 1024


class HttpSettings(BaseModel):
    """Endpoints, timeouts and identification for outbound HTTP calls."""

    model_config: ClassVar[ConfigDict] = ConfigDict(extra="forbid")

    base_url: str = Field(
        default="https://api.scrape-creators.com",
        description="Transcript service base URL",
    )
    transcript_endpoint: str = Field(
        default="/v1/youtube/video/transcript",
        description="Path of the transcript endpoint",
    )
    api_key_header: str = Field(default="x-api-key", description="Header carrying the API key")
    content_timeout_s: float = Field(default=30.0, description="Timeout for transcript calls")
    metadata_timeout_s: float = Field(default=15.0, description="Timeout for metadata calls")
    metadata_endpoint: str = Field(
        default="https://www.youtube.com/oembed",
        description="oEmbed endpoint used for channel and title lookup",
    )
    user_agent: str = Field(default="Transcriptor/1.0", description="User-Agent header")

    @field_validator("content_timeout_s", "metadata_timeout_s")
    @classmethod
    def validate_timeouts(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("Timeouts must be > 0")
        return v

    @field_validator("base_url", "metadata_endpoint")
    @classmethod
    def validate_urls(cls, v: str) -> str:
        if not v.startswith(("http://", "https://")):
            raise ValueError(f"URL must start with http:// or https://: {v}")
        return v.rstrip("/")


class RetrySettings(BaseModel):
    """Retry behavior for rate-limited transcript calls and metadata 503s."""

    model_config: ClassVar[ConfigDict] = ConfigDict(extra="forbid")

    max_attempts: int = Field(default=3, description="Total attempts including the first")
    initial_delay_s: float = Field(default=1.0, description="First backoff delay")
    multiplier: float = Field(default=2.0, description="Exponential backoff multiplier")
    max_delay_s: float = Field(default=8.0, description="Upper bound for computed backoff")
    jitter: float = Field(default=0.25, description="Relative jitter applied to delays")
    min_delay_s: float = Field(default=0.1, description="Delay used for a zero Retry-After hint")
    retry_after_cap_s: float = Field(default=60.0, description="Cap for Retry-After hints")
    budget_s: float = Field(default=60.0, description="Total retry time allowed per identifier")
    metadata_max_attempts: int = Field(default=3, description="Attempts for metadata 503s")
    metadata_backoff_s: float = Field(default=1.0, description="Base delay for metadata retries")

    @field_validator("max_attempts", "metadata_max_attempts")
    @classmethod
    def validate_attempts(cls, v: int) -> int:
        if v < 1:
            raise ValueError("attempts must be >= 1")
        return v

    @field_validator("jitter")
    @classmethod
    def validate_jitter(cls, v: float) -> float:
        if not 0 <= v < 1:
            raise ValueError("jitter must be in [0, 1)")
        return v

    @model_validator(mode="after")
    def validate_delays(self) -> "RetrySettings":
        if self.initial_delay_s < 0 or self.min_delay_s < 0:
            raise ValueError("Delay values must be >= 0")
        if self.max_delay_s < self.initial_delay_s:
            raise ValueError("max_delay_s must be >= initial_delay_s")
        return self


class StorageSettings(BaseModel):
    """Locations of the registry, artifacts and project links."""

    model_config: ClassVar[ConfigDict] = ConfigDict(extra="forbid")

    root: Path = Field(default=Path("~/.transcriptor"), description="Central storage directory")
    artifacts_dirname: str = Field(default="transcripts", description="Artifact subdirectory")
    registry_filename: str = Field(default="data.json", description="Registry file name")
    artifact_prefix: str = Field(default="tr", description="Artifact filename prefix")
    max_artifact_bytes: int = Field(default=MAX_ARTIFACT_BYTES, description="Artifact size cap")
    links_dir: Path = Field(default=Path("transcripts"), description="Project link directory")
    input_file: Path = Field(default=Path("youtube.md"), description="Batch input file")

    @field_validator("artifact_prefix")
    @classmethod
    def validate_prefix(cls, v: str) -> str:
        if not v or not v.replace("-", "").isalnum():
            raise ValueError("artifact_prefix must be alphanumeric")
        return v

    @property
    def root_path(self) -> Path:
        return self.root.expanduser()

    @property
    def artifacts_path(self) -> Path:
        return self.root_path / self.artifacts_dirname

    @property
    def registry_path(self) -> Path:
        return self.root_path / self.registry_filename


class CacheSettings(BaseModel):
    model_config: ClassVar[ConfigDict] = ConfigDict(extra="forbid")

    max_entries: int = Field(default=1000, description="Resident registry entries in memory")

    @field_validator("max_entries")
    @classmethod
    def validate_max_entries(cls, v: int) -> int:
        if v < 1:
            raise ValueError("max_entries must be >= 1")
        return v


class LoggingSettings(BaseModel):
    model_config: ClassVar[ConfigDict] = ConfigDict(extra="forbid")

    level: str = Field(default="INFO", description="Console log level")
    json_log_file: Optional[Path] = Field(default=None, description="Optional JSON-lines log")

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        upper = v.upper()
        if upper not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {v}")
        return upper


class TranscriptorConfig(BaseModel):
    """Top-level configuration for a Transcriptor run."""

    model_config: ClassVar[ConfigDict] = ConfigDict(extra="forbid")

    http: HttpSettings = Field(default_factory=HttpSettings)
    retry: RetrySettings = Field(default_factory=RetrySettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)
    cache: CacheSettings = Field(default_factory=CacheSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    def config_hash(self) -> str:
        """Deterministic SHA256 of the normalized configuration."""
        normalized = json.dumps(self.model_dump(mode="json"), sort_keys=True, separators=(",", ":"))
        return hashlib.sha256(normalized.encode()).hexdigest()
