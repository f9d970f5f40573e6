"""
Configuration management for the dispute service.

Loads configuration from YAML with ZERO defaults.
Every value must be explicitly specified or startup fails.
"""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, field_validator, model_validator

REDACTION_MARKER = "***REDACTED***"
_SENSITIVE_KEY_PARTS = ("key", "secret", "password", "token")
_SERVICE_ROOT = Path(__file__).resolve().parents[2]


class ServiceConfig(BaseModel):
    """Service identity configuration."""

    model_config = ConfigDict(extra="forbid")
    name: str
    version: str


class ServerConfig(BaseModel):
    """HTTP server configuration."""

    model_config = ConfigDict(extra="forbid")
    host: str
    port: int
    log_level: str


class LoggingConfig(BaseModel):
    """Logging configuration."""

    model_config = ConfigDict(extra="forbid")
    level: str
    directory: str


class DatabaseConfig(BaseModel):
    """Database configuration."""

    model_config = ConfigDict(extra="forbid")
    path: str


class UpstreamConfig(BaseModel):
    """Connection settings for one downstream HTTP service."""

    model_config = ConfigDict(extra="forbid")
    base_url: str
    timeout_seconds: int


class PlatformConfig(BaseModel):
    """Platform identity used to sign escrow requests."""

    model_config = ConfigDict(extra="forbid")
    agent_id: str
    private_key_path: str | None = None

    @field_validator("agent_id")
    @classmethod
    def agent_id_must_not_be_empty(cls, value: str) -> str:
        """Reject empty platform agent_id at startup."""
        if not value.strip():
            msg = "platform.agent_id must not be empty"
            raise ValueError(msg)
        return value

    @field_validator("private_key_path")
    @classmethod
    def private_key_path_if_present_must_not_be_empty(cls, value: str | None) -> str | None:
        """Reject blank private key path when a value is provided."""
        if value is None:
            return None
        if not value.strip():
            msg = "platform.private_key_path must not be empty when provided"
            raise ValueError(msg)
        return value


class DisputesConfig(BaseModel):
    """Dispute workflow limits and windows."""

    model_config = ConfigDict(extra="forbid")
    min_description_length: int
    max_description_length: int
    min_response_length: int
    min_counter_length: int
    max_response_length: int
    max_notes_length: int
    response_window_seconds: int
    counter_window_seconds: int
    resolved_grace_seconds: int
    disputable_contract_statuses: list[str]

    @model_validator(mode="after")
    def validate_limits(self) -> DisputesConfig:
        """Reject inverted or non-positive limits."""
        if self.min_description_length > self.max_description_length:
            msg = "disputes.min_description_length must not exceed max_description_length"
            raise ValueError(msg)
        if max(self.min_response_length, self.min_counter_length) > self.max_response_length:
            msg = "disputes response minimums must not exceed max_response_length"
            raise ValueError(msg)
        for name in ("response_window_seconds", "counter_window_seconds"):
            if getattr(self, name) <= 0:
                msg = f"disputes.{name} must be positive"
                raise ValueError(msg)
        if len(self.disputable_contract_statuses) == 0:
            msg = "disputes.disputable_contract_statuses must not be empty"
            raise ValueError(msg)
        return self


class EvidenceConfig(BaseModel):
    """Evidence upload limits."""

    model_config = ConfigDict(extra="forbid")
    max_file_size_bytes: int
    max_description_length: int

    @field_validator("max_file_size_bytes")
    @classmethod
    def max_file_size_must_be_positive(cls, value: int) -> int:
        """Reject a zero or negative size cap."""
        if value <= 0:
            msg = "evidence.max_file_size_bytes must be positive"
            raise ValueError(msg)
        return value


class SweeperConfig(BaseModel):
    """Background deadline sweeper configuration."""

    model_config = ConfigDict(extra="forbid")
    enabled: bool
    interval_seconds: int


class RequestConfig(BaseModel):
    """Request validation configuration."""

    model_config = ConfigDict(extra="forbid")
    max_body_size: int
    max_upload_body_size: int


class Settings(BaseModel):
    """Root configuration container."""

    model_config = ConfigDict(extra="forbid")
    service: ServiceConfig
    server: ServerConfig
    logging: LoggingConfig
    database: DatabaseConfig
    contracts: UpstreamConfig
    escrow: UpstreamConfig
    uploads: UpstreamConfig
    platform: PlatformConfig
    disputes: DisputesConfig
    evidence: EvidenceConfig
    sweeper: SweeperConfig
    request: RequestConfig


def get_config_path() -> Path:
    """Resolve configuration path from CONFIG_PATH or the project root."""
    env_path = os.environ.get("CONFIG_PATH")
    if env_path:
        return Path(env_path)
    return _SERVICE_ROOT / "config.yaml"


def load_settings(config_path: Path) -> Settings:
    """Parse and validate a YAML config file."""
    raw = yaml.safe_load(config_path.read_text())
    if not isinstance(raw, dict):
        msg = f"Invalid config file: {config_path}"
        raise ValueError(msg)
    return Settings(**raw)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Load settings once and cache them."""
    return load_settings(get_config_path())


def clear_settings_cache() -> None:
    """Drop cached settings. Used in testing."""
    get_settings.cache_clear()


def _redact(value: Any) -> Any:
    if isinstance(value, dict):
        return {
            key: (
                REDACTION_MARKER
                if any(part in key.lower() for part in _SENSITIVE_KEY_PARTS) and item is not None
                else _redact(item)
            )
            for key, item in value.items()
        }
    if isinstance(value, list):
        return [_redact(item) for item in value]
    return value


def get_safe_config() -> dict[str, Any]:
    """Return redacted config for logs/diagnostics."""
    redacted: dict[str, Any] = _redact(get_settings().model_dump())
    return redacted
