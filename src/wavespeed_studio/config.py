from __future__ import annotations

import os
from pathlib import Path
from typing import Literal, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError


class WaveSpeedConfig(BaseModel):
    """Settings required to reach the WaveSpeed inference API."""

    api_url: str = Field(
        default="https://api.wavespeed.ai",
        description="Base URL of the WaveSpeed REST API",
    )
    api_key: str | None = Field(
        default=None,
        description="Default bearer credential; callers may pass their own per request",
    )
    poll_interval_seconds: float = Field(
        default=2.0,
        ge=0.1,
        le=30.0,
        description="Delay before each status query while waiting for a job",
    )
    max_poll_attempts: int = Field(
        default=90,
        ge=1,
        le=600,
        description="Maximum status queries before a job is considered timed out",
    )
    request_timeout_seconds: float = Field(
        default=120.0,
        gt=0.0,
        description="Per-request HTTP timeout",
    )


class OutputConfig(BaseModel):
    """Configuration for storing generated artifacts."""

    root_dir: Path = Field(default_factory=lambda: Path("output"))
    include_metadata: bool = Field(default=True, description="Persist job metadata alongside artifacts")


class AppConfig(BaseModel):
    """Top-level configuration object consumed by the CLI and engine."""

    wavespeed: WaveSpeedConfig = Field(default_factory=WaveSpeedConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(default="INFO")


def _bool_from_env(value: Optional[str], default: bool) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _float_from_env(value: Optional[str], default: float) -> float:
    if value is None:
        return default
    try:
        return float(value)
    except ValueError as exc:
        raise RuntimeError(f"Invalid float value: {value}") from exc


def _int_from_env(value: Optional[str], default: int) -> int:
    if value is None:
        return default
    try:
        return int(value)
    except ValueError as exc:
        raise RuntimeError(f"Invalid integer value: {value}") from exc


def load_config(dotenv_path: str | Path | None = None) -> AppConfig:
    """
    Load configuration from environment variables (optionally seeded by a .env file).

    Parameters
    ----------
    dotenv_path:
        Optional override for the .env file location. Defaults to ``.env`` in the
        working directory.

    Raises
    ------
    RuntimeError
        If a configuration value is malformed or out of range.
    """
    env_path = Path(dotenv_path) if dotenv_path else Path(".env")
    if env_path.exists():
        load_dotenv(env_path)

    wavespeed = {
        "api_url": os.getenv("WAVESPEED_API_URL", "https://api.wavespeed.ai"),
        "api_key": os.getenv("WAVESPEED_API_KEY") or None,
        "poll_interval_seconds": _float_from_env(os.getenv("WAVESPEED_POLL_INTERVAL"), 2.0),
        "request_timeout_seconds": _float_from_env(os.getenv("WAVESPEED_REQUEST_TIMEOUT"), 120.0),
    }
    # Only part of model_fields_set when configured; the CLI otherwise uses the tool budget.
    max_attempts = os.getenv("WAVESPEED_MAX_POLL_ATTEMPTS")
    if max_attempts is not None:
        wavespeed["max_poll_attempts"] = _int_from_env(max_attempts, 90)

    data = {
        "wavespeed": wavespeed,
        "output": {
            "root_dir": Path(os.getenv("OUTPUT_ROOT_DIR", "output")),
            "include_metadata": _bool_from_env(os.getenv("OUTPUT_INCLUDE_METADATA"), True),
        },
        "log_level": os.getenv("LOG_LEVEL", "INFO").strip().upper(),
    }

    try:
        return AppConfig.model_validate(data)
    except ValidationError as exc:
        invalid = {"/".join(str(part) for part in err["loc"]) for err in exc.errors()}
        invalid_str = ", ".join(sorted(invalid))
        raise RuntimeError(f"Invalid configuration values: {invalid_str}") from exc
