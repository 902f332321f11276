"""Throttle configuration using Pydantic Settings.

Configuration is environment-aware:
- APP_ENV determines which .env file to load
- Supports: development, testing, staging, production
- Each environment has its own .env.{environment} file
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from throttle.core.errors import FormatError
from throttle.core.rate_spec import parse_rate


# Determine which environment to load (default: development)
APP_ENV = os.getenv("APP_ENV", "development")

# Project root (so .env resolution doesn't depend on current working directory)
PROJECT_ROOT = Path(__file__).resolve().parents[2]

ENV_FILE_MAP = {
    "development": ".env.development",
    "testing": ".env.testing",
    "staging": ".env.staging",
    "production": ".env.production",
}

_env_filename = ENV_FILE_MAP.get(APP_ENV, ".env.development")
_env_path = PROJECT_ROOT / _env_filename

# Only load from file if it exists (production might inject via env vars only)
_env_file = str(_env_path) if _env_path.is_file() else None

# Nested BaseSettings don't inherit env_file, so populate os.environ up front.
if _env_file:
    from dotenv import load_dotenv
    load_dotenv(_env_file, override=True)


def _build_throttle_settings() -> "ThrottleSettings":
    """Build throttle settings from environment.

    Static type checkers treat BaseSettings fields as required constructor
    arguments, which is not how BaseSettings is intended to be used.
    """

    return ThrottleSettings()  # type: ignore[call-arg]


def _build_log_settings() -> "LogSettings":
    return LogSettings()  # type: ignore[call-arg]


class ThrottleSettings(BaseSettings):
    """Token-bucket limiter configuration."""

    enabled: bool = Field(
        True,
        description="Install the throttle middleware on the service",
    )
    rate: str = Field(
        "10/s",
        description="Refill rate as X/Yt(:fixed), e.g. '5/s' or '100/15min:fixed'",
    )
    burst: float = Field(
        20,
        description="Bucket capacity: largest batch admitted without waiting",
        gt=0,
    )
    default_cost: float = Field(
        1,
        description="Tokens consumed by a request that is not cost-exempt",
        ge=0,
    )
    store_max_entries: int = Field(
        10_000,
        description="Maximum number of keys kept by the in-memory store (LRU)",
        ge=1,
    )
    store_timeout_seconds: float | None = Field(
        None,
        description="Upper bound for each store load/save; expiry counts as a store error",
        gt=0,
    )
    on_store_error: Literal["open", "closed"] = Field(
        "closed",
        description="Admit ('open') or throttle ('closed') requests when the store fails",
    )

    model_config = SettingsConfigDict(
        env_prefix="THROTTLE_",
        case_sensitive=False,
    )

    @field_validator("rate")
    @classmethod
    def _validate_rate(cls, value: str) -> str:
        try:
            parse_rate(value)
        except FormatError as exc:
            raise ValueError(exc.message) from exc
        return value


class LogSettings(BaseSettings):
    """Logging configuration."""

    level: str = Field("INFO", description="Root log level")
    format: Literal["json", "plain"] = Field("json", description="Log line format")
    output: Literal["stdout", "file"] = Field("stdout", description="Log destination")
    file_path: str | None = Field(None, description="Log file path when output=file")
    max_bytes: int = Field(
        10 * 1024 * 1024,
        description="Rotate the log file after this many bytes (0 disables rotation)",
        ge=0,
    )
    backup_count: int = Field(5, description="Rotated log files to keep", ge=0)

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        case_sensitive=False,
    )


class Settings(BaseSettings):
    """Main settings container.

    Automatically loads from the appropriate .env.{APP_ENV} file.
    Raises validation errors on startup if settings are malformed.
    """

    app_env: str = APP_ENV
    throttle: ThrottleSettings = Field(default_factory=_build_throttle_settings)
    log: LogSettings = Field(default_factory=_build_log_settings)

    model_config = SettingsConfigDict(
        case_sensitive=False,
    )


# Nested settings are created via default_factory so env loading works.
settings = Settings()
