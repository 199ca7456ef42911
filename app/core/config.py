"""Application configuration using Pydantic Settings.

Configuration is environment-aware:
- APP_ENV determines which .env file to load
- Supports: development, testing, staging, production
- Each environment has its own .env.{environment} file
"""

from __future__ import annotations

import os
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


APP_ENV = os.getenv("APP_ENV", "development")

# Project root (so .env and state file resolution don't depend on cwd)
PROJECT_ROOT = Path(__file__).resolve().parents[2]

ENV_FILE_MAP = {
    "development": ".env.development",
    "testing": ".env.testing",
    "staging": ".env.staging",
    "production": ".env.production",
}

_env_filename = ENV_FILE_MAP.get(APP_ENV, ".env.development")
_env_path = PROJECT_ROOT / _env_filename

_env_file = str(_env_path) if _env_path.is_file() else None


# Nested BaseSettings don't inherit env_file, so populate os.environ first
if _env_file:
    from dotenv import load_dotenv
    load_dotenv(_env_file, override=True)


class GenAISettings(BaseSettings):
    """Image generation service configuration.

    The API key is the only credential source; it is read from
    GENAI_API_KEY and validated by the client factory.
    """

    model: str = Field(
        "gemini-2.5-flash-image",
        description="Gemini model used for image generation/editing",
    )
    api_key: str | None = Field(
        None,
        description="API key for the Gemini API",
    )
    base_url: str | None = Field(
        None,
        description="Custom API endpoint (proxies, test doubles)",
    )
    timeout_seconds: float = Field(
        120.0,
        description="Upper bound for a single generation call in seconds",
        gt=0,
    )

    model_config = SettingsConfigDict(
        env_prefix="GENAI_",
        case_sensitive=False,
    )


class AppSettings(BaseSettings):
    """Application-wide configuration."""

    debug: bool = Field(
        False,
        description="Enable debug mode with verbose logging",
    )
    max_images: int = Field(
        3,
        description="Maximum number of images staged for a single generation",
        ge=0,
    )
    max_upload_size_mb: int = Field(
        10,
        description="Maximum size of a single uploaded image in megabytes",
        ge=1,
    )
    rate_limit_max_requests: int = Field(
        30,
        description="Successful generations allowed per window",
        ge=1,
    )
    rate_limit_window_minutes: int = Field(
        30,
        description="Rate limit window length in minutes",
        ge=1,
    )
    rate_limit_state_file: str = Field(
        "data/rate_limit_state.json",
        description="Where the rate limit counters are persisted (relative to project root)",
    )
    rate_limit_tick_seconds: float = Field(
        1.0,
        description="Interval of the background countdown/reset check",
        gt=0,
    )

    model_config = SettingsConfigDict(
        env_prefix="APP_",
        case_sensitive=False,
    )

    @property
    def rate_limit_state_path(self) -> Path:
        path = Path(self.rate_limit_state_file)
        return path if path.is_absolute() else PROJECT_ROOT / path


class LogSettings(BaseSettings):
    """Logging configuration."""

    level: str = Field("INFO", description="Root log level")
    format: str = Field("json", description="Log format: json or plain")
    output: str = Field("stdout", description="Log destination: stdout or file")
    file_path: str | None = Field(None, description="Log file path when output=file")
    max_bytes: int = Field(0, description="Rotate file after this many bytes (0 disables)")
    backup_count: int = Field(3, description="Rotated files to keep")
    request_id_header: str = Field("X-Request-ID", description="Correlation header name")

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        case_sensitive=False,
    )


class Settings(BaseSettings):
    """Main application settings container.

    Automatically loads from the appropriate .env.{APP_ENV} file.
    """

    app_env: str = APP_ENV
    genai: GenAISettings = Field(default_factory=GenAISettings)
    app: AppSettings = Field(default_factory=AppSettings)
    log: LogSettings = Field(default_factory=LogSettings)

    model_config = SettingsConfigDict(
        case_sensitive=False,
    )


settings = Settings()
