"""Application configuration using pydantic-settings."""

from functools import lru_cache
from typing import Any

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Application
    app_name: str = "handler-loader"
    app_version: str = "0.1.0"

    # Handler discovery
    handlers_path: str = "./handlers"
    handler_extension: str = ".py"
    sample_raw_body: dict[str, Any] = Field(
        default_factory=lambda: {"email": "example@gmail.com"}
    )

    # Logging
    log_level: str = "INFO"
    log_json: bool = False  # Render log events as JSON lines

    # Tracing
    tracing_enabled: bool = True
    otlp_endpoint: str | None = None  # e.g. http://localhost:4318
    trace_console_export: bool = False
    trace_sample_rate: float = 1.0


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
