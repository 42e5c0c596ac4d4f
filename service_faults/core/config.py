"""
service-faults - Application Configuration

Patterns Applied:
- Pydantic Settings with SettingsConfigDict
- Environment variable prefix SF_ for service-faults
- Explicit configuration passed at construction time (no process-wide
  mutable allowlists)
"""

import logging

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from service_faults.core.exceptions import ConfigurationError

PRODUCTION = "production"


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    All settings can be overridden via environment variables with SF_ prefix.
    Example: SF_ENVIRONMENT=production, SF_LOG_LEVEL=DEBUG

    List settings are read as JSON, e.g.
    SF_REQUIRED_HEADERS='["session-id", "transaction-id"]'
    """

    # Application metadata
    service_name: str = "service-faults"
    version: str = "0.1.0"
    environment: str = "development"

    # Logging configuration
    log_level: str = "INFO"
    log_json: bool = True

    # Tracing configuration
    tracing_enabled: bool = True
    tracing_console_export: bool = False

    # Header validation
    header_validation_enabled: bool = True
    required_headers: list[str] = ["session-id", "transaction-id", "channel-id"]
    header_exempt_paths: list[str] = ["/docs", "/redoc", "/openapi.json"]

    model_config = SettingsConfigDict(
        env_prefix="SF_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Reject levels the logging module does not know."""
        level = v.upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ConfigurationError("log_level", f"unknown log level {v!r}")
        return level

    @field_validator("required_headers")
    @classmethod
    def normalize_header_names(cls, v: list[str]) -> list[str]:
        """Header names are matched case-insensitively."""
        return [name.strip().lower() for name in v if name.strip()]

    @property
    def is_production(self) -> bool:
        """Whether fault details must be stripped from responses."""
        return self.environment.lower() == PRODUCTION


def get_settings() -> Settings:
    """Get application settings instance.

    Returns:
        Settings instance with values from environment
    """
    return Settings()
