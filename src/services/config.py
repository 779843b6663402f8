"""Application configuration loaded from environment variables and .env."""

import logging
from typing import Optional

from pydantic import ConfigDict, Field, field_validator
from pydantic_settings import BaseSettings

logger = logging.getLogger(__name__)


class AppSettings(BaseSettings):
    """Settings for the billing API.

    Pydantic reads values from OS environment variables first, then from the
    .env file in the working directory, then falls back to the defaults below.
    """

    model_config = ConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Database
    database_url: str = Field(
        default="sqlite+aiosqlite:///./tenant_billing.db",
        description="Async SQLAlchemy connection string",
    )
    database_echo: bool = Field(default=False, description="Log SQL queries")

    # Authentication
    api_tokens: str = Field(
        default="",
        description="Comma-separated bearer tokens accepted by the billing API",
    )

    # Billing status cache
    billing_cache_ttl_seconds: float = Field(
        default=300.0, description="How long a computed billing status stays fresh"
    )
    billing_cache_sweep_interval_seconds: float = Field(
        default=600.0, description="Interval of the background sweep of expired entries"
    )

    # Logging
    log_level: str = Field(default="INFO", description="Logging level")
    log_file: str = Field(default="logs/server.log", description="Server log file")

    # API
    api_title: str = Field(default="Tenant Billing API", description="API title")
    api_version: str = Field(default="0.1.0", description="API version")

    @field_validator("billing_cache_ttl_seconds", "billing_cache_sweep_interval_seconds")
    @classmethod
    def _positive_duration(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("cache durations must be positive")
        return value

    def allowed_tokens(self) -> frozenset[str]:
        """Return the configured bearer tokens with blanks removed."""
        return frozenset(token.strip() for token in self.api_tokens.split(",") if token.strip())


# Lazy loader so the environment (including .env) is read at first use
_settings_instance: Optional[AppSettings] = None


def get_settings() -> AppSettings:
    """Get or create the settings instance."""
    global _settings_instance
    if _settings_instance is None:
        _settings_instance = AppSettings()
        if not _settings_instance.allowed_tokens():
            logger.warning("API_TOKENS is empty: every billing API request will be rejected")
    return _settings_instance


def reset_settings() -> None:
    """Drop the cached settings instance (used by tests)."""
    global _settings_instance
    _settings_instance = None
