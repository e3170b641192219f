"""
Configuration Management for FairShare

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
The computation core takes no configuration at all (its constants are fixed
so totals stay reproducible); only the edges - persistence retries, write
ordering, preference storage and logging - are tunable.
"""

from functools import lru_cache
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class PersistenceSettings(BaseSettings):
    """How the core talks to the persistence collaborator."""

    model_config = SettingsConfigDict(
        env_prefix="FAIRSHARE_PERSISTENCE_",
        extra="ignore"
    )

    retry_attempts: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Attempts for a write that fails with a transient storage error"
    )
    retry_wait_min_seconds: float = Field(
        default=0.5,
        ge=0.0,
        description="Lower bound of the exponential backoff between attempts"
    )
    retry_wait_max_seconds: float = Field(
        default=4.0,
        ge=0.0,
        description="Upper bound of the exponential backoff between attempts"
    )
    serialize_record_writes: bool = Field(
        default=False,
        description=(
            "Queue writes to the same record so they resolve in issue order. "
            "Off by default: edits are fire-and-forget."
        )
    )
    preferences_path: Optional[str] = Field(
        default=None,
        description="JSON file used as the durable preference store (None = in memory)"
    )


class LoggingSettings(BaseSettings):
    """Structured logging configuration."""

    model_config = SettingsConfigDict(
        env_prefix="FAIRSHARE_LOG_",
        extra="ignore"
    )

    level: str = Field(
        default="INFO",
        description="Minimum log level"
    )
    json_output: bool = Field(
        default=True,
        description="Render log lines as JSON (False = console renderer)"
    )
    audit_history_size: int = Field(
        default=1000,
        ge=0,
        description="Audit events an AuditLogger keeps in memory"
    )

    @field_validator('level')
    @classmethod
    def normalize_level(cls, v: str) -> str:
        """Accept any casing; reject unknown levels."""
        level = v.strip().upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {v}")
        return level


class AppSettings(BaseSettings):
    """
    Main application settings.

    Loads configuration from environment variables and .env file.
    """

    model_config = SettingsConfigDict(
        env_prefix="FAIRSHARE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Shown until the household names its partners
    default_partner_x_name: str = Field(
        default="Partner X",
        min_length=1,
        description="Display name used for partner X"
    )
    default_partner_y_name: str = Field(
        default="Partner Y",
        min_length=1,
        description="Display name used for partner Y"
    )

    default_benefit_x: int = Field(
        default=50,
        ge=0,
        le=100,
        description="Benefit percentage for partner X on a freshly added expense"
    )
    default_income_name: str = Field(
        default="New income",
        description="Name given to a freshly added income stream"
    )


class Settings(BaseSettings):
    """
    Root settings container.

    Aggregates all sub-settings for easy access.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    @property
    def app(self) -> AppSettings:
        return AppSettings()

    @property
    def persistence(self) -> PersistenceSettings:
        return PersistenceSettings()

    @property
    def logging(self) -> LoggingSettings:
        return LoggingSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Uses LRU cache to ensure settings are only loaded once.
    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()
