"""Configuration package."""

from fairshare.config.settings import (
    AppSettings,
    LoggingSettings,
    PersistenceSettings,
    Settings,
    get_settings,
)

__all__ = [
    "AppSettings",
    "LoggingSettings",
    "PersistenceSettings",
    "Settings",
    "get_settings",
]
