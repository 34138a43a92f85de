"""Configuration module for Framerate."""

from .settings import (
    DatabaseSettings,
    EntrySyncSettings,
    ObservabilitySettings,
    Settings,
    TMDbSettings,
    get_settings,
    parse_duration,
)

__all__ = [
    "DatabaseSettings",
    "EntrySyncSettings",
    "ObservabilitySettings",
    "Settings",
    "TMDbSettings",
    "get_settings",
    "parse_duration",
]
