"""Configuration module for tracksmith."""

from .settings import (
    DatabaseSettings,
    ObservabilitySettings,
    Settings,
    StorageSettings,
    SyncSettings,
    get_settings,
)

__all__ = [
    "Settings",
    "DatabaseSettings",
    "StorageSettings",
    "ObservabilitySettings",
    "SyncSettings",
    "get_settings",
]
