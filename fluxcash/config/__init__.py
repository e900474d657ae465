"""Configuration package."""

from fluxcash.config.settings import (
    CacheSettings,
    GoogleSheetsSettings,
    InsightSettings,
    LedgerSettings,
    Settings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "CacheSettings",
    "GoogleSheetsSettings",
    "InsightSettings",
    "LedgerSettings",
    "Settings",
    "get_settings",
    "validate_all_settings",
]
