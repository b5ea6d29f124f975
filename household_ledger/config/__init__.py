"""Configuration package."""

from household_ledger.config.settings import (
    AppSettings,
    CounterpartyProfile,
    GeminiSettings,
    GoogleSheetsSettings,
    LedgerSettings,
    RateSettings,
    Settings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "AppSettings",
    "CounterpartyProfile",
    "GeminiSettings",
    "GoogleSheetsSettings",
    "LedgerSettings",
    "RateSettings",
    "Settings",
    "get_settings",
    "validate_all_settings",
]
