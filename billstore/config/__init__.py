"""Configuration package."""

from billstore.config.settings import (
    AppSettings,
    InvoiceSequenceMode,
    Settings,
    StorageSettings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "AppSettings",
    "InvoiceSequenceMode",
    "Settings",
    "StorageSettings",
    "get_settings",
    "validate_all_settings",
]
