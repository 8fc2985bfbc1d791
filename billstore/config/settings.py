"""
Configuration Management for billstore

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
Storage keys, the storage backend and invoice numbering are all chosen
from one place and validated when first loaded.
"""

from decimal import Decimal
from enum import Enum
from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class InvoiceSequenceMode(str, Enum):
    """
    How the sequence part of an invoice number is chosen.

    COUNT reproduces the historical behaviour (records in the store + 1)
    and can hand out a number twice after a delete.
    COUNTER keeps a durable counter next to the records.
    """
    COUNT = "count"
    COUNTER = "counter"


class StorageSettings(BaseSettings):
    """Slot storage and record store configuration."""

    model_config = SettingsConfigDict(
        env_prefix="BILLSTORE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    backend: str = Field(
        default="file",
        pattern="^(file|memory)$",
        description="Where slots live: one JSON file per key, or process memory"
    )
    data_dir: Path = Field(
        default=Path(".billstore"),
        description="Directory holding the slot files for the file backend"
    )

    # Slot names
    bills_key: str = Field(
        default="saved_bills",
        min_length=1,
        description="Slot holding the full bill records"
    )
    customer_bills_key: str = Field(
        default="saved_bills02",
        min_length=1,
        description="Slot holding the customer bill records"
    )
    audit_key: Optional[str] = Field(
        default=None,
        description="Slot for the persisted audit log (disabled when unset)"
    )

    # Invoice numbering
    invoice_prefix: str = Field(default="INV", min_length=1, max_length=10)
    invoice_sequence_width: int = Field(default=3, ge=1, le=10)
    invoice_sequence: InvoiceSequenceMode = Field(default=InvoiceSequenceMode.COUNT)

    write_retry_attempts: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Attempts for a slot file write before giving up"
    )

    @model_validator(mode="after")
    def validate_keys(self) -> "StorageSettings":
        """Every store needs its own slot."""
        keys = [self.bills_key, self.customer_bills_key]
        if self.audit_key:
            keys.append(self.audit_key)
        if len(set(keys)) != len(keys):
            raise ValueError("bills_key, customer_bills_key and audit_key must all differ")
        return self


class AppSettings(BaseSettings):
    """
    Main application settings.

    Loads configuration from environment variables and .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    app_environment: str = Field(default="development")
    debug_mode: bool = Field(default=False)

    totals_tolerance: Decimal = Field(
        default=Decimal("0.01"),
        ge=0,
        description="Largest difference between stated and computed totals"
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
    def storage(self) -> StorageSettings:
        return StorageSettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid}, with a
    "<name>_error" entry for each section that failed.
    """
    results = {}

    settings = get_settings()

    try:
        _ = settings.storage
        results["storage"] = True
    except Exception as e:
        results["storage"] = False
        results["storage_error"] = str(e)

    try:
        _ = settings.app
        results["app"] = True
    except Exception as e:
        results["app"] = False
        results["app_error"] = str(e)

    return results
