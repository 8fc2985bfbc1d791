"""
Tests for configuration and component wiring.
"""

import json
from decimal import Decimal
from pathlib import Path

import pytest
from pydantic import ValidationError

from billstore.components import create_app_components, create_slot_storage
from billstore.config import (
    InvoiceSequenceMode,
    StorageSettings,
    get_settings,
    validate_all_settings,
)
from billstore.models.audit import AuditEventType
from billstore.services.storage import JsonFileSlotStorage, MemorySlotStorage


class TestStorageSettings:

    def test_defaults(self):
        settings = StorageSettings()
        assert settings.backend == "file"
        assert settings.data_dir == Path(".billstore")
        assert settings.bills_key == "saved_bills"
        assert settings.customer_bills_key == "saved_bills02"
        assert settings.audit_key is None
        assert settings.invoice_sequence is InvoiceSequenceMode.COUNT

    def test_environment_override(self, monkeypatch, tmp_path):
        monkeypatch.setenv("BILLSTORE_BACKEND", "memory")
        monkeypatch.setenv("BILLSTORE_DATA_DIR", str(tmp_path))
        monkeypatch.setenv("BILLSTORE_INVOICE_SEQUENCE", "counter")
        get_settings.cache_clear()

        settings = get_settings().storage
        assert settings.backend == "memory"
        assert settings.data_dir == tmp_path
        assert settings.invoice_sequence is InvoiceSequenceMode.COUNTER

    def test_unknown_backend_rejected(self):
        with pytest.raises(ValidationError):
            StorageSettings(backend="sheets")

    def test_keys_must_differ(self):
        with pytest.raises(ValueError):
            StorageSettings(customer_bills_key="saved_bills")
        with pytest.raises(ValueError):
            StorageSettings(audit_key="saved_bills02")

    def test_validate_all_settings(self):
        assert validate_all_settings() == {"storage": True, "app": True}

    def test_validate_all_settings_reports_errors(self, monkeypatch):
        monkeypatch.setenv("BILLSTORE_BACKEND", "sheets")
        get_settings.cache_clear()

        results = validate_all_settings()
        assert results["storage"] is False
        assert "backend" in results["storage_error"]
        assert results["app"] is True

    def test_app_settings_tolerance(self):
        assert get_settings().app.totals_tolerance == Decimal("0.01")


class TestComponents:

    def test_memory_components(self):
        components = create_app_components(
            StorageSettings(backend="memory", audit_key="bill_audit_log")
        )

        assert isinstance(components.storage, MemorySlotStorage)
        assert components.bills.key == "saved_bills"
        assert components.customer_bills.key == "saved_bills02"
        assert components.bills.storage is components.customer_bills.storage

    def test_audit_events_persisted_when_configured(self, customer_form):
        components = create_app_components(
            StorageSettings(backend="memory", audit_key="bill_audit_log")
        )
        bill = components.customer_bills.save(customer_form)

        events = components.audit_logger.storage.get_events_by_entity("customer_bill", bill.id)
        assert [e.event_type for e in events] == [AuditEventType.BILL_SAVED]

    def test_audit_not_persisted_by_default(self, customer_form):
        components = create_app_components(StorageSettings(backend="memory"))
        components.customer_bills.save(customer_form)

        assert components.audit_logger.storage is None
        assert sorted(components.storage.keys()) == ["saved_bills02"]

    def test_validator_sees_customer_store(self, customer_form):
        components = create_app_components(StorageSettings(backend="memory"))
        components.customer_bills.save(customer_form)

        result = components.validator.validate_customer_bill(customer_form)
        assert not result.is_valid

    def test_invoice_settings_applied(self):
        components = create_app_components(StorageSettings(
            backend="memory",
            invoice_prefix="BILL",
            invoice_sequence_width=5,
        ))
        bill = components.bills.save({"customer": "Acme"})
        assert bill.invoice_number.startswith("BILL-")
        assert bill.invoice_number.endswith("-00001")

    def test_file_backend(self, tmp_path, bill_form):
        settings = StorageSettings(data_dir=tmp_path, bills_key="bills")
        components = create_app_components(settings)

        assert isinstance(components.storage, JsonFileSlotStorage)
        bill = components.bills.save(bill_form)

        stored = json.loads((tmp_path / "bills.json").read_text(encoding="utf-8"))
        assert [record["id"] for record in stored] == [bill.id]

    def test_shared_storage_is_reused(self):
        storage = MemorySlotStorage()
        components = create_app_components(StorageSettings(backend="file"), storage=storage)
        assert components.storage is storage

    def test_create_slot_storage(self, tmp_path):
        assert isinstance(create_slot_storage(StorageSettings(backend="memory")), MemorySlotStorage)
        storage = create_slot_storage(StorageSettings(data_dir=tmp_path, write_retry_attempts=1))
        assert storage.path_for("saved_bills") == tmp_path / "saved_bills.json"
