"""
Component Factory

Wires the slot storage, both bill stores, the audit logger and the
validator together from settings. UI code calls create_app_components()
once and keeps the result.
"""

from dataclasses import dataclass
from typing import Optional

from billstore.audit import AuditLogger
from billstore.config import StorageSettings, get_settings
from billstore.services.storage import (
    BillStore,
    CustomerBillStore,
    InvoiceNumberGenerator,
    JsonFileSlotStorage,
    MemorySlotStorage,
    SlotAuditStorage,
    SlotStorageInterface,
)
from billstore.validation import BillValidator


@dataclass
class AppComponents:
    """Everything a caller needs to read and write bills."""

    storage: SlotStorageInterface
    bills: BillStore
    customer_bills: CustomerBillStore
    audit_logger: AuditLogger
    validator: BillValidator


def create_slot_storage(settings: StorageSettings) -> SlotStorageInterface:
    """Build the slot backend named by settings.backend."""
    if settings.backend == "memory":
        return MemorySlotStorage()
    return JsonFileSlotStorage(
        settings.data_dir,
        write_attempts=settings.write_retry_attempts,
    )


def create_app_components(
    storage_settings: Optional[StorageSettings] = None,
    storage: Optional[SlotStorageInterface] = None,
) -> AppComponents:
    """
    Factory function to create all application components.

    Args:
        storage_settings: Overrides the settings read from the environment.
        storage: An existing slot backend to use instead of building one.

    Returns:
        AppComponents with both stores sharing one storage and audit logger
    """
    settings = storage_settings or get_settings().storage
    storage = storage or create_slot_storage(settings)

    audit_storage = SlotAuditStorage(storage, settings.audit_key) if settings.audit_key else None
    audit_logger = AuditLogger(audit_storage)

    invoice_numbers = InvoiceNumberGenerator(
        prefix=settings.invoice_prefix,
        width=settings.invoice_sequence_width,
        mode=settings.invoice_sequence,
    )

    bills = BillStore(
        storage,
        key=settings.bills_key,
        invoice_numbers=invoice_numbers,
        audit_logger=audit_logger,
    )
    customer_bills = CustomerBillStore(
        storage,
        key=settings.customer_bills_key,
        invoice_numbers=invoice_numbers,
        audit_logger=audit_logger,
    )

    return AppComponents(
        storage=storage,
        bills=bills,
        customer_bills=customer_bills,
        audit_logger=audit_logger,
        validator=BillValidator(customer_bills),
    )
