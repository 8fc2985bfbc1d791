"""
Storage Services Package

Provides the slot storage abstraction, its file and memory implementations,
and the two bill stores built on top of it.
"""

from billstore.services.storage.interface import (
    AuditStorageInterface,
    DuplicateRecordError,
    InvalidRecordError,
    NotFoundError,
    SlotStorageInterface,
    StorageError,
)
from billstore.services.storage.slots import (
    JsonFileSlotStorage,
    MemorySlotStorage,
)
from billstore.services.storage.record_store import (
    InvoiceNumberGenerator,
    RecordStore,
)
from billstore.services.storage.bills import (
    BillStore,
    CustomerBillStore,
    same_customer_invoice,
)
from billstore.services.storage.audit_log import SlotAuditStorage

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "SlotStorageInterface",
    # Exceptions
    "DuplicateRecordError",
    "InvalidRecordError",
    "NotFoundError",
    "StorageError",
    # Slot backends
    "JsonFileSlotStorage",
    "MemorySlotStorage",
    # Stores
    "BillStore",
    "CustomerBillStore",
    "InvoiceNumberGenerator",
    "RecordStore",
    "SlotAuditStorage",
    "same_customer_invoice",
]
