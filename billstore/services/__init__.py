"""
Services Package

Storage is the only service: slot backends and the bill stores.
"""

from billstore.services.storage import (
    BillStore,
    CustomerBillStore,
    DuplicateRecordError,
    InvalidRecordError,
    JsonFileSlotStorage,
    MemorySlotStorage,
    NotFoundError,
    StorageError,
)

__all__ = [
    "BillStore",
    "CustomerBillStore",
    "DuplicateRecordError",
    "InvalidRecordError",
    "JsonFileSlotStorage",
    "MemorySlotStorage",
    "NotFoundError",
    "StorageError",
]
