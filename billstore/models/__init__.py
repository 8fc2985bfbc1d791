"""
Data Models Package

This package contains all Pydantic models used by billstore.
Every record written to a store must conform to these schemas.
"""

from billstore.models.bill import (
    BillDraft,
    BillLineItem,
    CustomerBillDraft,
    PaymentStatus,
    SavedBill,
    SavedCustomerBill,
    StoredRecord,
    ValidationIssue,
    ValidationResult,
    to_iso_timestamp,
    utc_now,
)
from billstore.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Bill models
    "BillDraft",
    "BillLineItem",
    "CustomerBillDraft",
    "PaymentStatus",
    "SavedBill",
    "SavedCustomerBill",
    "StoredRecord",
    "ValidationIssue",
    "ValidationResult",
    "to_iso_timestamp",
    "utc_now",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
