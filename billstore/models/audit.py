"""
Audit Models for billstore

Every mutation of a store, and every request a store declines, is logged for
audit purposes. This provides:
1. Traceability of who changed which bill and when
2. Debugging information when stored data turns out malformed
3. A record of the silent no-ops (status updates and deletes of missing ids)

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from billstore.models.bill import to_iso_timestamp, utc_now


def _short(text: str, limit: int = 80) -> str:
    """Clip caller text quoted in an event description."""
    return text if len(text) <= limit else text[: limit - 3] + "..."


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Persistence
    BILL_SAVED = "bill_saved"
    BILL_UPDATED = "bill_updated"
    BILL_DELETED = "bill_deleted"
    PAYMENT_STATUS_UPDATED = "payment_status_updated"

    # Declined requests
    DUPLICATE_REJECTED = "duplicate_rejected"
    UPDATE_TARGET_MISSING = "update_target_missing"
    STATUS_TARGET_MISSING = "status_target_missing"
    DELETE_TARGET_MISSING = "delete_target_missing"

    # Stored data
    STORED_DATA_MALFORMED = "stored_data_malformed"

    # System events
    SYSTEM_ERROR = "system_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    """

    # Identity
    event_id: UUID = Field(default_factory=uuid4)
    timestamp: datetime = Field(
        default_factory=utc_now,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType
    severity: AuditSeverity = AuditSeverity.INFO

    # Context - which record is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="'bill' or 'customer_bill'"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="Id of the record this event relates to"
    )

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = None

    description: str = Field(..., max_length=500)
    details: dict[str, Any] = Field(default_factory=dict)

    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user action?"
    )

    def to_log_dict(self) -> dict:
        """Convert to a dictionary suitable for structured logging."""
        return {
            "event_id": str(self.event_id),
            "timestamp": to_iso_timestamp(self.timestamp),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }

    def to_storage_json(self) -> dict:
        """JSON-safe form used by the persisted audit log."""
        return self.model_dump(mode="json")


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.bill_saved("bill", bill_id, "INV-2024-001", "Acme Corp")
        event = AuditEventBuilder.bill_deleted("customer_bill", bill_id)
    """

    @staticmethod
    def bill_saved(
        entity_type: str,
        bill_id: str,
        invoice_number: str,
        customer: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BILL_SAVED,
            entity_type=entity_type,
            entity_id=bill_id,
            correlation_id=correlation_id,
            description=f"Bill saved: {invoice_number} for {_short(customer)}",
            details={
                "invoice_number": invoice_number,
                "customer": customer,
            },
            is_user_action=True,
        )

    @staticmethod
    def bill_updated(
        entity_type: str,
        bill_id: str,
        changed_fields: list[str],
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BILL_UPDATED,
            entity_type=entity_type,
            entity_id=bill_id,
            correlation_id=correlation_id,
            description=f"Bill updated ({len(changed_fields)} fields)",
            details={"changed_fields": changed_fields},
            is_user_action=True,
        )

    @staticmethod
    def payment_status_updated(
        entity_type: str,
        bill_id: str,
        old_status: str,
        new_status: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PAYMENT_STATUS_UPDATED,
            entity_type=entity_type,
            entity_id=bill_id,
            correlation_id=correlation_id,
            description=f"Payment status changed: {old_status} -> {new_status}",
            details={
                "old_status": old_status,
                "new_status": new_status,
            },
            is_user_action=True,
        )

    @staticmethod
    def bill_deleted(
        entity_type: str,
        bill_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BILL_DELETED,
            entity_type=entity_type,
            entity_id=bill_id,
            correlation_id=correlation_id,
            description="Bill deleted",
            is_user_action=True,
        )

    @staticmethod
    def duplicate_rejected(
        entity_type: str,
        existing_id: str,
        customer: str,
        invoice: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DUPLICATE_REJECTED,
            severity=AuditSeverity.WARNING,
            entity_type=entity_type,
            entity_id=existing_id,
            correlation_id=correlation_id,
            description=f"Duplicate bill rejected: {_short(customer)} / {_short(invoice)}",
            details={
                "customer": customer,
                "invoice": invoice,
            },
            is_user_action=True,
        )

    @staticmethod
    def target_missing(
        event_type: AuditEventType,
        entity_type: str,
        bill_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        """Build one of the *_TARGET_MISSING events."""
        return AuditEvent(
            event_type=event_type,
            severity=AuditSeverity.WARNING,
            entity_type=entity_type,
            entity_id=bill_id,
            correlation_id=correlation_id,
            description=f"No bill with id {_short(bill_id)}",
        )

    @staticmethod
    def stored_data_malformed(
        entity_type: str,
        storage_key: str,
        error_message: str,
        skipped_records: int = 0,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STORED_DATA_MALFORMED,
            severity=AuditSeverity.WARNING,
            entity_type=entity_type,
            description=f"Malformed data under '{storage_key}'",
            error_message=error_message,
            details={
                "storage_key": storage_key,
                "skipped_records": skipped_records,
            },
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )
