"""
Audit Logger

DESIGN DECISION: Every change a store makes is logged, and so is every
request it declines (duplicates, missing ids, unreadable data).
This provides:
1. Complete traceability
2. Debugging capability
3. Visibility into the silent no-ops callers never hear about

The audit logger:
- Gracefully handles failures (a broken audit slot never breaks a save)
- Supports correlation IDs to trace related events
"""

from typing import TYPE_CHECKING, Optional
from uuid import UUID, uuid4

import structlog

from billstore.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

if TYPE_CHECKING:
    from billstore.services.storage.interface import AuditStorageInterface


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


_LEVELS = {
    AuditSeverity.DEBUG: "debug",
    AuditSeverity.INFO: "info",
    AuditSeverity.WARNING: "warning",
    AuditSeverity.ERROR: "error",
    AuditSeverity.CRITICAL: "critical",
}


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. An audit slot (when one is configured)
    """

    def __init__(
        self,
        storage: Optional["AuditStorageInterface"] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger("billstore.audit")

    @property
    def storage(self) -> Optional["AuditStorageInterface"]:
        return self._storage

    def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_method = getattr(self._logger, _LEVELS[event.severity])
        log_method("audit_event", **event.to_log_dict())

        if self._storage:
            try:
                return self._storage.append_event(event)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    def log_bill_saved(
        self,
        entity_type: str,
        bill_id: str,
        invoice_number: str,
        customer: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a new bill."""
        self.log(AuditEventBuilder.bill_saved(
            entity_type=entity_type,
            bill_id=bill_id,
            invoice_number=invoice_number,
            customer=customer,
            correlation_id=correlation_id,
        ))

    def log_bill_updated(
        self,
        entity_type: str,
        bill_id: str,
        changed_fields: list[str],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        self.log(AuditEventBuilder.bill_updated(
            entity_type=entity_type,
            bill_id=bill_id,
            changed_fields=changed_fields,
            correlation_id=correlation_id,
        ))

    def log_status_updated(
        self,
        entity_type: str,
        bill_id: str,
        old_status: str,
        new_status: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        self.log(AuditEventBuilder.payment_status_updated(
            entity_type=entity_type,
            bill_id=bill_id,
            old_status=old_status,
            new_status=new_status,
            correlation_id=correlation_id,
        ))

    def log_bill_deleted(
        self,
        entity_type: str,
        bill_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        self.log(AuditEventBuilder.bill_deleted(
            entity_type=entity_type,
            bill_id=bill_id,
            correlation_id=correlation_id,
        ))

    def log_duplicate_rejected(
        self,
        entity_type: str,
        existing_id: str,
        customer: str,
        invoice: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a save refused because the bill already exists."""
        self.log(AuditEventBuilder.duplicate_rejected(
            entity_type=entity_type,
            existing_id=existing_id,
            customer=customer,
            invoice=invoice,
            correlation_id=correlation_id,
        ))

    def log_target_missing(
        self,
        event_type: AuditEventType,
        entity_type: str,
        bill_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        self.log(AuditEventBuilder.target_missing(
            event_type=event_type,
            entity_type=entity_type,
            bill_id=bill_id,
            correlation_id=correlation_id,
        ))

    def log_malformed_data(
        self,
        entity_type: str,
        storage_key: str,
        error_message: str,
        skipped_records: int = 0,
    ) -> None:
        """Log stored data that could not be read back as records."""
        self.log(AuditEventBuilder.stored_data_malformed(
            entity_type=entity_type,
            storage_key=storage_key,
            error_message=error_message,
            skipped_records=skipped_records,
        ))

    def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an error."""
        self.log(AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        ))


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a user action (e.g. submitting a bill form)
    and pass it to every store call the action makes.
    """
    return uuid4()
