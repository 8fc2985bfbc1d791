"""
Tests for the audit trail produced by store operations.
"""

from uuid import uuid4

import pytest

from billstore.audit import AuditLogger, create_correlation_id
from billstore.models.audit import AuditEvent, AuditEventType, AuditSeverity
from billstore.services.storage import (
    AuditStorageInterface,
    BillStore,
    CustomerBillStore,
    DuplicateRecordError,
    NotFoundError,
    SlotAuditStorage,
)


@pytest.fixture()
def audit_storage(storage):
    return SlotAuditStorage(storage, key="bill_audit_log")


@pytest.fixture()
def audited_bills(storage, clock, audit_storage):
    return BillStore(storage, audit_logger=AuditLogger(audit_storage), clock=clock)


def _types(events):
    return [e.event_type for e in events]


class TestStoreEvents:
    """Every store call leaves an event behind."""

    def test_lifecycle_events(self, audited_bills, audit_storage, bill_form):
        bill = audited_bills.save(bill_form)
        audited_bills.update(bill.id, {"notes": "changed"})
        audited_bills.update_status(bill.id, "Paid")
        audited_bills.delete(bill.id)

        events = audit_storage.get_events_by_entity("bill", bill.id)
        assert _types(events) == [
            AuditEventType.BILL_SAVED,
            AuditEventType.BILL_UPDATED,
            AuditEventType.PAYMENT_STATUS_UPDATED,
            AuditEventType.BILL_DELETED,
        ]
        assert events[0].details["invoice_number"] == bill.invoice_number
        assert events[1].details["changed_fields"] == ["notes"]
        assert events[2].details == {"old_status": "Pending", "new_status": "Paid"}

    def test_missing_targets_are_audited(self, audited_bills, audit_storage):
        audited_bills.update_status("ghost", "Paid")
        audited_bills.delete("ghost")
        with pytest.raises(NotFoundError):
            audited_bills.update("ghost", {"notes": "x"})

        events = audit_storage.get_events_by_entity("bill", "ghost")
        assert _types(events) == [
            AuditEventType.STATUS_TARGET_MISSING,
            AuditEventType.DELETE_TARGET_MISSING,
            AuditEventType.UPDATE_TARGET_MISSING,
        ]
        assert all(e.severity == AuditSeverity.WARNING for e in events)

    def test_audit_slot_is_separate(self, audited_bills, storage):
        audited_bills.update_status("ghost", "Paid")
        assert storage.get_item("saved_bills") is None
        assert storage.get_item("bill_audit_log") is not None

    def test_duplicate_rejection_audited(self, storage, clock, audit_storage, customer_form):
        store = CustomerBillStore(storage, audit_logger=AuditLogger(audit_storage), clock=clock)
        first = store.save(customer_form)
        with pytest.raises(DuplicateRecordError):
            store.save(customer_form)

        events = audit_storage.get_events_by_entity("customer_bill", first.id)
        assert _types(events) == [AuditEventType.BILL_SAVED, AuditEventType.DUPLICATE_REJECTED]

    def test_malformed_data_audited(self, audited_bills, storage, audit_storage):
        storage.set_item("saved_bills", "{broken")
        assert audited_bills.get_all() == []

        [event] = audit_storage.get_recent_events(limit=1)
        assert event.event_type == AuditEventType.STORED_DATA_MALFORMED
        assert event.details["storage_key"] == "saved_bills"

    def test_long_customer_name_is_clipped_in_description(self, audited_bills, audit_storage):
        bill = audited_bills.save({"customer": "A" * 1000})

        [event] = audit_storage.get_events_by_entity("bill", bill.id)
        assert len(event.description) <= 500
        assert event.details["customer"] == "A" * 1000

    def test_correlation_id_flows_through(self, audited_bills, audit_storage, bill_form):
        correlation_id = create_correlation_id()
        bill = audited_bills.save(bill_form, correlation_id=correlation_id)
        audited_bills.update_status(bill.id, "Paid", correlation_id=correlation_id)
        audited_bills.save(bill_form)

        events = audit_storage.get_events_by_correlation_id(correlation_id)
        assert _types(events) == [
            AuditEventType.BILL_SAVED,
            AuditEventType.PAYMENT_STATUS_UPDATED,
        ]


class TestSlotAuditStorage:

    def test_recent_events_newest_first(self, audit_storage):
        for n in range(5):
            audit_storage.append_event(AuditEvent(
                event_type=AuditEventType.BILL_DELETED,
                entity_type="bill",
                entity_id=str(n),
                description="Bill deleted",
            ))
        recent = audit_storage.get_recent_events(limit=2)
        assert [e.entity_id for e in recent] == ["4", "3"]

    def test_corrupt_log_reads_as_empty(self, audit_storage, storage):
        storage.set_item("bill_audit_log", "nope")
        assert audit_storage.get_recent_events() == []
        audit_storage.append_event(AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            description="System error: test",
        ))
        assert len(audit_storage.get_recent_events()) == 1

    def test_malformed_entries_skipped(self, audit_storage, storage):
        storage.set_item("bill_audit_log", '[{"event_type": "not_a_type"}]')
        assert audit_storage.get_recent_events() == []


class TestAuditLogger:

    def test_without_storage_reports_success(self):
        event = AuditEvent(event_type=AuditEventType.BILL_SAVED, description="x")
        assert AuditLogger().log(event) is True

    def test_storage_failure_is_not_raised(self, bill_form, storage, clock):
        class BrokenAuditStorage(AuditStorageInterface):
            def append_event(self, event):
                raise RuntimeError("disk full")

            def get_events_by_correlation_id(self, correlation_id):
                return []

            def get_events_by_entity(self, entity_type, entity_id):
                return []

            def get_recent_events(self, limit=100):
                return []

        logger = AuditLogger(BrokenAuditStorage())
        event = AuditEvent(
            event_type=AuditEventType.BILL_SAVED,
            description="x",
            correlation_id=uuid4(),
        )
        assert logger.log(event) is False

        store = BillStore(storage, audit_logger=logger, clock=clock)
        assert store.save(bill_form).customer == "Acme Corp"

    def test_log_error_persists_system_error(self, audit_storage):
        AuditLogger(audit_storage).log_error("io", "disk full", details={"path": "/tmp"})
        [event] = audit_storage.get_recent_events()
        assert event.event_type == AuditEventType.SYSTEM_ERROR
        assert event.severity == AuditSeverity.ERROR
        assert event.error_message == "disk full"
