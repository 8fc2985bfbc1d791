"""
Generic Record Store

One store persists one collection of records as a single JSON array under a
single slot key. BillStore and CustomerBillStore (bills.py) are this class
with a record shape and, for customer bills, a duplicate check.

DESIGN DECISION: Every operation holds the slot's lock for its full
read-modify-write. Within a process two callers can no longer overwrite
each other's writes; across processes the last writer still wins.

STORED DATA: Items that no longer validate stay in the slot untouched, in
their original positions. Only the record an operation targets is
re-serialized; every other item is written back exactly as it was read.

ERROR CONTRACT (kept deliberately asymmetric):
- update() on a missing id raises NotFoundError
- update_status() on a missing id does nothing and returns None
- delete() on a missing id returns False
"""

import json
from datetime import datetime, timezone
from typing import Any, Callable, ClassVar, Generic, Mapping, Optional, TypeVar, Union
from uuid import UUID

import structlog
from pydantic import BaseModel, ValidationError

from billstore.audit.logger import AuditLogger
from billstore.config.settings import InvoiceSequenceMode
from billstore.models.audit import AuditEventType
from billstore.models.bill import PaymentStatus, StoredRecord, to_iso_timestamp, utc_now
from billstore.services.storage.interface import (
    DuplicateRecordError,
    InvalidRecordError,
    NotFoundError,
    SlotStorageInterface,
)


logger = structlog.get_logger(__name__)

DraftT = TypeVar("DraftT", bound=BaseModel)
RecordT = TypeVar("RecordT", bound=StoredRecord)

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

# Fields update() never lets a caller overwrite
IMMUTABLE_FIELDS = ("id", "invoice_number", "created_at")


def epoch_millis(moment: datetime) -> int:
    """Milliseconds since the Unix epoch, computed without float rounding."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    delta = moment - _EPOCH
    return (delta.days * 86_400 + delta.seconds) * 1000 + delta.microseconds // 1000




class InvoiceNumberGenerator:
    """
    Builds invoice numbers like INV-2024-007.

    The sequence is either the number of items in the store plus one
    (InvoiceSequenceMode.COUNT) or a durable counter kept in its own slot
    (InvoiceSequenceMode.COUNTER). COUNT can repeat a number once records
    have been deleted; COUNTER never does.
    """

    def __init__(
        self,
        prefix: str = "INV",
        width: int = 3,
        mode: InvoiceSequenceMode = InvoiceSequenceMode.COUNT,
    ):
        self.prefix = prefix
        self.width = width
        self.mode = InvoiceSequenceMode(mode)

    def format(self, year: int, sequence: int) -> str:
        return f"{self.prefix}-{year}-{sequence:0{self.width}d}"

    def parse_sequence(self, invoice_number: str) -> Optional[int]:
        """Sequence part of an invoice number this generator could have made."""
        parts = invoice_number.rsplit("-", 2)
        if len(parts) != 3 or parts[0] != self.prefix or not parts[2].isdigit():
            return None
        return int(parts[2])

    @staticmethod
    def counter_key(storage_key: str) -> str:
        return f"{storage_key}:invoice_seq"

    def next_sequence(
        self,
        storage: SlotStorageInterface,
        storage_key: str,
        stored_count: int,
        existing_numbers: list[str],
    ) -> int:
        """
        Sequence for the next record. Nothing is written.

        Must be called while holding the store's slot lock, followed by
        record_issued() once the record itself has been stored.
        """
        if self.mode is InvoiceSequenceMode.COUNT:
            return stored_count + 1

        raw = storage.get_item(self.counter_key(storage_key))
        if raw is not None and raw.strip().isdigit():
            return int(raw) + 1

        # Seed from what is already stored
        seen = [self.parse_sequence(number) for number in existing_numbers]
        return max([stored_count] + [s for s in seen if s is not None]) + 1

    def record_issued(
        self,
        storage: SlotStorageInterface,
        storage_key: str,
        sequence: int,
    ) -> None:
        """Advance the durable counter past a sequence that is now stored."""
        if self.mode is InvoiceSequenceMode.COUNTER:
            storage.set_item(self.counter_key(storage_key), str(sequence))


class RecordStore(Generic[DraftT, RecordT]):
    """
    A collection of records persisted as one JSON array in one slot.

    Subclasses set record_model, draft_model, entity_type and default_key,
    and may override duplicate_of() to refuse duplicate saves.
    """

    record_model: ClassVar[type[StoredRecord]]
    draft_model: ClassVar[type[BaseModel]]
    entity_type: ClassVar[str] = "record"
    default_key: ClassVar[str]

    def __init__(
        self,
        storage: SlotStorageInterface,
        key: Optional[str] = None,
        invoice_numbers: Optional[InvoiceNumberGenerator] = None,
        audit_logger: Optional[AuditLogger] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self._storage = storage
        self._key = key or self.default_key
        self._invoice_numbers = invoice_numbers or InvoiceNumberGenerator()
        self._audit = audit_logger or AuditLogger()
        self._clock = clock
        self._aliases = {
            name: field.alias or name
            for name, field in self.record_model.model_fields.items()
        }
        self._stored_names = set(self._aliases.values())

    @property
    def key(self) -> str:
        return self._key

    @property
    def storage(self) -> SlotStorageInterface:
        return self._storage

    # -------------------------------------------------------------------------
    # Public operations
    # -------------------------------------------------------------------------

    def save(
        self,
        data: Union[DraftT, Mapping[str, Any]],
        correlation_id: Optional[UUID] = None,
    ) -> RecordT:
        """
        Create a record from caller fields and append it to the store.

        The store supplies id, invoice number, creation time and the
        initial PENDING status; caller values for those are ignored.

        Raises:
            InvalidRecordError: If a field has the wrong type
            DuplicateRecordError: If duplicate_of() finds a match
        """
        draft = self._coerce_draft(data)

        with self._storage.lock(self._key):
            items, parsed = self._read()

            existing = self.duplicate_of(list(parsed.values()), draft)
            if existing is not None:
                self._audit.log_duplicate_rejected(
                    entity_type=self.entity_type,
                    existing_id=existing.id,
                    customer=getattr(draft, "customer", ""),
                    invoice=getattr(draft, "invoice", ""),
                    correlation_id=correlation_id,
                )
                raise DuplicateRecordError(
                    "Bill with same customer details and invoice number already exists",
                    existing=existing,
                )

            now = self._clock()
            sequence = self._invoice_numbers.next_sequence(
                self._storage, self._key, len(items), self._stored_invoice_numbers(items)
            )
            record = self.record_model(
                **draft.model_dump(exclude={"status"}),
                id=self._new_id(items, now),
                invoice_number=self._invoice_numbers.format(
                    now.astimezone(timezone.utc).year, sequence
                ),
                status=PaymentStatus.PENDING,
                created_at=now,
            )
            items.append(self._serialize(record))
            self._persist(items)
            self._invoice_numbers.record_issued(self._storage, self._key, sequence)

        self._audit.log_bill_saved(
            entity_type=self.entity_type,
            bill_id=record.id,
            invoice_number=record.invoice_number,
            customer=getattr(record, "customer", ""),
            correlation_id=correlation_id,
        )
        return record

    def get_all(self) -> list[RecordT]:
        """
        All readable records in stored order.

        Missing or unreadable data reads as []. Items that do not validate
        are left out here but stay in the slot.
        """
        with self._storage.lock(self._key):
            _, parsed = self._read()
        return list(parsed.values())

    def get_by_id(self, record_id: str) -> Optional[RecordT]:
        """The record with this id, or None."""
        for record in self.get_all():
            if record.id == record_id:
                return record
        return None

    def update(
        self,
        record_id: str,
        changes: Union[BaseModel, Mapping[str, Any]],
        correlation_id: Optional[UUID] = None,
    ) -> RecordT:
        """
        Merge caller fields over an existing record.

        id, invoice_number and created_at always keep their original values;
        updated_at is set to now.

        Raises:
            NotFoundError: If no record has this id
            InvalidRecordError: If the merged record is invalid
        """
        incoming = self._aliased(changes)

        with self._storage.lock(self._key):
            items, parsed = self._read()
            index = self._position(items, record_id)
            if index is None:
                self._audit.log_target_missing(
                    event_type=AuditEventType.UPDATE_TARGET_MISSING,
                    entity_type=self.entity_type,
                    bill_id=record_id,
                    correlation_id=correlation_id,
                )
                raise NotFoundError(f"Bill not found: {record_id}")

            current = parsed.get(index)
            base = current.model_dump(by_alias=True) if current is not None else dict(items[index])
            merged = {**base, **incoming}
            for name in IMMUTABLE_FIELDS:
                alias = self._aliases[name]
                if alias in base:
                    merged[alias] = base[alias]
                else:
                    merged.pop(alias, None)
            merged[self._aliases["updated_at"]] = self._clock()

            try:
                updated = self.record_model.model_validate(merged)
            except ValidationError as e:
                raise InvalidRecordError(f"Invalid bill update: {e}") from e

            items[index] = self._serialize(updated, previous=items[index])
            self._persist(items)

        self._audit.log_bill_updated(
            entity_type=self.entity_type,
            bill_id=record_id,
            changed_fields=sorted(incoming),
            correlation_id=correlation_id,
        )
        return updated

    def update_status(
        self,
        record_id: str,
        status: Union[PaymentStatus, str],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """
        Set a record's payment status.

        A missing id is silently ignored: nothing is written and nothing is
        raised. A stored item that does not validate still gets the new
        status; its other fields are left as they are.

        Raises:
            InvalidRecordError: If status is not a PaymentStatus value
        """
        try:
            new_status = PaymentStatus(status)
        except ValueError as e:
            raise InvalidRecordError(f"Unknown payment status: {status!r}") from e

        with self._storage.lock(self._key):
            items, parsed = self._read()
            index = self._position(items, record_id)
            if index is None:
                logger.debug("status_update_skipped", key=self._key, record_id=record_id)
                self._audit.log_target_missing(
                    event_type=AuditEventType.STATUS_TARGET_MISSING,
                    entity_type=self.entity_type,
                    bill_id=record_id,
                    correlation_id=correlation_id,
                )
                return

            now = self._clock()
            current = parsed.get(index)
            if current is not None:
                old_status = current.status.value
                updated = current.model_copy(update={"status": new_status, "updated_at": now})
                items[index] = self._serialize(updated, previous=items[index])
            else:
                old_status = str(items[index].get(self._aliases["status"], ""))
                items[index] = {
                    **items[index],
                    self._aliases["status"]: new_status.value,
                    self._aliases["updated_at"]: to_iso_timestamp(now),
                }
            self._persist(items)

        self._audit.log_status_updated(
            entity_type=self.entity_type,
            bill_id=record_id,
            old_status=old_status,
            new_status=new_status.value,
            correlation_id=correlation_id,
        )

    def delete(
        self,
        record_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> bool:
        """Remove a record. Returns False if no record has this id."""
        with self._storage.lock(self._key):
            items, _ = self._read()
            index = self._position(items, record_id)
            if index is None:
                self._audit.log_target_missing(
                    event_type=AuditEventType.DELETE_TARGET_MISSING,
                    entity_type=self.entity_type,
                    bill_id=record_id,
                    correlation_id=correlation_id,
                )
                return False

            del items[index]
            self._persist(items)

        self._audit.log_bill_deleted(
            entity_type=self.entity_type,
            bill_id=record_id,
            correlation_id=correlation_id,
        )
        return True

    def find_duplicate(
        self,
        data: Union[DraftT, Mapping[str, Any]],
    ) -> Optional[RecordT]:
        """The stored record a save of data would be refused for, if any."""
        draft = self._coerce_draft(data)
        return self.duplicate_of(self.get_all(), draft)

    def duplicate_of(self, records: list[RecordT], draft: DraftT) -> Optional[RecordT]:
        """Override to refuse duplicate saves. The base store accepts everything."""
        return None

    # -------------------------------------------------------------------------
    # Persistence helpers
    # -------------------------------------------------------------------------

    def _read(self) -> tuple[list[Any], dict[int, RecordT]]:
        """
        Raw stored items, plus the records that validated keyed by position.

        Must be called while holding the slot lock.
        """
        raw = self._storage.get_item(self._key)
        if raw is None:
            return [], {}

        try:
            items = json.loads(raw)
        except json.JSONDecodeError as e:
            self._audit.log_malformed_data(self.entity_type, self._key, str(e))
            return [], {}

        if not isinstance(items, list):
            self._audit.log_malformed_data(
                self.entity_type,
                self._key,
                f"expected a JSON array, found {type(items).__name__}",
            )
            return [], {}

        parsed = {}
        errors = []
        for index, item in enumerate(items):
            try:
                parsed[index] = self.record_model.model_validate(item)
            except ValidationError as e:
                errors.append(str(e))  # Kept in the slot as stored

        if errors:
            self._audit.log_malformed_data(
                self.entity_type,
                self._key,
                errors[0],
                skipped_records=len(errors),
            )
        return items, parsed

    def _persist(self, items: list[Any]) -> None:
        self._storage.set_item(self._key, json.dumps(items, ensure_ascii=False))

    def _serialize(self, record: RecordT, previous: Any = None) -> dict[str, Any]:
        """Stored form of a record, keeping keys the model does not know about."""
        data = record.model_dump(mode="json", by_alias=True, exclude_none=True)
        if isinstance(previous, dict):
            for key, value in previous.items():
                if key not in self._stored_names:
                    data.setdefault(key, value)
        return data

    def _coerce_draft(self, data: Union[BaseModel, Mapping[str, Any]]) -> DraftT:
        if isinstance(data, BaseModel):
            data = data.model_dump(by_alias=True)
        try:
            return self.draft_model.model_validate(data)
        except ValidationError as e:
            raise InvalidRecordError(f"Invalid bill: {e}") from e

    def _aliased(self, changes: Union[BaseModel, Mapping[str, Any]]) -> dict[str, Any]:
        """Caller changes keyed by stored (alias) names."""
        if isinstance(changes, BaseModel):
            changes = changes.model_dump(by_alias=True, exclude_unset=True)
        return {self._aliases.get(name, name): value for name, value in changes.items()}

    @staticmethod
    def _position(items: list[Any], record_id: str) -> Optional[int]:
        for index, item in enumerate(items):
            if isinstance(item, dict) and "id" in item and str(item["id"]) == record_id:
                return index
        return None

    @staticmethod
    def _stored_invoice_numbers(items: list[Any]) -> list[str]:
        return [
            item["invoiceNumber"] for item in items
            if isinstance(item, dict) and isinstance(item.get("invoiceNumber"), str)
        ]

    @staticmethod
    def _new_id(items: list[Any], moment: datetime) -> str:
        """Creation time in epoch milliseconds, bumped past any id already taken."""
        taken = {str(item["id"]) for item in items if isinstance(item, dict) and "id" in item}
        candidate = epoch_millis(moment)
        while str(candidate) in taken:
            candidate += 1
        return str(candidate)
