"""
Slot-backed audit log.

Events are appended to a JSON array kept in their own slot, next to the
bill slots. Entries that no longer parse are skipped on read.
"""

import json
from uuid import UUID

from pydantic import ValidationError

from billstore.models.audit import AuditEvent
from billstore.services.storage.interface import (
    AuditStorageInterface,
    SlotStorageInterface,
)


class SlotAuditStorage(AuditStorageInterface):
    """Append-only audit log stored in a single slot."""

    def __init__(self, storage: SlotStorageInterface, key: str = "bill_audit_log"):
        self._storage = storage
        self._key = key

    @property
    def key(self) -> str:
        return self._key

    def append_event(self, event: AuditEvent) -> bool:
        with self._storage.lock(self._key):
            entries = self._read_raw()
            entries.append(event.to_storage_json())
            self._storage.set_item(self._key, json.dumps(entries, ensure_ascii=False))
        return True

    def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        return [e for e in self._read_events() if e.correlation_id == correlation_id]

    def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        return [
            e for e in self._read_events()
            if e.entity_type == entity_type and e.entity_id == entity_id
        ]

    def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        events = self._read_events()
        events.reverse()
        return events[:limit]

    def _read_raw(self) -> list:
        raw = self._storage.get_item(self._key)
        if raw is None:
            return []
        try:
            entries = json.loads(raw)
        except json.JSONDecodeError:
            return []
        return entries if isinstance(entries, list) else []

    def _read_events(self) -> list[AuditEvent]:
        with self._storage.lock(self._key):
            entries = self._read_raw()

        events = []
        for entry in entries:
            try:
                events.append(AuditEvent.model_validate(entry))
            except ValidationError:
                continue  # Skip malformed entries
        return events
