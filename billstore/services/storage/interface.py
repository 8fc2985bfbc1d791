"""
Abstract Storage Interface

DESIGN DECISION: Records are kept the way a browser keeps local storage:
a string-keyed slot holds one JSON document. We define an abstract slot
interface so that:
1. A directory of JSON files can back the stores on disk
2. A plain dict can back them in tests
3. Each slot carries its own lock, so every store operation can hold it
   across the whole read-modify-write

The interface is intentionally tiny. Anything record-shaped lives in
record_store.py on top of it.
"""

import threading
from abc import ABC, abstractmethod
from typing import Any, Optional
from uuid import UUID

from billstore.models.audit import AuditEvent


class SlotStorageInterface(ABC):
    """
    Abstract string-keyed persistent storage.

    Implementations only need the four item operations; lock() is shared.
    """

    def __init__(self) -> None:
        self._locks: dict[str, threading.RLock] = {}
        self._locks_guard = threading.Lock()

    def lock(self, key: str) -> threading.RLock:
        """
        Lock guarding one slot.

        Every store built on this storage object and key gets the same lock.
        """
        with self._locks_guard:
            slot_lock = self._locks.get(key)
            if slot_lock is None:
                slot_lock = self._locks[key] = threading.RLock()
            return slot_lock

    @abstractmethod
    def get_item(self, key: str) -> Optional[str]:
        """
        Read a slot.

        Returns:
            The stored text, or None if the slot was never written

        Raises:
            StorageError: If the backend cannot be read
        """
        pass

    @abstractmethod
    def set_item(self, key: str, value: str) -> None:
        """
        Replace a slot's contents.

        Raises:
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    def remove_item(self, key: str) -> None:
        """Remove a slot. Removing a missing slot is not an error."""
        pass

    @abstractmethod
    def keys(self) -> list[str]:
        """Names of all slots currently present."""
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """Events sharing a correlation ID, in chronological order."""
        pass

    @abstractmethod
    def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        """Events for one record, in chronological order."""
        pass

    @abstractmethod
    def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """Most recent events, newest first."""
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Record not found in storage."""
    pass


class DuplicateRecordError(StorageError):
    """Attempted to insert a record that duplicates an existing one."""

    def __init__(self, message: str, existing: Any = None):
        super().__init__(message)
        self.existing = existing


class InvalidRecordError(StorageError, ValueError):
    """Supplied fields do not form a valid record."""
    pass
