"""
Slot Storage Implementations

DESIGN DECISION: Two backends, both holding plain text per key:

- MemorySlotStorage keeps slots in a dict. Used by tests and by callers
  that embed the stores in a longer-lived process.
- JsonFileSlotStorage keeps one file per key in a data directory.

TRADEOFFS:
- Every write replaces the whole slot (the stores rewrite the full array)
- Writes go to a temp file first and are moved into place with os.replace,
  so a reader never sees half a file
- Locks are per process; two processes writing the same slot still race
  (last writer wins)
"""

import os
import tempfile
from pathlib import Path
from typing import Optional
from urllib.parse import quote, unquote

import structlog
from tenacity import (
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from billstore.services.storage.interface import SlotStorageInterface, StorageError


logger = structlog.get_logger(__name__)

SLOT_SUFFIX = ".json"


class MemorySlotStorage(SlotStorageInterface):
    """Process-local slot storage."""

    def __init__(self, initial: Optional[dict[str, str]] = None):
        super().__init__()
        self._items: dict[str, str] = dict(initial or {})

    def get_item(self, key: str) -> Optional[str]:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._items[key] = value

    def remove_item(self, key: str) -> None:
        self._items.pop(key, None)

    def keys(self) -> list[str]:
        return list(self._items)


class JsonFileSlotStorage(SlotStorageInterface):
    """
    Slot storage backed by a directory of files.

    Keys are percent-encoded into file names, so any key is allowed.
    """

    def __init__(self, directory: Path, write_attempts: int = 3):
        super().__init__()
        self._directory = Path(directory)
        self._write_attempts = write_attempts

    @property
    def directory(self) -> Path:
        return self._directory

    def path_for(self, key: str) -> Path:
        """File that holds a slot."""
        return self._directory / f"{quote(key, safe='')}{SLOT_SUFFIX}"

    def get_item(self, key: str) -> Optional[str]:
        path = self.path_for(key)
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as e:
            raise StorageError(f"Failed to read slot '{key}': {e}") from e

    def set_item(self, key: str, value: str) -> None:
        retrying = Retrying(
            stop=stop_after_attempt(self._write_attempts),
            wait=wait_exponential(multiplier=0.05, max=1),
            retry=retry_if_exception_type(OSError),
            reraise=True,
        )
        try:
            for attempt in retrying:
                with attempt:
                    self._write_atomic(key, value)
        except OSError as e:
            logger.error("slot_write_failed", key=key, error=str(e))
            raise StorageError(f"Failed to write slot '{key}': {e}") from e

    def _write_atomic(self, key: str, value: str) -> None:
        self._directory.mkdir(parents=True, exist_ok=True)
        target = self.path_for(key)
        fd, tmp_name = tempfile.mkstemp(
            dir=self._directory,
            prefix=".tmp-",
            suffix=SLOT_SUFFIX,
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(value)
            os.replace(tmp_name, target)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def remove_item(self, key: str) -> None:
        try:
            self.path_for(key).unlink(missing_ok=True)
        except OSError as e:
            raise StorageError(f"Failed to remove slot '{key}': {e}") from e

    def keys(self) -> list[str]:
        if not self._directory.is_dir():
            return []
        return sorted(
            unquote(path.name[: -len(SLOT_SUFFIX)])
            for path in self._directory.glob(f"*{SLOT_SUFFIX}")
            if not path.name.startswith(".tmp-")
        )
