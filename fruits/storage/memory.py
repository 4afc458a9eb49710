"""Thread-safe in-memory keyed store with sequence ids and paginated listing."""

from __future__ import annotations

import threading
from typing import Generic, TypeVar

from fruits.errors import NotFoundError, ValidationError
from fruits.lib.logger import get_logger

T = TypeVar("T")

logger = get_logger(__name__)

UNSET_ID = 0


class KeyedStore(Generic[T]):
    """Store opaque records under integer keys, remembering insertion order.

    The record map and the insertion index are guarded by one lock and are
    always updated together, so readers never observe a record without its
    index entry (or the reverse). Records are never interpreted.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._last_id = 0
        self._next_id = 1
        self._ids: list[int] = []
        self._records: dict[int, T] = {}

    def new_id(self) -> int:
        """Reserve and return the next sequence id (1-based, never reused)."""

        with self._lock:
            new_id = self._next_id
            self._last_id = new_id
            self._next_id += 1
        return new_id

    def save(self, key: int, record: T) -> None:
        """Store ``record`` under ``key``.

        New keys are appended to the insertion index; an existing key is
        overwritten in place and keeps its position.
        """

        with self._lock:
            if key not in self._records:
                self._ids.append(key)
            self._records[key] = record
        logger.debug("store_save", extra={"key": key})

    def update(self, key: int, record: T) -> None:
        """Overwrite an existing record without touching its position."""

        if key == UNSET_ID:
            logger.error("store_update_rejected", extra={"key": key, "reason": "unset id"})
            raise ValidationError(f"cannot update entity {record!r}, because it doesn't contain a valid id")

        with self._lock:
            exists = key in self._records
            if exists:
                self._records[key] = record

        if not exists:
            logger.debug("store_update_missing", extra={"key": key})
            raise NotFoundError(f"entity {key} doesn't exist")
        logger.debug("store_update", extra={"key": key})

    def find_by_id(self, key: int) -> T | None:
        """Return the record stored under ``key`` or ``None`` if absent."""

        with self._lock:
            record = self._records.get(key)
        logger.debug("store_find_by_id", extra={"key": key, "found": record is not None})
        return record

    def find_all(self, start: int, count: int) -> list[T]:
        """Return up to ``count`` records in insertion order from 1-based ``start``.

        An empty store or a ``start`` past the last record yields an empty
        list; a short tail is returned as-is rather than padded.
        """

        with self._lock:
            total = len(self._ids)
            if total == 0 or start > total or count <= 0:
                page: list[T] = []
            else:
                begin = max(start, 1) - 1
                end = min(begin + count, total)
                page = [self._records[key] for key in self._ids[begin:end]]
        logger.debug("store_find_all", extra={"start": start, "count": count, "returned": len(page)})
        return page

    def count(self) -> int:
        with self._lock:
            return len(self._records)

    def __len__(self) -> int:
        return self.count()

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._records

    def update_sequence_watermark(self, key: int) -> None:
        """Keep the id sequence ahead of an externally supplied ``key``."""

        with self._lock:
            self._last_id = key
            self._next_id = max(self._next_id, key + 1)

    @property
    def last_id(self) -> int:
        with self._lock:
            return self._last_id

    def reset(self) -> None:
        """Drop all records and restart the sequence (testing utility)."""

        with self._lock:
            self._records.clear()
            self._ids.clear()
            self._last_id = 0
            self._next_id = 1
