"""
In-memory status store.

Used by the test-suite and for local development. Offers the same
conditional-claim semantics as the SQL backend plus helpers to inject
failures and inspect the write history.
"""

from __future__ import annotations

import asyncio
from typing import Any, Iterable, Optional

from deal_archiver.store.base import StatusStore, StoreConnectionError, StoreError, coerce_ids


class InMemoryStatusStore(StatusStore):
    """Dict-backed StatusStore.

    Attributes:
        writes: Every successful status write as ``(record_id, status)``,
            in the order it happened.

    Example:
        >>> store = InMemoryStatusStore({"d1": "pending"})
        >>> await store.claim("d1", "pending", "archiving")
        True
    """

    def __init__(self, records: Optional[dict[Any, Optional[str]]] = None) -> None:
        self._records: dict[Any, Optional[str]] = dict(records or {})
        self._lock = asyncio.Lock()
        self.writes: list[tuple[str, str]] = []

        # Failure injection
        self.fail_queries = False
        self.fail_ping = False
        self._failing_writes: set[tuple[str, str]] = set()

    def fail_write(self, record_id: str, status: str) -> None:
        """Make every write of ``status`` to ``record_id`` raise StoreError."""
        self._failing_writes.add((record_id, status))

    def add(self, record_id: Any, status: Optional[str]) -> None:
        """Insert or overwrite a record without recording a write."""
        self._records[record_id] = status

    def snapshot(self) -> dict[Any, Optional[str]]:
        """Copy of all records and their statuses."""
        return dict(self._records)

    def writes_for(self, record_id: str) -> list[str]:
        """Statuses written to one record, in order."""
        return [status for rid, status in self.writes if rid == record_id]

    async def ping(self) -> None:
        if self.fail_ping:
            raise StoreConnectionError("in-memory store unavailable")

    async def select_ids(self, status: str) -> list[str]:
        if self.fail_queries:
            raise StoreError("query failed")
        async with self._lock:
            raw_ids: Iterable[Any] = [
                rid for rid, value in self._records.items() if value == status
            ]
        return coerce_ids(raw_ids)

    async def set_status(self, record_id: str, status: str) -> None:
        self._check_write(record_id, status)
        async with self._lock:
            if record_id in self._records:
                self._records[record_id] = status
                self.writes.append((record_id, status))

    async def claim(self, record_id: str, expected: str, status: str) -> bool:
        self._check_write(record_id, status)
        async with self._lock:
            if self._records.get(record_id) != expected:
                return False
            self._records[record_id] = status
            self.writes.append((record_id, status))
            return True

    async def get_status(self, record_id: str) -> Optional[str]:
        if self.fail_queries:
            raise StoreError("query failed")
        return self._records.get(record_id)

    def _check_write(self, record_id: str, status: str) -> None:
        if (record_id, status) in self._failing_writes:
            raise StoreError(f"update of {record_id} to {status!r} failed")
