"""
Status store contract.

The pipeline reads record identifiers by status and writes a single record's
status. It never creates or deletes records.

Invariants:
    - ``claim`` is a single conditional update; it relies on the backend's
      row-level atomicity and is the only protection against two cycles
      processing the same record.
    - Every backend error surfaces as ``StoreError``.
"""

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from typing import Any, Iterable, Optional

from deal_archiver.utils.logging import get_logger

logger = get_logger("store")

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


class StoreError(Exception):
    """Base exception for status store operations."""

    pass


class StoreConnectionError(StoreError):
    """The store could not be reached."""

    pass


class StatusStore(ABC):
    """Backend-independent access to record statuses."""

    async def open(self) -> None:
        """Acquire connections. No-op by default."""

    async def close(self) -> None:
        """Release connections. No-op by default."""

    @abstractmethod
    async def ping(self) -> None:
        """
        Check the store is reachable.

        Raises:
            StoreConnectionError: If it is not
        """

    @abstractmethod
    async def select_ids(self, status: str) -> list[str]:
        """
        Identifiers of every record whose status equals ``status``.

        Rows whose identifier cannot be read are skipped and logged.

        Raises:
            StoreError: If the query fails
        """

    @abstractmethod
    async def set_status(self, record_id: str, status: str) -> None:
        """
        Unconditionally set a record's status.

        Raises:
            StoreError: If the update fails
        """

    @abstractmethod
    async def claim(self, record_id: str, expected: str, status: str) -> bool:
        """
        Set a record's status only if it currently equals ``expected``.

        Returns:
            True if the record was updated, False if its status had changed

        Raises:
            StoreError: If the update fails
        """

    @abstractmethod
    async def get_status(self, record_id: str) -> Optional[str]:
        """
        Current status of a record, None if the record does not exist.

        Raises:
            StoreError: If the query fails
        """

    async def __aenter__(self) -> "StatusStore":
        await self.open()
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()


def coerce_ids(raw_ids: Iterable[Any]) -> list[str]:
    """Convert scanned identifiers to strings, skipping unreadable rows."""
    ids: list[str] = []
    for position, raw in enumerate(raw_ids):
        if raw is None:
            logger.warning("record_scan_failed", row=position, error="null identifier")
            continue
        if isinstance(raw, bytes):
            try:
                raw = raw.decode("utf-8")
            except UnicodeDecodeError as e:
                logger.warning("record_scan_failed", row=position, error=str(e))
                continue
        record_id = str(raw).strip()
        if not record_id:
            logger.warning("record_scan_failed", row=position, error="empty identifier")
            continue
        ids.append(record_id)
    return ids


def identifier_parts(name: str) -> list[str]:
    """
    Split a configured table or column name into SQL identifier parts.

    ``schema.table`` is allowed; anything that is not a plain identifier is
    rejected so it can be quoted safely by each backend.

    Raises:
        ValueError: If the name is not a valid identifier
    """
    parts = name.split(".")
    if not 1 <= len(parts) <= 2 or not all(_IDENTIFIER.match(p) for p in parts):
        raise ValueError(f"Invalid SQL identifier: {name!r}")
    return parts
