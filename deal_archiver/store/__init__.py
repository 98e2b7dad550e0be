"""Record status stores."""

from deal_archiver.store.base import (
    StatusStore,
    StoreConnectionError,
    StoreError,
    coerce_ids,
    identifier_parts,
)
from deal_archiver.store.memory import InMemoryStatusStore
from deal_archiver.store.mysql import MySQLStatusStore
from deal_archiver.store.postgres import PostgresStatusStore

__all__ = [
    "StatusStore",
    "StoreError",
    "StoreConnectionError",
    "coerce_ids",
    "identifier_parts",
    "InMemoryStatusStore",
    "MySQLStatusStore",
    "PostgresStatusStore",
]
