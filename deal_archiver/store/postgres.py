"""
PostgreSQL status store using psycopg3 and an async connection pool.

One pool is shared by every concurrent record task. There is no record-level
locking: correctness relies on single-statement atomicity of UPDATE, and the
conditional claim is the only guard against double processing.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, AsyncIterator, Optional

import psycopg
from psycopg import sql
from psycopg_pool import AsyncConnectionPool, PoolTimeout

from deal_archiver.store.base import (
    StatusStore,
    StoreConnectionError,
    StoreError,
    coerce_ids,
    identifier_parts,
)
from deal_archiver.utils.logging import get_logger

if TYPE_CHECKING:
    from deal_archiver.config.settings import DatabaseConfig

logger = get_logger("store.postgres")


def _identifier(name: str) -> sql.Identifier:
    """Quoted SQL identifier; ``schema.table`` is split into its parts."""
    return sql.Identifier(*identifier_parts(name))


class PostgresStatusStore(StatusStore):
    """
    StatusStore backed by a record table in PostgreSQL.

    Table, identifier column and status column names come from the
    configuration and are composed with ``psycopg.sql`` so they are quoted.
    """

    def __init__(
        self,
        config: "DatabaseConfig",
        pool: Optional[AsyncConnectionPool] = None,
    ) -> None:
        """
        Initialize the store.

        Args:
            config: Database configuration
            pool: Pre-built pool (the store then does not open or close it)
        """
        self.config = config
        self._pool = pool
        self._owns_pool = pool is None

        table = _identifier(config.table)
        id_column = _identifier(config.id_column)
        status_column = _identifier(config.status_column)

        self._select_query = sql.SQL("SELECT {id} FROM {table} WHERE {status} = %s").format(
            id=id_column, table=table, status=status_column,
        )
        self._status_query = sql.SQL("SELECT {status} FROM {table} WHERE {id} = %s").format(
            id=id_column, table=table, status=status_column,
        )
        self._update_query = sql.SQL("UPDATE {table} SET {status} = %s WHERE {id} = %s").format(
            id=id_column, table=table, status=status_column,
        )
        self._claim_query = sql.SQL(
            "UPDATE {table} SET {status} = %s WHERE {id} = %s AND {status} = %s"
        ).format(id=id_column, table=table, status=status_column)

    async def open(self) -> None:
        """
        Open the connection pool.

        Raises:
            StoreConnectionError: If no connection could be established
        """
        if self._pool is not None:
            return

        pool = AsyncConnectionPool(
            conninfo=self.config.conninfo,
            min_size=self.config.min_pool_size,
            max_size=self.config.max_pool_size,
            timeout=self.config.timeout,
            open=False,
        )
        try:
            await pool.open(wait=True, timeout=self.config.timeout)
        except (PoolTimeout, psycopg.OperationalError) as e:
            await pool.close()
            raise StoreConnectionError(f"Failed to connect to database: {e}") from e

        self._pool = pool
        logger.info(
            "pool_opened",
            host=self.config.host,
            database=self.config.name,
            max_size=self.config.max_pool_size,
        )

    async def close(self) -> None:
        """Close the pool if this store opened it."""
        if self._pool is not None and self._owns_pool:
            await self._pool.close()
            self._pool = None
            logger.info("pool_closed")

    @asynccontextmanager
    async def _connection(self) -> AsyncIterator[psycopg.AsyncConnection]:
        if self._pool is None:
            raise StoreError("Connection pool is not open. Call open() first.")

        try:
            async with self._pool.connection() as conn:
                yield conn
        except PoolTimeout as e:
            raise StoreConnectionError(f"No database connection available: {e}") from e
        except psycopg.Error as e:
            raise StoreError(str(e)) from e

    async def ping(self) -> None:
        try:
            async with self._connection() as conn:
                await conn.execute("SELECT 1")
        except StoreError as e:
            raise StoreConnectionError(str(e)) from e

    async def select_ids(self, status: str) -> list[str]:
        async with self._connection() as conn:
            async with conn.cursor() as cur:
                await cur.execute(self._select_query, (status,))
                rows = await cur.fetchall()
        return coerce_ids(row[0] if row else None for row in rows)

    async def set_status(self, record_id: str, status: str) -> None:
        async with self._connection() as conn:
            async with conn.cursor() as cur:
                await cur.execute(self._update_query, (status, record_id))
                rowcount = cur.rowcount
            await conn.commit()

        if rowcount == 0:
            logger.warning("status_update_matched_nothing", record_id=record_id, status=status)

    async def claim(self, record_id: str, expected: str, status: str) -> bool:
        async with self._connection() as conn:
            async with conn.cursor() as cur:
                await cur.execute(self._claim_query, (status, record_id, expected))
                rowcount = cur.rowcount
            await conn.commit()
        return rowcount == 1

    async def get_status(self, record_id: str) -> Optional[str]:
        async with self._connection() as conn:
            async with conn.cursor() as cur:
                await cur.execute(self._status_query, (record_id,))
                row = await cur.fetchone()
        return None if row is None else row[0]
