"""
MySQL status store using aiomysql.

This is the backend of the CRM's own database. As with the PostgreSQL store,
one pool is shared by all record tasks and the conditional claim relies on
single-row UPDATE atomicity.
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Any, AsyncIterator, Optional

import aiomysql

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

logger = get_logger("store.mysql")


def _quote(name: str) -> str:
    """Backtick-quoted identifier; ``schema.table`` is split into its parts."""
    return ".".join(f"`{part}`" for part in identifier_parts(name))


class MySQLStatusStore(StatusStore):
    """StatusStore backed by the record table in MySQL/MariaDB."""

    def __init__(
        self,
        config: "DatabaseConfig",
        pool: Optional[Any] = None,
    ) -> None:
        """
        Initialize the store.

        Args:
            config: Database configuration
            pool: Pre-built aiomysql pool (the store then does not close it)
        """
        self.config = config
        self._pool = pool
        self._owns_pool = pool is None

        table = _quote(config.table)
        id_column = _quote(config.id_column)
        status_column = _quote(config.status_column)

        self._select_query = f"SELECT {id_column} FROM {table} WHERE {status_column} = %s"
        self._status_query = f"SELECT {status_column} FROM {table} WHERE {id_column} = %s"
        self._update_query = f"UPDATE {table} SET {status_column} = %s WHERE {id_column} = %s"
        self._claim_query = (
            f"UPDATE {table} SET {status_column} = %s "
            f"WHERE {id_column} = %s AND {status_column} = %s"
        )

    async def open(self) -> None:
        """
        Create the connection pool.

        Raises:
            StoreConnectionError: If no connection could be established
        """
        if self._pool is not None:
            return

        try:
            self._pool = await aiomysql.create_pool(
                host=self.config.host,
                port=self.config.port,
                user=self.config.user,
                password=self.config.password,
                db=self.config.name,
                minsize=self.config.min_pool_size,
                maxsize=self.config.max_pool_size,
                connect_timeout=self.config.timeout,
                charset="utf8mb4",
                autocommit=False,
            )
        except (aiomysql.Error, OSError, asyncio.TimeoutError) as e:
            raise StoreConnectionError(f"Failed to connect to database: {e}") from e

        logger.info(
            "pool_opened",
            host=self.config.host,
            database=self.config.name,
            max_size=self.config.max_pool_size,
        )

    async def close(self) -> None:
        """Close the pool if this store created it."""
        if self._pool is not None and self._owns_pool:
            self._pool.close()
            await self._pool.wait_closed()
            self._pool = None
            logger.info("pool_closed")

    @asynccontextmanager
    async def _connection(self) -> AsyncIterator[Any]:
        if self._pool is None:
            raise StoreError("Connection pool is not open. Call open() first.")

        try:
            async with self._pool.acquire() as conn:
                yield conn
        except aiomysql.OperationalError as e:
            raise StoreConnectionError(str(e)) from e
        except aiomysql.Error as e:
            raise StoreError(str(e)) from e

    async def ping(self) -> None:
        try:
            async with self._connection() as conn:
                async with conn.cursor() as cur:
                    await cur.execute("SELECT 1")
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
