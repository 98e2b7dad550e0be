"""Tests for the MySQL status store against a stubbed aiomysql pool."""

from contextlib import asynccontextmanager

import aiomysql
import pytest

from deal_archiver.config.settings import DatabaseConfig
from deal_archiver.pipeline.context import create_store
from deal_archiver.store.base import StoreConnectionError, StoreError
from deal_archiver.store.mysql import MySQLStatusStore
from deal_archiver.store.postgres import PostgresStatusStore


class FakeCursor:
    def __init__(self, rows=None, rowcount=0, error=None):
        self.rows = rows or []
        self.rowcount = rowcount
        self.error = error
        self.executed = []

    async def execute(self, query, params=None):
        if self.error is not None:
            raise self.error
        self.executed.append((query, params))

    async def fetchall(self):
        return self.rows

    async def fetchone(self):
        return self.rows[0] if self.rows else None

    async def __aenter__(self):
        return self

    async def __aexit__(self, *args):
        return None


class FakeConnection:
    def __init__(self, cursor):
        self._cursor = cursor
        self.commits = 0

    def cursor(self):
        return self._cursor

    async def commit(self):
        self.commits += 1


class FakePool:
    def __init__(self, connection):
        self._connection = connection

    @asynccontextmanager
    async def acquire(self):
        yield self._connection


def make_store(cursor=None, **config):
    cursor = cursor or FakeCursor()
    connection = FakeConnection(cursor)
    store = MySQLStatusStore(DatabaseConfig(**config), pool=FakePool(connection))
    return store, connection, cursor


class TestQueries:
    def test_identifiers_are_backtick_quoted(self):
        store, _, _ = make_store(table="crm.vtiger_potential")

        assert store._claim_query == (
            "UPDATE `crm`.`vtiger_potential` SET `archive_status` = %s "
            "WHERE `potentialid` = %s AND `archive_status` = %s"
        )
        assert store._select_query == (
            "SELECT `potentialid` FROM `crm`.`vtiger_potential` WHERE `archive_status` = %s"
        )

    @pytest.mark.asyncio
    async def test_select_ids(self):
        store, _, cursor = make_store(FakeCursor(rows=[(101,), (102,)]))

        assert await store.select_ids("ToArchive") == ["101", "102"]
        assert cursor.executed == [(store._select_query, ("ToArchive",))]

    @pytest.mark.asyncio
    async def test_claim(self):
        store, connection, cursor = make_store(FakeCursor(rowcount=1))

        assert await store.claim("101", "ToArchive", "Archiving")
        assert cursor.executed == [(store._claim_query, ("Archiving", "101", "ToArchive"))]
        assert connection.commits == 1

    @pytest.mark.asyncio
    async def test_claim_lost(self):
        store, _, _ = make_store(FakeCursor(rowcount=0))
        assert not await store.claim("101", "ToArchive", "Archiving")

    @pytest.mark.asyncio
    async def test_set_status_and_get_status(self):
        store, connection, cursor = make_store(FakeCursor(rows=[("Archived",)], rowcount=1))

        await store.set_status("101", "Archived")

        assert cursor.executed == [(store._update_query, ("Archived", "101"))]
        assert connection.commits == 1
        assert await store.get_status("101") == "Archived"


class TestErrors:
    @pytest.mark.asyncio
    async def test_driver_error_becomes_store_error(self):
        store, _, _ = make_store(FakeCursor(error=aiomysql.ProgrammingError(1146, "no such table")))

        with pytest.raises(StoreError, match="no such table"):
            await store.select_ids("ToArchive")

    @pytest.mark.asyncio
    async def test_lost_connection_becomes_connection_error(self):
        store, _, _ = make_store(FakeCursor(error=aiomysql.OperationalError(2013, "lost connection")))

        with pytest.raises(StoreConnectionError):
            await store.claim("101", "ToArchive", "Archiving")

    @pytest.mark.asyncio
    async def test_ping_failure(self):
        store, _, _ = make_store(FakeCursor(error=aiomysql.OperationalError(2003, "refused")))

        with pytest.raises(StoreConnectionError):
            await store.ping()

    @pytest.mark.asyncio
    async def test_not_opened(self):
        store = MySQLStatusStore(DatabaseConfig())
        with pytest.raises(StoreError, match="not open"):
            await store.get_status("101")

    def test_rejects_bad_identifiers(self):
        with pytest.raises(ValueError):
            MySQLStatusStore(DatabaseConfig(status_column="status` = 1; --"))


class TestCreateStore:
    def test_mysql_is_default(self):
        assert isinstance(create_store(DatabaseConfig()), MySQLStatusStore)

    def test_postgres(self):
        assert isinstance(create_store(DatabaseConfig(driver="postgres")), PostgresStatusStore)

    def test_unknown_driver(self):
        with pytest.raises(ValueError):
            create_store(DatabaseConfig(driver="oracle"))
