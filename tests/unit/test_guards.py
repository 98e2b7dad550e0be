"""Tests for startup guards."""

import pytest

from deal_archiver.config.settings import ArchiverConfig
from deal_archiver.pipeline.guards import StartupGuards, run_guards
from deal_archiver.store.memory import InMemoryStatusStore
from deal_archiver.utils.result import ExitCode


@pytest.fixture
def config():
    config = ArchiverConfig()
    config.archive.archive_url = "https://archive.internal/run"
    return config


class TestStartupGuards:
    @pytest.mark.asyncio
    async def test_all_pass(self, config):
        assert (await run_guards(config, InMemoryStatusStore())).is_ok()

    @pytest.mark.asyncio
    async def test_store_unreachable(self, config):
        store = InMemoryStatusStore()
        store.fail_ping = True

        result = await run_guards(config, store)

        assert result.is_err()
        assert result.unwrap_err().code == ExitCode.GUARD_STORE

    def test_archive_url(self, config):
        config.archive.archive_url = "not a url"
        result = StartupGuards(config, InMemoryStatusStore()).check_archive_url()
        assert result.unwrap_err().code == ExitCode.GUARD_ARCHIVE_URL
