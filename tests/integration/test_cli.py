"""CLI tests with the store, archive endpoint and mail relay replaced."""

import json

import pytest
import yaml
from click.testing import CliRunner

from deal_archiver import cli as cli_module
from deal_archiver.cli import cli
from deal_archiver.pipeline import context as context_module
from deal_archiver.utils.result import ExitCode

from tests.conftest import ARCHIVE_URL, ARCHIVED, ARCHIVING, ERRORED, PENDING

pytestmark = pytest.mark.integration


@pytest.fixture
def config_path(tmp_path):
    path = tmp_path / "config.yml"
    path.write_text(yaml.safe_dump({
        "production": {"host": "db.test", "user": "archiver", "name": "crm"},
        "archive": {
            "check_interval": 5,
            "source_status": PENDING,
            "archiving_status": ARCHIVING,
            "archived_status": ARCHIVED,
            "error_status": ERRORED,
            "archive_url": ARCHIVE_URL,
        },
        "smtp": {
            "server": "smtp.test",
            "from": "robot@example.com",
            "to": "ops@example.com",
        },
    }))
    return path


@pytest.fixture
def runner(monkeypatch, store, client, notifier):
    monkeypatch.setattr(cli_module, "configure_logging", lambda **kwargs: None)
    monkeypatch.setattr(context_module, "create_store", lambda database: store)
    monkeypatch.setattr(context_module, "ArchiveClient", lambda *args, **kwargs: client)
    monkeypatch.setattr(context_module, "SmtpNotifier", lambda smtp: notifier)
    return CliRunner()


def invoke(runner, config_path, *args):
    result = runner.invoke(cli, ["--config", str(config_path), *args])
    return result, json.loads(result.stdout) if result.stdout.strip() else None


class TestCommands:
    def test_pending(self, runner, config_path, store):
        store.add("d1", PENDING)
        store.add("d2", ARCHIVED)

        result, output = invoke(runner, config_path, "pending")

        assert result.exit_code == ExitCode.SUCCESS
        assert output["record_ids"] == ["d1"]

    def test_cycle(self, runner, config_path, store, service, notifier):
        store.add("d1", PENDING)
        store.add("d2", PENDING)
        service.succeed("d1", "d1.zip")
        service.unreachable("d2")

        result, output = invoke(runner, config_path, "cycle")

        assert result.exit_code == ExitCode.SUCCESS
        assert output["archived"] == 1
        assert output["errored"] == 1
        assert store.snapshot() == {"d1": ARCHIVED, "d2": ERRORED}
        assert len(notifier.sent) == 2

    def test_reset(self, runner, config_path, store):
        store.add("d1", ARCHIVING)
        store.add("d2", ARCHIVED)

        result, output = invoke(runner, config_path, "reset", "d1", "d2")

        assert result.exit_code == ExitCode.SUCCESS
        assert output["reset"] == {"d1": True, "d2": False}
        assert store.snapshot() == {"d1": PENDING, "d2": ARCHIVED}

    def test_check(self, runner, config_path):
        result, output = invoke(runner, config_path, "check")

        assert result.exit_code == ExitCode.SUCCESS
        assert output["archive_url"] == ARCHIVE_URL

    def test_check_store_unreachable(self, runner, config_path, store):
        store.fail_ping = True

        result, output = invoke(runner, config_path, "check")

        assert result.exit_code == ExitCode.GUARD_STORE
        assert output["status"] == "error"

    def test_invalid_config(self, runner, tmp_path):
        path = tmp_path / "config.yml"
        path.write_text(yaml.safe_dump({"archive": {"archive_url": "nowhere"}}))

        result, output = invoke(runner, path, "check")

        assert result.exit_code == ExitCode.CONFIG_INVALID
        assert output["status"] == "error"

    def test_missing_config(self, runner, tmp_path):
        result, _ = invoke(runner, tmp_path / "absent.yml", "pending")
        assert result.exit_code == ExitCode.CONFIG_INVALID
