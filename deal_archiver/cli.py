"""CLI entry point for deal-archiver."""

from __future__ import annotations

import asyncio
import json
import signal
import sys
from pathlib import Path
from typing import Any, Awaitable, Callable, Optional

import click

from deal_archiver import __version__
from deal_archiver.config.settings import DEFAULT_CONFIG_PATH, ArchiverConfig, load_config
from deal_archiver.pipeline.context import ArchiverContext
from deal_archiver.pipeline.guards import run_guards
from deal_archiver.processor.states import RESETTABLE, RecordState
from deal_archiver.store.base import StoreError
from deal_archiver.utils.logging import configure_logging, get_logger
from deal_archiver.utils.result import ExitCode

RESET_CHOICES = sorted(state.value for state in RESETTABLE)


class Context:
    """CLI context for sharing state between commands."""

    def __init__(
        self,
        config_path: Path,
        log_level: Optional[str],
        log_format: Optional[str],
    ) -> None:
        self.config_path = config_path
        self.log_level = log_level
        self.log_format = log_format
        self.logger = get_logger("cli")

    def load(self) -> ArchiverConfig:
        """Load and validate configuration, exiting on failure."""
        result = load_config(self.config_path)
        if result.is_err():
            error = result.unwrap_err()
            self.logger.error("config_invalid", field=error.field, message=error.message)
            output_json({"status": "error", "message": str(error)})
            sys.exit(ExitCode.CONFIG_INVALID)

        config = result.unwrap()
        configure_logging(
            level=self.log_level or config.logging.level,
            format_type=self.log_format or config.logging.format,
        )
        return config


pass_context = click.make_pass_decorator(Context)


def output_json(data: dict) -> None:
    """Output JSON to stdout."""
    click.echo(json.dumps(data, indent=2, default=str))


async def _with_context(
    config: ArchiverConfig,
    body: Callable[[ArchiverContext], Awaitable[int]],
    guards: bool = False,
) -> int:
    """Open the component graph, optionally run guards, run ``body``, close."""
    context = ArchiverContext.build(config)

    try:
        await context.open()
    except StoreError as e:
        output_json({"status": "error", "message": f"Cannot open status store: {e}"})
        await context.client.close()
        return ExitCode.GUARD_STORE

    try:
        if guards:
            result = await run_guards(config, context.store)
            if result.is_err():
                error = result.unwrap_err()
                output_json({"status": "error", "message": str(error)})
                return error.code
        return await body(context)
    finally:
        await context.close()


@click.group()
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=False, dir_okay=False, path_type=Path),
    default=DEFAULT_CONFIG_PATH,
    envvar="DEAL_ARCHIVER_CONFIG",
    help="Path to the YAML configuration file",
)
@click.option(
    "--log-level",
    type=click.Choice(["debug", "info", "warn", "error"], case_sensitive=False),
    default=None,
    help="Logging level (overrides the configuration)",
)
@click.option(
    "--log-format",
    type=click.Choice(["json", "text"], case_sensitive=False),
    default=None,
    help="Log format (overrides the configuration)",
)
@click.version_option(version=__version__)
@click.pass_context
def cli(
    ctx: click.Context,
    config_path: Path,
    log_level: Optional[str],
    log_format: Optional[str],
) -> None:
    """
    Deal Archiver - moves deals marked for archival through the archiving service.

    Polls the CRM database for deals in the pending archival status, asks the
    archiving service to archive each one and emails the operator the outcome.
    """
    configure_logging(level=log_level or "info", format_type=log_format or "json")

    ctx.obj = Context(
        config_path=config_path,
        log_level=log_level,
        log_format=log_format,
    )


@cli.command()
@click.option(
    "--run-now",
    is_flag=True,
    default=False,
    help="Start the first cycle immediately instead of after one interval",
)
@pass_context
def run(ctx: Context, run_now: bool) -> None:
    """Poll and archive until interrupted."""
    config = ctx.load()

    async def serve(context: ArchiverContext) -> int:
        scheduler = context.scheduler
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, scheduler.stop)
            except NotImplementedError:
                # Windows event loops have no signal handlers
                pass

        try:
            await scheduler.run_forever(run_immediately=run_now)
        finally:
            await scheduler.shutdown()
        return ExitCode.SUCCESS

    ctx.logger.info(
        "run_started",
        interval=config.archive.check_interval,
        max_concurrency=config.archive.max_concurrency,
    )
    sys.exit(asyncio.run(_with_context(config, serve, guards=True)))


@cli.command()
@pass_context
def cycle(ctx: Context) -> None:
    """Run a single polling cycle and print its report."""
    config = ctx.load()

    async def once(context: ArchiverContext) -> int:
        report = await context.scheduler.run_cycle()
        output_json({
            "status": "error" if report.aborted else "success",
            **report.to_dict(),
        })
        return ExitCode.GENERAL_ERROR if report.aborted else ExitCode.SUCCESS

    sys.exit(asyncio.run(_with_context(config, once, guards=True)))


@cli.command()
@pass_context
def pending(ctx: Context) -> None:
    """List records eligible for archiving."""
    config = ctx.load()

    async def list_pending(context: ArchiverContext) -> int:
        try:
            ids = await context.store.select_ids(config.archive.source_status)
        except StoreError as e:
            output_json({"status": "error", "message": f"Query failed: {e}"})
            return ExitCode.GENERAL_ERROR

        output_json({
            "status": "success",
            "pending_status": config.archive.source_status,
            "count": len(ids),
            "record_ids": ids,
        })
        return ExitCode.SUCCESS

    sys.exit(asyncio.run(_with_context(config, list_pending)))


@cli.command()
@click.argument("record_ids", nargs=-1, required=True)
@click.option(
    "--from-state",
    type=click.Choice(RESET_CHOICES, case_sensitive=False),
    default=RecordState.ARCHIVING.value,
    show_default=True,
    help="Only reset records currently in this state",
)
@pass_context
def reset(ctx: Context, record_ids: tuple[str, ...], from_state: str) -> None:
    """Put records back to pending so the next cycle retries them."""
    config = ctx.load()
    state = RecordState(from_state.lower())

    async def reset_records(context: ArchiverContext) -> int:
        results: dict[str, Any] = {}
        failed = False
        for record_id in record_ids:
            try:
                results[record_id] = await context.machine.reset(record_id, state)
            except StoreError as e:
                results[record_id] = f"error: {e}"
                failed = True

        output_json({
            "status": "error" if failed else "success",
            "from_state": state.name,
            "reset": results,
        })
        return ExitCode.GENERAL_ERROR if failed else ExitCode.SUCCESS

    sys.exit(asyncio.run(_with_context(config, reset_records)))


@cli.command()
@pass_context
def check(ctx: Context) -> None:
    """Validate configuration and store connectivity."""
    config = ctx.load()

    async def report(context: ArchiverContext) -> int:
        output_json({
            "status": "success",
            "archive_url": config.archive.archive_url,
            "check_interval": config.archive.check_interval,
            "statuses": {
                "pending": config.archive.source_status,
                "archiving": config.archive.archiving_status,
                "archived": config.archive.archived_status,
                "error": config.archive.error_status,
            },
            "database": {
                "driver": config.database.driver,
                "host": config.database.host,
                "name": config.database.name,
                "table": config.database.table,
            },
            "smtp": {"server": config.smtp.server, "to": config.smtp.to_addr},
        })
        return ExitCode.SUCCESS

    sys.exit(asyncio.run(_with_context(config, report, guards=True)))


@cli.command("notify-test")
@pass_context
def notify_test(ctx: Context) -> None:
    """Send a test email to the operator address."""
    from deal_archiver.notifications.email import SmtpNotifier
    from deal_archiver.notifications.messages import probe_notification

    config = ctx.load()
    sent = asyncio.run(SmtpNotifier(config.smtp).send(probe_notification()))

    output_json({
        "status": "success" if sent else "error",
        "to": config.smtp.to_addr,
    })
    sys.exit(ExitCode.SUCCESS if sent else ExitCode.GENERAL_ERROR)


def main() -> None:
    """Main entry point."""
    try:
        cli()
    except Exception as e:
        logger = get_logger("cli")
        logger.error("cli_error", error=str(e))
        sys.exit(2)


if __name__ == "__main__":
    main()
