"""Wiring of the archiver components from one configuration."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

from deal_archiver.client.archive import ArchiveClient
from deal_archiver.config.settings import ArchiverConfig, DatabaseConfig
from deal_archiver.notifications.email import Notifier, SmtpNotifier
from deal_archiver.processor.machine import StatusMachine
from deal_archiver.processor.runner import RecordProcessor
from deal_archiver.scheduler.orchestrator import ArchiveScheduler
from deal_archiver.store.base import StatusStore
from deal_archiver.store.mysql import MySQLStatusStore
from deal_archiver.store.postgres import PostgresStatusStore
from deal_archiver.utils.logging import get_logger

logger = get_logger("pipeline.context")


def create_store(database: DatabaseConfig) -> StatusStore:
    """Status store for the configured driver."""
    if database.driver == "postgres":
        return PostgresStatusStore(database)
    if database.driver == "mysql":
        return MySQLStatusStore(database)
    raise ValueError(f"Unsupported database driver: {database.driver!r}")


@dataclass
class ArchiverContext:
    """
    Every long-lived component of the archiver, built once at startup.

    Components receive their collaborators through their constructors; no
    module keeps configuration or a store handle in global state.
    """

    config: ArchiverConfig
    store: StatusStore
    client: ArchiveClient
    notifier: Notifier
    machine: StatusMachine
    processor: RecordProcessor
    scheduler: ArchiveScheduler

    @classmethod
    def build(
        cls,
        config: ArchiverConfig,
        store: Optional[StatusStore] = None,
        client: Optional[ArchiveClient] = None,
        notifier: Optional[Notifier] = None,
    ) -> "ArchiverContext":
        """
        Build the component graph.

        Args:
            config: Validated configuration
            store: Status store (default: from ``config.database.driver``)
            client: Archive client (default: from ``config.archive``)
            notifier: Notifier (default: SMTP from ``config.smtp``)

        Returns:
            ArchiverContext; call ``open`` before use
        """
        store = store or create_store(config.database)
        client = client or ArchiveClient(
            config.archive.archive_url,
            query_param=config.archive.query_param,
            timeout=config.archive.request_timeout,
        )
        notifier = notifier or SmtpNotifier(config.smtp)

        machine = StatusMachine(store, config.archive.status_values())
        processor = RecordProcessor(machine, client, notifier)
        scheduler = ArchiveScheduler(
            machine,
            processor,
            interval=config.archive.check_interval,
            max_concurrency=config.archive.max_concurrency,
        )

        return cls(
            config=config,
            store=store,
            client=client,
            notifier=notifier,
            machine=machine,
            processor=processor,
            scheduler=scheduler,
        )

    async def open(self) -> None:
        """Open connections to the store."""
        await self.store.open()

    async def close(self) -> None:
        """Release the store and the HTTP client."""
        try:
            await self.client.close()
        finally:
            await self.store.close()
        logger.debug("context_closed")

    async def __aenter__(self) -> "ArchiverContext":
        await self.open()
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()
