"""Per-record archiving protocol."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from deal_archiver.client.archive import ArchiveClient, ArchiveError
from deal_archiver.notifications.email import Notification, Notifier
from deal_archiver.notifications.messages import archived_notification, error_notification
from deal_archiver.processor.machine import StatusMachine
from deal_archiver.processor.states import RecordState
from deal_archiver.store.base import StoreError
from deal_archiver.utils.logging import get_logger, set_record_id

logger = get_logger("processor.runner")


@dataclass
class RecordOutcome:
    """
    What one processor invocation did to one record.

    Attributes:
        record_id: Record identifier
        claimed: Whether the PENDING -> ARCHIVING claim succeeded
        final_state: State the processor tried to leave the record in
            (None if the record was never claimed)
        stuck: The final status write failed; the record is left ARCHIVING
        notified: The notification was accepted by the relay
        file: Archive file reference on success
        error: Error detail on failure
    """

    record_id: str
    claimed: bool = False
    final_state: Optional[RecordState] = None
    stuck: bool = False
    notified: bool = False
    file: str = ""
    error: str = ""

    @property
    def succeeded(self) -> bool:
        return self.final_state is RecordState.ARCHIVED

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "record_id": self.record_id,
            "claimed": self.claimed,
            "final_state": self.final_state.name if self.final_state else None,
            "stuck": self.stuck,
            "notified": self.notified,
            "file": self.file,
            "error": self.error,
        }


class RecordProcessor:
    """
    Runs one record through claim -> archive -> finalize -> notify.

    The steps for one record are strictly sequential. ``process`` never
    raises for store, archive or mail failures; it logs them and reports what
    happened in a RecordOutcome. Exactly one notification is sent per claimed
    record and none for a record that could not be claimed.
    """

    def __init__(
        self,
        machine: StatusMachine,
        client: ArchiveClient,
        notifier: Notifier,
    ) -> None:
        self.machine = machine
        self.client = client
        self.notifier = notifier

    async def process(self, record_id: str) -> RecordOutcome:
        """
        Process a single record.

        Args:
            record_id: Identifier of a record believed to be PENDING

        Returns:
            RecordOutcome for the record
        """
        set_record_id(record_id)
        outcome = RecordOutcome(record_id=record_id)

        # Step 1: claim
        try:
            outcome.claimed = await self.machine.claim(record_id)
        except StoreError as e:
            logger.error("claim_failed", record_id=record_id, error=str(e))
            return outcome

        if not outcome.claimed:
            logger.info("record_not_pending", record_id=record_id)
            return outcome

        # Step 2: archive call
        try:
            result = await self.client.archive(record_id)
        except ArchiveError as e:
            return await self._fail(outcome, str(e))
        except Exception as e:
            logger.exception("archive_unexpected_error", record_id=record_id)
            return await self._fail(outcome, f"archive request failed: {e}")

        # Step 3: interpret
        if result.success:
            return await self._succeed(outcome, result.file)

        return await self._fail(outcome, f"archive failed: {result.result}")

    async def _succeed(self, outcome: RecordOutcome, file: str) -> RecordOutcome:
        outcome.final_state = RecordState.ARCHIVED
        outcome.file = file

        try:
            await self.machine.finish(outcome.record_id, RecordState.ARCHIVED)
        except StoreError as e:
            outcome.stuck = True
            logger.error(
                "record_stuck",
                record_id=outcome.record_id,
                target_state=RecordState.ARCHIVED.name,
                error=str(e),
            )

        logger.info("record_archived", record_id=outcome.record_id, file=file)
        outcome.notified = await self._notify(
            archived_notification(outcome.record_id, file)
        )
        return outcome

    async def _fail(self, outcome: RecordOutcome, error: str) -> RecordOutcome:
        # Step 4: error state and failure notification
        outcome.final_state = RecordState.ERRORED
        outcome.error = error
        logger.error("record_failed", record_id=outcome.record_id, error=error)

        try:
            await self.machine.finish(outcome.record_id, RecordState.ERRORED)
        except StoreError as e:
            outcome.stuck = True
            logger.error(
                "record_stuck",
                record_id=outcome.record_id,
                target_state=RecordState.ERRORED.name,
                error=str(e),
            )

        outcome.notified = await self._notify(
            error_notification(outcome.record_id, error)
        )
        return outcome

    async def _notify(self, notification: Notification) -> bool:
        return await self.notifier.send(notification)
