"""Record state machine over a status store."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from deal_archiver.processor.states import (
    RESETTABLE,
    RecordState,
    StatusValues,
    TransitionError,
    can_transition,
)
from deal_archiver.store.base import StatusStore, StoreError
from deal_archiver.utils.logging import get_logger

logger = get_logger("processor.machine")


class StatusMachine:
    """
    Applies lifecycle transitions to records in the status store.

    The machine only knows record identifiers; the store holds the actual
    status strings. Every write goes through ``TRANSITIONS`` so the processor
    cannot move a record along an edge the lifecycle does not have.
    """

    def __init__(self, store: StatusStore, statuses: StatusValues) -> None:
        """
        Initialize the machine.

        Args:
            store: Backing status store (shared by all record tasks)
            statuses: Stored strings for each state
        """
        self.store = store
        self.statuses = statuses
        self.stats = ProcessingStats()

    async def pending_ids(self) -> list[str]:
        """
        Identifiers of every record eligible for archiving.

        Raises:
            StoreError: If the query fails
        """
        ids = await self.store.select_ids(self.statuses.pending)
        self.stats.selected += len(ids)
        return ids

    async def claim(self, record_id: str) -> bool:
        """
        Move a record from PENDING to ARCHIVING if it is still PENDING.

        Returns:
            True if this caller now owns the record

        Raises:
            StoreError: If the write fails (record stays PENDING)
        """
        try:
            claimed = await self.store.claim(
                record_id,
                self.statuses.pending,
                self.statuses.archiving,
            )
        except StoreError:
            self.stats.write_failures += 1
            raise

        if claimed:
            self.stats.claimed += 1
            logger.info(
                "state_transition",
                record_id=record_id,
                from_state=RecordState.PENDING.name,
                to_state=RecordState.ARCHIVING.name,
            )
        else:
            self.stats.skipped += 1

        return claimed

    async def finish(self, record_id: str, new_state: RecordState) -> None:
        """
        Move an owned record from ARCHIVING to a terminal state.

        Args:
            record_id: Record identifier
            new_state: ARCHIVED or ERRORED

        Raises:
            TransitionError: If new_state is not reachable from ARCHIVING
            StoreError: If the write fails (record stays ARCHIVING)
        """
        if not can_transition(RecordState.ARCHIVING, new_state):
            raise TransitionError(RecordState.ARCHIVING, new_state)

        try:
            await self.store.set_status(record_id, self.statuses.value_for(new_state))
        except StoreError:
            self.stats.write_failures += 1
            self.stats.stuck += 1
            raise

        if new_state is RecordState.ARCHIVED:
            self.stats.archived += 1
        else:
            self.stats.errored += 1

        logger.info(
            "state_transition",
            record_id=record_id,
            from_state=RecordState.ARCHIVING.name,
            to_state=new_state.name,
        )

    async def current_state(self, record_id: str) -> Optional[RecordState]:
        """
        Current state of a record, None if it does not exist.

        Raises:
            StoreError: If the query fails
        """
        value = await self.store.get_status(record_id)
        if value is None:
            return None
        return self.statuses.state_for(value)

    async def reset(self, record_id: str, from_state: RecordState) -> bool:
        """
        Operator recovery: put a record back to PENDING.

        Only applies if the record is currently in ``from_state``, so a record
        that a running cycle is still working on is not disturbed unless the
        operator explicitly resets ARCHIVING.

        Returns:
            True if the record was reset

        Raises:
            ValueError: If from_state cannot be reset
            StoreError: If the write fails
        """
        if from_state not in RESETTABLE:
            raise ValueError(f"Records in {from_state.name} cannot be reset")

        reset = await self.store.claim(
            record_id,
            self.statuses.value_for(from_state),
            self.statuses.pending,
        )
        if reset:
            logger.warning(
                "record_reset",
                record_id=record_id,
                from_state=from_state.name,
                to_state=RecordState.PENDING.name,
            )
        return reset


class ProcessingStats:
    """Cumulative counters for the life of one machine."""

    def __init__(self) -> None:
        self.selected: int = 0
        self.claimed: int = 0
        self.skipped: int = 0
        self.archived: int = 0
        self.errored: int = 0
        self.stuck: int = 0
        self.write_failures: int = 0
        self.started_at: datetime = datetime.now(timezone.utc)

    @property
    def completed(self) -> int:
        """Records that reached a terminal state."""
        return self.archived + self.errored

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "selected": self.selected,
            "claimed": self.claimed,
            "skipped": self.skipped,
            "archived": self.archived,
            "errored": self.errored,
            "stuck": self.stuck,
            "write_failures": self.write_failures,
            "completed": self.completed,
            "started_at": self.started_at.isoformat(),
        }
