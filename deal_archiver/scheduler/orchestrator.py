"""Periodic polling and concurrent fan-out of eligible records."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

from deal_archiver.processor.machine import StatusMachine
from deal_archiver.processor.runner import RecordOutcome, RecordProcessor
from deal_archiver.processor.states import RecordState
from deal_archiver.store.base import StoreError
from deal_archiver.utils.logging import get_logger, new_cycle_id, set_cycle_id

logger = get_logger("scheduler.orchestrator")


@dataclass
class CycleReport:
    """Summary of one polling cycle."""

    cycle_id: str
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    completed_at: Optional[datetime] = None
    selected: int = 0
    aborted: bool = False
    error: Optional[str] = None
    outcomes: list[RecordOutcome] = field(default_factory=list)

    @property
    def archived(self) -> int:
        return sum(1 for o in self.outcomes if o.final_state is RecordState.ARCHIVED)

    @property
    def errored(self) -> int:
        return sum(1 for o in self.outcomes if o.final_state is RecordState.ERRORED)

    @property
    def skipped(self) -> int:
        return sum(1 for o in self.outcomes if not o.claimed)

    @property
    def stuck(self) -> int:
        return sum(1 for o in self.outcomes if o.stuck)

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "cycle_id": self.cycle_id,
            "started_at": self.started_at.isoformat(),
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "selected": self.selected,
            "aborted": self.aborted,
            "error": self.error,
            "archived": self.archived,
            "errored": self.errored,
            "skipped": self.skipped,
            "stuck": self.stuck,
            "outcomes": [o.to_dict() for o in self.outcomes],
        }


class ArchiveScheduler:
    """
    Drives polling cycles on a fixed interval.

    Each cycle queries the store for PENDING records and runs one task per
    record, bounded by a semaphore shared by all cycles. A cycle runs in the
    background so the next tick is not delayed by a slow one; two cycles may
    therefore overlap, and the conditional claim keeps them from processing
    the same record twice. ``shutdown`` is the join point that waits for
    every in-flight cycle.
    """

    def __init__(
        self,
        machine: StatusMachine,
        processor: RecordProcessor,
        interval: float,
        max_concurrency: int = 16,
    ) -> None:
        """
        Initialize the scheduler.

        Args:
            machine: Status machine used for the eligibility query
            processor: Processor for individual records
            interval: Seconds between cycle starts
            max_concurrency: Records processed at once, across all cycles
        """
        if interval <= 0:
            raise ValueError(f"interval must be positive, got {interval}")
        if max_concurrency < 1:
            raise ValueError(f"max_concurrency must be at least 1, got {max_concurrency}")

        self.machine = machine
        self.processor = processor
        self.interval = interval
        self.max_concurrency = max_concurrency

        self._semaphore = asyncio.Semaphore(max_concurrency)
        self._stop_event = asyncio.Event()
        self._cycles: set[asyncio.Task] = set()
        self.reports: list[CycleReport] = []
        self.max_reports = 100

    @property
    def in_flight(self) -> int:
        """Number of cycles still running."""
        return len(self._cycles)

    async def run_cycle(self) -> CycleReport:
        """
        Run one polling cycle to completion.

        Returns:
            CycleReport for the cycle
        """
        cycle_id = new_cycle_id()
        set_cycle_id(cycle_id)
        report = CycleReport(cycle_id=cycle_id)

        try:
            record_ids = await self.machine.pending_ids()
        except StoreError as e:
            logger.error("cycle_query_failed", error=str(e))
            report.aborted = True
            report.error = str(e)
            report.completed_at = datetime.now(timezone.utc)
            self._remember(report)
            return report

        unique_ids = list(dict.fromkeys(record_ids))
        if len(unique_ids) != len(record_ids):
            logger.warning(
                "duplicate_record_ids",
                selected=len(record_ids),
                unique=len(unique_ids),
            )
        report.selected = len(unique_ids)

        logger.info(
            "cycle_started",
            records=len(unique_ids),
            max_concurrency=self.max_concurrency,
        )

        results = await asyncio.gather(
            *(self._run_single_record(record_id) for record_id in unique_ids),
            return_exceptions=True,
        )

        for record_id, result in zip(unique_ids, results):
            if isinstance(result, RecordOutcome):
                report.outcomes.append(result)
            else:
                # Cancelled tasks land here
                logger.error("record_task_failed", record_id=record_id, error=repr(result))
                report.outcomes.append(RecordOutcome(record_id=record_id, error=repr(result)))

        report.completed_at = datetime.now(timezone.utc)
        self._remember(report)

        logger.info(
            "cycle_completed",
            selected=report.selected,
            archived=report.archived,
            errored=report.errored,
            skipped=report.skipped,
            stuck=report.stuck,
        )
        return report

    async def _run_single_record(self, record_id: str) -> RecordOutcome:
        """Process one record under the concurrency ceiling."""
        async with self._semaphore:
            try:
                return await self.processor.process(record_id)
            except Exception as e:
                logger.exception("record_processing_error", record_id=record_id)
                return RecordOutcome(record_id=record_id, error=str(e))

    def _remember(self, report: CycleReport) -> None:
        self.reports.append(report)
        del self.reports[:-self.max_reports]

    def start_cycle(self) -> asyncio.Task:
        """Launch a cycle in the background and track it until it finishes."""
        task = asyncio.create_task(self.run_cycle())
        self._cycles.add(task)
        task.add_done_callback(self._cycles.discard)
        return task

    async def run_forever(self, run_immediately: bool = False) -> None:
        """
        Start a cycle every ``interval`` seconds until ``stop`` is called.

        Args:
            run_immediately: Start the first cycle now instead of after one interval
        """
        loop = asyncio.get_running_loop()
        next_tick = loop.time() if run_immediately else loop.time() + self.interval

        logger.info(
            "scheduler_started",
            interval=self.interval,
            max_concurrency=self.max_concurrency,
        )

        while not self._stop_event.is_set():
            delay = next_tick - loop.time()
            if delay > 0:
                try:
                    await asyncio.wait_for(self._stop_event.wait(), timeout=delay)
                    break
                except asyncio.TimeoutError:
                    pass

            if self.in_flight:
                logger.info("cycle_overlap", in_flight=self.in_flight)
            self.start_cycle()

            # Missed ticks are dropped rather than run back to back
            next_tick += self.interval
            while next_tick <= loop.time():
                next_tick += self.interval

        logger.info("scheduler_stopped", in_flight=self.in_flight)

    def stop(self) -> None:
        """Stop starting new cycles."""
        self._stop_event.set()

    async def shutdown(self) -> None:
        """Stop and wait for every in-flight cycle to finish."""
        self.stop()
        if self._cycles:
            logger.info("waiting_for_cycles", in_flight=len(self._cycles))
            await asyncio.gather(*list(self._cycles), return_exceptions=True)
        logger.info(
            "scheduler_shutdown_complete",
            stats=self.machine.stats.to_dict(),
        )
