"""Polling scheduler."""

from deal_archiver.scheduler.orchestrator import ArchiveScheduler, CycleReport

__all__ = ["ArchiveScheduler", "CycleReport"]
