"""Record archiving state machine.

Each record moves through a small lifecycle while it is archived:

    PENDING -> ARCHIVING -> ARCHIVED
                        \\-> ERRORED

ARCHIVED and ERRORED are terminal for the pipeline. A record whose final
status write fails stays ARCHIVING until an operator resets it; nothing in
the pipeline retries on its own.
"""

from deal_archiver.processor.machine import ProcessingStats, StatusMachine
from deal_archiver.processor.runner import RecordOutcome, RecordProcessor
from deal_archiver.processor.states import (
    RESETTABLE,
    TRANSITIONS,
    RecordState,
    StatusValues,
    TransitionError,
    can_transition,
)

__all__ = [
    # States
    "RecordState",
    "StatusValues",
    "TransitionError",
    "TRANSITIONS",
    "RESETTABLE",
    "can_transition",
    # Machine
    "StatusMachine",
    "ProcessingStats",
    # Runner
    "RecordProcessor",
    "RecordOutcome",
]
