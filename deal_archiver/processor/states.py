"""Record lifecycle states and the mapping to stored status strings."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class RecordState(Enum):
    """Lifecycle states of a record within the archiving pipeline."""

    PENDING = "pending"
    ARCHIVING = "archiving"

    # Terminal states
    ARCHIVED = "archived"
    ERRORED = "errored"

    # Any stored value the pipeline does not recognise
    UNKNOWN = "unknown"

    def is_terminal(self) -> bool:
        """Check if this is a terminal state."""
        return self in (RecordState.ARCHIVED, RecordState.ERRORED)

    def is_eligible(self) -> bool:
        """Check if a record in this state may be picked up by a cycle."""
        return self is RecordState.PENDING


# Transitions the processor may perform
TRANSITIONS: dict[RecordState, set[RecordState]] = {
    RecordState.PENDING: {RecordState.ARCHIVING},
    RecordState.ARCHIVING: {RecordState.ARCHIVED, RecordState.ERRORED},
    RecordState.ARCHIVED: set(),
    RecordState.ERRORED: set(),
    RecordState.UNKNOWN: set(),
}

# Operator recovery only, never performed by the processor
RESETTABLE: frozenset[RecordState] = frozenset({
    RecordState.ARCHIVING,
    RecordState.ARCHIVED,
    RecordState.ERRORED,
})


class TransitionError(Exception):
    """Invalid state transition."""

    def __init__(self, from_state: RecordState, to_state: RecordState) -> None:
        self.from_state = from_state
        self.to_state = to_state
        super().__init__(
            f"Invalid transition: {from_state.name} -> {to_state.name}"
        )


def can_transition(from_state: RecordState, to_state: RecordState) -> bool:
    """Check if the processor may move a record from one state to another."""
    return to_state in TRANSITIONS.get(from_state, set())


@dataclass(frozen=True)
class StatusValues:
    """
    Stored status strings for each lifecycle state.

    The record store holds free-form status strings; the pipeline only
    understands the four configured ones. Anything else maps to UNKNOWN.
    """

    pending: str
    archiving: str
    archived: str
    errored: str

    def value_for(self, state: RecordState) -> str:
        """Stored string for a state."""
        mapping = {
            RecordState.PENDING: self.pending,
            RecordState.ARCHIVING: self.archiving,
            RecordState.ARCHIVED: self.archived,
            RecordState.ERRORED: self.errored,
        }
        if state not in mapping:
            raise ValueError(f"State {state.name} has no stored status value")
        return mapping[state]

    def state_for(self, value: Optional[str]) -> RecordState:
        """State for a stored string."""
        for state in (
            RecordState.PENDING,
            RecordState.ARCHIVING,
            RecordState.ARCHIVED,
            RecordState.ERRORED,
        ):
            if value == self.value_for(state):
                return state
        return RecordState.UNKNOWN
