"""Tests for record lifecycle states."""

import pytest

from deal_archiver.processor.states import (
    RESETTABLE,
    TRANSITIONS,
    RecordState,
    StatusValues,
    TransitionError,
    can_transition,
)


class TestRecordState:
    def test_terminal_states(self):
        assert RecordState.ARCHIVED.is_terminal()
        assert RecordState.ERRORED.is_terminal()
        assert not RecordState.PENDING.is_terminal()
        assert not RecordState.ARCHIVING.is_terminal()

    def test_only_pending_is_eligible(self):
        eligible = [state for state in RecordState if state.is_eligible()]
        assert eligible == [RecordState.PENDING]


class TestTransitions:
    @pytest.mark.parametrize(
        "from_state,to_state",
        [
            (RecordState.PENDING, RecordState.ARCHIVING),
            (RecordState.ARCHIVING, RecordState.ARCHIVED),
            (RecordState.ARCHIVING, RecordState.ERRORED),
        ],
    )
    def test_allowed(self, from_state, to_state):
        assert can_transition(from_state, to_state)

    @pytest.mark.parametrize(
        "from_state,to_state",
        [
            (RecordState.PENDING, RecordState.ARCHIVED),
            (RecordState.PENDING, RecordState.ERRORED),
            (RecordState.ARCHIVED, RecordState.PENDING),
            (RecordState.ERRORED, RecordState.ARCHIVING),
            (RecordState.UNKNOWN, RecordState.ARCHIVING),
        ],
    )
    def test_rejected(self, from_state, to_state):
        assert not can_transition(from_state, to_state)

    def test_terminal_states_have_no_outgoing_edges(self):
        assert TRANSITIONS[RecordState.ARCHIVED] == set()
        assert TRANSITIONS[RecordState.ERRORED] == set()

    def test_pending_is_not_resettable(self):
        assert RecordState.PENDING not in RESETTABLE
        assert RecordState.UNKNOWN not in RESETTABLE

    def test_transition_error_message(self):
        error = TransitionError(RecordState.ARCHIVED, RecordState.PENDING)
        assert str(error) == "Invalid transition: ARCHIVED -> PENDING"


class TestStatusValues:
    def test_round_trip_for_known_states(self, statuses):
        for state in (
            RecordState.PENDING,
            RecordState.ARCHIVING,
            RecordState.ARCHIVED,
            RecordState.ERRORED,
        ):
            assert statuses.state_for(statuses.value_for(state)) is state

    def test_unrecognised_values_are_unknown(self, statuses):
        assert statuses.state_for("Whatever") is RecordState.UNKNOWN
        assert statuses.state_for("") is RecordState.UNKNOWN
        assert statuses.state_for(None) is RecordState.UNKNOWN

    def test_comparison_is_exact(self):
        statuses = StatusValues("pending", "archiving", "archived", "error")
        assert statuses.state_for("Pending") is RecordState.UNKNOWN
        assert statuses.state_for("pending ") is RecordState.UNKNOWN

    def test_unknown_has_no_stored_value(self, statuses):
        with pytest.raises(ValueError):
            statuses.value_for(RecordState.UNKNOWN)
