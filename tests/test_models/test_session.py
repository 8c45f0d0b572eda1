"""Tests for the session data model and its wire form"""

import pytest
from pydantic import ValidationError

from models.session import SessionState, SpeakingTurn
from models.slot import ActiveSlot, SlotKind
from tests.factories import DelegateFactory, QueueEntryFactory, ResponderFactory


def make_turn(**overrides) -> SpeakingTurn:
    fields = {
        "id": "t1",
        "name": "Ola Nordmann",
        "base_duration_sec": 120,
        "start_time_ms": 1000,
        "end_time_ms": 121_000,
    }
    fields.update(overrides)
    return SpeakingTurn(**fields)


class TestSessionState:
    """Test SessionState defaults and serialization"""

    def test_defaults(self):
        """Test an empty session uses configured durations"""
        state = SessionState()

        assert state.version == 0
        assert state.queue == ()
        assert state.current_speaker is None
        assert state.duration_for(SlotKind.OPENING) == 120
        assert state.duration_for(SlotKind.REBUTTAL) == 60
        assert state.duration_for(SlotKind.REPLY_TO_REBUTTAL) == 30

    def test_wire_form_uses_camel_case(self):
        """Test snapshots serialize with camelCase keys"""
        entry = QueueEntryFactory(kind=SlotKind.REBUTTAL)
        state = SessionState(queue=(entry,), current_speaker=make_turn(), version=3)

        wire = state.to_wire()

        assert set(wire) == {"delegates", "queue", "currentSpeaker", "typeDurations", "version", "updatedAt"}
        assert wire["queue"][0]["type"] == "REBUTTAL"
        assert wire["queue"][0]["delegateNumber"] == entry.delegate_number
        assert wire["currentSpeaker"]["endTimeMs"] == 121_000
        assert wire["currentSpeaker"]["activeSlot"] == {"kind": "OPENING", "index": 0}
        assert wire["currentSpeaker"]["rebuttals"] == [None, None]

    def test_wire_form_is_accepted_back(self):
        """Test a wire snapshot validates into an equal state"""
        delegate = DelegateFactory(number="7")
        turn = make_turn(
            active_slot=ActiveSlot(kind=SlotKind.REBUTTAL, index=1),
            rebuttals=(None, ResponderFactory(name="Kari")),
        )
        state = SessionState(delegates={"7": delegate}, current_speaker=turn, version=9, updated_at=5)

        assert SessionState.model_validate(state.to_wire()) == state

    def test_states_are_immutable(self):
        """Test snapshots cannot be mutated in place"""
        state = SessionState()
        with pytest.raises(ValidationError):
            state.version = 4

    def test_negative_version_rejected(self):
        """Test versions are non-negative"""
        with pytest.raises(ValidationError):
            SessionState(version=-1)
