"""Session data model: delegates, queue, current speaker"""

from pydantic import Field

from core.config import get_settings
from models.base import WireModel
from models.slot import OPENING_SLOT, REBUTTAL_SLOTS, ActiveSlot, SlotKind


def default_type_durations() -> dict[SlotKind, int]:
    """Slot durations in seconds, from configuration."""
    settings = get_settings()
    return {
        SlotKind.OPENING: settings.default_opening_seconds,
        SlotKind.REBUTTAL: settings.default_rebuttal_seconds,
        SlotKind.REPLY_TO_REBUTTAL: settings.default_reply_seconds,
    }


class Delegate(WireModel):
    """Roster delegate, keyed by number"""

    number: str
    name: str = ""
    organization: str = ""


class Responder(WireModel):
    """Person attached to a rebuttal or reply-to-rebuttal slot"""

    name: str = ""
    organization: str = ""


Rebuttals = tuple[Responder | None, Responder | None]
NO_REBUTTALS: Rebuttals = (None,) * REBUTTAL_SLOTS


class QueueEntry(WireModel):
    """Request to speak, waiting in the queue"""

    id: str
    delegate_number: str = ""
    name: str
    organization: str = ""
    kind: SlotKind = Field(default=SlotKind.OPENING, alias="type")
    requested_at: int = 0


class TimerFields(WireModel):
    """
    Countdown anchored to wall-clock milliseconds.

    Remaining time is derived from these fields, never counted down, so every
    replica computes the same value from the same snapshot.
    """

    base_duration_sec: int
    start_time_ms: int
    end_time_ms: int
    paused: bool = False
    paused_at_ms: int | None = None
    accumulated_pause_ms: int = 0


class SpeakingTurn(QueueEntry, TimerFields):
    """The current speaker: a promoted queue entry plus its running slot"""

    active_slot: ActiveSlot = OPENING_SLOT
    rebuttals: Rebuttals = NO_REBUTTALS
    reply_to_rebuttal: Responder | None = None


class SessionState(WireModel):
    """Root aggregate replicated between every surface of a room"""

    delegates: dict[str, Delegate] = Field(default_factory=dict)
    queue: tuple[QueueEntry, ...] = ()
    current_speaker: SpeakingTurn | None = None
    type_durations: dict[SlotKind, int] = Field(default_factory=default_type_durations)
    version: int = Field(default=0, ge=0)
    updated_at: int = 0

    def duration_for(self, kind: SlotKind) -> int:
        """Configured duration of a slot kind, falling back to settings."""
        if kind in self.type_durations:
            return self.type_durations[kind]
        return default_type_durations()[kind]
