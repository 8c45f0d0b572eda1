"""Composed-roster variant used for stage management"""

from pydantic import Field

from models.base import WireModel
from models.session import NO_REBUTTALS, Rebuttals, Responder, TimerFields, default_type_durations
from models.slot import OPENING_SLOT, ActiveSlot, SlotKind


class RosterEntry(WireModel):
    """Speaker on the stage roster with per-speaker slot durations"""

    id: str
    name: str
    organization: str = ""
    topic: str = ""
    durations: dict[SlotKind, int] = Field(default_factory=default_type_durations)
    rebuttals: Rebuttals = NO_REBUTTALS
    reply_to_rebuttal: Responder | None = None

    def duration_for(self, kind: SlotKind) -> int:
        if kind in self.durations:
            return self.durations[kind]
        return default_type_durations()[kind]


class StageState(WireModel):
    """Roster, index of the current speaker, and the running slot"""

    roster: tuple[RosterEntry, ...] = ()
    current_index: int = Field(default=0, ge=0)
    active_slot: ActiveSlot = OPENING_SLOT
    timer: TimerFields | None = None
    version: int = Field(default=0, ge=0)
    updated_at: int = 0

    @property
    def current(self) -> RosterEntry | None:
        if 0 <= self.current_index < len(self.roster):
            return self.roster[self.current_index]
        return None
