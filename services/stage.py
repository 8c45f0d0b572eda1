"""Stage board: a composed roster timed slot by slot.

Unlike the session queue, the roster is fixed ahead of time and the current
speaker is an index into it. Every re-armed timer starts paused; the operator
starts it explicitly. Advancing past the last entry holds on that entry with
the timer stopped.
"""

import logging
import math

from core.config import get_settings
from core.utils import clamp_duration, new_entry_id, now_ms
from models.session import Responder, TimerFields
from models.slot import OPENING_SLOT, REBUTTAL_SLOTS, ActiveSlot, SlotKind, normalize_slot_kind
from models.stage import RosterEntry, StageState
from services import slot_machine, timing
from services.store import Clock, VersionedStore

logger = logging.getLogger(__name__)


def _with(state: StageState, **changes) -> StageState:
    return state.model_copy(update=changes)


def _armed(entry: RosterEntry, slot: ActiveSlot, now: int) -> TimerFields:
    return timing.arm(entry.duration_for(slot.kind), now, paused=True)


def _replace_current(state: StageState, entry: RosterEntry) -> StageState:
    roster = list(state.roster)
    roster[state.current_index] = entry
    return _with(state, roster=tuple(roster))


# Roster


def add_entry(
    state: StageState,
    now: int,
    name: str,
    organization: str = "",
    topic: str = "",
    durations: dict | None = None,
    entry_id: str | None = None,
) -> StageState:
    """Append a speaker; the first entry also gets a paused timer."""
    clean = (name or "").strip()
    if not clean:
        return state

    fields = {
        "id": entry_id or new_entry_id(),
        "name": clean,
        "organization": (organization or "").strip(),
        "topic": (topic or "").strip(),
    }
    if durations:
        fields["durations"] = {normalize_slot_kind(kind): int(seconds) for kind, seconds in durations.items()}
    entry = RosterEntry(**fields)

    state = _with(state, roster=state.roster + (entry,))
    if state.timer is None and state.current is not None:
        state = _with(state, active_slot=OPENING_SLOT, timer=_armed(state.current, OPENING_SLOT, now))
    return state


def select(state: StageState, now: int, index: int) -> StageState:
    """Jump to a roster index at its opening statement, timer paused."""
    if not 0 <= index < len(state.roster):
        return state
    entry = state.roster[index]
    return _with(state, current_index=index, active_slot=OPENING_SLOT, timer=_armed(entry, OPENING_SLOT, now))


def next_speaker(state: StageState, now: int) -> StageState:
    """Move to the next roster entry, or stop the timer on the last one."""
    if state.current is None:
        return state
    if state.current_index + 1 < len(state.roster):
        return select(state, now, state.current_index + 1)
    return pause(state, now)


# Timer


def pause(state: StageState, now: int) -> StageState:
    if state.timer is None:
        return state
    timer = timing.pause(state.timer, now)
    return state if timer is state.timer else _with(state, timer=timer)


def resume(state: StageState, now: int) -> StageState:
    if state.timer is None:
        return state
    timer = timing.resume(state.timer, now)
    return state if timer is state.timer else _with(state, timer=timer)


def toggle(state: StageState, now: int) -> StageState:
    if state.timer is None:
        return state
    return resume(state, now) if state.timer.paused else pause(state, now)


def reset(state: StageState, now: int) -> StageState:
    """Re-arm the active slot with its full duration, paused."""
    if state.current is None:
        return state
    return _with(state, timer=_armed(state.current, state.active_slot, now))


# Slots


def jump_to_slot(state: StageState, now: int, kind: SlotKind | str, index: int = 0) -> StageState:
    entry = state.current
    if entry is None or not 0 <= index < REBUTTAL_SLOTS:
        return state

    kind = normalize_slot_kind(kind)
    slot = ActiveSlot(kind=kind, index=index if kind == SlotKind.REBUTTAL else 0)
    return _with(state, active_slot=slot, timer=_armed(entry, slot, now))


def complete_slot(state: StageState, now: int) -> StageState:
    """Move past the active slot; after the last one, go to the next speaker."""
    entry = state.current
    if entry is None:
        return state

    following = slot_machine.next_slot(state.active_slot, entry.rebuttals, entry.reply_to_rebuttal)
    if following is None:
        return next_speaker(state, now)
    return _with(state, active_slot=following, timer=_armed(entry, following, now))


def tick(state: StageState, now: int) -> StageState:
    if state.timer is None or state.timer.paused:
        return state
    if not timing.is_finished(state.timer, now):
        return state
    return complete_slot(state, now)


def set_duration(
    state: StageState,
    now: int,
    kind: SlotKind | str,
    seconds: float,
    minimum: int | None = None,
    maximum: int | None = None,
) -> StageState:
    """Change one slot duration of the current entry; re-arms the timer if that slot is active."""
    entry = state.current
    if entry is None:
        return state

    settings = get_settings()
    try:
        requested = float(seconds)
    except (TypeError, ValueError):
        requested = 0.0
    if not math.isfinite(requested):
        return state
    duration = clamp_duration(
        requested,
        settings.min_duration_seconds if minimum is None else minimum,
        settings.max_duration_seconds if maximum is None else maximum,
    )
    kind = normalize_slot_kind(kind)
    if entry.durations.get(kind) == duration:
        return state

    updated = entry.model_copy(update={"durations": {**entry.durations, kind: duration}})
    state = _replace_current(state, updated)
    if state.active_slot.kind == kind:
        state = _with(state, timer=_armed(updated, state.active_slot, now))
    return state


def set_rebuttal(state: StageState, now: int, index: int, responder: Responder | None) -> StageState:
    entry = state.current
    if entry is None or not 0 <= index < REBUTTAL_SLOTS or entry.rebuttals[index] == responder:
        return state

    rebuttals = list(entry.rebuttals)
    rebuttals[index] = responder
    return _replace_current(state, entry.model_copy(update={"rebuttals": tuple(rebuttals)}))


def set_reply_to_rebuttal(state: StageState, now: int, responder: Responder | None) -> StageState:
    entry = state.current
    if entry is None or entry.reply_to_rebuttal == responder:
        return state
    return _replace_current(state, entry.model_copy(update={"reply_to_rebuttal": responder}))


class StageStore(VersionedStore[StageState]):
    """Replicated stage board; mutators mirror the session store's contract."""

    model = StageState

    def __init__(self, state: StageState | None = None, clock: Clock = now_ms) -> None:
        super().__init__(state or StageState(), clock)

    def add_entry(self, name: str, organization: str = "", topic: str = "", durations: dict | None = None) -> bool:
        return self._commit(add_entry, name, organization, topic, durations)

    def select(self, index: int) -> bool:
        return self._commit(select, index)

    def next_speaker(self) -> bool:
        return self._commit(next_speaker)

    def toggle(self) -> bool:
        return self._commit(toggle)

    def pause(self) -> bool:
        return self._commit(pause)

    def resume(self) -> bool:
        return self._commit(resume)

    def reset(self) -> bool:
        return self._commit(reset)

    def jump_to_slot(self, kind: SlotKind | str, index: int = 0) -> bool:
        return self._commit(jump_to_slot, kind, index)

    def complete_slot(self) -> bool:
        return self._commit(complete_slot)

    def tick(self) -> bool:
        return self._commit(tick)

    def set_duration(self, kind: SlotKind | str, seconds: float) -> bool:
        return self._commit(set_duration, kind, seconds)

    def set_rebuttal(self, index: int, responder: Responder | None) -> bool:
        return self._commit(set_rebuttal, index, responder)

    def set_reply_to_rebuttal(self, responder: Responder | None) -> bool:
        return self._commit(set_reply_to_rebuttal, responder)

    def remaining_seconds(self) -> float:
        return timing.remaining_seconds(self.state.timer, self.now())
