"""Pure session transitions.

Every function takes the current SessionState and the current time in epoch
milliseconds and returns the next SessionState. Returning the input object
unchanged means "nothing to do": the store treats that as a no-op and does not
bump the version. Version and updated_at are the store's business.
"""

import math
from collections.abc import Iterable

from core.config import get_settings
from core.utils import clamp_duration, new_entry_id
from models.session import (
    NO_REBUTTALS,
    Delegate,
    QueueEntry,
    Responder,
    SessionState,
    SpeakingTurn,
)
from models.slot import REBUTTAL_SLOTS, ActiveSlot, SlotKind, normalize_slot_kind
from services import slot_machine, timing


def placeholder_name(number: str) -> str:
    return f"Delegate #{number}"


def _with(state: SessionState, **changes) -> SessionState:
    return state.model_copy(update=changes)


def _with_turn(state: SessionState, turn: SpeakingTurn | None) -> SessionState:
    if turn == state.current_speaker:
        return state
    return _with(state, current_speaker=turn)


# Queue


def enqueue_direct(
    state: SessionState,
    now: int,
    name: str,
    organization: str = "",
    kind: SlotKind | str | None = SlotKind.OPENING,
    delegate_number: str = "",
    entry_id: str | None = None,
) -> SessionState:
    """Append a manually entered speaker to the back of the queue."""
    clean = (name or "").strip()
    if not clean:
        return state

    entry = QueueEntry(
        id=entry_id or new_entry_id(),
        delegate_number=(delegate_number or "").strip(),
        name=clean,
        organization=(organization or "").strip(),
        kind=normalize_slot_kind(kind),
        requested_at=now,
    )
    return _with(state, queue=state.queue + (entry,))


def enqueue_by_number(
    state: SessionState,
    now: int,
    number: str,
    kind: SlotKind | str | None = SlotKind.OPENING,
    entry_id: str | None = None,
) -> SessionState:
    """Append a delegate from the roster; unknown numbers get a placeholder name."""
    key = (number or "").strip()
    if not key:
        return state

    delegate = state.delegates.get(key)
    if delegate is None:
        name, organization = placeholder_name(key), ""
    else:
        name = delegate.name or placeholder_name(key)
        organization = delegate.organization

    return enqueue_direct(
        state,
        now,
        name,
        organization,
        kind=kind,
        delegate_number=key,
        entry_id=entry_id,
    )


def dequeue(state: SessionState, now: int, entry_id: str) -> SessionState:
    remaining = tuple(entry for entry in state.queue if entry.id != entry_id)
    if len(remaining) == len(state.queue):
        return state
    return _with(state, queue=remaining)


def set_type_duration(
    state: SessionState,
    now: int,
    kind: SlotKind | str,
    seconds: float,
    minimum: int | None = None,
    maximum: int | None = None,
) -> SessionState:
    """Change the default duration of a slot kind. A running turn keeps its timer."""
    settings = get_settings()
    try:
        requested = float(seconds)
    except (TypeError, ValueError):
        return state
    if not math.isfinite(requested):
        return state

    duration = clamp_duration(
        requested,
        settings.min_duration_seconds if minimum is None else minimum,
        settings.max_duration_seconds if maximum is None else maximum,
    )
    kind = normalize_slot_kind(kind)
    if state.type_durations.get(kind) == duration:
        return state
    return _with(state, type_durations={**state.type_durations, kind: duration})


# Promotion


def _promote(state: SessionState, entry: QueueEntry, now: int) -> SpeakingTurn:
    slot = slot_machine.initial_slot(entry.kind)
    return SpeakingTurn(
        **dict(entry),
        **timing.armed_fields(state.duration_for(slot.kind), now),
        active_slot=slot,
        rebuttals=NO_REBUTTALS,
        reply_to_rebuttal=None,
    )


def start_specific(state: SessionState, now: int, entry_id: str) -> SessionState:
    """Promote one queued entry out of order ("jump the queue")."""
    if state.current_speaker is not None:
        return state

    for position, entry in enumerate(state.queue):
        if entry.id == entry_id:
            queue = state.queue[:position] + state.queue[position + 1 :]
            return _with(state, queue=queue, current_speaker=_promote(state, entry, now))
    return state


def start_next(state: SessionState, now: int) -> SessionState:
    if state.current_speaker is not None or not state.queue:
        return state
    return start_specific(state, now, state.queue[0].id)


def advance_to_next(state: SessionState, now: int) -> SessionState:
    """Finish the current speaker and promote the front of the queue, if any."""
    cleared = _with(state, current_speaker=None)
    if not cleared.queue:
        return cleared
    return start_next(cleared, now)


def skip(state: SessionState, now: int) -> SessionState:
    """Drop the current speaker without promoting anyone."""
    if state.current_speaker is None:
        return state
    return _with(state, current_speaker=None)


# Timer controls


def pause(state: SessionState, now: int) -> SessionState:
    turn = state.current_speaker
    if turn is None:
        return state
    return _with_turn(state, timing.pause(turn, now))


def resume(state: SessionState, now: int) -> SessionState:
    turn = state.current_speaker
    if turn is None:
        return state
    return _with_turn(state, timing.resume(turn, now))


def reset(state: SessionState, now: int) -> SessionState:
    turn = state.current_speaker
    if turn is None:
        return state
    return _with_turn(state, timing.reset(turn, now))


# Slot machine


def complete_slot(state: SessionState, now: int) -> SessionState:
    """
    Move past the active slot, as if its timer reached zero.

    Used both for natural completion and for a manual force-advance.
    """
    turn = state.current_speaker
    if turn is None:
        return state

    following = slot_machine.next_slot(turn.active_slot, turn.rebuttals, turn.reply_to_rebuttal)
    if following is None:
        return advance_to_next(state, now)

    return _with(state, current_speaker=_enter_slot(state, turn, following, now))


def tick(state: SessionState, now: int) -> SessionState:
    """Complete the active slot if its running timer has run out."""
    turn = state.current_speaker
    if turn is None or turn.paused:
        return state
    if not timing.is_finished(turn, now):
        return state
    return complete_slot(state, now)


def jump_to_slot(
    state: SessionState,
    now: int,
    kind: SlotKind | str,
    index: int = 0,
) -> SessionState:
    """Start timing a specific slot of the current speaker directly."""
    turn = state.current_speaker
    if turn is None or not 0 <= index < REBUTTAL_SLOTS:
        return state

    kind = normalize_slot_kind(kind)
    slot = ActiveSlot(kind=kind, index=index if kind == SlotKind.REBUTTAL else 0)
    return _with(state, current_speaker=_enter_slot(state, turn, slot, now))


def _enter_slot(state: SessionState, turn: SpeakingTurn, slot: ActiveSlot, now: int) -> SpeakingTurn:
    return turn.model_copy(
        update={
            "active_slot": slot,
            **timing.armed_fields(state.duration_for(slot.kind), now),
        }
    )


# Responders


def set_rebuttal(
    state: SessionState,
    now: int,
    index: int,
    responder: Responder | None,
) -> SessionState:
    turn = state.current_speaker
    if turn is None or not 0 <= index < REBUTTAL_SLOTS:
        return state
    if turn.rebuttals[index] == responder:
        return state

    rebuttals = list(turn.rebuttals)
    rebuttals[index] = responder
    return _with(state, current_speaker=turn.model_copy(update={"rebuttals": tuple(rebuttals)}))


def set_reply_to_rebuttal(
    state: SessionState,
    now: int,
    responder: Responder | None,
) -> SessionState:
    turn = state.current_speaker
    if turn is None or turn.reply_to_rebuttal == responder:
        return state
    return _with(state, current_speaker=turn.model_copy(update={"reply_to_rebuttal": responder}))


# Delegates


def upsert_delegate(
    state: SessionState,
    now: int,
    delegate: Delegate,
    previous_number: str | None = None,
) -> SessionState:
    """Add or edit a delegate; ``previous_number`` renames an existing key."""
    number = delegate.number.strip()
    if not number:
        return state

    cleaned = delegate.model_copy(
        update={
            "number": number,
            "name": delegate.name.strip(),
            "organization": delegate.organization.strip(),
        }
    )
    delegates = dict(state.delegates)
    if previous_number and previous_number != number:
        delegates.pop(previous_number, None)
    delegates[number] = cleaned

    if delegates == state.delegates:
        return state
    return _with(state, delegates=delegates)


def delete_delegate(state: SessionState, now: int, number: str) -> SessionState:
    if number not in state.delegates:
        return state
    delegates = {key: value for key, value in state.delegates.items() if key != number}
    return _with(state, delegates=delegates)


def import_delegates(
    state: SessionState,
    now: int,
    delegates: Iterable[Delegate],
    replace: bool = False,
) -> SessionState:
    """Merge (or replace with) an imported roster, keyed by delegate number."""
    merged = {} if replace else dict(state.delegates)
    for delegate in delegates:
        key = delegate.number.strip()
        if key:
            merged[key] = delegate.model_copy(update={"number": key})

    if merged == state.delegates:
        return state
    return _with(state, delegates=merged)
