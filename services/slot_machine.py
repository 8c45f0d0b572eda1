"""Slot-advance state machine.

A speaker holds the floor through an opening statement, then any attached
rebuttals in slot order, then an optional reply to rebuttal. When the last
attached slot completes the speaker is done and the next one is promoted.
"""

from collections.abc import Sequence

from models.session import Responder
from models.slot import REBUTTAL_SLOTS, REPLY_SLOT, ActiveSlot, SlotKind


def next_rebuttal_index(rebuttals: Sequence[Responder | None], start: int = 0) -> int | None:
    """First rebuttal slot at or after ``start`` that has a responder attached."""
    for index in range(max(0, start), min(REBUTTAL_SLOTS, len(rebuttals))):
        if rebuttals[index] is not None:
            return index
    return None


def next_slot(
    active: ActiveSlot,
    rebuttals: Sequence[Responder | None],
    reply_to_rebuttal: Responder | None,
) -> ActiveSlot | None:
    """
    Decide which slot follows the one that just completed.

    Args:
        active: Slot whose timer reached zero or was force-advanced
        rebuttals: Responders attached to rebuttal slots 0 and 1
        reply_to_rebuttal: Responder attached to the reply slot

    Returns:
        The next ActiveSlot, or None when the speaker is done
    """
    if active.kind == SlotKind.REPLY_TO_REBUTTAL:
        return None

    start = 0 if active.kind == SlotKind.OPENING else active.index + 1
    index = next_rebuttal_index(rebuttals, start)
    if index is not None:
        return ActiveSlot(kind=SlotKind.REBUTTAL, index=index)

    if reply_to_rebuttal is not None:
        return REPLY_SLOT
    return None


def initial_slot(kind: SlotKind) -> ActiveSlot:
    """Slot a freshly promoted entry starts in."""
    return ActiveSlot(kind=kind, index=0)
