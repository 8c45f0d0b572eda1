"""Speaking slot kinds and the active-slot pointer"""

import re
from enum import Enum

from pydantic import Field

from models.base import WireModel


class SlotKind(str, Enum):
    """Kind of timed speaking slot."""

    OPENING = "OPENING"
    REBUTTAL = "REBUTTAL"
    REPLY_TO_REBUTTAL = "REPLY_TO_REBUTTAL"


REBUTTAL_SLOTS = 2

# Keys are compared after stripping case, spaces, hyphens and underscores
_KIND_LABELS: dict[str, SlotKind] = {
    "opening": SlotKind.OPENING,
    "openingstatement": SlotKind.OPENING,
    "innlegg": SlotKind.OPENING,
    "rebuttal": SlotKind.REBUTTAL,
    "replikk": SlotKind.REBUTTAL,
    "replytorebuttal": SlotKind.REPLY_TO_REBUTTAL,
    "reply": SlotKind.REPLY_TO_REBUTTAL,
    "svarreplikk": SlotKind.REPLY_TO_REBUTTAL,
    "svarpareplikk": SlotKind.REPLY_TO_REBUTTAL,
}


def normalize_slot_kind(value: "str | SlotKind | None") -> SlotKind:
    """
    Map free text from roster import or manual entry to a SlotKind.

    Examples:
        "Innlegg" -> SlotKind.OPENING
        "svar-replikk" -> SlotKind.REPLY_TO_REBUTTAL
        "REBUTTAL" -> SlotKind.REBUTTAL

    Unknown or empty text is treated as an opening statement.
    """
    if isinstance(value, SlotKind):
        return value
    if not value:
        return SlotKind.OPENING

    key = re.sub(r"[\s_\-]+", "", value).lower().replace("å", "a")
    return _KIND_LABELS.get(key, SlotKind.OPENING)


class ActiveSlot(WireModel):
    """Which slot of the current speaker is being timed."""

    kind: SlotKind = SlotKind.OPENING
    index: int = Field(default=0, ge=0, lt=REBUTTAL_SLOTS)

    def label(self) -> str:
        """Human-readable label for displays."""
        if self.kind == SlotKind.REBUTTAL:
            return f"Rebuttal #{self.index + 1}"
        if self.kind == SlotKind.REPLY_TO_REBUTTAL:
            return "Reply to rebuttal"
        return "Opening statement"


OPENING_SLOT = ActiveSlot(kind=SlotKind.OPENING)
REPLY_SLOT = ActiveSlot(kind=SlotKind.REPLY_TO_REBUTTAL)
