"""Import all models"""

from core.database import Base
from models.session import (
    Delegate,
    QueueEntry,
    Responder,
    SessionState,
    SpeakingTurn,
    TimerFields,
)
from models.slot import ActiveSlot, SlotKind, normalize_slot_kind
from models.snapshot import SnapshotRecord
from models.stage import RosterEntry, StageState

__all__ = [
    "Base",
    "ActiveSlot",
    "Delegate",
    "QueueEntry",
    "Responder",
    "RosterEntry",
    "SessionState",
    "SlotKind",
    "SnapshotRecord",
    "SpeakingTurn",
    "StageState",
    "TimerFields",
    "normalize_slot_kind",
]
