"""Session store: the authoritative queue/speaker/timer state of a surface"""

import logging
from collections.abc import Iterable

from core.utils import now_ms
from models.session import Delegate, Responder, SessionState
from models.slot import SlotKind
from services import session_ops, timing
from services.store import Clock, VersionedStore

logger = logging.getLogger(__name__)


class SessionStore(VersionedStore[SessionState]):
    """
    Explicit store for a speaking session.

    Every mutator is total: calls against an impossible state (empty queue,
    unknown id, pausing a paused timer) do nothing and return False, so
    controls never need guards. Effective calls bump the version, notify
    subscribers and publish the snapshot through every attached transport.
    """

    model = SessionState

    def __init__(self, state: SessionState | None = None, clock: Clock = now_ms) -> None:
        super().__init__(state or SessionState(), clock)

    # Queue

    def enqueue_by_number(self, number: str, kind: SlotKind | str = SlotKind.OPENING) -> bool:
        return self._commit(session_ops.enqueue_by_number, number, kind=kind)

    def enqueue_direct(
        self,
        name: str,
        organization: str = "",
        kind: SlotKind | str = SlotKind.OPENING,
    ) -> bool:
        return self._commit(session_ops.enqueue_direct, name, organization, kind=kind)

    def dequeue(self, entry_id: str) -> bool:
        return self._commit(session_ops.dequeue, entry_id)

    def set_type_duration(self, kind: SlotKind | str, seconds: float) -> bool:
        return self._commit(session_ops.set_type_duration, kind, seconds)

    # Speaker

    def start_next(self) -> bool:
        return self._commit(session_ops.start_next)

    def start_specific(self, entry_id: str) -> bool:
        return self._commit(session_ops.start_specific, entry_id)

    def pause(self) -> bool:
        return self._commit(session_ops.pause)

    def resume(self) -> bool:
        return self._commit(session_ops.resume)

    def toggle(self) -> bool:
        """Pause a running timer or resume a paused one."""
        turn = self.state.current_speaker
        if turn is None:
            return False
        return self.resume() if turn.paused else self.pause()

    def reset(self) -> bool:
        return self._commit(session_ops.reset)

    def skip(self) -> bool:
        return self._commit(session_ops.skip)

    def complete_slot(self) -> bool:
        """Force-advance the active slot through the slot machine."""
        return self._commit(session_ops.complete_slot)

    def tick(self) -> bool:
        """Advance if the running slot has run out; called by the ticker."""
        return self._commit(session_ops.tick)

    def jump_to_slot(self, kind: SlotKind | str, index: int = 0) -> bool:
        return self._commit(session_ops.jump_to_slot, kind, index)

    def set_rebuttal(self, index: int, responder: Responder | None) -> bool:
        return self._commit(session_ops.set_rebuttal, index, responder)

    def set_reply_to_rebuttal(self, responder: Responder | None) -> bool:
        return self._commit(session_ops.set_reply_to_rebuttal, responder)

    def remaining_seconds(self) -> float:
        return timing.remaining_seconds(self.state.current_speaker, self.now())

    # Delegates

    def upsert_delegate(self, delegate: Delegate, previous_number: str | None = None) -> bool:
        return self._commit(session_ops.upsert_delegate, delegate, previous_number)

    def delete_delegate(self, number: str) -> bool:
        return self._commit(session_ops.delete_delegate, number)

    def import_delegates(self, delegates: Iterable[Delegate], replace: bool = False) -> bool:
        changed = self._commit(session_ops.import_delegates, list(delegates), replace)
        if changed:
            logger.info(f"Roster now has {len(self.state.delegates)} delegates")
        return changed
