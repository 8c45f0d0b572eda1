"""Versioned in-memory store shared by every replicated state type"""

import logging
from collections.abc import Callable
from functools import partial
from typing import Generic, TypeVar

from models.base import WireModel
from services.reconciler import parse_snapshot, reconcile
from services.transports.base import Transport

logger = logging.getLogger(__name__)

S = TypeVar("S", bound=WireModel)

Listener = Callable[[S], None]
Clock = Callable[[], int]


class VersionedStore(Generic[S]):
    """
    Holds one replicated state object and publishes every change.

    Mutations run synchronously and one at a time on the event loop, so
    local versions totally order local changes. Incoming snapshots go through
    ``apply_incoming`` and only win when their version is strictly higher.
    """

    model: type[S]

    def __init__(self, state: S, clock: Clock) -> None:
        self._state = state
        self._clock = clock
        self._listeners: list[Listener] = []
        self._transports: list[Transport] = []

    @property
    def state(self) -> S:
        return self._state

    @property
    def version(self) -> int:
        return self._state.version

    def now(self) -> int:
        return self._clock()

    def snapshot(self) -> dict:
        """Current state in wire form."""
        return self._state.to_wire()

    # Subscriptions

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a change listener; returns a function that unsubscribes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                listener(self._state)
            except Exception as e:
                logger.error(f"State listener failed: {e}", exc_info=True)

    # Transports

    def attach(self, transport: Transport) -> None:
        """Publish through ``transport`` and reconcile whatever it receives."""
        if transport in self._transports:
            return
        transport.bind(partial(self.apply_incoming, source=transport))
        self._transports.append(transport)
        logger.info(f"Attached transport {transport.name}")

    def detach(self, transport: Transport) -> None:
        if transport in self._transports:
            self._transports.remove(transport)
            logger.info(f"Detached transport {transport.name}")

    @property
    def transports(self) -> list[Transport]:
        return list(self._transports)

    def _publish(self) -> None:
        payload = self.snapshot()
        for transport in list(self._transports):
            try:
                transport.publish(payload)
            except Exception as e:
                # One broken transport must not block the others
                logger.error(f"Publishing via {transport.name} failed: {e}", exc_info=True)

    # Mutation

    def _commit(self, transition: Callable[..., S], *args, **kwargs) -> bool:
        """
        Apply a pure transition; on change bump the version and publish.

        Returns:
            True if the state changed
        """
        now = self.now()
        current = self._state
        proposed = transition(current, now, *args, **kwargs)
        if proposed is current:
            return False

        self._state = proposed.model_copy(
            update={"version": current.version + 1, "updated_at": now}
        )
        logger.debug(f"{transition.__name__} -> v{self._state.version}")
        self._notify()
        self._publish()
        return True

    # Reconciliation

    def apply_incoming(self, payload: object, source: Transport | None = None) -> bool:
        """
        Adopt a received snapshot if it is newer than local state.

        An adopted snapshot is not sent back out over the network, but it is
        mirrored to same-device transports other than ``source`` so other
        surfaces and late joiners on this device see it too.

        Args:
            payload: Wire snapshot as received
            source: Transport it arrived on, if any

        Returns:
            True if the snapshot was adopted
        """
        incoming = parse_snapshot(self.model, payload)
        if incoming is None:
            return False

        winner = reconcile(self._state, incoming)
        if winner is self._state:
            logger.debug(f"Ignoring stale snapshot v{incoming.version} (local v{self._state.version})")
            return False

        self._state = winner
        logger.debug(f"Adopted snapshot v{winner.version}")
        self._notify()
        self._mirror(source)
        return True

    def _mirror(self, source: Transport | None) -> None:
        targets = [t for t in self._transports if t.mirrors_adopted and t is not source]
        if not targets:
            return
        payload = self.snapshot()
        for transport in targets:
            try:
                transport.publish(payload)
            except Exception as e:
                logger.error(f"Mirroring via {transport.name} failed: {e}", exc_info=True)
