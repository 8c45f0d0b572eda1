"""Transport contract: broadcast a versioned snapshot, accept one back"""

from abc import ABC, abstractmethod
from collections.abc import Callable

SnapshotHandler = Callable[[object], bool]


class Transport(ABC):
    """
    Base class for replication transports.

    A store calls ``publish`` with the full wire snapshot after every local
    change and hands its reconciler to ``bind``. Publishing never raises for
    transient delivery problems; the next snapshot resynchronizes peers.
    """

    name: str = "transport"
    # Whether snapshots adopted from other transports are re-published here
    mirrors_adopted: bool = False

    def __init__(self) -> None:
        self._on_snapshot: SnapshotHandler | None = None

    def bind(self, on_snapshot: SnapshotHandler) -> None:
        """Set the callback that receives incoming snapshot payloads."""
        self._on_snapshot = on_snapshot

    def deliver(self, payload: object) -> bool:
        """Pass a received snapshot to the bound store."""
        if self._on_snapshot is None:
            return False
        return self._on_snapshot(payload)

    @abstractmethod
    def publish(self, payload: dict) -> None:
        """Send a snapshot to every other replica reachable via this transport."""

    async def close(self) -> None:
        """Release sockets, tasks and other resources."""
