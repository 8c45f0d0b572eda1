"""Same-device transport: in-process broadcast plus a persisted snapshot slot.

Surfaces in one process share a named BroadcastHub channel and hear every
publish immediately. Surfaces in other processes on the same machine, and
late joiners, pick up the persisted snapshot: the latest full snapshot is
written to a shared SQLite slot and a watcher polls its version column for
writes made by someone else.
"""

import asyncio
import json
import logging
from typing import ClassVar

from core.config import get_settings
from core.exceptions import SnapshotStorageError
from services.transports.base import Transport
from storage.snapshot_store import SnapshotStore

logger = logging.getLogger(__name__)


class BroadcastHub:
    """Named in-process publish channel; a message never returns to its sender."""

    _channels: ClassVar[dict[str, "BroadcastHub"]] = {}

    def __init__(self, name: str) -> None:
        self.name = name
        self._members: list["LocalTransport"] = []

    @classmethod
    def channel(cls, name: str) -> "BroadcastHub":
        if name not in cls._channels:
            cls._channels[name] = cls(name)
        return cls._channels[name]

    @classmethod
    def reset_all(cls) -> None:
        cls._channels.clear()

    @property
    def member_count(self) -> int:
        return len(self._members)

    def join(self, member: "LocalTransport") -> None:
        if member not in self._members:
            self._members.append(member)

    def leave(self, member: "LocalTransport") -> None:
        if member in self._members:
            self._members.remove(member)

    def post(self, sender: "LocalTransport", message: str) -> int:
        """
        Deliver a serialized message to every member except the sender.

        Returns:
            Number of members that received it
        """
        delivered = 0
        for member in list(self._members):
            if member is sender:
                continue
            try:
                member.receive(message)
                delivered += 1
            except Exception as e:
                logger.error(f"Broadcast on {self.name} failed for a member: {e}", exc_info=True)
        return delivered


class LocalTransport(Transport):
    """Fan-out between surfaces on one device."""

    name = "local"
    mirrors_adopted = True

    def __init__(
        self,
        channel: str | None = None,
        snapshot_key: str | None = None,
        snapshot_store: SnapshotStore | None = None,
        poll_interval: float | None = None,
    ) -> None:
        super().__init__()
        settings = get_settings()
        self.hub = BroadcastHub.channel(channel or settings.broadcast_channel)
        self.snapshot_key = snapshot_key or settings.snapshot_key
        self.snapshots = snapshot_store or SnapshotStore()
        self.poll_interval = poll_interval or settings.snapshot_poll_interval_seconds
        self._last_seen_version = -1
        self._watch_task: asyncio.Task | None = None
        self.hub.join(self)

    # Outgoing

    def publish(self, payload: dict) -> None:
        version = int(payload.get("version", 0))
        self._last_seen_version = max(self._last_seen_version, version)

        try:
            if not self.snapshots.write(self.snapshot_key, payload, version):
                logger.debug(f"Persisted slot already holds v{version} or newer")
        except SnapshotStorageError as e:
            # Open surfaces still get the broadcast; late joiners resync on the next write
            logger.error(f"Could not persist snapshot v{version}: {e}")

        self.hub.post(self, json.dumps(payload))

    # Incoming

    def receive(self, message: str) -> None:
        """Handle a broadcast from another surface in this process."""
        try:
            payload = json.loads(message)
        except json.JSONDecodeError as e:
            logger.warning(f"Dropping undecodable broadcast: {e}")
            return

        if isinstance(payload, dict) and isinstance(payload.get("version"), int):
            self._last_seen_version = max(self._last_seen_version, payload["version"])
        self.deliver(payload)

    def load_last_snapshot(self) -> dict | None:
        """Last persisted snapshot, for a surface that starts late."""
        try:
            return self.snapshots.read(self.snapshot_key)
        except SnapshotStorageError as e:
            logger.error(f"Could not load persisted snapshot: {e}")
            return None

    def bootstrap(self) -> bool:
        """Feed the persisted snapshot to the bound store."""
        payload = self.load_last_snapshot()
        if payload is None:
            logger.info(f"No persisted snapshot under {self.snapshot_key}")
            return False
        self._last_seen_version = max(self._last_seen_version, int(payload.get("version", 0)))
        return self.deliver(payload)

    def check_external_write(self) -> bool:
        """
        Deliver the persisted snapshot if another process wrote a newer one.

        Returns:
            True if a newer snapshot was found and delivered
        """
        try:
            version = self.snapshots.read_version(self.snapshot_key)
        except SnapshotStorageError as e:
            logger.warning(f"Snapshot poll failed: {e}")
            return False

        if version is None or version <= self._last_seen_version:
            return False

        payload = self.load_last_snapshot()
        if payload is None:
            return False
        self._last_seen_version = version
        logger.debug(f"External write detected (v{version})")
        self.deliver(payload)
        return True

    async def watch(self) -> None:
        """Poll the persisted slot until cancelled."""
        while True:
            self.check_external_write()
            await asyncio.sleep(self.poll_interval)

    def start(self) -> asyncio.Task:
        """Start the external-write watcher on the running loop."""
        if self._watch_task is None or self._watch_task.done():
            self._watch_task = asyncio.create_task(self.watch())
        return self._watch_task

    async def close(self) -> None:
        self.hub.leave(self)
        if self._watch_task:
            self._watch_task.cancel()
            try:
                await self._watch_task
            except asyncio.CancelledError:
                pass
            self._watch_task = None
