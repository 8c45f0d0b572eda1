"""Store-and-forward relay: per-room latest snapshot plus websocket fan-out.

The relay never interprets snapshots. It keeps the last one pushed to each
room for late joiners and forwards every push to the other members; version
gating happens in each client's reconciler.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any

from fastapi import WebSocket

from core.config import get_settings
from core.utils import new_room_id, now_ms

logger = logging.getLogger(__name__)


@dataclass
class Room:
    """Ephemeral room state"""

    room_id: str
    state: dict[str, Any] | None = None
    updated_at: int = field(default_factory=now_ms)


class RoomRegistry:
    """In-memory rooms, garbage-collected after an idle TTL."""

    def __init__(self, ttl_minutes: int | None = None) -> None:
        self.ttl_minutes = ttl_minutes if ttl_minutes is not None else get_settings().room_ttl_minutes
        self._rooms: dict[str, Room] = {}

    def __len__(self) -> int:
        return len(self._rooms)

    def __contains__(self, room_id: str) -> bool:
        return room_id in self._rooms

    def create(self, room_id: str | None = None, now: int | None = None) -> Room:
        """Create a room, or return the existing one; blank ids get a random id."""
        room_id = (room_id or "").strip() or new_room_id()
        if room_id not in self._rooms:
            self._rooms[room_id] = Room(room_id=room_id, updated_at=now if now is not None else now_ms())
            logger.info(f"Room {room_id} created")
        return self._rooms[room_id]

    def get(self, room_id: str) -> Room | None:
        return self._rooms.get(room_id)

    def push(self, room_id: str, state: dict[str, Any], now: int | None = None) -> Room:
        """Replace the room's stored snapshot."""
        room = self.create(room_id, now=now)
        room.state = state
        room.updated_at = now if now is not None else now_ms()
        return room

    def collect_garbage(self, now: int | None = None) -> list[str]:
        """
        Drop rooms whose last update is older than the TTL.

        Returns:
            Ids of removed rooms
        """
        cutoff = (now if now is not None else now_ms()) - self.ttl_minutes * 60_000
        stale = [room_id for room_id, room in self._rooms.items() if room.updated_at < cutoff]
        for room_id in stale:
            del self._rooms[room_id]
        if stale:
            logger.info(f"Garbage-collected {len(stale)} idle room(s)")
        return stale


class RoomConnections:
    """
    Websocket membership per room.

    Sends that fail drop the socket from its room instead of raising.
    """

    def __init__(self) -> None:
        # Keyed by id(): sockets are compared by identity only
        self._members: dict[str, dict[int, WebSocket]] = {}
        self._rooms_by_socket: dict[int, str] = {}
        self._lock = asyncio.Lock()

    async def join(self, websocket: WebSocket, room_id: str) -> None:
        async with self._lock:
            self._members.setdefault(room_id, {})[id(websocket)] = websocket
            self._rooms_by_socket[id(websocket)] = room_id
        logger.info(f"Socket joined room {room_id} ({self.count(room_id)} member(s))")

    async def leave(self, websocket: WebSocket) -> str | None:
        async with self._lock:
            room_id = self._rooms_by_socket.pop(id(websocket), None)
            if room_id is None:
                return None
            members = self._members.get(room_id)
            if members is not None:
                members.pop(id(websocket), None)
                if not members:
                    del self._members[room_id]
        logger.info(f"Socket left room {room_id}")
        return room_id

    def count(self, room_id: str | None = None) -> int:
        if room_id is None:
            return len(self._rooms_by_socket)
        return len(self._members.get(room_id, ()))

    async def send(self, websocket: WebSocket, message: dict) -> bool:
        try:
            await websocket.send_json(message)
            return True
        except Exception as e:
            logger.warning(f"Send failed, dropping socket: {e}")
            await self.leave(websocket)
            return False

    async def broadcast(
        self,
        room_id: str,
        message: dict,
        exclude: WebSocket | None = None,
    ) -> int:
        """
        Send a message to every member of a room except ``exclude``.

        Returns:
            Number of sockets that received it
        """
        sent = 0
        for websocket in list(self._members.get(room_id, {}).values()):
            if websocket is exclude:
                continue
            if await self.send(websocket, message):
                sent += 1
        return sent


async def run_garbage_collector(registry: RoomRegistry, interval_seconds: float) -> None:
    """Periodically drop idle rooms until cancelled."""
    while True:
        await asyncio.sleep(interval_seconds)
        registry.collect_garbage()
