"""Tests for relay room state"""

import asyncio

from services.relay import RoomConnections, RoomRegistry, run_garbage_collector


class FakeSocket:
    """Websocket double recording sent JSON"""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.sent: list[dict] = []

    async def send_json(self, message):
        if self.fail:
            raise RuntimeError("socket gone")
        self.sent.append(message)


class TestRoomRegistry:
    """Test room creation, snapshots and garbage collection"""

    def test_create_with_random_id(self):
        """Test blank ids get a 6-character id"""
        registry = RoomRegistry(ttl_minutes=60)
        room = registry.create("  ")

        assert len(room.room_id) == 6
        assert room.room_id in registry
        assert room.state is None

    def test_create_is_idempotent(self):
        """Test creating an existing room keeps its snapshot"""
        registry = RoomRegistry(ttl_minutes=60)
        registry.push("debatt", {"version": 3})

        room = registry.create("debatt")

        assert room.state == {"version": 3}
        assert len(registry) == 1

    def test_push_replaces_snapshot(self):
        """Test the latest push wins regardless of version"""
        registry = RoomRegistry(ttl_minutes=60)
        registry.push("r", {"version": 5}, now=1000)
        room = registry.push("r", {"version": 2}, now=2000)

        assert room.state == {"version": 2}
        assert room.updated_at == 2000

    def test_collect_garbage(self):
        """Test rooms idle longer than the TTL are removed"""
        registry = RoomRegistry(ttl_minutes=1)
        registry.create("old", now=0)
        registry.create("fresh", now=50_000)

        removed = registry.collect_garbage(now=60_001)

        assert removed == ["old"]
        assert "old" not in registry
        assert "fresh" in registry

    def test_push_keeps_room_alive(self):
        """Test activity refreshes the idle timer"""
        registry = RoomRegistry(ttl_minutes=1)
        registry.create("r", now=0)
        registry.push("r", {"version": 1}, now=59_000)

        assert registry.collect_garbage(now=100_000) == []

    async def test_garbage_collector_task(self):
        """Test the background collector runs until cancelled"""
        registry = RoomRegistry(ttl_minutes=1)
        registry.create("old", now=0)

        task = asyncio.create_task(run_garbage_collector(registry, 0.01))
        await asyncio.sleep(0.05)
        task.cancel()

        assert len(registry) == 0


class TestRoomConnections:
    """Test websocket membership and fan-out"""

    async def test_broadcast_excludes_sender(self):
        """Test broadcasts reach every other member of the room only"""
        connections = RoomConnections()
        sender, peer, outsider = FakeSocket(), FakeSocket(), FakeSocket()
        await connections.join(sender, "r")
        await connections.join(peer, "r")
        await connections.join(outsider, "other")

        sent = await connections.broadcast("r", {"type": "state:update"}, exclude=sender)

        assert sent == 1
        assert peer.sent == [{"type": "state:update"}]
        assert sender.sent == []
        assert outsider.sent == []

    async def test_failed_socket_dropped(self):
        """Test a socket that fails to send is removed from its room"""
        connections = RoomConnections()
        good, broken = FakeSocket(), FakeSocket(fail=True)
        await connections.join(good, "r")
        await connections.join(broken, "r")

        assert await connections.broadcast("r", {"type": "state:update"}) == 1
        assert connections.count("r") == 1

    async def test_leave(self):
        """Test leaving removes the socket and empty rooms"""
        connections = RoomConnections()
        socket = FakeSocket()
        await connections.join(socket, "r")

        assert await connections.leave(socket) == "r"
        assert await connections.leave(socket) is None
        assert connections.count() == 0
