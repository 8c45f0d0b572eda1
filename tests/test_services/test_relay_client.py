"""Tests for the relay client transport"""

import asyncio
import json

from services.session_store import SessionStore
from services.transports.relay_client import RelayTransport

CLOSED = object()


class FakeRelaySocket:
    """Client connection double fed from a queue"""

    def __init__(self):
        self.sent: list[dict] = []
        self.incoming: asyncio.Queue = asyncio.Queue()
        self.closed = False

    def feed(self, message: dict):
        self.incoming.put_nowait(json.dumps(message))

    async def send(self, raw: str):
        self.sent.append(json.loads(raw))

    async def close(self):
        if not self.closed:
            self.closed = True
            self.incoming.put_nowait(CLOSED)

    def __aiter__(self):
        return self

    async def __anext__(self):
        raw = await self.incoming.get()
        if raw is CLOSED:
            raise StopAsyncIteration
        return raw


class FakeConnector:
    """Connector returning fresh sockets, optionally failing first"""

    def __init__(self, failures: int = 0):
        self.failures = failures
        self.urls: list[str] = []
        self.sockets: list[FakeRelaySocket] = []

    async def __call__(self, url: str):
        self.urls.append(url)
        if self.failures > 0:
            self.failures -= 1
            raise OSError("connection refused")
        socket = FakeRelaySocket()
        self.sockets.append(socket)
        return socket


async def wait_until(condition, attempts: int = 100):
    for _ in range(attempts):
        if condition():
            return True
        await asyncio.sleep(0.01)
    return False


class TestRelayTransport:
    """Test the relay client against a fake socket"""

    async def test_connects_to_room_url(self):
        """Test the room path is appended to the relay base URL"""
        connector = FakeConnector()
        transport = RelayTransport("debatt", base_url="ws://relay:8080/", connector=connector)
        transport.start()

        assert await transport.wait_connected(timeout=1)
        assert connector.urls == ["ws://relay:8080/ws/rooms/debatt"]
        await transport.close()

    async def test_sync_and_update_are_reconciled(self, clock):
        """Test state:sync and state:update payloads reach the store"""
        source = SessionStore(clock=clock)
        source.enqueue_direct("Ola")

        store = SessionStore(clock=clock)
        connector = FakeConnector()
        transport = RelayTransport("r", base_url="ws://relay", connector=connector)
        store.attach(transport)
        transport.start()
        await transport.wait_connected(timeout=1)

        socket = connector.sockets[0]
        socket.feed({"type": "state:sync", "state": source.snapshot()})
        assert await wait_until(lambda: store.version == 1)

        source.start_next()
        socket.feed({"type": "state:update", "state": source.snapshot()})
        assert await wait_until(lambda: store.version == 2)
        assert store.state == source.state
        await transport.close()

    async def test_publish_pushes_latest_snapshot(self, store: SessionStore):
        """Test local changes are pushed, collapsing bursts to the latest"""
        connector = FakeConnector()
        transport = RelayTransport("r", base_url="ws://relay", connector=connector)
        store.attach(transport)

        store.enqueue_direct("Ola")
        store.enqueue_direct("Kari")
        transport.start()
        await transport.wait_connected(timeout=1)

        socket = connector.sockets[0]
        assert await wait_until(lambda: socket.sent)
        assert [m["type"] for m in socket.sent] == ["state:push"]
        assert socket.sent[0]["state"]["version"] == 2

        store.enqueue_direct("Per")
        assert await wait_until(lambda: len(socket.sent) == 2)
        assert socket.sent[1]["state"]["version"] == 3
        await transport.close()

    async def test_retries_then_connects(self):
        """Test failed attempts are retried"""
        connector = FakeConnector(failures=2)
        transport = RelayTransport("r", base_url="ws://relay", reconnect_attempts=3, reconnect_delay=0, connector=connector)

        assert await transport.connect()
        assert len(connector.urls) == 3
        await transport.close()

    async def test_gives_up_after_attempts(self):
        """Test run returns when the relay stays unreachable"""
        connector = FakeConnector(failures=10)
        transport = RelayTransport("r", base_url="ws://relay", reconnect_attempts=2, reconnect_delay=0, connector=connector)

        await asyncio.wait_for(transport.run(), timeout=1)
        assert len(connector.urls) == 2
        assert not transport.is_connected

    async def test_reconnects_after_drop(self):
        """Test a dropped connection is re-established"""
        connector = FakeConnector()
        transport = RelayTransport("r", base_url="ws://relay", reconnect_delay=0, connector=connector)
        transport.start()
        await transport.wait_connected(timeout=1)

        await connector.sockets[0].close()

        assert await wait_until(lambda: len(connector.sockets) == 2)
        await transport.close()

    async def test_error_and_pong_do_not_touch_store(self, store: SessionStore):
        """Test non-state messages are logged only"""
        transport = RelayTransport("r", base_url="ws://relay", connector=FakeConnector())
        store.attach(transport)

        transport.handle_message(json.dumps({"type": "pong", "ts": 1}))
        transport.handle_message(json.dumps({"type": "error", "message": "bad"}))
        transport.handle_message("not json")

        assert store.version == 0
