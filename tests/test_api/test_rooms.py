"""Test relay room endpoints"""

import pytest
from httpx import AsyncClient
from starlette.websockets import WebSocketDisconnect

from app.dependencies import get_room_connections, get_room_registry


class TestRoomEndpoints:
    """Test room REST endpoints"""

    async def test_create_room_with_random_id(self, client: AsyncClient):
        """Test creating a room without an id"""
        response = await client.post("/api/room", json={})
        assert response.status_code == 200

        room_id = response.json()["roomId"]
        assert len(room_id) == 6

        health = await client.get("/health")
        assert health.json()["rooms"] == 1

    async def test_create_room_without_body(self, client: AsyncClient):
        """Test the request body is optional"""
        response = await client.post("/api/room")
        assert response.status_code == 200
        assert "roomId" in response.json()

    async def test_create_named_room(self, client: AsyncClient):
        """Test creating a room with a chosen id"""
        response = await client.post("/api/room", json={"roomId": "debatt"})
        assert response.json() == {"roomId": "debatt"}

    async def test_get_room(self, client: AsyncClient):
        """Test reading the last snapshot of a room"""
        get_room_registry().push("debatt", {"version": 4}, now=1234)

        response = await client.get("/api/room/debatt")
        assert response.status_code == 200

        data = response.json()
        assert data["roomId"] == "debatt"
        assert data["state"] == {"version": 4}
        assert data["updatedAt"] == 1234

    async def test_get_missing_room(self, client: AsyncClient):
        """Test unknown rooms return 404"""
        response = await client.get("/api/room/nope")
        assert response.status_code == 404


class TestRoomSocket:
    """Test the relay websocket"""

    def test_ping(self, ws_client):
        """Test ping is answered with pong"""
        with ws_client.websocket_connect("/ws/rooms/r1") as ws:
            ws.send_json({"type": "ping"})
            message = ws.receive_json()

        assert message["type"] == "pong"
        assert isinstance(message["ts"], int)

    def test_push_fans_out_to_others(self, ws_client):
        """Test a push reaches other members but not the sender"""
        snapshot = {"version": 3, "queue": []}
        with ws_client.websocket_connect("/ws/rooms/r1") as sender:
            with ws_client.websocket_connect("/ws/rooms/r1") as listener:
                listener.send_json({"type": "ping"})
                assert listener.receive_json()["type"] == "pong"

                sender.send_json({"type": "state:push", "state": snapshot})
                assert listener.receive_json() == {"type": "state:update", "state": snapshot}

                sender.send_json({"type": "ping"})
                assert sender.receive_json()["type"] == "pong"

        assert get_room_registry().get("r1").state == snapshot

    def test_late_joiner_gets_sync(self, ws_client):
        """Test joining a room with a snapshot sends state:sync first"""
        snapshot = {"version": 7}
        with ws_client.websocket_connect("/ws/rooms/r2") as first:
            first.send_json({"type": "state:push", "state": snapshot})
            first.send_json({"type": "ping"})
            first.receive_json()

        with ws_client.websocket_connect("/ws/rooms/r2") as late:
            assert late.receive_json() == {"type": "state:sync", "state": snapshot}

    def test_bad_messages_get_errors(self, ws_client):
        """Test unknown and malformed messages are answered with an error"""
        with ws_client.websocket_connect("/ws/rooms/r3") as ws:
            ws.send_json({"type": "state:push", "state": "not an object"})
            assert ws.receive_json()["type"] == "error"

            ws.send_json({"type": "dance"})
            assert ws.receive_json()["type"] == "error"

            ws.send_json(["not", "an", "object"])
            assert ws.receive_json()["type"] == "error"

    @pytest.mark.parametrize("frame", ["text", "binary"])
    def test_undecodable_frame_closes_socket(self, ws_client, frame):
        """Test non-JSON text and binary frames close the socket with 1003"""
        with ws_client.websocket_connect("/ws/rooms/r4") as ws:
            if frame == "text":
                ws.send_text("not json")
            else:
                ws.send_bytes(b"\x00\x01")

            with pytest.raises(WebSocketDisconnect) as exc_info:
                ws.receive_json()
            assert exc_info.value.code == 1003

        connections = get_room_connections()
        assert connections.count("r4") == 0
