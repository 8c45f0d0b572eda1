"""Relay room API: room creation, snapshot lookup and websocket fan-out"""

import logging

from fastapi import APIRouter, Depends, HTTPException, WebSocket, WebSocketDisconnect
from pydantic import ValidationError

from api.schemas import RoomCreate, RoomResponse, StatePush
from app.dependencies import get_room_connections, get_room_registry
from core.utils import now_ms
from services.relay import RoomConnections, RoomRegistry

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Rooms"])


@router.post("/api/room", response_model=RoomResponse, response_model_exclude_none=True)
async def create_room(
    body: RoomCreate | None = None,
    registry: RoomRegistry = Depends(get_room_registry),
):
    """
    Create a room, or confirm an existing one.

    Args:
        body: Optional requested room id

    Returns:
        The room id
    """
    room = registry.create(body.room_id if body else None)
    return RoomResponse(room_id=room.room_id)


@router.get("/api/room/{room_id}", response_model=RoomResponse)
async def get_room(
    room_id: str,
    registry: RoomRegistry = Depends(get_room_registry),
):
    """
    Get the last snapshot pushed to a room.

    Args:
        room_id: Room id

    Returns:
        Room id, snapshot (null until the first push) and last update time
    """
    room = registry.get(room_id)
    if not room:
        raise HTTPException(status_code=404, detail="Room not found")

    return RoomResponse(room_id=room.room_id, state=room.state, updated_at=room.updated_at)


@router.websocket("/ws/rooms/{room_id}")
async def room_socket(
    websocket: WebSocket,
    room_id: str,
    registry: RoomRegistry = Depends(get_room_registry),
    connections: RoomConnections = Depends(get_room_connections),
):
    """
    Relay snapshots between the members of a room.

    Client messages:
        {"type": "state:push", "state": {...}}: store and forward to others
        {"type": "ping"}: answered with {"type": "pong", "ts": ...}
    """
    await websocket.accept()
    room = registry.create(room_id)
    await connections.join(websocket, room.room_id)

    if room.state is not None:
        await connections.send(websocket, {"type": "state:sync", "state": room.state})

    try:
        while True:
            message = await websocket.receive_json()
            await _handle_message(websocket, room.room_id, message, registry, connections)
    except WebSocketDisconnect:
        logger.debug(f"Socket disconnected from room {room.room_id}")
    except (ValueError, KeyError) as e:
        # KeyError: a binary frame has no "text" part
        logger.warning(f"Closing socket in room {room.room_id} after undecodable frame: {e!r}")
        await websocket.close(code=1003)
    finally:
        await connections.leave(websocket)


async def _handle_message(
    websocket: WebSocket,
    room_id: str,
    message: object,
    registry: RoomRegistry,
    connections: RoomConnections,
) -> None:
    kind = message.get("type") if isinstance(message, dict) else None

    if kind == "ping":
        await connections.send(websocket, {"type": "pong", "ts": now_ms()})
        return

    if kind == "state:push":
        try:
            push = StatePush.model_validate(message)
        except ValidationError:
            await connections.send(websocket, {"type": "error", "message": "state:push needs a state object"})
            return

        registry.push(room_id, push.state)
        sent = await connections.broadcast(
            room_id,
            {"type": "state:update", "state": push.state},
            exclude=websocket,
        )
        logger.debug(f"Room {room_id}: v{push.state.get('version')} forwarded to {sent} socket(s)")
        return

    await connections.send(websocket, {"type": "error", "message": f"Unknown message type: {kind!r}"})
