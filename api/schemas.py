"""API Pydantic schemas for request/response validation"""

from typing import Any, Literal

from pydantic import BaseModel, Field


class HealthResponse(BaseModel):
    """Health check response"""

    ok: bool = True
    ts: int
    rooms: int = 0
    connections: int = 0


class RoomCreate(BaseModel):
    """Room creation request; a blank id asks the relay to pick one"""

    room_id: str | None = Field(default=None, alias="roomId", max_length=64)

    model_config = {"populate_by_name": True}


class RoomResponse(BaseModel):
    """Room id, with the last known snapshot when requested"""

    room_id: str = Field(serialization_alias="roomId")
    state: dict[str, Any] | None = None
    updated_at: int | None = Field(default=None, serialization_alias="updatedAt")


class StatePush(BaseModel):
    """Client message replacing the room snapshot"""

    type: Literal["state:push"]
    state: dict[str, Any]
