"""Dependency injection utilities"""

from functools import lru_cache

from core.config import Settings, get_settings
from services.relay import RoomConnections, RoomRegistry


def get_config() -> Settings:
    """Dependency for getting application config"""
    return get_settings()


@lru_cache
def get_room_registry() -> RoomRegistry:
    """Dependency for the process-wide room registry"""
    return RoomRegistry()


@lru_cache
def get_room_connections() -> RoomConnections:
    """Dependency for websocket room membership"""
    return RoomConnections()
