"""Pytest configuration and fixtures"""

import pytest

from app.dependencies import get_room_connections, get_room_registry
from core.config import get_settings
from core.database import reset_engine
from services.session_store import SessionStore
from services.transports.local import BroadcastHub
from tests.fakes import FakeClock, FakePeerFactory, RecordingTransport


@pytest.fixture(autouse=True, scope="function")
def test_settings(tmp_path, monkeypatch):
    """Point the persisted snapshot slot at a per-test SQLite file"""
    monkeypatch.setenv("SNAPSHOT_DATABASE_URL", f"sqlite:///{tmp_path / 'snapshots.db'}")
    monkeypatch.setenv("APP_ENV", "test")
    get_settings.cache_clear()
    reset_engine()
    BroadcastHub.reset_all()
    get_room_registry.cache_clear()
    get_room_connections.cache_clear()
    yield
    reset_engine()
    BroadcastHub.reset_all()
    get_settings.cache_clear()


@pytest.fixture
def clock():
    """Fake clock starting at a fixed instant"""
    return FakeClock()


@pytest.fixture
def store(clock):
    """Empty session store on the fake clock"""
    return SessionStore(clock=clock)


@pytest.fixture
def recorder():
    """Recording transport"""
    return RecordingTransport()


@pytest.fixture
def peer_factory():
    """Fake peer connection factory with instant ICE gathering"""
    return FakePeerFactory()


@pytest.fixture
async def client():
    """Create async test client for the relay"""
    from asgi_lifespan import LifespanManager
    from httpx import ASGITransport, AsyncClient

    from app.main import app

    async with LifespanManager(app):
        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as test_client:
            yield test_client


@pytest.fixture
def ws_client():
    """Synchronous Starlette client for websocket tests"""
    from fastapi.testclient import TestClient

    from app.main import app

    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def anyio_backend():
    """Limit anyio to asyncio backend"""
    return "asyncio"
