"""Database connection for the persisted snapshot slot."""

from threading import Lock
from typing import Any

from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from core.config import get_settings


class Base(DeclarativeBase):
    """Declarative base for SQLAlchemy models."""


class DatabaseManager:
    """Per-URL cache of engines and session makers."""

    _instance: "DatabaseManager | None" = None
    _lock: Lock = Lock()

    def __init__(self) -> None:
        self._engines: dict[str, Engine] = {}
        self._session_makers: dict[str, sessionmaker[Session]] = {}

    @classmethod
    def get_instance(cls) -> "DatabaseManager":
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = cls()
        return cls._instance

    def get_engine(self, url: str | None = None) -> Engine:
        """Get or create the engine for a database URL (default: from settings)."""
        url = url or get_settings().snapshot_database_url
        if url not in self._engines:
            engine_kwargs: dict[str, Any] = {"echo": False}
            if url.startswith("sqlite"):
                # Several surfaces may share one file; let SQLite wait on locks
                engine_kwargs["connect_args"] = {"check_same_thread": False, "timeout": 5}

            engine = create_engine(url, **engine_kwargs)
            Base.metadata.create_all(engine)
            self._engines[url] = engine
            self._session_makers[url] = sessionmaker(engine, expire_on_commit=False)
        return self._engines[url]

    def get_session_maker(self, url: str | None = None) -> sessionmaker[Session]:
        """Get or create the session maker for a database URL."""
        url = url or get_settings().snapshot_database_url
        self.get_engine(url)
        return self._session_makers[url]

    def reset(self) -> None:
        """Dispose every cached engine."""
        for engine in self._engines.values():
            engine.dispose()
        self._engines.clear()
        self._session_makers.clear()


_db_manager = DatabaseManager.get_instance()


def get_engine(url: str | None = None) -> Engine:
    """Get or create database engine."""
    return _db_manager.get_engine(url)


def get_session_maker(url: str | None = None) -> sessionmaker[Session]:
    """Get or create session maker."""
    return _db_manager.get_session_maker(url)


def reset_engine() -> None:
    """Reset cached engines/session makers"""
    _db_manager.reset()
