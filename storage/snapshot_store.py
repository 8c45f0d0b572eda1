"""Persisted snapshot slot shared by surfaces on one device"""

import logging
from datetime import datetime, timezone

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from core.database import get_session_maker
from core.exceptions import SnapshotStorageError
from models.snapshot import SnapshotRecord

logger = logging.getLogger(__name__)


class SnapshotStore:
    """
    One row per key holding the latest full snapshot.

    Writers always replace the whole payload, so a reader never sees a mix of
    two writers' fields. A write only lands when its version is higher than
    the stored one, so the slot never moves backwards.
    """

    def __init__(self, database_url: str | None = None) -> None:
        self._session_maker: sessionmaker[Session] = get_session_maker(database_url)

    def write(self, key: str, payload: dict, version: int) -> bool:
        """
        Replace the snapshot stored under ``key`` if ``version`` is newer.

        Args:
            key: Slot name (one per room/device group)
            payload: Full wire snapshot
            version: Snapshot version, kept in its own column for cheap polling

        Returns:
            True if the snapshot was stored, False if a newer or equal one was kept
        """
        try:
            with self._session_maker() as session, session.begin():
                # Single conditional UPDATE: atomic across processes sharing the file
                result = session.execute(
                    update(SnapshotRecord)
                    .where(SnapshotRecord.key == key, SnapshotRecord.version < version)
                    .values(version=version, payload=payload, updated_at=datetime.now(timezone.utc))
                )
                if result.rowcount:
                    return True

                stored = session.execute(
                    select(SnapshotRecord.version).where(SnapshotRecord.key == key)
                ).scalar_one_or_none()
                if stored is not None:
                    logger.debug(f"Kept stored {key} v{stored} over v{version}")
                    return False

                session.add(
                    SnapshotRecord(
                        key=key,
                        version=version,
                        payload=payload,
                        updated_at=datetime.now(timezone.utc),
                    )
                )
                return True
        except SQLAlchemyError as e:
            raise SnapshotStorageError(f"Failed to write snapshot {key}: {e}") from e

    def read(self, key: str) -> dict | None:
        """Latest payload under ``key``, or None if nothing was written yet."""
        try:
            with self._session_maker() as session:
                record = session.get(SnapshotRecord, key)
                return dict(record.payload) if record else None
        except SQLAlchemyError as e:
            raise SnapshotStorageError(f"Failed to read snapshot {key}: {e}") from e

    def read_version(self, key: str) -> int | None:
        """Version of the stored snapshot without loading the payload."""
        try:
            with self._session_maker() as session:
                return session.execute(
                    select(SnapshotRecord.version).where(SnapshotRecord.key == key)
                ).scalar_one_or_none()
        except SQLAlchemyError as e:
            raise SnapshotStorageError(f"Failed to read snapshot version {key}: {e}") from e

    def delete(self, key: str) -> bool:
        with self._session_maker() as session, session.begin():
            record = session.get(SnapshotRecord, key)
            if record is None:
                return False
            session.delete(record)
            return True
