"""Persisted snapshot slot model"""

from datetime import datetime, timezone

from sqlalchemy import JSON, BigInteger, DateTime, String
from sqlalchemy.orm import Mapped, mapped_column

from core.database import Base


class SnapshotRecord(Base):
    """Latest full snapshot for one key, shared by surfaces on a device"""

    __tablename__ = "snapshots"

    key: Mapped[str] = mapped_column(String(200), primary_key=True)
    version: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    payload: Mapped[dict] = mapped_column(JSON, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    def __repr__(self) -> str:
        return f"<SnapshotRecord {self.key} v{self.version}>"
