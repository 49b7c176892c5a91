"""Mic stage model."""

from datetime import datetime
from sqlalchemy import String, Integer, DateTime, JSON
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from airchat.core.database import Base


class Stage(Base):
    """
    Fixed-size seat array for one room's speaking queue.

    The whole seat sequence is read and written as one JSON value; ``version``
    is bumped on every write and guards conditional updates.
    """

    __tablename__ = "stages"

    key: Mapped[str] = mapped_column(String(128), primary_key=True)
    seats: Mapped[list] = mapped_column(JSON, nullable=False)
    version: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<Stage(key={self.key}, version={self.version})>"
