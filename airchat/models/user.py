"""User model."""

import uuid
from datetime import datetime
from sqlalchemy import String, Boolean, DateTime, Integer, BigInteger, Text, JSON
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from airchat.core.database import Base


def new_user_id() -> str:
    return uuid.uuid4().hex


class User(Base):
    """User model for authentication and chat profile."""

    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=new_user_id)
    email: Mapped[str] = mapped_column(String(255), unique=True, index=True, nullable=False)
    hashed_password: Mapped[str | None] = mapped_column(String(255), nullable=True)
    auth_provider: Mapped[str] = mapped_column(
        String(32), default="password", nullable=False
    )  # password, google, facebook

    username: Mapped[str] = mapped_column(String(64), nullable=False)
    avatar: Mapped[str] = mapped_column(String(512), nullable=False)
    bio: Mapped[str] = mapped_column(Text, default="", nullable=False)
    interests: Mapped[list] = mapped_column(JSON, default=list, nullable=False)
    role: Mapped[str] = mapped_column(
        String(32), default="member", nullable=False
    )  # member, vip, moderator, admin, muted
    xp: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    vip_level: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    gifts_received: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    is_online: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    last_active: Mapped[int] = mapped_column(BigInteger, default=0, nullable=False)  # epoch ms

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id}, username={self.username})>"
