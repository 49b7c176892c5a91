"""Message model."""

from sqlalchemy import String, Text, BigInteger, Boolean, ForeignKey, Index
from sqlalchemy.orm import Mapped, mapped_column

from airchat.core.database import Base


class Message(Base):
    """One entry of an append-only conversation feed (public room or pairwise)."""

    __tablename__ = "messages"
    __table_args__ = (Index("ix_messages_conversation_sent_at", "conversation_id", "sent_at"),)

    id: Mapped[int] = mapped_column(primary_key=True)
    conversation_id: Mapped[str] = mapped_column(String(160), nullable=False)
    sender_id: Mapped[str] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    # Sender profile is denormalised at send time, like the room feed always showed it
    sender_username: Mapped[str] = mapped_column(String(64), nullable=False)
    sender_avatar: Mapped[str] = mapped_column(String(512), nullable=False)
    text: Mapped[str] = mapped_column(Text, nullable=False)
    sent_at: Mapped[int] = mapped_column(BigInteger, nullable=False)  # epoch ms

    # Pairwise conversations only
    receiver_id: Mapped[str | None] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=True, index=True)
    is_read: Mapped[bool | None] = mapped_column(Boolean, nullable=True)

    def __repr__(self) -> str:
        return f"<Message(id={self.id}, conversation_id={self.conversation_id}, sent_at={self.sent_at})>"
