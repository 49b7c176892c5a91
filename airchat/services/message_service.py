"""Append-only conversation feeds for public rooms and private chats."""

import logging
from typing import Callable, Optional

from sqlalchemy import func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from airchat.core.clock import now_ms
from airchat.core.config import settings
from airchat.core.exceptions import Forbidden, ValidationFailed
from airchat.models.message import Message
from airchat.models.user import User
from airchat.schemas.message import MessageResponse
from airchat.services.event_bus import (
    ADDED,
    MODIFIED,
    EventBus,
    conversation_channel,
)
from airchat.services.friend_service import FriendService

logger = logging.getLogger(__name__)

ROOM_PREFIX = "room:"
DIRECT_PREFIX = "dm:"


def room_conversation_id(room_id: str) -> str:
    return f"{ROOM_PREFIX}{room_id}"


def direct_conversation_id(user_id: str, other_id: str) -> str:
    """Same id for both participants: the two user ids sorted and joined."""
    if user_id == other_id:
        raise ValidationFailed("A private chat needs two different users.")
    return DIRECT_PREFIX + "_".join(sorted((user_id, other_id)))


def direct_participants(conversation_id: str) -> Optional[tuple[str, str]]:
    if not conversation_id.startswith(DIRECT_PREFIX):
        return None
    parts = conversation_id[len(DIRECT_PREFIX):].split("_")
    if len(parts) != 2:
        return None
    return parts[0], parts[1]


def clean_text(text: str) -> str:
    text = (text or "").strip()
    if not text:
        raise ValidationFailed("Please type a message.")
    if len(text) > settings.MESSAGE_MAX_LENGTH:
        raise ValidationFailed(
            f"Messages are limited to {settings.MESSAGE_MAX_LENGTH} characters.")
    return text


class MessageService:
    """Service for appending to and reading conversation feeds."""

    def __init__(
        self,
        db: AsyncSession,
        bus: Optional[EventBus] = None,
        clock: Callable[[], int] = now_ms,
    ):
        self.db = db
        self.bus = bus
        self._clock = clock

    async def _append(self, conversation_id: str, sender: User, text: str, **extra) -> Message:
        message = Message(
            conversation_id=conversation_id,
            sender_id=sender.id,
            sender_username=sender.username,
            sender_avatar=sender.avatar,
            text=text,
            sent_at=self._clock(),
            **extra,
        )
        self.db.add(message)
        await self.db.commit()
        await self.db.refresh(message)

        if self.bus is not None:
            await self.bus.publish(
                conversation_channel(conversation_id),
                ADDED,
                MessageResponse.model_validate(message).model_dump(),
            )
        return message

    async def send_room_message(self, sender: User, room_id: str, text: str) -> Message:
        return await self._append(room_conversation_id(room_id), sender, clean_text(text))

    async def send_direct_message(self, sender: User, receiver_id: str, text: str) -> Message:
        text = clean_text(text)
        conversation_id = direct_conversation_id(sender.id, receiver_id)
        if await FriendService(self.db).is_blocked_between(sender.id, receiver_id):
            raise Forbidden("You cannot message this user.")
        return await self._append(
            conversation_id, sender, text, receiver_id=receiver_id, is_read=False
        )

    async def recent_messages(
        self, conversation_id: str, limit: Optional[int] = None
    ) -> list[Message]:
        """The latest ``limit`` messages of a feed, oldest first."""
        limit = limit or settings.MESSAGE_HISTORY_LIMIT
        result = await self.db.execute(
            select(Message)
            .where(Message.conversation_id == conversation_id)
            .order_by(Message.sent_at.desc(), Message.id.desc())
            .limit(limit)
        )
        return list(reversed(result.scalars().all()))

    async def mark_read(self, reader: User, partner_id: str) -> int:
        """Mark everything the partner sent to the reader as read."""
        conversation_id = direct_conversation_id(reader.id, partner_id)
        result = await self.db.execute(
            update(Message)
            .where(
                Message.conversation_id == conversation_id,
                Message.sender_id == partner_id,
                Message.is_read.is_(False),
            )
            .values(is_read=True)
            .execution_options(synchronize_session=False)
        )
        await self.db.commit()
        if result.rowcount and self.bus is not None:
            await self.bus.publish(
                conversation_channel(conversation_id),
                MODIFIED,
                {"reader_id": reader.id, "read": True},
            )
        return result.rowcount or 0

    async def list_conversations(self, user: User) -> list[dict]:
        """Private chats of a user, most recently active first."""
        participant = or_(Message.sender_id == user.id, Message.receiver_id == user.id)
        latest = (
            select(Message.conversation_id, func.max(Message.id).label("last_id"))
            .where(Message.receiver_id.is_not(None), participant)
            .group_by(Message.conversation_id)
            .subquery()
        )
        result = await self.db.execute(
            select(Message).join(latest, Message.id == latest.c.last_id)
        )
        summaries = []
        for last in result.scalars().all():
            partner_id = last.receiver_id if last.sender_id == user.id else last.sender_id
            partner = await self.db.get(User, partner_id)
            if partner is None:
                continue
            unread = await self.db.scalar(
                select(func.count(Message.id)).where(
                    Message.conversation_id == last.conversation_id,
                    Message.sender_id == partner_id,
                    Message.is_read.is_(False),
                )
            )
            summaries.append(
                {
                    "conversation_id": last.conversation_id,
                    "partner": partner,
                    "last_message": last,
                    "unread_count": unread or 0,
                }
            )
        summaries.sort(key=lambda s: (s["last_message"].sent_at, s["last_message"].id), reverse=True)
        return summaries


def check_conversation_access(user_id: str, conversation_id: str) -> None:
    """Room feeds are open to every signed-in user; private feeds to their two participants."""
    if conversation_id.startswith(ROOM_PREFIX):
        return
    participants = direct_participants(conversation_id)
    if participants is None:
        raise ValidationFailed("Unknown conversation.")
    if user_id not in participants:
        raise Forbidden("You are not part of this conversation.")
