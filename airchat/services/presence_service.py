"""Online status and sorted user lists."""

import logging
from typing import Iterable, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from airchat.core.clock import now_ms
from airchat.core.exceptions import NotFound, ValidationFailed
from airchat.models.user import User
from airchat.schemas.user import UserResponse
from airchat.services.event_bus import MODIFIED, EventBus, users_channel

logger = logging.getLogger(__name__)


def presence_sort_key(user) -> tuple:
    """Online users first, then by display name, case-insensitively."""
    return (not user.is_online, user.username.casefold(), user.id)


def sort_by_presence(users: Iterable) -> list:
    return sorted(users, key=presence_sort_key)


class PresenceService:
    """Service for presence updates and profile lookups."""

    def __init__(self, db: AsyncSession, bus: Optional[EventBus] = None):
        self.db = db
        self.bus = bus

    async def get_user(self, user_id: str) -> User:
        user = await self.db.get(User, user_id)
        if not user:
            raise NotFound("No user with this ID.")
        return user

    async def set_presence(self, user: User, online: bool) -> None:
        user.is_online = online
        user.last_active = now_ms()
        await self.db.commit()
        await self.publish_user(user)

    async def touch(self, user: User) -> None:
        """Stamp activity without changing online status."""
        user.last_active = now_ms()
        await self.db.commit()

    async def update_profile(self, user: User, **changes) -> User:
        username = changes.get("username")
        if username is not None and not username.strip():
            raise ValidationFailed("Please enter a display name.")
        for field, value in changes.items():
            if value is not None:
                setattr(user, field, value.strip() if isinstance(value, str) else value)
        await self.db.commit()
        await self.db.refresh(user)
        await self.publish_user(user)
        return user

    async def room_roster(self, viewer_id: str) -> list[User]:
        """Everyone but the viewer, online first, then by name."""
        result = await self.db.execute(select(User).where(User.id != viewer_id))
        return sort_by_presence(result.scalars().all())

    async def publish_user(self, user: User) -> None:
        if self.bus is None:
            return
        await self.bus.publish(
            users_channel(),
            MODIFIED,
            UserResponse.model_validate(user).model_dump(),
        )
