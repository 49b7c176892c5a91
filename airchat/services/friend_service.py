"""Friend edges, friend requests and blocks."""

import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy import and_, delete, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from airchat.core.clock import now_ms
from airchat.core.exceptions import Forbidden, NotFound, ValidationFailed
from airchat.models.friend import Friendship, FriendRequest, UserBlock
from airchat.models.user import User
from airchat.services.event_bus import (
    ADDED,
    REMOVED,
    EventBus,
    friends_channel,
    requests_channel,
)
from airchat.services.presence_service import sort_by_presence

logger = logging.getLogger(__name__)

SENT = "sent"
ALREADY_FRIENDS = "already_friends"
ALREADY_SENT = "already_sent"
INCOMING_PENDING = "incoming_pending"


@dataclass
class RequestOutcome:
    status: str
    target: User
    request_id: Optional[str] = None


class FriendService:
    """Service for the friend graph of one user at a time."""

    def __init__(self, db: AsyncSession, bus: Optional[EventBus] = None):
        self.db = db
        self.bus = bus

    async def _get_user(self, user_id: str) -> User:
        user = await self.db.get(User, user_id)
        if not user:
            raise NotFound("No user with this ID.")
        return user

    async def are_friends(self, user_id: str, other_id: str) -> bool:
        result = await self.db.execute(
            select(Friendship.id).where(
                Friendship.user_id == user_id, Friendship.friend_id == other_id
            )
        )
        return result.first() is not None

    async def is_blocked_between(self, user_id: str, other_id: str) -> bool:
        """True if either user has blocked the other."""
        result = await self.db.execute(
            select(UserBlock.id).where(
                or_(
                    and_(UserBlock.blocker_id == user_id, UserBlock.blocked_id == other_id),
                    and_(UserBlock.blocker_id == other_id, UserBlock.blocked_id == user_id),
                )
            )
        )
        return result.first() is not None

    async def _find_request(self, sender_id: str, receiver_id: str) -> Optional[FriendRequest]:
        result = await self.db.execute(
            select(FriendRequest).where(
                FriendRequest.sender_id == sender_id,
                FriendRequest.receiver_id == receiver_id,
            )
        )
        return result.scalar_one_or_none()

    async def send_friend_request(self, sender: User, target_id: str) -> RequestOutcome:
        """Send a friend request, or report why none was needed."""
        if target_id == sender.id:
            raise ValidationFailed("You cannot send a friend request to yourself.")
        target = await self._get_user(target_id)
        if await self.is_blocked_between(sender.id, target_id):
            raise Forbidden("You cannot send a friend request to this user.")

        if await self.are_friends(sender.id, target_id):
            return RequestOutcome(ALREADY_FRIENDS, target)
        if await self._find_request(sender.id, target_id):
            return RequestOutcome(ALREADY_SENT, target)
        incoming = await self._find_request(target_id, sender.id)
        if incoming:
            # The client asks the user whether to accept instead
            return RequestOutcome(INCOMING_PENDING, target, request_id=incoming.id)

        request = FriendRequest(sender_id=sender.id, receiver_id=target_id, created_at=now_ms())
        self.db.add(request)
        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            return RequestOutcome(ALREADY_SENT, target)
        await self.db.refresh(request)

        logger.info(f"Friend request {request.id} sent from {sender.id} to {target_id}")
        await self._publish_request(request, ADDED)
        return RequestOutcome(SENT, target, request_id=request.id)

    async def _get_request(self, request_id: str) -> FriendRequest:
        request = await self.db.get(FriendRequest, request_id)
        if not request:
            raise NotFound("This friend request no longer exists.")
        return request

    async def accept_friend_request(self, receiver: User, request_id: str) -> User:
        """Accept a pending request: symmetric edge in, pending record out."""
        request = await self._get_request(request_id)
        if request.receiver_id != receiver.id:
            raise Forbidden("Only the receiver can accept a friend request.")
        sender = await self._get_user(request.sender_id)

        timestamp = now_ms()
        for user_id, friend_id in ((receiver.id, sender.id), (sender.id, receiver.id)):
            if not await self.are_friends(user_id, friend_id):
                self.db.add(Friendship(user_id=user_id, friend_id=friend_id, created_at=timestamp))
        await self.db.delete(request)
        await self.db.commit()

        logger.info(f"Friend request {request_id} accepted: {sender.id} <-> {receiver.id}")
        await self._publish_request(request, REMOVED)
        await self._publish_friend(receiver.id, sender.id, ADDED)
        await self._publish_friend(sender.id, receiver.id, ADDED)
        return sender

    async def reject_friend_request(self, receiver: User, request_id: str) -> None:
        request = await self._get_request(request_id)
        if request.receiver_id != receiver.id:
            raise Forbidden("Only the receiver can reject a friend request.")
        await self.db.delete(request)
        await self.db.commit()
        logger.info(f"Friend request {request_id} rejected by {receiver.id}")
        await self._publish_request(request, REMOVED)

    async def cancel_friend_request(self, sender: User, request_id: str) -> None:
        request = await self._get_request(request_id)
        if request.sender_id != sender.id:
            raise Forbidden("Only the sender can cancel a friend request.")
        await self.db.delete(request)
        await self.db.commit()
        logger.info(f"Friend request {request_id} cancelled by {sender.id}")
        await self._publish_request(request, REMOVED)

    async def remove_friend(self, user: User, friend_id: str) -> None:
        if not await self.are_friends(user.id, friend_id):
            raise NotFound("This user is not in your friends list.")
        await self._delete_edges(user.id, friend_id)
        await self.db.commit()
        logger.info(f"Friendship removed: {user.id} <-> {friend_id}")
        await self._publish_friend(user.id, friend_id, REMOVED)
        await self._publish_friend(friend_id, user.id, REMOVED)

    async def block_user(self, user: User, target_id: str) -> None:
        """Block a user: drops any friendship and pending requests between the two."""
        if target_id == user.id:
            raise ValidationFailed("You cannot block yourself.")
        await self._get_user(target_id)

        was_friend = await self.are_friends(user.id, target_id)
        pending = (
            await self.db.execute(
                select(FriendRequest).where(
                    or_(
                        and_(FriendRequest.sender_id == user.id, FriendRequest.receiver_id == target_id),
                        and_(FriendRequest.sender_id == target_id, FriendRequest.receiver_id == user.id),
                    )
                )
            )
        ).scalars().all()

        await self._delete_edges(user.id, target_id)
        for request in pending:
            await self.db.delete(request)
        existing = await self.db.execute(
            select(UserBlock.id).where(
                UserBlock.blocker_id == user.id, UserBlock.blocked_id == target_id
            )
        )
        if existing.first() is None:
            self.db.add(UserBlock(blocker_id=user.id, blocked_id=target_id))
        await self.db.commit()
        logger.info(f"User {user.id} blocked {target_id}")

        for request in pending:
            await self._publish_request(request, REMOVED)
        if was_friend:
            await self._publish_friend(user.id, target_id, REMOVED)
            await self._publish_friend(target_id, user.id, REMOVED)

    async def unblock_user(self, user: User, target_id: str) -> None:
        result = await self.db.execute(
            delete(UserBlock).where(
                UserBlock.blocker_id == user.id, UserBlock.blocked_id == target_id
            )
        )
        if result.rowcount == 0:
            raise NotFound("This user is not blocked.")
        await self.db.commit()
        logger.info(f"User {user.id} unblocked {target_id}")

    async def list_blocked(self, user: User) -> list[User]:
        result = await self.db.execute(
            select(User)
            .join(UserBlock, UserBlock.blocked_id == User.id)
            .where(UserBlock.blocker_id == user.id)
        )
        return sort_by_presence(result.scalars().all())

    async def list_friends(self, user: User) -> list[User]:
        """Friends, online first, then by display name."""
        result = await self.db.execute(
            select(User)
            .join(Friendship, Friendship.friend_id == User.id)
            .where(Friendship.user_id == user.id)
        )
        return sort_by_presence(result.scalars().all())

    async def list_requests(self, user: User) -> tuple[list[tuple], list[tuple]]:
        """Incoming and outgoing pending requests as (request, sender, receiver), newest first."""
        incoming = await self._requests_where(FriendRequest.receiver_id == user.id)
        outgoing = await self._requests_where(FriendRequest.sender_id == user.id)
        return incoming, outgoing

    async def _requests_where(self, criterion) -> list[tuple]:
        result = await self.db.execute(
            select(FriendRequest)
            .where(criterion)
            .order_by(FriendRequest.created_at.desc())
        )
        rows = []
        for request in result.scalars().all():
            sender = await self.db.get(User, request.sender_id)
            receiver = await self.db.get(User, request.receiver_id)
            rows.append((request, sender, receiver))
        return rows

    async def _delete_edges(self, user_id: str, other_id: str) -> None:
        await self.db.execute(
            delete(Friendship).where(
                or_(
                    and_(Friendship.user_id == user_id, Friendship.friend_id == other_id),
                    and_(Friendship.user_id == other_id, Friendship.friend_id == user_id),
                )
            )
        )

    async def _publish_request(self, request: FriendRequest, event_type: str) -> None:
        if self.bus is None:
            return
        data = {
            "id": request.id,
            "sender_id": request.sender_id,
            "receiver_id": request.receiver_id,
            "created_at": request.created_at,
        }
        await self.bus.publish(requests_channel(request.receiver_id), event_type, data)
        await self.bus.publish(requests_channel(request.sender_id), event_type, data)

    async def _publish_friend(self, user_id: str, friend_id: str, event_type: str) -> None:
        if self.bus is None:
            return
        await self.bus.publish(friends_channel(user_id), event_type, {"friend_id": friend_id})
