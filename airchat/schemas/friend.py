"""Friend and friend request schemas."""

from typing import Literal, Optional
from pydantic import BaseModel

from airchat.schemas.common import Notice
from airchat.schemas.user import UserResponse


class FriendRequestCreate(BaseModel):
    target_id: str


class FriendRequestResponse(BaseModel):
    id: str
    sender: UserResponse
    receiver: UserResponse
    created_at: int


class FriendRequestOutcome(BaseModel):
    """Result of sending a friend request."""

    status: Literal["sent", "already_friends", "already_sent", "incoming_pending"]
    request_id: Optional[str] = None
    notice: Notice


class FriendRequestLists(BaseModel):
    incoming: list[FriendRequestResponse]
    outgoing: list[FriendRequestResponse]
