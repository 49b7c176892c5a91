"""Database models."""

from airchat.models.user import User
from airchat.models.friend import Friendship, FriendRequest, UserBlock
from airchat.models.message import Message
from airchat.models.stage import Stage

__all__ = ["User", "Friendship", "FriendRequest", "UserBlock", "Message", "Stage"]
