"""Pydantic schemas for request/response validation."""

from airchat.schemas.common import Notice
from airchat.schemas.user import UserCreate, UserResponse, UserLogin, Token
from airchat.schemas.message import MessageCreate, MessageResponse
from airchat.schemas.stage import SeatView, StageView

__all__ = [
    "Notice",
    "UserCreate",
    "UserResponse",
    "UserLogin",
    "Token",
    "MessageCreate",
    "MessageResponse",
    "SeatView",
    "StageView",
]
