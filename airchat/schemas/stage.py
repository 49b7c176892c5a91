"""Mic stage schemas."""

from typing import Optional
from pydantic import BaseModel, Field

from airchat.schemas.common import Notice


class SeatView(BaseModel):
    """Rendered state of one seat."""

    index: int
    occupied: bool
    occupant_id: Optional[str] = None
    display_name: Optional[str] = None
    avatar: Optional[str] = None
    muted: bool = False
    joined_at: Optional[int] = None
    is_self: bool = Field(False, description="Seat held by the viewing user")


class StageView(BaseModel):
    key: str
    version: int
    seats: list[SeatView]


class StageActionResponse(BaseModel):
    stage: StageView
    notice: Notice


class StageVoiceToken(BaseModel):
    token: str
    room_name: str
    url: str
    can_publish: bool
