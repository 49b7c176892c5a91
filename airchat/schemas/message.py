"""Message feed schemas."""

from typing import Optional
from pydantic import BaseModel, Field


class MessageCreate(BaseModel):
    text: str = Field(..., description="Message text; surrounding whitespace is dropped")


class MessageResponse(BaseModel):
    id: int
    conversation_id: str
    sender_id: str
    sender_username: str
    sender_avatar: str
    text: str
    sent_at: int
    receiver_id: Optional[str] = None
    is_read: Optional[bool] = None

    class Config:
        from_attributes = True


class ConversationSummary(BaseModel):
    """One entry of the private chat list."""

    conversation_id: str
    partner_id: str
    partner_username: str
    partner_avatar: str
    partner_online: bool
    last_message: MessageResponse
    unread_count: int
