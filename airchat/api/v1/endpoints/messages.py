"""Room and private chat feed endpoints."""

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from airchat.api.v1.dependencies import get_current_user, get_db
from airchat.core.context import AppContext, get_app_context
from airchat.models.user import User
from airchat.schemas.common import ActionResponse, Notice
from airchat.schemas.message import ConversationSummary, MessageCreate, MessageResponse
from airchat.services.message_service import (
    MessageService,
    direct_conversation_id,
    room_conversation_id,
)
from airchat.services.presence_service import PresenceService
from airchat.services.rooms import require_open_room

router = APIRouter()

HistoryLimit = Query(None, ge=1, le=200, description="Defaults to the configured history size")


@router.get("/rooms/{room_id}", response_model=list[MessageResponse])
async def room_history(
    room_id: str,
    limit: int | None = HistoryLimit,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Most recent room messages, oldest first."""
    require_open_room(room_id)
    messages = await MessageService(db).recent_messages(room_conversation_id(room_id), limit)
    return [MessageResponse.model_validate(m) for m in messages]


@router.post("/rooms/{room_id}", response_model=MessageResponse, status_code=status.HTTP_201_CREATED)
async def send_room_message(
    room_id: str,
    data: MessageCreate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    ctx: AppContext = Depends(get_app_context),
):
    """Post to a room's public feed."""
    require_open_room(room_id)
    message = await MessageService(db, ctx.bus).send_room_message(user, room_id, data.text)
    return MessageResponse.model_validate(message)


@router.get("/direct", response_model=list[ConversationSummary])
async def list_conversations(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Private chats, most recently active first."""
    summaries = await MessageService(db).list_conversations(user)
    return [
        ConversationSummary(
            conversation_id=s["conversation_id"],
            partner_id=s["partner"].id,
            partner_username=s["partner"].username,
            partner_avatar=s["partner"].avatar,
            partner_online=s["partner"].is_online,
            last_message=MessageResponse.model_validate(s["last_message"]),
            unread_count=s["unread_count"],
        )
        for s in summaries
    ]


@router.get("/direct/{partner_id}", response_model=list[MessageResponse])
async def direct_history(
    partner_id: str,
    limit: int | None = HistoryLimit,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Most recent messages with one partner, oldest first."""
    await PresenceService(db).get_user(partner_id)
    conversation_id = direct_conversation_id(user.id, partner_id)
    messages = await MessageService(db).recent_messages(conversation_id, limit)
    return [MessageResponse.model_validate(m) for m in messages]


@router.post("/direct/{partner_id}", response_model=MessageResponse, status_code=status.HTTP_201_CREATED)
async def send_direct_message(
    partner_id: str,
    data: MessageCreate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    ctx: AppContext = Depends(get_app_context),
):
    """Send a private message."""
    await PresenceService(db).get_user(partner_id)
    message = await MessageService(db, ctx.bus).send_direct_message(user, partner_id, data.text)
    return MessageResponse.model_validate(message)


@router.post("/direct/{partner_id}/read", response_model=ActionResponse)
async def mark_read(
    partner_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    ctx: AppContext = Depends(get_app_context),
):
    """Mark a private chat as read."""
    count = await MessageService(db, ctx.bus).mark_read(user, partner_id)
    return ActionResponse(
        notice=Notice(message=f"{count} message(s) marked as read.", severity="info"))
