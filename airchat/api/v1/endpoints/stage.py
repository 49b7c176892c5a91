"""Mic stage endpoints."""

import logging
from fastapi import APIRouter, Depends

from airchat.api.v1.dependencies import get_current_user
from airchat.core.context import AppContext, get_app_context
from airchat.models.user import User
from airchat.schemas.common import Notice
from airchat.schemas.stage import StageActionResponse, StageView, StageVoiceToken
from airchat.services.livekit_service import LiveKitService, stage_voice_room
from airchat.services.rooms import require_open_room
from airchat.services.stage_service import Occupant, find_seat, render_stage

logger = logging.getLogger(__name__)
router = APIRouter()


def _occupant(user: User) -> Occupant:
    return Occupant(id=user.id, display_name=user.username, avatar=user.avatar)


@router.get("/{room_id}", response_model=StageView)
async def get_stage(
    room_id: str,
    user: User = Depends(get_current_user),
    ctx: AppContext = Depends(get_app_context),
):
    """All seats of a room's mic stage."""
    require_open_room(room_id)
    snapshot = await ctx.stage.get_stage(room_id)
    return render_stage(snapshot, user.id)


@router.post("/{room_id}/seat", response_model=StageActionResponse)
async def request_seat(
    room_id: str,
    user: User = Depends(get_current_user),
    ctx: AppContext = Depends(get_app_context),
):
    """Take the first free mic seat."""
    require_open_room(room_id)
    authorized = user.role in ctx.settings.STAGE_SPEAKER_ROLES
    snapshot = await ctx.stage.request_seat(room_id, _occupant(user), authorized)
    logger.info(f"User {user.id} took a seat on stage {room_id}")
    return StageActionResponse(
        stage=render_stage(snapshot, user.id),
        notice=Notice(message="You are on the mic.", severity="success", duration_ms=2000),
    )


@router.delete("/{room_id}/seat", response_model=StageActionResponse)
async def leave_seat(
    room_id: str,
    user: User = Depends(get_current_user),
    ctx: AppContext = Depends(get_app_context),
):
    """Give up the caller's mic seat."""
    require_open_room(room_id)
    snapshot = await ctx.stage.leave_seat(room_id, user.id)
    logger.info(f"User {user.id} left stage {room_id}")
    return StageActionResponse(
        stage=render_stage(snapshot, user.id),
        notice=Notice(message="You left the mic.", severity="info", duration_ms=2000),
    )


@router.post("/{room_id}/mute", response_model=StageActionResponse)
async def toggle_mute(
    room_id: str,
    user: User = Depends(get_current_user),
    ctx: AppContext = Depends(get_app_context),
):
    """Mute or unmute the caller's seat."""
    require_open_room(room_id)
    snapshot = await ctx.stage.toggle_mute(room_id, user.id)
    muted = snapshot.seats[find_seat(snapshot.seats, user.id)]["muted"]
    return StageActionResponse(
        stage=render_stage(snapshot, user.id),
        notice=Notice(
            message="Microphone muted." if muted else "Microphone on.",
            severity="info",
            duration_ms=2000,
        ),
    )


@router.post("/{room_id}/voice-token", response_model=StageVoiceToken)
async def voice_token(
    room_id: str,
    user: User = Depends(get_current_user),
    ctx: AppContext = Depends(get_app_context),
):
    """LiveKit token for the stage audio; publishing needs an unmuted seat."""
    require_open_room(room_id)
    snapshot = await ctx.stage.get_stage(room_id)
    index = find_seat(snapshot.seats, user.id)
    can_publish = index is not None and not snapshot.seats[index]["muted"]

    livekit = LiveKitService()
    room_name = stage_voice_room(room_id)
    token = livekit.create_access_token(
        room_name=room_name,
        participant_name=user.username,
        participant_identity=user.id,
        can_publish=can_publish,
    )
    return StageVoiceToken(token=token, room_name=room_name, url=livekit.url, can_publish=can_publish)
