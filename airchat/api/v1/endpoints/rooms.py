"""Lobby room endpoints."""

from fastapi import APIRouter, Depends

from airchat.api.v1.dependencies import get_current_user
from airchat.models.user import User
from airchat.schemas.common import Notice
from airchat.schemas.user import RoomEnterResponse, RoomResponse
from airchat.services import rooms as room_catalogue

router = APIRouter()


@router.get("/", response_model=list[RoomResponse])
async def list_rooms(user: User = Depends(get_current_user)):
    """List lobby rooms."""
    return [RoomResponse(**room) for room in room_catalogue.list_rooms()]


@router.post("/{room_id}/enter", response_model=RoomEnterResponse)
async def enter_room(room_id: str, user: User = Depends(get_current_user)):
    """Check whether a room can be entered yet."""
    room = RoomResponse(**room_catalogue.get_room(room_id))
    if room.status != "open":
        return RoomEnterResponse(
            room=room,
            entered=False,
            notice=Notice(
                message=f"Room '{room.name}' is under construction. Stay tuned!",
                severity="info",
            ),
        )
    return RoomEnterResponse(room=room, entered=True)
