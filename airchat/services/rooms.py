"""Lobby room catalogue."""

from airchat.core.exceptions import NotFound

PUBLIC_ROOM_ID = "public_chat_room"

# Only the public room is live; the rest are announced in the lobby ahead of launch.
ROOMS = {
    PUBLIC_ROOM_ID: {"name": "Public Chat Room", "status": "open"},
    "music_lounge": {"name": "Music Lounge", "status": "under_construction"},
    "gaming_hub": {"name": "Gaming Hub", "status": "under_construction"},
    "study_corner": {"name": "Study Corner", "status": "under_construction"},
}


def list_rooms() -> list[dict]:
    return [{"id": room_id, **room} for room_id, room in ROOMS.items()]


def get_room(room_id: str) -> dict:
    room = ROOMS.get(room_id)
    if room is None:
        raise NotFound(f"Room '{room_id}' does not exist.")
    return {"id": room_id, **room}


def require_open_room(room_id: str) -> dict:
    room = get_room(room_id)
    if room["status"] != "open":
        raise NotFound(f"Room '{room['name']}' is under construction. Stay tuned!")
    return room
