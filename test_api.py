"""Tests for the HTTP surface: stage, rooms, roster and error notices."""

from sqlalchemy import update

from airchat.models.user import User
from airchat.services.rooms import PUBLIC_ROOM_ID

STAGE_URL = f"/api/v1/stage/{PUBLIC_ROOM_ID}"


async def test_health(client):
    response = await client.get("/health")
    assert response.json() == {"status": "healthy", "service": "airchat"}


async def test_stage_seat_lifecycle(client, register):
    alice = await register("Alice")
    bob = await register("Bob")

    empty = (await client.get(STAGE_URL, headers=alice["headers"])).json()
    assert [seat["occupied"] for seat in empty["seats"]] == [False, False, False, False]

    taken = await client.post(f"{STAGE_URL}/seat", headers=alice["headers"])
    assert taken.status_code == 200
    body = taken.json()
    assert body["stage"]["seats"][0]["is_self"] is True
    assert body["notice"]["severity"] == "success"

    seen_by_bob = (await client.get(STAGE_URL, headers=bob["headers"])).json()
    assert seen_by_bob["seats"][0]["display_name"] == "Alice"
    assert seen_by_bob["seats"][0]["is_self"] is False

    again = await client.post(f"{STAGE_URL}/seat", headers=alice["headers"])
    assert again.status_code == 409
    assert again.json()["detail"] == {
        "message": "You are already on the mic.",
        "severity": "warning",
        "code": "already_seated",
    }

    muted = await client.post(f"{STAGE_URL}/mute", headers=alice["headers"])
    assert muted.json()["stage"]["seats"][0]["muted"] is True
    assert muted.json()["notice"]["message"] == "Microphone muted."

    left = await client.delete(f"{STAGE_URL}/seat", headers=alice["headers"])
    assert left.json()["stage"]["seats"][0]["occupied"] is False

    not_seated = await client.delete(f"{STAGE_URL}/seat", headers=alice["headers"])
    assert not_seated.status_code == 409
    assert not_seated.json()["detail"]["code"] == "not_seated"


async def test_stage_full(client, register):
    speakers = [await register(name) for name in ["A", "B", "C", "D", "E"]]
    for speaker in speakers[:4]:
        assert (await client.post(f"{STAGE_URL}/seat", headers=speaker["headers"])).status_code == 200

    full = await client.post(f"{STAGE_URL}/seat", headers=speakers[4]["headers"])
    assert full.status_code == 409
    assert full.json()["detail"]["code"] == "stage_full"


async def test_muted_role_cannot_take_a_seat(client, register, session_factory):
    alice = await register("Alice")
    async with session_factory() as session:
        await session.execute(
            update(User).where(User.id == alice["user"]["id"]).values(role="muted"))
        await session.commit()

    response = await client.post(f"{STAGE_URL}/seat", headers=alice["headers"])
    assert response.status_code == 403
    assert response.json()["detail"]["code"] == "seat_not_authorized"


async def test_stage_of_closed_room_is_not_found(client, register):
    alice = await register("Alice")
    response = await client.get("/api/v1/stage/gaming_hub", headers=alice["headers"])
    assert response.status_code == 404


async def test_voice_token_publishing_follows_the_seat(client, register):
    alice = await register("Alice")

    listener = (await client.post(f"{STAGE_URL}/voice-token", headers=alice["headers"])).json()
    assert listener["can_publish"] is False
    assert listener["room_name"] == f"stage-{PUBLIC_ROOM_ID}"
    assert listener["token"]

    await client.post(f"{STAGE_URL}/seat", headers=alice["headers"])
    speaker = (await client.post(f"{STAGE_URL}/voice-token", headers=alice["headers"])).json()
    assert speaker["can_publish"] is True

    await client.post(f"{STAGE_URL}/mute", headers=alice["headers"])
    muted = (await client.post(f"{STAGE_URL}/voice-token", headers=alice["headers"])).json()
    assert muted["can_publish"] is False


async def test_rooms_and_under_construction_notice(client, register):
    alice = await register("Alice")

    rooms = (await client.get("/api/v1/rooms/", headers=alice["headers"])).json()
    assert rooms[0] == {"id": PUBLIC_ROOM_ID, "name": "Public Chat Room", "status": "open"}
    assert {room["status"] for room in rooms[1:]} == {"under_construction"}

    entered = (await client.post(f"/api/v1/rooms/{PUBLIC_ROOM_ID}/enter", headers=alice["headers"])).json()
    assert entered["entered"] is True

    blocked = (await client.post("/api/v1/rooms/music_lounge/enter", headers=alice["headers"])).json()
    assert blocked["entered"] is False
    assert blocked["notice"]["message"] == "Room 'Music Lounge' is under construction. Stay tuned!"

    missing = await client.post("/api/v1/rooms/nowhere/enter", headers=alice["headers"])
    assert missing.status_code == 404


async def test_roster_and_profile_update(client, register):
    alice = await register("Alice")
    bob = await register("bob")
    carol = await register("Carol")
    await client.post("/api/v1/auth/logout", headers=bob["headers"])

    roster = (await client.get("/api/v1/users/roster", headers=alice["headers"])).json()
    assert [u["username"] for u in roster] == ["Carol", "bob"]

    updated = await client.patch(
        "/api/v1/users/me",
        json={"bio": "  Loves jazz  ", "interests": ["music"]},
        headers=carol["headers"],
    )
    assert updated.json()["bio"] == "Loves jazz"
    assert updated.json()["interests"] == ["music"]
    assert updated.json()["username"] == "Carol"

    unknown = await client.get("/api/v1/users/nobody", headers=alice["headers"])
    assert unknown.status_code == 404
    assert unknown.json()["detail"]["message"] == "No user with this ID."


async def test_blank_display_name_is_rejected(client, register):
    alice = await register("Alice")

    response = await client.patch(
        "/api/v1/users/me", json={"username": "   "}, headers=alice["headers"])
    assert response.status_code == 400
    assert response.json()["detail"]["message"] == "Please enter a display name."

    me = await client.get("/api/v1/auth/me", headers=alice["headers"])
    assert me.json()["username"] == "Alice"
