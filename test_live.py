"""Tests for live subscriptions: scoped pub/sub handles and view switching."""

import asyncio
import json

import pytest
from fastapi import WebSocketDisconnect

from airchat.api.v1.endpoints.live import LiveSession
from airchat.services.event_bus import ContextToken, EventBus, stage_channel
from airchat.services.friend_service import FriendService
from airchat.services.message_service import MessageService, room_conversation_id
from airchat.services.rooms import PUBLIC_ROOM_ID
from airchat.services.stage_service import Occupant


class FakeWebSocket:
    """Collects the frames a session sends and replays scripted client frames."""

    def __init__(self, incoming=()):
        self.sent: asyncio.Queue = asyncio.Queue()
        self.incoming = list(incoming)

    async def receive_json(self):
        if not self.incoming:
            raise WebSocketDisconnect(code=1000)
        return json.loads(self.incoming.pop(0))

    async def send_json(self, frame):
        await self.sent.put(frame)


async def next_frame(websocket: FakeWebSocket) -> dict:
    return await asyncio.wait_for(websocket.sent.get(), timeout=2)


def test_context_token_discards_older_generations():
    token = ContextToken()
    first = token.advance()
    assert token.is_current(first)

    second = token.advance()
    assert not token.is_current(first)
    assert token.is_current(second)
    assert token.current == second


async def test_subscription_is_released_when_block_exits(fake_redis):
    bus = EventBus(fake_redis)

    async with bus.subscription("a", "b") as subscription:
        assert subscription.channels == ("a", "b")
        assert fake_redis.subscriber_count("a") == 1
        await bus.publish("a", "added", {"n": 1})
        event = await anext(subscription.events())
        assert event == {"channel": "a", "type": "added", "data": {"n": 1}}

    assert fake_redis.subscriber_count("a") == 0
    assert fake_redis.subscriber_count("b") == 0


async def test_subscription_is_released_on_error(fake_redis):
    bus = EventBus(fake_redis)

    with pytest.raises(RuntimeError):
        async with bus.subscription("a"):
            raise RuntimeError("boom")

    assert fake_redis.subscriber_count("a") == 0


async def test_stage_view_gets_snapshot_then_updates(context, make_user, fake_redis):
    viewer = await make_user("Viewer")
    websocket = FakeWebSocket()
    session = LiveSession(websocket, context, viewer)

    await session.watch({"action": "watch", "view": "stage", "room_id": PUBLIC_ROOM_ID})
    snapshot = await next_frame(websocket)
    assert snapshot["type"] == "snapshot"
    assert snapshot["view"] == "stage"
    assert snapshot["generation"] == 1
    assert [seat["occupied"] for seat in snapshot["data"]["seats"]] == [False] * 4

    await context.stage.request_seat(
        PUBLIC_ROOM_ID, Occupant(id=viewer.id, display_name="Viewer", avatar=viewer.avatar), True)
    update = await next_frame(websocket)
    assert update["type"] == "snapshot"
    assert update["data"]["seats"][0]["is_self"] is True
    assert update["data"]["version"] == 1

    await session.stop()
    assert fake_redis.subscriber_count(stage_channel(PUBLIC_ROOM_ID)) == 0


async def test_switching_views_drops_the_old_subscription(context, make_user, fake_redis, db):
    viewer = await make_user("Viewer")
    speaker = await make_user("Speaker")
    websocket = FakeWebSocket()
    session = LiveSession(websocket, context, viewer)

    await session.watch({"action": "watch", "view": "stage", "room_id": PUBLIC_ROOM_ID})
    await next_frame(websocket)

    await session.watch({"action": "watch", "view": "room", "room_id": PUBLIC_ROOM_ID})
    feed = await next_frame(websocket)
    assert feed["view"] == "room"
    assert feed["generation"] == 2
    assert fake_redis.subscriber_count(stage_channel(PUBLIC_ROOM_ID)) == 0

    # Nothing from the stage reaches the room view
    await context.stage.request_seat(
        PUBLIC_ROOM_ID, Occupant(id=speaker.id, display_name="Speaker", avatar=speaker.avatar), True)
    await MessageService(db, context.bus).send_room_message(speaker, PUBLIC_ROOM_ID, "hi")

    added = await next_frame(websocket)
    assert added["type"] == "added"
    assert added["view"] == "room"
    assert added["data"]["text"] == "hi"
    assert added["data"]["conversation_id"] == room_conversation_id(PUBLIC_ROOM_ID)

    await session.stop()


async def test_unknown_view_sends_a_notice(context, make_user):
    viewer = await make_user("Viewer")
    websocket = FakeWebSocket()
    session = LiveSession(websocket, context, viewer)

    await session.watch({"action": "watch", "view": "weather"})
    frame = await next_frame(websocket)
    assert frame["type"] == "notice"
    assert frame["notice"]["code"] == "validation_failed"

    await session.watch({"action": "watch", "view": "stage", "room_id": "gaming_hub"})
    frame = await next_frame(websocket)
    assert frame["notice"]["code"] == "not_found"


async def test_friends_view_redraws_on_request(context, make_user, db):
    viewer = await make_user("Viewer")
    other = await make_user("Other")
    websocket = FakeWebSocket()
    session = LiveSession(websocket, context, viewer)

    await session.watch({"action": "watch", "view": "friends"})
    initial = await next_frame(websocket)
    assert initial["data"] == {"friends": [], "incoming": [], "outgoing": []}

    await FriendService(db, context.bus).send_friend_request(other, viewer.id)
    redraw = await next_frame(websocket)
    assert [r["sender"]["username"] for r in redraw["data"]["incoming"]] == ["Other"]

    await session.stop()


async def test_malformed_frames_get_a_notice_and_keep_the_connection(context, make_user):
    viewer = await make_user("Viewer")
    websocket = FakeWebSocket(
        incoming=[
            "not json",
            json.dumps({"action": "watch", "view": "dm", "partner_id": 5}),
            json.dumps({"action": "watch", "view": "stage", "room_id": ["public_chat_room"]}),
            json.dumps({"action": "ping"}),
        ]
    )
    session = LiveSession(websocket, context, viewer)

    with pytest.raises(WebSocketDisconnect):
        await session.run()

    malformed = await next_frame(websocket)
    assert malformed["notice"]["message"] == "Malformed command."
    bad_partner = await next_frame(websocket)
    assert bad_partner["notice"] == {
        "message": "partner_id must be a string.",
        "severity": "warning",
        "code": "validation_failed",
    }
    bad_room = await next_frame(websocket)
    assert bad_room["notice"]["code"] == "validation_failed"
    assert await next_frame(websocket) == {"type": "pong"}


async def test_unexpected_event_shape_reports_lost_subscription(context, make_user):
    viewer = await make_user("Viewer")
    websocket = FakeWebSocket()
    session = LiveSession(websocket, context, viewer)

    await session.watch({"action": "watch", "view": "stage", "room_id": PUBLIC_ROOM_ID})
    await next_frame(websocket)

    await context.bus.publish(stage_channel(PUBLIC_ROOM_ID), "modified", {"unexpected": True})
    frame = await next_frame(websocket)
    assert frame["type"] == "notice"
    assert frame["notice"]["code"] == "subscription_lost"

    await session.stop()
