"""Live subscription endpoint.

A client keeps one WebSocket open and tells the server which view it is
looking at (a room feed, a private chat, a mic stage, its friends list or the
room roster). Each ``watch`` replaces the previous subscription: the old one is
released, the context token advances, and anything still in flight for the
old view is dropped.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional

from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect, status

from airchat.api.v1.dependencies import resolve_user
from airchat.core.context import AppContext, get_ws_app_context
from airchat.core.exceptions import AirChatError, ValidationFailed
from airchat.models.user import User
from airchat.schemas.message import MessageResponse
from airchat.schemas.user import UserResponse
from airchat.services.event_bus import (
    ContextToken,
    conversation_channel,
    friends_channel,
    requests_channel,
    stage_channel,
    users_channel,
)
from airchat.services.friend_service import FriendService
from airchat.services.message_service import (
    MessageService,
    direct_conversation_id,
    room_conversation_id,
)
from airchat.services.presence_service import PresenceService
from airchat.services.rooms import require_open_room
from airchat.services.stage_service import StageSnapshot, render_stage

logger = logging.getLogger(__name__)
router = APIRouter()


def _text_field(command: dict, key: str) -> str:
    value = command.get(key) or ""
    if not isinstance(value, str):
        raise ValidationFailed(f"{key} must be a string.")
    return value


@dataclass
class LiveView:
    """What a watched view subscribes to and how it turns events into frames."""

    name: str
    channels: tuple[str, ...]
    load: Callable[[], Awaitable[Any]]
    # Returns the payload to push for an event, or None to skip it
    on_event: Callable[[dict], Awaitable[Optional[dict]]]


class LiveSession:
    """One client's live connection."""

    def __init__(self, websocket: WebSocket, ctx: AppContext, user: User):
        self.websocket = websocket
        self.ctx = ctx
        self.user = user
        self.token = ContextToken()
        self._task: Optional[asyncio.Task] = None

    async def run(self) -> None:
        while True:
            try:
                command = await self.websocket.receive_json()
            except ValueError:
                await self._send_notice(ValidationFailed("Malformed command.").to_notice())
                continue
            action = command.get("action") if isinstance(command, dict) else None
            if action == "watch":
                await self.watch(command)
            elif action == "unwatch":
                await self.stop()
                self.token.advance()
            elif action == "ping":
                await self._send({"type": "pong"})
            else:
                await self._send_notice(
                    ValidationFailed(f"Unknown action: {action!r}").to_notice())

    async def watch(self, command: dict) -> None:
        try:
            view = self._build_view(command)
        except AirChatError as e:
            await self._send_notice(e.to_notice())
            return
        await self.stop()
        generation = self.token.advance()
        self._task = asyncio.create_task(self._forward(view, generation))

    async def stop(self) -> None:
        """Release the current subscription, if any."""
        task, self._task = self._task, None
        if task is None:
            return
        if task.done():
            if not task.cancelled() and task.exception() is not None:
                logger.debug(f"Previous live view ended with {task.exception()!r}")
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def _forward(self, view: LiveView, generation: int) -> None:
        try:
            async with self.ctx.bus.subscription(*view.channels) as subscription:
                snapshot = await view.load()
                if not self.token.is_current(generation):
                    return
                await self._send(
                    {"type": "snapshot", "view": view.name, "generation": generation, "data": snapshot})

                async for event in subscription.events():
                    if not self.token.is_current(generation):
                        return
                    payload = await view.on_event(event)
                    if payload is None or not self.token.is_current(generation):
                        continue
                    await self._send({"view": view.name, "generation": generation, **payload})
        except WebSocketDisconnect:
            logger.debug(f"Client {self.user.id} went away while forwarding {view.name}")
        except Exception as e:
            logger.error(f"Live subscription {view.name} failed for {self.user.id}: {e}", exc_info=True)
            if self.token.is_current(generation):
                await self._send_notice(
                    {
                        "message": "Live updates stopped. Reload to try again.",
                        "severity": "error",
                        "code": "subscription_lost",
                    }
                )

    def _build_view(self, command: dict) -> LiveView:
        name = command.get("view")
        if name == "room":
            return self._feed_view(name, room_conversation_id(require_open_room(_text_field(command, "room_id"))["id"]))
        if name == "dm":
            partner_id = _text_field(command, "partner_id")
            if not partner_id:
                raise ValidationFailed("Pick a chat partner first.")
            return self._feed_view(name, direct_conversation_id(self.user.id, partner_id))
        if name == "stage":
            return self._stage_view(require_open_room(_text_field(command, "room_id"))["id"])
        if name == "friends":
            return self._friends_view()
        if name == "roster":
            return self._roster_view()
        raise ValidationFailed(f"Unknown view: {name!r}")

    def _feed_view(self, name: str, conversation_id: str) -> LiveView:
        async def load():
            async with self.ctx.session_factory() as db:
                messages = await MessageService(db).recent_messages(conversation_id)
                return [MessageResponse.model_validate(m).model_dump() for m in messages]

        async def on_event(event: dict) -> dict:
            # Feeds are append-only, so deltas are forwarded as they come
            return {"type": event["type"], "data": event["data"]}

        return LiveView(name, (conversation_channel(conversation_id),), load, on_event)

    def _stage_view(self, room_id: str) -> LiveView:
        async def load():
            snapshot = await self.ctx.stage.get_stage(room_id)
            return render_stage(snapshot, self.user.id).model_dump()

        async def on_event(event: dict) -> dict:
            data = event["data"]
            snapshot = StageSnapshot(key=data["key"], seats=data["seats"], version=data["version"])
            return {"type": "snapshot", "data": render_stage(snapshot, self.user.id).model_dump()}

        return LiveView("stage", (stage_channel(room_id),), load, on_event)

    def _friends_view(self) -> LiveView:
        known_friends: set[str] = set()

        async def load():
            async with self.ctx.session_factory() as db:
                service = FriendService(db)
                friends = await service.list_friends(self.user)
                incoming, outgoing = await service.list_requests(self.user)
            known_friends.clear()
            known_friends.update(f.id for f in friends)
            return {
                "friends": [UserResponse.model_validate(f).model_dump() for f in friends],
                "incoming": [{"id": r.id, "sender": UserResponse.model_validate(s).model_dump()}
                             for r, s, _ in incoming],
                "outgoing": [{"id": r.id, "receiver": UserResponse.model_validate(rc).model_dump()}
                             for r, _, rc in outgoing],
            }

        async def on_event(event: dict) -> Optional[dict]:
            if event["channel"] == users_channel() and event["data"].get("id") not in known_friends:
                return None
            # Any change redraws the whole list
            return {"type": "snapshot", "data": await load()}

        channels = (friends_channel(self.user.id), requests_channel(self.user.id), users_channel())
        return LiveView("friends", channels, load, on_event)

    def _roster_view(self) -> LiveView:
        async def load():
            async with self.ctx.session_factory() as db:
                users = await PresenceService(db).room_roster(self.user.id)
            return [UserResponse.model_validate(u).model_dump() for u in users]

        async def on_event(event: dict) -> dict:
            return {"type": "snapshot", "data": await load()}

        return LiveView("roster", (users_channel(),), load, on_event)

    async def _send(self, frame: dict) -> None:
        await self.websocket.send_json(frame)

    async def _send_notice(self, notice: dict) -> None:
        await self._send({"type": "notice", "notice": notice})


@router.websocket("/live")
async def live(websocket: WebSocket, token: Optional[str] = Query(None)):
    """Authenticate with ``?token=`` and stream the watched view."""
    ctx = get_ws_app_context(websocket)
    async with ctx.session_factory() as db:
        try:
            user = await resolve_user(token, db)
        except AirChatError as e:
            await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason=e.message)
            return

    await websocket.accept()
    session = LiveSession(websocket, ctx, user)
    logger.info(f"Live connection opened for {user.id}")
    try:
        await session.run()
    except WebSocketDisconnect:
        logger.info(f"Live connection closed for {user.id}")
    finally:
        await session.stop()
