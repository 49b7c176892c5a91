"""Live subscriptions over Redis pub/sub."""

import json
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

import redis.asyncio as redis
from redis.exceptions import RedisError

logger = logging.getLogger(__name__)

# Delta types delivered to subscribers
ADDED = "added"
MODIFIED = "modified"
REMOVED = "removed"


def users_channel() -> str:
    return "users"


def friends_channel(user_id: str) -> str:
    return f"friends:{user_id}"


def requests_channel(user_id: str) -> str:
    return f"requests:{user_id}"


def conversation_channel(conversation_id: str) -> str:
    return f"conversation:{conversation_id}"


def stage_channel(stage_key: str) -> str:
    return f"stage:{stage_key}"


class Subscription:
    """Handle on an active pub/sub subscription."""

    def __init__(self, pubsub, channels: tuple[str, ...]):
        self._pubsub = pubsub
        self.channels = channels

    async def events(self) -> AsyncIterator[dict]:
        """Yield decoded events in delivery order until the subscription closes."""
        async for raw in self._pubsub.listen():
            if raw.get("type") != "message":
                continue
            try:
                yield json.loads(raw["data"])
            except (TypeError, ValueError):
                logger.warning(f"Dropping undecodable event on {raw.get('channel')}")


class EventBus:
    """Publishes change notifications and hands out scoped subscriptions."""

    def __init__(self, client: redis.Redis):
        self._client = client

    async def publish(self, channel: str, event_type: str, data: Any) -> None:
        """
        Publish one delta on a channel.

        A publish failure only costs live updates; the write that triggered it
        has already been committed, so the error is logged and not raised.
        """
        message = json.dumps(
            {"channel": channel, "type": event_type, "data": data}, default=str
        )
        try:
            await self._client.publish(channel, message)
        except RedisError as e:
            logger.error(f"Failed to publish {event_type} on {channel}: {e}", exc_info=True)

    @asynccontextmanager
    async def subscription(self, *channels: str) -> AsyncIterator[Subscription]:
        """
        Subscribe to channels for the lifetime of the ``async with`` block.

        The subscription is released when the block exits, whether it ends
        normally, by exception or by task cancellation.
        """
        pubsub = self._client.pubsub()
        await pubsub.subscribe(*channels)
        logger.debug(f"Subscribed to {channels}")
        try:
            yield Subscription(pubsub, channels)
        finally:
            try:
                await pubsub.unsubscribe(*channels)
            except RedisError as e:
                logger.warning(f"Failed to unsubscribe from {channels}: {e}")
            await pubsub.aclose()
            logger.debug(f"Unsubscribed from {channels}")


class ContextToken:
    """
    Monotonic generation counter for the view a client is looking at.

    Work started for one view is tagged with the generation current at the
    time; once the client moves on, results carrying an older generation are
    discarded instead of being applied to the new view.
    """

    def __init__(self) -> None:
        self._generation = 0

    @property
    def current(self) -> int:
        return self._generation

    def advance(self) -> int:
        self._generation += 1
        return self._generation

    def is_current(self, generation: int) -> bool:
        return generation == self._generation
