"""Redis connection shared by publishers and live subscriptions."""

import logging
from typing import Optional

import redis.asyncio as redis

from airchat.core.config import settings

logger = logging.getLogger(__name__)


class RedisClient:
    """Process-wide Redis connection pool."""

    _instance: Optional[redis.Redis] = None

    @classmethod
    async def get_client(cls, url: Optional[str] = None) -> redis.Redis:
        """Get or create the client. Pub/sub connections stay open for a whole
        live session, so idle ones are health-checked instead of timing out."""
        if cls._instance is None:
            cls._instance = redis.from_url(
                url or settings.REDIS_URL,
                encoding="utf-8",
                decode_responses=True,
                socket_connect_timeout=5,
                socket_keepalive=True,
                health_check_interval=30,
                client_name="airchat",
            )
            logger.info("Redis client created")
        return cls._instance

    @classmethod
    async def close(cls) -> None:
        client, cls._instance = cls._instance, None
        if client is not None:
            await client.aclose()
            logger.info("Redis client closed")
