"""Per-process application context, built once at startup."""

import logging
from dataclasses import dataclass

from fastapi import Request, WebSocket
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from airchat.core.config import Settings
from airchat.core.redis import RedisClient
from airchat.services.ai_service import AIService
from airchat.services.event_bus import EventBus
from airchat.services.stage_service import SeatStore, StageCoordinator

logger = logging.getLogger(__name__)


@dataclass
class AppContext:
    """Shared handles every request works through."""

    settings: Settings
    engine: AsyncEngine
    session_factory: async_sessionmaker[AsyncSession]
    redis: object
    bus: EventBus
    stage: StageCoordinator
    ai: AIService

    @classmethod
    def build(cls, settings: Settings, engine, session_factory, redis_client, ai=None) -> "AppContext":
        bus = EventBus(redis_client)
        return cls(
            settings=settings,
            engine=engine,
            session_factory=session_factory,
            redis=redis_client,
            bus=bus,
            stage=StageCoordinator(
                SeatStore(session_factory), bus, max_retries=settings.STAGE_MAX_RETRIES
            ),
            ai=ai or AIService(),
        )

    async def close(self) -> None:
        await RedisClient.close()
        await self.engine.dispose()
        logger.info("Application context closed")


def get_app_context(request: Request) -> AppContext:
    """Dependency for the application context."""
    return request.app.state.context


def get_ws_app_context(websocket: WebSocket) -> AppContext:
    return websocket.app.state.context
