"""Shared fixtures: a throwaway SQLite database, an in-memory pub/sub broker and an API client."""

import asyncio
import json
import os

# Settings are read at import time
os.environ.setdefault("ENVIRONMENT", "development")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("OPENAI_API_KEY", "sk-test")
os.environ.setdefault("FEDERATED_ASSERTION_SECRET", "test-broker-secret")
os.environ.setdefault("LIVEKIT_API_KEY", "devkey")
os.environ.setdefault("LIVEKIT_API_SECRET", "devsecret-devsecret-devsecret-0000")
os.environ.setdefault("LIVEKIT_URL", "ws://localhost:7880")

import pytest
from httpx import ASGITransport, AsyncClient

import airchat.models  # noqa: F401
from airchat.core.config import settings
from airchat.core.context import AppContext
from airchat.core.database import Base, build_engine, build_session_factory
from airchat.main import app
from airchat.models.user import User
from airchat.services.ai_service import AIService
from airchat.services.auth_service import initials_avatar


class FakePubSub:
    """Pub/sub handle delivering through an asyncio queue."""

    def __init__(self, broker: "FakeRedis"):
        self.broker = broker
        self.channels: set[str] = set()
        self.queue: asyncio.Queue = asyncio.Queue()
        self.closed = False

    async def subscribe(self, *channels):
        for channel in channels:
            self.channels.add(channel)
            self.broker.subscribers.setdefault(channel, set()).add(self)

    async def unsubscribe(self, *channels):
        for channel in channels:
            self.channels.discard(channel)
            self.broker.subscribers.get(channel, set()).discard(self)

    async def aclose(self):
        self.closed = True

    async def listen(self):
        while True:
            yield await self.queue.get()


class FakeRedis:
    """Records every publish and fans it out to current subscribers, like Redis pub/sub."""

    def __init__(self):
        self.subscribers: dict[str, set[FakePubSub]] = {}
        self.published: list[tuple[str, dict]] = []

    async def publish(self, channel, message):
        self.published.append((channel, json.loads(message)))
        receivers = list(self.subscribers.get(channel, ()))
        for pubsub in receivers:
            pubsub.queue.put_nowait({"type": "message", "channel": channel, "data": message})
        return len(receivers)

    def pubsub(self):
        return FakePubSub(self)

    async def aclose(self):
        pass

    def subscriber_count(self, channel: str) -> int:
        return len(self.subscribers.get(channel, ()))

    def events(self, channel: str) -> list[dict]:
        return [event for name, event in self.published if name == channel]


class StubCompletion:
    """Stands in for the chat completions call."""

    def __init__(self, reply: str = "1. Sounds good!\n2. \"Tell me more\"\n3. Haha, nice"):
        self.reply = reply
        self.error: Exception | None = None
        self.prompts: list[str] = []

    async def __call__(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if self.error is not None:
            raise self.error
        return self.reply


@pytest.fixture
async def engine(tmp_path):
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'airchat.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def completion():
    return StubCompletion()


@pytest.fixture
def context(engine, session_factory, fake_redis, completion):
    return AppContext.build(
        settings=settings,
        engine=engine,
        session_factory=session_factory,
        redis_client=fake_redis,
        ai=AIService(complete=completion),
    )


@pytest.fixture
async def client(context):
    app.state.context = context
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
def make_user(session_factory):
    """Insert a user directly, skipping password hashing."""

    async def _make_user(username: str, online: bool = True, role: str = "member") -> User:
        async with session_factory() as session:
            user = User(
                email=f"{username.lower()}@airchat.app",
                hashed_password=None,
                auth_provider="password",
                username=username,
                avatar=initials_avatar(username),
                bio="",
                interests=[],
                role=role,
                is_online=online,
                last_active=0,
            )
            session.add(user)
            await session.commit()
            await session.refresh(user)
            return user

    return _make_user


@pytest.fixture
def register(client):
    """Register through the API and return the bearer headers and profile."""

    async def _register(username: str, password: str = "secret123") -> dict:
        response = await client.post(
            "/api/v1/auth/register",
            json={
                "username": username,
                "email": f"{username.lower()}@airchat.app",
                "password": password,
                "confirm_password": password,
            },
        )
        assert response.status_code == 201, response.text
        body = response.json()
        return {
            "headers": {"Authorization": f"Bearer {body['access_token']}"},
            "user": body["user"],
        }

    return _register
