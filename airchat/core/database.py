"""Async database engine and session configuration."""

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from airchat.core.config import settings


class Base(DeclarativeBase):
    """Declarative base for all ORM models."""


def build_engine(url: str = settings.DATABASE_URL):
    return create_async_engine(url, echo=False, pool_pre_ping=True)


def build_session_factory(engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )
