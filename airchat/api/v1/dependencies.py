"""Shared endpoint dependencies."""

from typing import AsyncGenerator, Optional

from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.ext.asyncio import AsyncSession

from airchat.core.context import AppContext, get_app_context
from airchat.core.exceptions import AuthError
from airchat.core.security import decode_token
from airchat.models.user import User

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/login", auto_error=False)


async def get_db(
    ctx: AppContext = Depends(get_app_context),
) -> AsyncGenerator[AsyncSession, None]:
    """Dependency for getting a database session."""
    async with ctx.session_factory() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise


async def resolve_user(token: Optional[str], db: AsyncSession) -> User:
    """Look up the user a bearer token was issued to."""
    if not token:
        raise AuthError("Please sign in first.")
    payload = decode_token(token)
    if not payload:
        raise AuthError("Your session has expired. Please sign in again.")
    user = await db.get(User, payload["sub"])
    if not user:
        raise AuthError("Your session has expired. Please sign in again.")
    return user


async def get_current_user(
    token: Optional[str] = Depends(oauth2_scheme),
    db: AsyncSession = Depends(get_db),
) -> User:
    return await resolve_user(token, db)
