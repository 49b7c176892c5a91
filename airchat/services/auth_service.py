"""Account registration, sign-in and password reset."""

import logging
from typing import Optional
from urllib.parse import quote

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from airchat.core.clock import now_ms
from airchat.core.exceptions import (
    AccountExists,
    AuthError,
    InvalidCredentials,
    NotFound,
    ProviderNotSupported,
    ValidationFailed,
)
from airchat.core.security import (
    PASSWORD_RESET_TOKEN_TYPE,
    create_password_reset_token,
    decode_federated_assertion,
    decode_token,
    get_password_hash,
    password_fingerprint,
    verify_password,
)
from airchat.models.user import User
from airchat.services.presence_service import PresenceService

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6
# bcrypt only hashes the first 72 bytes and refuses anything longer
MAX_PASSWORD_BYTES = 72
FEDERATED_PROVIDERS = ("google", "facebook")
DEFAULT_BIO = "New AirChat user."


def check_password_strength(password: str) -> None:
    if len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationFailed(
            f"Password must be at least {MIN_PASSWORD_LENGTH} characters.")
    if len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
        raise ValidationFailed(f"Password must be at most {MAX_PASSWORD_BYTES} bytes.")


def initials_avatar(seed: str) -> str:
    """Generated avatar URL for users without a picture."""
    return (
        "https://api.dicebear.com/7.x/initials/svg"
        f"?seed={quote(seed)}&backgroundColor=random&radius=50"
    )


class AuthService:
    """Service standing in for the hosted auth provider."""

    def __init__(self, db: AsyncSession, presence: PresenceService):
        self.db = db
        self.presence = presence

    async def _get_by_email(self, email: str) -> Optional[User]:
        result = await self.db.execute(select(User).where(User.email == email.lower()))
        return result.scalar_one_or_none()

    async def _create_user(self, **fields) -> User:
        timestamp = now_ms()
        user = User(
            bio=DEFAULT_BIO,
            interests=[],
            role="member",
            is_online=True,
            last_active=timestamp,
            **fields,
        )
        self.db.add(user)
        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise AccountExists()
        await self.db.refresh(user)
        return user

    async def sign_up(
        self, username: str, email: str, password: str, confirm_password: str
    ) -> User:
        """Register a new account with email and password."""
        username = username.strip()
        if not username or not email or not password or not confirm_password:
            raise ValidationFailed("Please fill in all fields.")
        check_password_strength(password)
        if password != confirm_password:
            raise ValidationFailed("Passwords do not match.")

        if await self._get_by_email(email):
            raise AccountExists()

        user = await self._create_user(
            email=email.lower(),
            hashed_password=get_password_hash(password),
            auth_provider="password",
            username=username,
            avatar=initials_avatar(username),
        )
        logger.info(f"User registered and profile created: {user.id}")
        await self.presence.publish_user(user)
        return user

    async def sign_in(self, email: str, password: str) -> User:
        """Sign in with email and password."""
        user = await self._get_by_email(email)
        if not user or not user.hashed_password or not verify_password(password, user.hashed_password):
            raise InvalidCredentials()
        await self.presence.set_presence(user, online=True)
        logger.info(f"User logged in: {user.id}")
        return user

    async def sign_out(self, user: User) -> None:
        await self.presence.set_presence(user, online=False)
        logger.info(f"User logged out: {user.id}")

    async def federated_sign_in(self, provider: str, assertion: str) -> User:
        """
        Sign in with an identity asserted by an external provider.

        The first sign-in creates the profile; later ones mark the user online.
        """
        provider = provider.lower()
        if provider not in FEDERATED_PROVIDERS:
            raise ProviderNotSupported()

        claims = decode_federated_assertion(assertion)
        if not claims or not claims.get("email"):
            raise AuthError(f"Sign-in through {provider} failed.")
        if claims.get("provider", provider) != provider:
            raise AuthError(f"Sign-in through {provider} failed.")

        email = claims["email"].lower()
        user = await self._get_by_email(email)
        if user is None:
            display_name = claims.get("name") or email.split("@")[0]
            user = await self._create_user(
                email=email,
                hashed_password=None,
                auth_provider=provider,
                username=display_name[:64],
                avatar=claims.get("picture") or initials_avatar(display_name),
            )
            logger.info(f"New {provider} user profile created: {user.id}")
            await self.presence.publish_user(user)
            return user

        if user.auth_provider != provider:
            raise AccountExists(
                "An account already exists with this email using a different sign-in method.")
        await self.presence.set_presence(user, online=True)
        logger.info(f"Existing {provider} user logged in: {user.id}")
        return user

    async def request_password_reset(self, email: str) -> str:
        """Issue a reset token. Delivering it to the user is the mailer's job."""
        user = await self._get_by_email(email)
        if not user:
            raise NotFound("No user is registered with this email.")
        if not user.hashed_password:
            raise ValidationFailed(
                f"This account signs in with {user.auth_provider}; it has no password to reset.")
        logger.info(f"Password reset issued for user {user.id}")
        return create_password_reset_token(user.id, user.hashed_password)

    async def confirm_password_reset(self, token: str, new_password: str) -> User:
        payload = decode_token(token, expected_type=PASSWORD_RESET_TOKEN_TYPE)
        if not payload:
            raise AuthError("This password reset link is invalid or has expired.")
        user = await self.db.get(User, payload["sub"])
        if not user or payload.get("pwd") != password_fingerprint(user.hashed_password):
            raise AuthError("This password reset link is invalid or has expired.")
        check_password_strength(new_password)

        user.hashed_password = get_password_hash(new_password)
        await self.db.commit()
        logger.info(f"Password reset completed for user {user.id}")
        return user
