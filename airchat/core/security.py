"""Security utilities for authentication and password hashing."""

from datetime import datetime, timedelta, timezone
from typing import Optional
from jose import JWTError, jwt
import bcrypt

from airchat.core.config import settings

ACCESS_TOKEN_TYPE = "access"
PASSWORD_RESET_TOKEN_TYPE = "password_reset"


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against its hash."""
    try:
        return bcrypt.checkpw(
            plain_password.encode("utf-8"), hashed_password.encode("utf-8")
        )
    except (TypeError, ValueError):
        return False


def get_password_hash(password: str) -> str:
    """Hash a password using bcrypt."""
    salt = bcrypt.gensalt(rounds=12)
    hashed = bcrypt.hashpw(password.encode("utf-8"), salt)
    return hashed.decode("utf-8")


def _encode(data: dict, expires_delta: timedelta) -> str:
    to_encode = data.copy()
    to_encode.update({"exp": datetime.now(timezone.utc) + expires_delta})
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def create_access_token(user_id: str, expires_delta: Optional[timedelta] = None) -> str:
    """Create a JWT access token for a user id."""
    if expires_delta is None:
        expires_delta = timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    return _encode({"sub": user_id, "type": ACCESS_TOKEN_TYPE}, expires_delta)


def create_password_reset_token(user_id: str, hashed_password: str | None) -> str:
    """
    Create a short-lived password reset token.

    The token carries a fingerprint of the current password hash, so it stops
    working as soon as the password changes.
    """
    return _encode(
        {
            "sub": user_id,
            "type": PASSWORD_RESET_TOKEN_TYPE,
            "pwd": password_fingerprint(hashed_password),
        },
        timedelta(minutes=settings.PASSWORD_RESET_EXPIRE_MINUTES),
    )


def password_fingerprint(hashed_password: str | None) -> str:
    return (hashed_password or "")[-12:]


def decode_token(token: str, expected_type: str = ACCESS_TOKEN_TYPE) -> Optional[dict]:
    """Decode and verify a JWT issued by this service."""
    try:
        payload = jwt.decode(
            token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM]
        )
    except JWTError:
        return None
    if payload.get("type") != expected_type or not payload.get("sub"):
        return None
    return payload


def decode_federated_assertion(assertion: str) -> Optional[dict]:
    """Decode an identity assertion signed by the upstream identity broker."""
    if not settings.FEDERATED_ASSERTION_SECRET:
        return None
    try:
        return jwt.decode(
            assertion,
            settings.FEDERATED_ASSERTION_SECRET,
            algorithms=[settings.ALGORITHM],
        )
    except JWTError:
        return None
