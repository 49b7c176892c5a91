"""Authentication endpoints."""

import logging
from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from airchat.api.v1.dependencies import get_current_user, get_db
from airchat.core.context import AppContext, get_app_context
from airchat.core.security import create_access_token
from airchat.models.user import User
from airchat.schemas.common import ActionResponse, Notice
from airchat.schemas.user import (
    FederatedLogin,
    PasswordResetConfirm,
    PasswordResetRequest,
    PasswordResetResponse,
    Token,
    UserCreate,
    UserLogin,
    UserResponse,
)
from airchat.services.auth_service import AuthService
from airchat.services.presence_service import PresenceService

logger = logging.getLogger(__name__)
router = APIRouter()


def _auth_service(db: AsyncSession, ctx: AppContext) -> AuthService:
    return AuthService(db, PresenceService(db, ctx.bus))


def _token_for(user: User, message: str) -> Token:
    return Token(
        access_token=create_access_token(user.id),
        user=UserResponse.model_validate(user),
        notice=Notice(message=message, severity="success", duration_ms=3000),
    )


@router.post("/register", response_model=Token, status_code=status.HTTP_201_CREATED)
async def register(
    data: UserCreate,
    db: AsyncSession = Depends(get_db),
    ctx: AppContext = Depends(get_app_context),
):
    """Create an account with email and password."""
    user = await _auth_service(db, ctx).sign_up(
        username=data.username,
        email=data.email,
        password=data.password,
        confirm_password=data.confirm_password,
    )
    return _token_for(user, "Registration successful!")


@router.post("/login", response_model=Token)
async def login(
    data: UserLogin,
    db: AsyncSession = Depends(get_db),
    ctx: AppContext = Depends(get_app_context),
):
    """Sign in with email and password."""
    user = await _auth_service(db, ctx).sign_in(data.email, data.password)
    return _token_for(user, "Signed in successfully!")


@router.post("/federated", response_model=Token)
async def federated_login(
    data: FederatedLogin,
    db: AsyncSession = Depends(get_db),
    ctx: AppContext = Depends(get_app_context),
):
    """Sign in through Google or Facebook."""
    user = await _auth_service(db, ctx).federated_sign_in(data.provider, data.assertion)
    return _token_for(user, f"Signed in with {data.provider.lower()}!")


@router.post("/logout", response_model=ActionResponse)
async def logout(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    ctx: AppContext = Depends(get_app_context),
):
    """Mark the user offline. The client drops its token and live subscriptions."""
    await _auth_service(db, ctx).sign_out(user)
    return ActionResponse(notice=Notice(message="Signed out.", severity="success"))


@router.post(
    "/password-reset",
    response_model=PasswordResetResponse,
    status_code=status.HTTP_202_ACCEPTED,
)
async def request_password_reset(
    data: PasswordResetRequest,
    db: AsyncSession = Depends(get_db),
    ctx: AppContext = Depends(get_app_context),
):
    """Start a password reset for an email address."""
    token = await _auth_service(db, ctx).request_password_reset(data.email)
    return PasswordResetResponse(
        notice=Notice(
            message="A password reset link has been sent to your email.",
            severity="info",
        ),
        reset_token=token if ctx.settings.ENVIRONMENT == "development" else None,
    )


@router.post("/password-reset/confirm", response_model=ActionResponse)
async def confirm_password_reset(
    data: PasswordResetConfirm,
    db: AsyncSession = Depends(get_db),
    ctx: AppContext = Depends(get_app_context),
):
    """Set a new password using a reset token."""
    await _auth_service(db, ctx).confirm_password_reset(data.token, data.new_password)
    return ActionResponse(
        notice=Notice(message="Your password has been changed.", severity="success"))


@router.get("/me", response_model=UserResponse)
async def me(user: User = Depends(get_current_user)):
    """Get the signed-in user."""
    return UserResponse.model_validate(user)
