"""User profile and roster endpoints."""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from airchat.api.v1.dependencies import get_current_user, get_db
from airchat.core.context import AppContext, get_app_context
from airchat.models.user import User
from airchat.schemas.user import UserResponse, UserUpdate
from airchat.services.presence_service import PresenceService

router = APIRouter()


@router.get("/roster", response_model=list[UserResponse])
async def roster(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Everyone except the caller, online first, then by name."""
    users = await PresenceService(db).room_roster(user.id)
    return [UserResponse.model_validate(u) for u in users]


@router.patch("/me", response_model=UserResponse)
async def update_me(
    data: UserUpdate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    ctx: AppContext = Depends(get_app_context),
):
    """Edit the caller's profile."""
    user = await PresenceService(db, ctx.bus).update_profile(user, **data.model_dump())
    return UserResponse.model_validate(user)


@router.get("/{user_id}", response_model=UserResponse)
async def get_user(
    user_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Look a user up by ID."""
    found = await PresenceService(db).get_user(user_id.strip())
    return UserResponse.model_validate(found)
