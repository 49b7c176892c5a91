"""Friend, friend request and block endpoints."""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from airchat.api.v1.dependencies import get_current_user, get_db
from airchat.core.context import AppContext, get_app_context
from airchat.models.user import User
from airchat.schemas.common import ActionResponse, Notice
from airchat.schemas.friend import (
    FriendRequestCreate,
    FriendRequestLists,
    FriendRequestOutcome,
    FriendRequestResponse,
)
from airchat.schemas.user import UserResponse
from airchat.services import friend_service
from airchat.services.friend_service import FriendService

router = APIRouter()

_OUTCOME_NOTICES = {
    friend_service.SENT: ("Friend request sent to {name}!", "success"),
    friend_service.ALREADY_FRIENDS: ("You are already friends with {name}!", "info"),
    friend_service.ALREADY_SENT: ("You already sent {name} a friend request.", "info"),
    friend_service.INCOMING_PENDING: (
        "{name} already sent you a friend request. Accept it now?", "info"),
}


def _friends(db: AsyncSession, ctx: AppContext) -> FriendService:
    return FriendService(db, ctx.bus)


def _request_response(row: tuple) -> FriendRequestResponse:
    request, sender, receiver = row
    return FriendRequestResponse(
        id=request.id,
        sender=UserResponse.model_validate(sender),
        receiver=UserResponse.model_validate(receiver),
        created_at=request.created_at,
    )


@router.get("/", response_model=list[UserResponse])
async def list_friends(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    ctx: AppContext = Depends(get_app_context),
):
    """List friends, online first."""
    friends = await _friends(db, ctx).list_friends(user)
    return [UserResponse.model_validate(f) for f in friends]


@router.delete("/{friend_id}", response_model=ActionResponse)
async def remove_friend(
    friend_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    ctx: AppContext = Depends(get_app_context),
):
    """Remove a friend on both sides."""
    await _friends(db, ctx).remove_friend(user, friend_id)
    return ActionResponse(notice=Notice(message="Friend removed.", severity="success"))


@router.get("/requests", response_model=FriendRequestLists)
async def list_requests(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    ctx: AppContext = Depends(get_app_context),
):
    """Pending requests received and sent."""
    incoming, outgoing = await _friends(db, ctx).list_requests(user)
    return FriendRequestLists(
        incoming=[_request_response(row) for row in incoming],
        outgoing=[_request_response(row) for row in outgoing],
    )


@router.post("/requests", response_model=FriendRequestOutcome)
async def send_request(
    data: FriendRequestCreate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    ctx: AppContext = Depends(get_app_context),
):
    """Send a friend request."""
    outcome = await _friends(db, ctx).send_friend_request(user, data.target_id)
    message, severity = _OUTCOME_NOTICES[outcome.status]
    return FriendRequestOutcome(
        status=outcome.status,
        request_id=outcome.request_id,
        notice=Notice(message=message.format(name=outcome.target.username), severity=severity),
    )


@router.post("/requests/{request_id}/accept", response_model=ActionResponse)
async def accept_request(
    request_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    ctx: AppContext = Depends(get_app_context),
):
    """Accept a friend request."""
    sender = await _friends(db, ctx).accept_friend_request(user, request_id)
    return ActionResponse(
        notice=Notice(message=f"You are now friends with {sender.username}!", severity="success"))


@router.post("/requests/{request_id}/reject", response_model=ActionResponse)
async def reject_request(
    request_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    ctx: AppContext = Depends(get_app_context),
):
    """Reject a friend request."""
    await _friends(db, ctx).reject_friend_request(user, request_id)
    return ActionResponse(notice=Notice(message="Friend request rejected.", severity="info"))


@router.delete("/requests/{request_id}", response_model=ActionResponse)
async def cancel_request(
    request_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    ctx: AppContext = Depends(get_app_context),
):
    """Withdraw a friend request the caller sent."""
    await _friends(db, ctx).cancel_friend_request(user, request_id)
    return ActionResponse(notice=Notice(message="Friend request cancelled.", severity="info"))


@router.get("/blocks", response_model=list[UserResponse])
async def list_blocked(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    ctx: AppContext = Depends(get_app_context),
):
    """Users the caller has blocked."""
    blocked = await _friends(db, ctx).list_blocked(user)
    return [UserResponse.model_validate(b) for b in blocked]


@router.post("/blocks", response_model=ActionResponse)
async def block_user(
    data: FriendRequestCreate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    ctx: AppContext = Depends(get_app_context),
):
    """Block a user."""
    await _friends(db, ctx).block_user(user, data.target_id)
    return ActionResponse(notice=Notice(message="User blocked.", severity="success"))


@router.delete("/blocks/{target_id}", response_model=ActionResponse)
async def unblock_user(
    target_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    ctx: AppContext = Depends(get_app_context),
):
    """Unblock a user."""
    await _friends(db, ctx).unblock_user(user, target_id)
    return ActionResponse(notice=Notice(message="User unblocked.", severity="success"))
