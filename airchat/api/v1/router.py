"""Main API v1 router."""

from fastapi import APIRouter

from airchat.api.v1.endpoints import ai, auth, friends, live, messages, rooms, stage, users

api_router = APIRouter()

api_router.include_router(auth.router, prefix="/auth", tags=["authentication"])
api_router.include_router(users.router, prefix="/users", tags=["users"])
api_router.include_router(rooms.router, prefix="/rooms", tags=["rooms"])
api_router.include_router(friends.router, prefix="/friends", tags=["friends"])
api_router.include_router(messages.router, prefix="/messages", tags=["messages"])
api_router.include_router(stage.router, prefix="/stage", tags=["stage"])
api_router.include_router(ai.router, prefix="/ai", tags=["ai"])
api_router.include_router(live.router, tags=["live"])
