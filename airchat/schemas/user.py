"""User and authentication Pydantic schemas."""

from typing import Literal, Optional
from pydantic import BaseModel, EmailStr, Field

from airchat.schemas.common import Notice


class UserCreate(BaseModel):
    """Schema for user registration."""

    username: str = Field(..., min_length=1, max_length=64)
    email: EmailStr
    password: str = Field(..., min_length=1, max_length=100)
    confirm_password: str = Field(..., min_length=1, max_length=100)


class UserLogin(BaseModel):
    """Schema for user login."""

    email: EmailStr
    password: str = Field(..., min_length=1)


class FederatedLogin(BaseModel):
    """Schema for sign-in through an external identity provider."""

    provider: str = Field(..., description="google or facebook")
    assertion: str = Field(..., description="Identity assertion signed by the identity broker")


class PasswordResetRequest(BaseModel):
    email: EmailStr


class PasswordResetConfirm(BaseModel):
    token: str
    new_password: str = Field(..., min_length=1, max_length=100)


class PasswordResetResponse(BaseModel):
    notice: Notice
    reset_token: Optional[str] = Field(
        None, description="Only returned in development; otherwise delivered by mail")


class UserResponse(BaseModel):
    """Public profile of a user."""

    id: str
    username: str
    avatar: str
    bio: str
    interests: list[str]
    role: str
    xp: int
    vip_level: int
    gifts_received: int
    is_online: bool
    last_active: int

    class Config:
        from_attributes = True


class UserUpdate(BaseModel):
    """Schema for editing one's own profile."""

    username: Optional[str] = Field(None, min_length=1, max_length=64)
    avatar: Optional[str] = Field(None, max_length=512)
    bio: Optional[str] = Field(None, max_length=500)
    interests: Optional[list[str]] = None


class Token(BaseModel):
    """Schema for authentication token response."""

    access_token: str
    token_type: str = "bearer"
    user: UserResponse
    notice: Optional[Notice] = None


class RoomResponse(BaseModel):
    id: str
    name: str
    status: Literal["open", "under_construction"]


class RoomEnterResponse(BaseModel):
    room: RoomResponse
    entered: bool
    notice: Optional[Notice] = None
