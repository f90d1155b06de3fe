"""
Pydantic v2 schemas for registration, login and user profiles.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from roadside.models.user import UserRole


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------

class RegisterRequest(BaseModel):
    """Request body for POST /users/register/."""

    email: str = Field(..., min_length=3, max_length=320, description="User email address")
    username: str = Field(..., min_length=1, max_length=150)
    password: str = Field(
        ..., min_length=8, max_length=128, description="Password (min 8 characters)"
    )
    first_name: str = Field(default="", max_length=100)
    last_name: str = Field(default="", max_length=100)
    phone_number: Optional[str] = Field(default=None, max_length=20)
    role: str = Field(default="user", description="user or provider")


class LoginRequest(BaseModel):
    """Request body for POST /users/login/."""

    email: str
    password: str


class ProfileUpdate(BaseModel):
    """Request body for PUT /users/profile/."""

    first_name: Optional[str] = Field(default=None, max_length=100)
    last_name: Optional[str] = Field(default=None, max_length=100)
    phone_number: Optional[str] = Field(default=None, max_length=20)


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------

class UserOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    email: str
    username: str
    first_name: str
    last_name: str
    phone_number: Optional[str] = None
    role: UserRole
    is_verified: bool
    last_login_at: Optional[datetime] = None
    created_at: datetime


class LoginResponse(BaseModel):
    """Token plus the user it belongs to."""

    token: str
    user: UserOut


class MessageResponse(BaseModel):
    message: str
