"""
User API Routes
===============

Registration, login/logout and profile endpoints.

Routes:
  POST   /api/users/register/   -- Create a driver or provider account
  POST   /api/users/login/      -- Exchange credentials for a token
  POST   /api/users/logout/     -- Revoke the presented token
  GET    /api/users/me/         -- Current user
  PUT    /api/users/profile/    -- Update name / phone
  GET    /api/users/            -- All users (admin)
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, status

from roadside.api.deps import AccessToken, AdminUser, CurrentUser, DBSession
from roadside.api.errors import to_http_exception
from roadside.api.schemas.user import (
    LoginRequest,
    LoginResponse,
    MessageResponse,
    ProfileUpdate,
    RegisterRequest,
    UserOut,
)
from roadside.core.exceptions import DispatchError
from roadside.services import auth_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/users", tags=["Users"])


@router.post(
    "/register/",
    response_model=UserOut,
    status_code=status.HTTP_201_CREATED,
    summary="Register a new account",
)
async def register(body: RegisterRequest, db: DBSession) -> UserOut:
    try:
        user = await auth_service.register(
            db,
            email=body.email,
            username=body.username,
            password=body.password,
            first_name=body.first_name,
            last_name=body.last_name,
            role=body.role,
            phone_number=body.phone_number,
        )
    except DispatchError as exc:
        raise to_http_exception(exc)

    logger.info("User %s registered as %s", user.id, user.role.value)
    return UserOut.model_validate(user)


@router.post(
    "/login/",
    response_model=LoginResponse,
    summary="Log in with email and password",
)
async def login(body: LoginRequest, db: DBSession) -> LoginResponse:
    try:
        user, token = await auth_service.login(db, body.email, body.password)
    except DispatchError as exc:
        logger.info("Failed login for %s", body.email)
        raise to_http_exception(exc)

    return LoginResponse(token=token, user=UserOut.model_validate(user))


@router.post(
    "/logout/",
    response_model=MessageResponse,
    summary="Revoke the current token",
)
async def logout(credentials: AccessToken, db: DBSession) -> MessageResponse:
    try:
        await auth_service.logout(db, credentials.credentials)
    except DispatchError as exc:
        raise to_http_exception(exc)
    return MessageResponse(message="Logged out.")


@router.get("/me/", response_model=UserOut, summary="Current user")
async def me(user: CurrentUser) -> UserOut:
    return UserOut.model_validate(user)


@router.put("/profile/", response_model=UserOut, summary="Update profile")
async def update_profile(body: ProfileUpdate, db: DBSession, user: CurrentUser) -> UserOut:
    user = await auth_service.update_profile(
        db,
        user,
        first_name=body.first_name,
        last_name=body.last_name,
        phone_number=body.phone_number,
    )
    return UserOut.model_validate(user)


@router.get("/", response_model=list[UserOut], summary="List users (admin)")
async def list_users(db: DBSession, admin: AdminUser) -> list[UserOut]:
    users = await auth_service.list_users(db)
    return [UserOut.model_validate(u) for u in users]
