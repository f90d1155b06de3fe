"""
Shared FastAPI dependencies for the roadside dispatch backend.

Provides the async database session dependency used by all route handlers,
and authentication dependencies for extracting the current user (and, for
provider routes, the caller's provider profile) from the request token.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from typing import Annotated, Any, Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from fastapi.security.utils import get_authorization_scheme_param
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from roadside.api.errors import to_http_exception
from roadside.core.config import settings
from roadside.core.exceptions import (
    AuthenticationError,
    DispatchError,
    NotAuthorizedError,
)
from roadside.models.provider import Provider
from roadside.models.user import User, UserRole
from roadside.services import auth_service
from roadside.services.availabilityTracker import get_provider_for_user

# ---------------------------------------------------------------------------
# Async engine & session factory
# ---------------------------------------------------------------------------
# The engine is created once at module import time.  The session factory
# produces lightweight ``AsyncSession`` instances that are scoped to a single
# request via the ``get_db`` dependency below.
# ---------------------------------------------------------------------------


def _engine_options(database_url: str) -> dict[str, Any]:
    # SQLite drivers use a static pool that rejects sizing arguments
    if make_url(database_url).get_backend_name() == "sqlite":
        return {}
    return {
        "pool_size": settings.db_pool_size,
        "max_overflow": settings.db_max_overflow,
        "pool_pre_ping": True,
    }


engine = create_async_engine(
    settings.database_url,
    echo=settings.sql_echo,
    **_engine_options(settings.database_url),
)

async_session_factory = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Yield an async database session scoped to one HTTP request.

    Commits when the handler returns normally and rolls back on any
    exception, so a failed assignment never leaves a half-claimed provider
    behind.
    """
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


# ---------------------------------------------------------------------------
# Annotated type alias for convenience
# ---------------------------------------------------------------------------
DBSession = Annotated[AsyncSession, Depends(get_db)]


# ---------------------------------------------------------------------------
# Authentication dependencies
# ---------------------------------------------------------------------------

class TokenAuth(HTTPBearer):
    """``Authorization: Bearer <token>`` or the legacy ``Token <token>``.

    Anything else (missing header, unknown scheme, empty token) is a 401.
    """

    accepted_schemes = ("bearer", "token")

    async def __call__(self, request: Request) -> Optional[HTTPAuthorizationCredentials]:
        authorization = request.headers.get("Authorization")
        scheme, credentials = get_authorization_scheme_param(authorization)
        if not (authorization and scheme and credentials):
            raise to_http_exception(AuthenticationError("Authentication credentials were not provided."))
        if scheme.lower() not in self.accepted_schemes:
            raise to_http_exception(AuthenticationError("Unsupported authorization scheme."))
        return HTTPAuthorizationCredentials(scheme=scheme, credentials=credentials)


_token_scheme = TokenAuth(description="Bearer (or legacy Token) access token")

AccessToken = Annotated[HTTPAuthorizationCredentials, Depends(_token_scheme)]


async def get_current_user(credentials: AccessToken, db: DBSession) -> User:
    """Resolve the token to a live session and return its ``User``.

    Raises 401 if the token is invalid, expired, revoked, or its user is gone.
    """
    try:
        return await auth_service.get_current_user(db, credentials.credentials)
    except AuthenticationError as exc:
        raise to_http_exception(exc)


CurrentUser = Annotated[User, Depends(get_current_user)]


def require_roles(*roles: UserRole):
    """Build a dependency that admits only users holding one of ``roles``."""

    async def _guard(user: CurrentUser) -> User:
        if user.role not in roles:
            allowed = " or ".join(r.value for r in roles)
            raise to_http_exception(
                NotAuthorizedError(f"This action requires the {allowed} role.")
            )
        return user

    return _guard


AdminUser = Annotated[User, Depends(require_roles(UserRole.ADMIN))]
ProviderUser = Annotated[User, Depends(require_roles(UserRole.PROVIDER))]
RequesterUser = Annotated[User, Depends(require_roles(UserRole.USER))]


async def get_current_provider(user: ProviderUser, db: DBSession) -> Provider:
    """The caller's provider profile; 404 until ``create_profile`` has run."""
    try:
        return await get_provider_for_user(db, user.id)
    except DispatchError as exc:
        raise to_http_exception(exc)


CurrentProvider = Annotated[Provider, Depends(get_current_provider)]
