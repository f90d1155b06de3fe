"""
Authentication service for the roadside dispatch platform.

Handles user registration, login, logout and bearer-token verification.
Uses bcrypt for password hashing and PyJWT for token generation.

Tokens are explicit per-session credentials: each login issues a JWT whose
``jti`` is recorded in ``auth_sessions``.  Logout revokes that row, after
which the token is rejected even though its signature is still valid.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

import bcrypt
import jwt
from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from roadside.core.config import settings
from roadside.core.exceptions import AuthenticationError, ConflictError, ValidationError
from roadside.models.base import as_utc
from roadside.models.user import AuthSession, User, UserRole

# Roles a visitor may pick on the sign-up form; admins are provisioned out of band
SELF_SERVICE_ROLES: frozenset[UserRole] = frozenset({UserRole.USER, UserRole.PROVIDER})


# ---------------------------------------------------------------------------
# Password hashing
# ---------------------------------------------------------------------------


def hash_password(password: str) -> str:
    """Hash a plaintext password using bcrypt."""
    # bcrypt requires bytes; truncate to 72 bytes (bcrypt limit)
    pw_bytes = password.encode("utf-8")[:72]
    salt = bcrypt.gensalt(rounds=12)
    return bcrypt.hashpw(pw_bytes, salt).decode("utf-8")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a plaintext password against a bcrypt hash."""
    pw_bytes = plain_password.encode("utf-8")[:72]
    return bcrypt.checkpw(pw_bytes, hashed_password.encode("utf-8"))


# ---------------------------------------------------------------------------
# JWT token generation
# ---------------------------------------------------------------------------


def create_access_token(user_id: int) -> tuple[str, str, datetime]:
    """Create a signed access token.

    Returns:
        Tuple of (token_string, jti, expiration_datetime).
    """
    now = datetime.now(timezone.utc)
    expires_at = now + timedelta(minutes=settings.access_token_expire_minutes)
    jti = uuid.uuid4().hex
    payload = {
        "sub": str(user_id),
        "type": "access",
        "exp": expires_at,
        "iat": now,
        "jti": jti,
    }
    token = jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)
    return token, jti, expires_at


def decode_token(token: str) -> dict:
    """Decode and verify a JWT token.

    Raises:
        AuthenticationError: If the token is expired or otherwise invalid.
    """
    try:
        return jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
        )
    except jwt.ExpiredSignatureError:
        raise AuthenticationError("Access token has expired.")
    except jwt.InvalidTokenError:
        raise AuthenticationError("Invalid access token.")


# ---------------------------------------------------------------------------
# Lookups
# ---------------------------------------------------------------------------


async def get_user_by_email(db: AsyncSession, email: str) -> Optional[User]:
    """Look up a user by email address."""
    stmt = select(User).where(User.email == email.lower().strip())
    result = await db.execute(stmt)
    return result.scalars().first()


async def get_user_by_id(db: AsyncSession, user_id: int) -> Optional[User]:
    """Look up a user by primary key."""
    result = await db.execute(select(User).where(User.id == user_id))
    return result.scalars().first()


# ---------------------------------------------------------------------------
# Service functions
# ---------------------------------------------------------------------------


async def register(
    db: AsyncSession,
    *,
    email: str,
    username: str,
    password: str,
    first_name: str = "",
    last_name: str = "",
    role: str = UserRole.USER.value,
    phone_number: Optional[str] = None,
) -> User:
    """Register a new user.

    Raises:
        ValidationError: If the role is unknown or not self-service.
        ConflictError: If the email or username is already taken.
    """
    email = email.lower().strip()
    username = username.strip()

    try:
        user_role = UserRole(role.lower().strip())
    except ValueError:
        raise ValidationError(
            f"Invalid role: {role}. Must be one of: "
            f"{', '.join(sorted(r.value for r in SELF_SERVICE_ROLES))}."
        )
    if user_role not in SELF_SERVICE_ROLES:
        raise ValidationError("Admin accounts cannot be created through registration.")

    stmt = select(User).where(or_(User.email == email, User.username == username))
    if (await db.execute(stmt)).scalars().first() is not None:
        raise ConflictError("A user with this email address or username already exists.")

    user = User(
        email=email,
        username=username,
        password_hash=hash_password(password),
        first_name=first_name,
        last_name=last_name,
        phone_number=phone_number,
        role=user_role,
        is_verified=False,
    )
    db.add(user)
    try:
        await db.flush()
    except IntegrityError as exc:
        # a concurrent registration took the email or username after our check
        await db.rollback()
        raise ConflictError(
            "A user with this email address or username already exists."
        ) from exc
    return user


async def login(
    db: AsyncSession,
    email: str,
    password: str,
) -> tuple[User, str]:
    """Authenticate a user with email and password and open a session.

    Returns:
        Tuple of (user_object, access_token).

    Raises:
        AuthenticationError: If the credentials are invalid.
    """
    user = await get_user_by_email(db, email)
    if user is None or not verify_password(password, user.password_hash):
        raise AuthenticationError("Invalid email or password.")

    token, jti, expires_at = create_access_token(user.id)
    db.add(AuthSession(jti=jti, user_id=user.id, expires_at=expires_at))

    user.last_login_at = datetime.now(timezone.utc)
    await db.flush()

    return user, token


async def _get_live_session(db: AsyncSession, token: str) -> AuthSession:
    payload = decode_token(token)

    if payload.get("type") != "access":
        raise AuthenticationError("Invalid token type. Expected an access token.")

    jti = payload.get("jti")
    if not jti:
        raise AuthenticationError("Invalid token: missing session id.")

    stmt = select(AuthSession).where(AuthSession.jti == jti)
    session = (await db.execute(stmt)).scalar_one_or_none()
    if session is None or session.revoked_at is not None:
        raise AuthenticationError("Session has ended. Please log in again.")
    if as_utc(session.expires_at) <= datetime.now(timezone.utc):
        raise AuthenticationError("Session has expired. Please log in again.")
    return session


async def logout(db: AsyncSession, token: str) -> None:
    """Revoke the session behind ``token``."""
    session = await _get_live_session(db, token)
    session.revoked_at = datetime.now(timezone.utc)
    await db.flush()


async def get_current_user(db: AsyncSession, token: str) -> User:
    """Decode a bearer token and return the corresponding user.

    Raises:
        AuthenticationError: If the token is invalid, expired, revoked, or
            the user no longer exists.
    """
    session = await _get_live_session(db, token)
    user = await get_user_by_id(db, session.user_id)
    if user is None:
        raise AuthenticationError("User not found.")
    return user


async def update_profile(
    db: AsyncSession,
    user: User,
    *,
    first_name: Optional[str] = None,
    last_name: Optional[str] = None,
    phone_number: Optional[str] = None,
) -> User:
    """Update the mutable profile fields of ``user``."""
    if first_name is not None:
        user.first_name = first_name
    if last_name is not None:
        user.last_name = last_name
    if phone_number is not None:
        user.phone_number = phone_number
    await db.flush()
    return user


async def list_users(db: AsyncSession) -> list[User]:
    """All users, oldest first (admin dashboard)."""
    result = await db.execute(select(User).order_by(User.id))
    return list(result.scalars().all())
