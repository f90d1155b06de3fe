"""
Shared pytest fixtures for the roadside dispatch tests.

Provides:
- Mock database sessions and mock domain objects for pure unit tests
- A throwaway file-backed SQLite database (aiosqlite) with the full schema,
  used wherever real transaction semantics matter (the assignment race)
- Seed data: an admin, two drivers, three online providers (one with id 7)
  and a provider account that has not set up its profile yet
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import AsyncGenerator, Callable
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio
from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from roadside.models import (
    Base,
    Provider,
    ProviderStatus,
    RequestPriority,
    RequestStatus,
    ServiceRequest,
    ServiceType,
    User,
    UserRole,
)
from roadside.services.auth_service import hash_password

# ---------------------------------------------------------------------------
# Seed IDs (stable across tests so cross-references work)
# ---------------------------------------------------------------------------

ADMIN_USER_ID = 1
DRIVER_USER_ID = 2
OTHER_DRIVER_USER_ID = 3
PROVIDER_A_USER_ID = 4
PROVIDER_B_USER_ID = 5
DISPATCH_PROVIDER_USER_ID = 6
NEW_PROVIDER_USER_ID = 8

PROVIDER_A_ID = 1
PROVIDER_B_ID = 2
DISPATCH_PROVIDER_ID = 7

PASSWORD = "correct-horse-battery"

EMAILS = {
    ADMIN_USER_ID: "admin@roadside.test",
    DRIVER_USER_ID: "driver@roadside.test",
    OTHER_DRIVER_USER_ID: "driver2@roadside.test",
    PROVIDER_A_USER_ID: "tow-a@roadside.test",
    PROVIDER_B_USER_ID: "tow-b@roadside.test",
    DISPATCH_PROVIDER_USER_ID: "tow-7@roadside.test",
    NEW_PROVIDER_USER_ID: "tow-new@roadside.test",
}

# bcrypt is deliberately slow; hash the shared password once per session
_PASSWORD_HASH = hash_password(PASSWORD)


# ---------------------------------------------------------------------------
# Database session mock
# ---------------------------------------------------------------------------


@pytest.fixture
def mock_db() -> AsyncMock:
    """Async mock of ``AsyncSession``.

    Supports ``db.execute()``, ``db.add()``, ``db.flush()`` and
    ``db.commit()`` out of the box.  Individual tests configure
    ``mock_db.execute.return_value`` / ``mock_db.get.return_value``.
    """
    session = AsyncMock()
    session.add = MagicMock()
    session.flush = AsyncMock()
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    session.refresh = AsyncMock()
    return session


def scalar_result(value) -> MagicMock:
    """A mock ``Result`` whose ``scalar*`` accessors all return ``value``."""
    result = MagicMock()
    result.scalar.return_value = value
    result.scalar_one.return_value = value
    result.scalar_one_or_none.return_value = value
    return result


# ---------------------------------------------------------------------------
# Mock domain objects
# ---------------------------------------------------------------------------


def _mock_user(user_id: int, role: UserRole) -> User:
    user = MagicMock(spec=User)
    user.id = user_id
    user.email = EMAILS.get(user_id, f"user{user_id}@roadside.test")
    user.username = f"user{user_id}"
    user.first_name = "Test"
    user.last_name = "User"
    user.phone_number = None
    user.role = role
    user.is_verified = True
    user.created_at = datetime(2025, 1, 15, tzinfo=timezone.utc)
    return user


@pytest.fixture
def sample_driver() -> User:
    return _mock_user(DRIVER_USER_ID, UserRole.USER)


@pytest.fixture
def sample_admin() -> User:
    return _mock_user(ADMIN_USER_ID, UserRole.ADMIN)


@pytest.fixture
def sample_provider_user() -> User:
    return _mock_user(PROVIDER_A_USER_ID, UserRole.PROVIDER)


@pytest.fixture
def sample_provider(sample_provider_user: User) -> Provider:
    """An online tow operator with a complete profile."""
    provider = MagicMock(spec=Provider)
    provider.id = PROVIDER_A_ID
    provider.user_id = sample_provider_user.id
    provider.company_name = "Alpha Towing"
    provider.current_status = ProviderStatus.ONLINE
    provider.latitude = Decimal("40.7128000")
    provider.longitude = Decimal("-74.0060000")
    provider.is_profile_complete = True
    return provider


@pytest.fixture
def make_request() -> Callable[..., ServiceRequest]:
    """Factory for mock requests; keyword overrides win."""

    def _make(**overrides) -> ServiceRequest:
        created = datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)
        request = MagicMock(spec=ServiceRequest)
        request.id = overrides.pop("id", 100)
        request.user_id = DRIVER_USER_ID
        request.provider_id = None
        request.service_type = ServiceType.TOWING
        request.priority = RequestPriority.MEDIUM
        request.status = RequestStatus.PENDING
        request.location_address = "123 Main St"
        request.latitude = None
        request.longitude = None
        request.vehicle_make = "Toyota"
        request.vehicle_model = "Camry"
        request.final_cost = None
        request.created_at = created
        request.completed_at = None
        for key, value in overrides.items():
            setattr(request, key, value)
        return request

    return _make


def completed_after(make_request, minutes: float, **overrides) -> ServiceRequest:
    """A completed request whose response time is ``minutes``."""
    created = datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)
    return make_request(
        status=RequestStatus.COMPLETED,
        provider_id=PROVIDER_A_ID,
        created_at=created,
        completed_at=created + timedelta(minutes=minutes),
        **overrides,
    )


# ---------------------------------------------------------------------------
# Real database (file-backed SQLite per test)
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def db_engine(tmp_path) -> AsyncGenerator[AsyncEngine, None]:
    """Fresh schema in a temporary SQLite file.

    A file (rather than ``:memory:``) lets several sessions open their own
    connections and see each other's commits, as they would in production.
    """
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'dispatch.db'}")

    # SQLite does not enforce foreign keys by default
    @event.listens_for(engine.sync_engine, "connect")
    def _enable_fk(dbapi_conn, _):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(db_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    factory = async_sessionmaker(bind=db_engine, class_=AsyncSession, expire_on_commit=False)
    async with factory() as session:
        await seed_data(session)
        await session.commit()
    return factory


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """A session on the seeded database, rolled back after the test."""
    async with session_factory() as session:
        yield session
        await session.rollback()


# ---------------------------------------------------------------------------
# Seed data
# ---------------------------------------------------------------------------


def _user(user_id: int, role: UserRole, first_name: str, last_name: str) -> User:
    return User(
        id=user_id,
        email=EMAILS[user_id],
        username=EMAILS[user_id].split("@")[0],
        password_hash=_PASSWORD_HASH,
        first_name=first_name,
        last_name=last_name,
        role=role,
        is_verified=True,
    )


def _provider(
    provider_id: int,
    user_id: int,
    company: str,
    latitude: str,
    longitude: str,
) -> Provider:
    return Provider(
        id=provider_id,
        user_id=user_id,
        company_name=company,
        license_number=f"LIC-{provider_id:04d}",
        vehicle_type="flatbed",
        vehicle_plate=f"TOW-{provider_id}",
        insurance_provider="Acme Mutual",
        insurance_policy_number=f"POL-{provider_id}",
        is_profile_complete=True,
        current_status=ProviderStatus.ONLINE,
        latitude=Decimal(latitude),
        longitude=Decimal(longitude),
        location_updated_at=datetime.now(timezone.utc),
    )


async def seed_data(db: AsyncSession) -> None:
    """Insert the minimum data every database-backed test relies on."""
    db.add_all(
        [
            _user(ADMIN_USER_ID, UserRole.ADMIN, "Ada", "Admin"),
            _user(DRIVER_USER_ID, UserRole.USER, "Dana", "Driver"),
            _user(OTHER_DRIVER_USER_ID, UserRole.USER, "Drew", "Driver"),
            _user(PROVIDER_A_USER_ID, UserRole.PROVIDER, "Alex", "Alpha"),
            _user(PROVIDER_B_USER_ID, UserRole.PROVIDER, "Blair", "Bravo"),
            _user(DISPATCH_PROVIDER_USER_ID, UserRole.PROVIDER, "Sam", "Seven"),
            _user(NEW_PROVIDER_USER_ID, UserRole.PROVIDER, "Nico", "New"),
        ]
    )
    await db.flush()

    db.add_all(
        [
            _provider(PROVIDER_A_ID, PROVIDER_A_USER_ID, "Alpha Towing", "40.7128000", "-74.0060000"),
            _provider(PROVIDER_B_ID, PROVIDER_B_USER_ID, "Bravo Recovery", "40.7306000", "-73.9352000"),
            _provider(DISPATCH_PROVIDER_ID, DISPATCH_PROVIDER_USER_ID, "Seven Star Tow", "40.6500000", "-73.9500000"),
        ]
    )
    await db.flush()


async def add_request(
    db: AsyncSession,
    *,
    user_id: int = DRIVER_USER_ID,
    status: RequestStatus = RequestStatus.PENDING,
    provider_id: int | None = None,
    **fields,
) -> ServiceRequest:
    """Insert a request row directly, bypassing intake rules."""
    request = ServiceRequest(
        user_id=user_id,
        provider_id=provider_id,
        status=status,
        service_type=fields.pop("service_type", ServiceType.TOWING),
        location_address=fields.pop("location_address", "123 Main St"),
        vehicle_make=fields.pop("vehicle_make", "Toyota"),
        vehicle_model=fields.pop("vehicle_model", "Camry"),
        **fields,
    )
    db.add(request)
    await db.flush()
    return request
