"""
E2E test fixtures for the roadside dispatch API.

Provides:
- An in-process FastAPI app built by ``create_app()`` with every route
  registered
- httpx AsyncClient wired via ASGI transport (no network needed)
- ``get_db`` overridden to open a fresh session per HTTP request on the
  seeded SQLite database from ``tests/conftest.py``, committing on success
  and rolling back on error exactly like the production dependency
- Login helpers that return ``Authorization`` headers for seeded accounts
"""

from __future__ import annotations

from typing import Any, AsyncGenerator

import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from roadside.api.deps import get_db
from roadside.main import create_app
from tests.conftest import (
    ADMIN_USER_ID,
    DISPATCH_PROVIDER_USER_ID,
    DRIVER_USER_ID,
    EMAILS,
    NEW_PROVIDER_USER_ID,
    OTHER_DRIVER_USER_ID,
    PASSWORD,
    PROVIDER_A_USER_ID,
    PROVIDER_B_USER_ID,
)

INTAKE: dict[str, Any] = {
    "service_type": "towing",
    "location_address": "123 Main St",
    "vehicle_make": "Toyota",
    "vehicle_model": "Camry",
}


# ---------------------------------------------------------------------------
# App + client
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def client(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncClient, None]:
    app = create_app()

    async def _override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = _override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


# ---------------------------------------------------------------------------
# Authentication helpers
# ---------------------------------------------------------------------------


async def login(client: AsyncClient, user_id: int, scheme: str = "Bearer") -> dict[str, str]:
    """Log a seeded user in and return the matching ``Authorization`` header."""
    resp = await client.post(
        "/api/users/login/",
        json={"email": EMAILS[user_id], "password": PASSWORD},
    )
    assert resp.status_code == 200, resp.text
    return {"Authorization": f"{scheme} {resp.json()['token']}"}


@pytest_asyncio.fixture
async def driver_headers(client: AsyncClient) -> dict[str, str]:
    return await login(client, DRIVER_USER_ID)


@pytest_asyncio.fixture
async def other_driver_headers(client: AsyncClient) -> dict[str, str]:
    return await login(client, OTHER_DRIVER_USER_ID)


@pytest_asyncio.fixture
async def admin_headers(client: AsyncClient) -> dict[str, str]:
    return await login(client, ADMIN_USER_ID)


@pytest_asyncio.fixture
async def provider_a_headers(client: AsyncClient) -> dict[str, str]:
    return await login(client, PROVIDER_A_USER_ID)


@pytest_asyncio.fixture
async def provider_b_headers(client: AsyncClient) -> dict[str, str]:
    return await login(client, PROVIDER_B_USER_ID)


@pytest_asyncio.fixture
async def dispatch_provider_headers(client: AsyncClient) -> dict[str, str]:
    return await login(client, DISPATCH_PROVIDER_USER_ID)


@pytest_asyncio.fixture
async def new_provider_headers(client: AsyncClient) -> dict[str, str]:
    return await login(client, NEW_PROVIDER_USER_ID)


# ---------------------------------------------------------------------------
# Request helpers
# ---------------------------------------------------------------------------


async def submit_request(
    client: AsyncClient,
    headers: dict[str, str],
    **overrides: Any,
) -> dict[str, Any]:
    """POST a request and return the created body."""
    resp = await client.post("/api/requests/", json={**INTAKE, **overrides}, headers=headers)
    assert resp.status_code == 201, resp.text
    return resp.json()
