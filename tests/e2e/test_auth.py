"""
E2E: Accounts and sessions.

Register -> login -> me -> profile update -> logout, plus the accepted
authorization schemes and the 401 contract clients rely on to drop their
credentials.
"""

from __future__ import annotations

from httpx import AsyncClient

from tests.conftest import ADMIN_USER_ID, DRIVER_USER_ID, EMAILS
from tests.e2e.conftest import login

NEW_ACCOUNT = {
    "email": "fresh@roadside.test",
    "username": "fresh",
    "password": "a-good-password",
    "first_name": "Fran",
    "last_name": "Fresh",
}


class TestRegistration:

    async def test_register_then_login(self, client: AsyncClient):
        resp = await client.post("/api/users/register/", json=NEW_ACCOUNT)
        assert resp.status_code == 201, resp.text
        assert resp.json()["role"] == "user"
        assert "password" not in resp.json()
        assert "password_hash" not in resp.json()

        resp = await client.post(
            "/api/users/login/",
            json={"email": NEW_ACCOUNT["email"], "password": NEW_ACCOUNT["password"]},
        )
        assert resp.status_code == 200
        assert resp.json()["token"]
        assert resp.json()["user"]["email"] == NEW_ACCOUNT["email"]

    async def test_register_provider(self, client: AsyncClient):
        resp = await client.post(
            "/api/users/register/", json={**NEW_ACCOUNT, "role": "provider"}
        )
        assert resp.status_code == 201
        assert resp.json()["role"] == "provider"

    async def test_admin_self_registration_is_400(self, client: AsyncClient):
        resp = await client.post("/api/users/register/", json={**NEW_ACCOUNT, "role": "admin"})
        assert resp.status_code == 400

    async def test_duplicate_email_is_409(self, client: AsyncClient):
        resp = await client.post(
            "/api/users/register/",
            json={**NEW_ACCOUNT, "email": EMAILS[DRIVER_USER_ID]},
        )
        assert resp.status_code == 409

    async def test_short_password_is_422(self, client: AsyncClient):
        resp = await client.post(
            "/api/users/register/", json={**NEW_ACCOUNT, "password": "short"}
        )
        assert resp.status_code == 422


class TestSessions:

    async def test_wrong_password_is_401(self, client: AsyncClient):
        resp = await client.post(
            "/api/users/login/",
            json={"email": EMAILS[DRIVER_USER_ID], "password": "not-it"},
        )
        assert resp.status_code == 401
        assert resp.headers["WWW-Authenticate"] == "Bearer"
        assert resp.json()["code"] == "authentication_failed"

    async def test_me(self, client: AsyncClient, driver_headers):
        resp = await client.get("/api/users/me/", headers=driver_headers)
        assert resp.status_code == 200
        assert resp.json()["id"] == DRIVER_USER_ID
        assert resp.json()["role"] == "user"

    async def test_token_scheme_is_accepted(self, client: AsyncClient):
        headers = await login(client, DRIVER_USER_ID, scheme="Token")
        resp = await client.get("/api/users/me/", headers=headers)
        assert resp.status_code == 200

    async def test_unknown_scheme_is_401(self, client: AsyncClient):
        resp = await client.get("/api/users/me/", headers={"Authorization": "Basic abc"})
        assert resp.status_code == 401

    async def test_garbage_token_is_401(self, client: AsyncClient):
        resp = await client.get(
            "/api/users/me/", headers={"Authorization": "Bearer not.a.jwt"}
        )
        assert resp.status_code == 401

    async def test_logout_revokes_token(self, client: AsyncClient, driver_headers):
        resp = await client.post("/api/users/logout/", headers=driver_headers)
        assert resp.status_code == 200
        assert resp.json()["message"] == "Logged out."

        resp = await client.get("/api/users/me/", headers=driver_headers)
        assert resp.status_code == 401

    async def test_other_sessions_survive_logout(self, client: AsyncClient):
        first = await login(client, DRIVER_USER_ID)
        second = await login(client, DRIVER_USER_ID)

        await client.post("/api/users/logout/", headers=first)

        resp = await client.get("/api/users/me/", headers=second)
        assert resp.status_code == 200


class TestProfile:

    async def test_update_profile(self, client: AsyncClient, driver_headers):
        resp = await client.put(
            "/api/users/profile/",
            json={"phone_number": "+15550001111"},
            headers=driver_headers,
        )
        assert resp.status_code == 200
        assert resp.json()["phone_number"] == "+15550001111"
        assert resp.json()["first_name"] == "Dana"

    async def test_admin_lists_users(self, client: AsyncClient, admin_headers):
        resp = await client.get("/api/users/", headers=admin_headers)
        assert resp.status_code == 200
        assert ADMIN_USER_ID in [u["id"] for u in resp.json()]

    async def test_driver_cannot_list_users(self, client: AsyncClient, driver_headers):
        resp = await client.get("/api/users/", headers=driver_headers)
        assert resp.status_code == 403


async def test_health(client: AsyncClient):
    resp = await client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "ok"
