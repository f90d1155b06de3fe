"""
E2E: Request lifecycle from a driver's submission to settlement.

Walks the full happy path through the HTTP surface and checks the rules
each step enforces:
- Intake lands in pending with the submitted details
- The first provider to accept wins; the second gets 409 already_taken
- The bound provider starts and completes with a final cost
- Drivers see the settled request, with a formatted cost, in my_requests
- Cancellation is only possible while pending
"""

from __future__ import annotations

from httpx import AsyncClient

from tests.conftest import DRIVER_USER_ID, PROVIDER_A_ID
from tests.e2e.conftest import submit_request


class TestIntake:

    async def test_driver_submits_request(self, client: AsyncClient, driver_headers):
        body = await submit_request(client, driver_headers)

        assert body["status"] == "pending"
        assert body["service_type"] == "towing"
        assert body["location_address"] == "123 Main St"
        assert body["vehicle_make"] == "Toyota"
        assert body["vehicle_model"] == "Camry"
        assert body["user_id"] == DRIVER_USER_ID
        assert body["provider_id"] is None
        assert body["final_cost"] is None
        assert body["final_cost_display"] is None
        assert body["available_actions"] == ["cancelled"]

    async def test_missing_field_is_400(self, client: AsyncClient, driver_headers):
        resp = await client.post(
            "/api/requests/",
            json={"service_type": "towing", "location_address": "123 Main St"},
            headers=driver_headers,
        )
        assert resp.status_code == 400
        assert resp.json()["code"] == "validation_error"
        assert "vehicle_make" in resp.json()["detail"]

    async def test_second_active_request_is_409(self, client: AsyncClient, driver_headers):
        await submit_request(client, driver_headers)

        resp = await client.post(
            "/api/requests/",
            json={
                "service_type": "battery",
                "location_address": "9 Elm St",
                "vehicle_make": "Honda",
                "vehicle_model": "Civic",
            },
            headers=driver_headers,
        )
        assert resp.status_code == 409
        assert resp.json()["code"] == "conflict"

    async def test_provider_cannot_submit(self, client: AsyncClient, provider_a_headers):
        resp = await client.post(
            "/api/requests/",
            json={
                "service_type": "towing",
                "location_address": "1 Depot Rd",
                "vehicle_make": "Ford",
                "vehicle_model": "F-150",
            },
            headers=provider_a_headers,
        )
        assert resp.status_code == 403
        assert resp.json()["code"] == "not_authorized"
        assert "user role" in resp.json()["detail"]

    async def test_anonymous_is_401(self, client: AsyncClient):
        resp = await client.post("/api/requests/", json={})
        assert resp.status_code == 401
        assert resp.json()["code"] == "authentication_failed"


class TestHappyPath:

    async def test_submit_accept_complete(
        self,
        client: AsyncClient,
        driver_headers,
        provider_a_headers,
        provider_b_headers,
    ):
        created = await submit_request(client, driver_headers)
        request_id = created["id"]

        # Provider A takes it
        resp = await client.post(
            f"/api/requests/{request_id}/assign/", headers=provider_a_headers
        )
        assert resp.status_code == 200, resp.text
        assigned = resp.json()
        assert assigned["status"] == "assigned"
        assert assigned["provider_id"] == PROVIDER_A_ID
        assert assigned["assignment_source"] == "accepted"
        assert sorted(assigned["available_actions"]) == ["completed", "in_progress"]

        # Provider B is too late
        resp = await client.post(
            f"/api/requests/{request_id}/assign/", headers=provider_b_headers
        )
        assert resp.status_code == 409
        assert resp.json()["code"] == "already_taken"

        # Provider A is now busy
        resp = await client.get("/api/providers/my_profile/", headers=provider_a_headers)
        assert resp.json()["current_status"] == "busy"

        # Provider A settles it
        resp = await client.post(
            f"/api/requests/{request_id}/complete/",
            json={"final_cost": "75.00"},
            headers=provider_a_headers,
        )
        assert resp.status_code == 200, resp.text
        completed = resp.json()
        assert completed["status"] == "completed"
        assert completed["final_cost"] == "75.00"
        assert completed["completed_at"] is not None
        assert completed["available_actions"] == []

        # The driver sees the settled request
        resp = await client.get("/api/requests/my_requests/", headers=driver_headers)
        assert resp.status_code == 200
        mine = resp.json()
        assert len(mine) == 1
        assert mine[0]["id"] == request_id
        assert mine[0]["status"] == "completed"
        assert mine[0]["final_cost_display"] == "$75.00"

        # And Provider A is free again
        resp = await client.get("/api/providers/my_profile/", headers=provider_a_headers)
        assert resp.json()["current_status"] == "online"

    async def test_start_before_complete(
        self, client: AsyncClient, driver_headers, provider_a_headers
    ):
        request_id = (await submit_request(client, driver_headers))["id"]
        await client.post(f"/api/requests/{request_id}/assign/", headers=provider_a_headers)

        resp = await client.post(
            f"/api/requests/{request_id}/start/", headers=provider_a_headers
        )
        assert resp.status_code == 200
        assert resp.json()["status"] == "in_progress"
        assert resp.json()["started_at"] is not None

        resp = await client.post(
            f"/api/requests/{request_id}/complete/",
            json={"final_cost": 120},
            headers=provider_a_headers,
        )
        assert resp.status_code == 200
        assert resp.json()["final_cost"] == "120.00"

    async def test_completing_pending_request_is_409(
        self, client: AsyncClient, driver_headers, provider_a_headers
    ):
        request_id = (await submit_request(client, driver_headers))["id"]

        resp = await client.post(
            f"/api/requests/{request_id}/complete/",
            json={"final_cost": "10.00"},
            headers=provider_a_headers,
        )
        assert resp.status_code == 409
        assert resp.json()["code"] == "invalid_state"

    async def test_other_provider_cannot_complete(
        self, client: AsyncClient, driver_headers, provider_a_headers, provider_b_headers
    ):
        request_id = (await submit_request(client, driver_headers))["id"]
        await client.post(f"/api/requests/{request_id}/assign/", headers=provider_a_headers)

        resp = await client.post(
            f"/api/requests/{request_id}/complete/",
            json={"final_cost": "10.00"},
            headers=provider_b_headers,
        )
        assert resp.status_code == 403

    async def test_negative_cost_is_400_and_request_unchanged(
        self, client: AsyncClient, driver_headers, provider_a_headers
    ):
        request_id = (await submit_request(client, driver_headers))["id"]
        await client.post(f"/api/requests/{request_id}/assign/", headers=provider_a_headers)

        resp = await client.post(
            f"/api/requests/{request_id}/complete/",
            json={"final_cost": "-5"},
            headers=provider_a_headers,
        )
        assert resp.status_code == 400

        resp = await client.get(f"/api/requests/{request_id}/", headers=driver_headers)
        assert resp.json()["status"] == "assigned"

    async def test_oversized_cost_is_400_and_request_unchanged(
        self, client: AsyncClient, driver_headers, provider_a_headers
    ):
        request_id = (await submit_request(client, driver_headers))["id"]
        await client.post(f"/api/requests/{request_id}/assign/", headers=provider_a_headers)

        resp = await client.post(
            f"/api/requests/{request_id}/complete/",
            json={"final_cost": "1e30"},
            headers=provider_a_headers,
        )
        assert resp.status_code == 400
        assert resp.json()["code"] == "validation_error"

        resp = await client.get(f"/api/requests/{request_id}/", headers=driver_headers)
        assert resp.json()["status"] == "assigned"
        assert resp.json()["final_cost"] is None

    async def test_completing_twice_without_cost_is_409(
        self, client: AsyncClient, driver_headers, provider_a_headers
    ):
        request_id = (await submit_request(client, driver_headers))["id"]
        await client.post(f"/api/requests/{request_id}/assign/", headers=provider_a_headers)
        await client.post(
            f"/api/requests/{request_id}/complete/",
            json={"final_cost": "75.00"},
            headers=provider_a_headers,
        )

        resp = await client.post(
            f"/api/requests/{request_id}/complete/", json={}, headers=provider_a_headers
        )
        assert resp.status_code == 409
        assert resp.json()["code"] == "invalid_state"


class TestCancel:

    async def test_driver_cancels_pending(self, client: AsyncClient, driver_headers):
        request_id = (await submit_request(client, driver_headers))["id"]

        resp = await client.post(
            f"/api/requests/{request_id}/cancel/",
            json={"reason": "Got a jump start"},
            headers=driver_headers,
        )
        assert resp.status_code == 200
        assert resp.json()["status"] == "cancelled"
        assert resp.json()["cancellation_reason"] == "Got a jump start"

    async def test_cancel_without_body(self, client: AsyncClient, driver_headers):
        request_id = (await submit_request(client, driver_headers))["id"]

        resp = await client.post(f"/api/requests/{request_id}/cancel/", headers=driver_headers)
        assert resp.status_code == 200
        assert resp.json()["cancellation_reason"] is None

    async def test_cancelled_request_cannot_be_accepted(
        self, client: AsyncClient, driver_headers, provider_a_headers
    ):
        request_id = (await submit_request(client, driver_headers))["id"]
        await client.post(f"/api/requests/{request_id}/cancel/", headers=driver_headers)

        resp = await client.post(
            f"/api/requests/{request_id}/assign/", headers=provider_a_headers
        )
        assert resp.status_code == 409
        assert resp.json()["code"] == "invalid_state"

    async def test_assigned_request_cannot_be_cancelled(
        self, client: AsyncClient, driver_headers, provider_a_headers
    ):
        request_id = (await submit_request(client, driver_headers))["id"]
        await client.post(f"/api/requests/{request_id}/assign/", headers=provider_a_headers)

        resp = await client.post(f"/api/requests/{request_id}/cancel/", headers=driver_headers)
        assert resp.status_code == 409

    async def test_other_driver_cannot_cancel_or_view(
        self, client: AsyncClient, driver_headers, other_driver_headers
    ):
        request_id = (await submit_request(client, driver_headers))["id"]

        resp = await client.post(
            f"/api/requests/{request_id}/cancel/", headers=other_driver_headers
        )
        assert resp.status_code == 403

        resp = await client.get(f"/api/requests/{request_id}/", headers=other_driver_headers)
        assert resp.status_code == 403

    async def test_unknown_request_is_404(self, client: AsyncClient, driver_headers):
        resp = await client.get("/api/requests/9999/", headers=driver_headers)
        assert resp.status_code == 404
        assert resp.json()["code"] == "not_found"
