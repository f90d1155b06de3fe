"""
Roadside Dispatch API client
============================

Async wrapper around the HTTP API for dashboards, scripts and integration
tests.  One method per endpoint; every call carries the explicit
``ApiSession`` credential.

GET calls use retry logic (3 attempts, exponential backoff) on transient
failures (5xx and transport errors such as timeouts or dropped
connections).  Mutations are never retried,
since replaying an accept or a completion is not safe.

Server errors are mapped to the dispatch taxonomy:

  - 401                        -> ``AuthenticationError`` (session invalidated)
  - 409 ``code=already_taken`` -> ``AlreadyAssignedError``
  - anything else >= 400       -> ``ApiError``
"""

from __future__ import annotations

import asyncio
import logging
from decimal import Decimal
from typing import Any, Optional

import httpx

from roadside.client.session import ApiSession
from roadside.core.exceptions import AlreadyAssignedError, AuthenticationError, DispatchError

logger = logging.getLogger(__name__)

_MAX_RETRIES = 3
_INITIAL_BACKOFF_SECONDS = 0.5  # doubles each retry: 0.5, 1.0, 2.0
_REQUEST_TIMEOUT_SECONDS = 10.0


# ---------------------------------------------------------------------------
# Custom exception
# ---------------------------------------------------------------------------

class ApiError(DispatchError):
    """Raised for any non-success response not covered by a specific error."""

    code = "api_error"

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        code: str | None = None,
        raw: Any = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        if code:
            self.code = code
        self.raw = raw


def normalize_list(payload: Any) -> list[Any]:
    """Accept a bare list, a ``results`` envelope or a ``data`` envelope."""
    if isinstance(payload, list):
        return payload
    if isinstance(payload, dict):
        for key in ("results", "data"):
            if isinstance(payload.get(key), list):
                return payload[key]
    return []


def _error_detail(response: httpx.Response) -> tuple[str, Optional[str]]:
    try:
        body = response.json()
    except ValueError:
        return response.text or f"HTTP {response.status_code}", None
    if isinstance(body, dict):
        detail = body.get("detail")
        if not isinstance(detail, str):
            detail = str(detail) if detail is not None else f"HTTP {response.status_code}"
        return detail, body.get("code")
    return str(body), None


class RoadsideClient:
    """Async client for the ``/api`` surface."""

    def __init__(
        self,
        base_url: str,
        session: ApiSession | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: float = _REQUEST_TIMEOUT_SECONDS,
        max_retries: int = _MAX_RETRIES,
        initial_backoff: float = _INITIAL_BACKOFF_SECONDS,
    ) -> None:
        self.session = session or ApiSession()
        self.max_retries = max_retries
        self.initial_backoff = initial_backoff
        self._http = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            transport=transport,
            timeout=timeout,
        )

    async def __aenter__(self) -> "RoadsideClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    # -----------------------------------------------------------------------
    # Transport
    # -----------------------------------------------------------------------

    def _raise_for_status(
        self,
        response: httpx.Response,
        request_id: Optional[int] = None,
    ) -> None:
        if response.status_code < 400:
            return

        detail, code = _error_detail(response)
        if response.status_code == 401:
            logger.info("Server rejected credentials (%s); session invalidated", detail)
            self.session.invalidate()
            raise AuthenticationError(detail)
        if response.status_code == 409 and code == AlreadyAssignedError.code:
            raise AlreadyAssignedError(request_id if request_id is not None else -1)
        raise ApiError(detail, status_code=response.status_code, code=code, raw=response.text)

    async def _get(
        self,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        auth: bool = True,
    ) -> Any:
        """GET with exponential-backoff retry on transient failures."""
        headers = self.session.auth_headers() if auth else {}
        params = {k: v for k, v in (params or {}).items() if v is not None}
        last_exception: Exception | None = None
        backoff = self.initial_backoff

        for attempt in range(1, self.max_retries + 1):
            try:
                response = await self._http.get(path, params=params, headers=headers)
            except httpx.TransportError as exc:
                last_exception = exc
                logger.warning(
                    "GET %s failed on attempt %d/%d: %s",
                    path,
                    attempt,
                    self.max_retries,
                    exc,
                )
            else:
                if response.status_code < 500:
                    self._raise_for_status(response)
                    return response.json()
                last_exception = ApiError(
                    f"Server error: HTTP {response.status_code}",
                    status_code=response.status_code,
                    raw=response.text,
                )
                logger.warning(
                    "GET %s server error on attempt %d/%d: HTTP %d",
                    path,
                    attempt,
                    self.max_retries,
                    response.status_code,
                )

            if attempt < self.max_retries:
                await asyncio.sleep(backoff)
                backoff *= 2

        if isinstance(last_exception, ApiError):
            raise last_exception
        raise ApiError(
            f"GET {path} failed after {self.max_retries} attempts",
            raw=str(last_exception),
        )

    async def _send(
        self,
        method: str,
        path: str,
        *,
        json_body: dict[str, Any] | None = None,
        auth: bool = True,
        request_id: Optional[int] = None,
    ) -> Any:
        headers = self.session.auth_headers() if auth else {}
        try:
            response = await self._http.request(method, path, json=json_body, headers=headers)
        except httpx.HTTPError as exc:
            raise ApiError(f"{method} {path} failed: {exc}", raw=str(exc)) from exc
        self._raise_for_status(response, request_id)
        if not response.content:
            return None
        return response.json()

    # -----------------------------------------------------------------------
    # Users
    # -----------------------------------------------------------------------

    async def register(self, **fields: Any) -> dict[str, Any]:
        return await self._send("POST", "/users/register/", json_body=fields, auth=False)

    async def login(self, email: str, password: str) -> dict[str, Any]:
        """Authenticate and store the issued token on ``self.session``."""
        data = await self._send(
            "POST",
            "/users/login/",
            json_body={"email": email, "password": password},
            auth=False,
        )
        self.session.establish(data["token"], data.get("user"))
        return data["user"]

    async def logout(self) -> None:
        """Revoke the token server-side; the local session is cleared regardless."""
        try:
            if self.session.is_authenticated:
                await self._send("POST", "/users/logout/")
        finally:
            self.session.invalidate()

    async def me(self) -> dict[str, Any]:
        return await self._get("/users/me/")

    async def update_profile(self, **fields: Any) -> dict[str, Any]:
        return await self._send("PUT", "/users/profile/", json_body=fields)

    async def list_users(self) -> list[dict[str, Any]]:
        return normalize_list(await self._get("/users/"))

    # -----------------------------------------------------------------------
    # Requests
    # -----------------------------------------------------------------------

    async def create_request(self, **fields: Any) -> dict[str, Any]:
        return await self._send("POST", "/requests/", json_body=fields)

    async def get_request(self, request_id: int) -> dict[str, Any]:
        return await self._get(f"/requests/{request_id}/")

    async def list_requests(self, status: str | None = None) -> list[dict[str, Any]]:
        return normalize_list(await self._get("/requests/", params={"status": status}))

    async def my_requests(self, status: str | None = None) -> list[dict[str, Any]]:
        return normalize_list(
            await self._get("/requests/my_requests/", params={"status": status})
        )

    async def my_assignments(self, status: str | None = None) -> list[dict[str, Any]]:
        return normalize_list(
            await self._get("/requests/my_assignments/", params={"status": status})
        )

    async def available_requests(self) -> list[dict[str, Any]]:
        return normalize_list(await self._get("/requests/available/"))

    async def stats(self) -> dict[str, Any]:
        return await self._get("/requests/stats/")

    async def events(self, after: int = 0, limit: int | None = None) -> list[dict[str, Any]]:
        return normalize_list(
            await self._get("/requests/events/", params={"after": after, "limit": limit})
        )

    async def accept_request(self, request_id: int) -> dict[str, Any]:
        return await self._send(
            "POST", f"/requests/{request_id}/assign/", request_id=request_id
        )

    async def admin_assign(self, request_id: int, provider_id: int) -> dict[str, Any]:
        return await self._send(
            "POST",
            f"/requests/{request_id}/admin_assign/",
            json_body={"provider_id": provider_id},
            request_id=request_id,
        )

    async def start_request(self, request_id: int) -> dict[str, Any]:
        return await self._send("POST", f"/requests/{request_id}/start/")

    async def complete_request(
        self,
        request_id: int,
        final_cost: Decimal | float | str,
    ) -> dict[str, Any]:
        return await self._send(
            "POST",
            f"/requests/{request_id}/complete/",
            json_body={"final_cost": str(final_cost)},
        )

    async def cancel_request(
        self,
        request_id: int,
        reason: str | None = None,
    ) -> dict[str, Any]:
        return await self._send(
            "POST",
            f"/requests/{request_id}/cancel/",
            json_body={"reason": reason},
        )

    # -----------------------------------------------------------------------
    # Providers
    # -----------------------------------------------------------------------

    async def list_providers(self, status: str | None = None) -> list[dict[str, Any]]:
        return normalize_list(await self._get("/providers/", params={"status": status}))

    async def my_profile(self) -> dict[str, Any]:
        return await self._get("/providers/my_profile/")

    async def my_earnings(self) -> dict[str, Any]:
        return await self._get("/providers/my_earnings/")

    async def create_profile(self, **fields: Any) -> dict[str, Any]:
        return await self._send("POST", "/providers/create_profile/", json_body=fields)

    async def update_location(self, latitude: float, longitude: float) -> dict[str, Any]:
        return await self._send(
            "PUT",
            "/providers/update_location/",
            json_body={"latitude": latitude, "longitude": longitude},
        )

    async def update_status(self, status: str) -> dict[str, Any]:
        return await self._send(
            "PUT", "/providers/update_status/", json_body={"status": status}
        )
