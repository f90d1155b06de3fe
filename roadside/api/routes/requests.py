"""
Service Request API Routes
==========================

REST endpoints for the request lifecycle and the dashboards that poll it.

Routes:
  POST   /api/requests/                      -- Submit a request (driver)
  GET    /api/requests/                      -- All requests (admin, provider)
  GET    /api/requests/my_requests/          -- Caller's own requests
  GET    /api/requests/my_assignments/       -- Requests bound to the caller
  GET    /api/requests/available/            -- Pending board, nearest first
  GET    /api/requests/stats/                -- Admin dashboard aggregates
  GET    /api/requests/events/               -- Change feed after a cursor
  GET    /api/requests/{id}/                 -- Request detail
  POST   /api/requests/{id}/assign/          -- Provider self-accept
  POST   /api/requests/{id}/admin_assign/    -- Admin dispatch
  POST   /api/requests/{id}/start/           -- Bound provider starts work
  POST   /api/requests/{id}/complete/        -- Bound provider settles
  POST   /api/requests/{id}/cancel/          -- Requester/admin cancels
"""

from __future__ import annotations

import logging
from typing import Annotated, Optional, Union

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from roadside.api.deps import (
    AdminUser,
    CurrentProvider,
    CurrentUser,
    DBSession,
    RequesterUser,
    require_roles,
)
from roadside.api.errors import to_http_exception
from roadside.api.schemas.common import Page, list_or_page
from roadside.api.schemas.request import (
    AdminAssignBody,
    AvailableRequestOut,
    CancelBody,
    CompleteBody,
    EventOut,
    RequestCreate,
    RequestOut,
    StatsOut,
)
from roadside.core.exceptions import DispatchError, NotFoundError
from roadside.models.provider import Provider
from roadside.models.request import RequestStatus, ServiceRequest
from roadside.models.user import User, UserRole
from roadside.services import assignmentResolver, requestService, settlementService
from roadside.services.availabilityTracker import get_provider_for_user
from roadside.services.requestStateManager import ActorType

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/requests", tags=["Requests"])

StaffUser = Annotated[User, Depends(require_roles(UserRole.ADMIN, UserRole.PROVIDER))]

RequestList = Union[list[RequestOut], Page[RequestOut]]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

async def _provider_for(db: AsyncSession, user: User) -> Optional[Provider]:
    if user.role != UserRole.PROVIDER:
        return None
    try:
        return await get_provider_for_user(db, user.id)
    except NotFoundError:
        return None


def _present(
    request: ServiceRequest,
    user: User,
    provider_id: Optional[int] = None,
    schema: type[RequestOut] = RequestOut,
    **extra,
) -> RequestOut:
    """Serialise ``request`` with the actions this caller may take on it."""
    actor = requestService.actor_type_for(user)
    out = schema.for_actor(request, actor, **extra)
    if actor == ActorType.PROVIDER and request.provider_id not in (None, provider_id):
        out.available_actions = []
    if actor == ActorType.USER and request.user_id != user.id:
        out.available_actions = []
    return out


def _paged(
    result: requestService.PaginatedResult,
    user: User,
    provider_id: Optional[int],
    page: Optional[int],
) -> RequestList:
    items = [_present(r, user, provider_id) for r in result.items]
    return list_or_page(
        items, total=result.total_items, page=page, page_size=result.page_size
    )


# ---------------------------------------------------------------------------
# Intake
# ---------------------------------------------------------------------------

@router.post(
    "/",
    response_model=RequestOut,
    status_code=status.HTTP_201_CREATED,
    summary="Submit a service request",
)
async def create_request(
    db: DBSession,
    user: RequesterUser,
    body: RequestCreate,
) -> RequestOut:
    try:
        request = await requestService.create_request(
            db,
            user,
            service_type=body.service_type,
            location_address=body.location_address,
            vehicle_make=body.vehicle_make,
            vehicle_model=body.vehicle_model,
            description=body.description,
            priority=body.priority,
            latitude=body.latitude,
            longitude=body.longitude,
            vehicle_year=body.vehicle_year,
            vehicle_plate=body.vehicle_plate,
        )
    except DispatchError as exc:
        raise to_http_exception(exc)

    return _present(request, user)


# ---------------------------------------------------------------------------
# Lists (polled by the dashboards)
# ---------------------------------------------------------------------------

@router.get(
    "/",
    response_model=RequestList,
    summary="List all requests",
    description="Admins and providers only. Pass `page` to get a page envelope.",
)
async def list_requests(
    db: DBSession,
    user: StaffUser,
    status_filter: Optional[RequestStatus] = Query(default=None, alias="status"),
    page: Optional[int] = Query(default=None, ge=1),
    page_size: Optional[int] = Query(default=None, ge=1),
) -> RequestList:
    result = await requestService.list_requests(
        db, status=status_filter, page=page, page_size=page_size
    )
    provider = await _provider_for(db, user)
    return _paged(result, user, provider.id if provider else None, page)


@router.get(
    "/my_requests/",
    response_model=RequestList,
    summary="Requests submitted by the caller",
)
async def my_requests(
    db: DBSession,
    user: CurrentUser,
    status_filter: Optional[RequestStatus] = Query(default=None, alias="status"),
    page: Optional[int] = Query(default=None, ge=1),
    page_size: Optional[int] = Query(default=None, ge=1),
) -> RequestList:
    result = await requestService.list_requests(
        db, user_id=user.id, status=status_filter, page=page, page_size=page_size
    )
    return _paged(result, user, None, page)


@router.get(
    "/my_assignments/",
    response_model=RequestList,
    summary="Requests bound to the calling provider",
)
async def my_assignments(
    db: DBSession,
    user: CurrentUser,
    provider: CurrentProvider,
    status_filter: Optional[RequestStatus] = Query(default=None, alias="status"),
    page: Optional[int] = Query(default=None, ge=1),
    page_size: Optional[int] = Query(default=None, ge=1),
) -> RequestList:
    result = await requestService.list_requests(
        db,
        provider_id=provider.id,
        status=status_filter,
        page=page,
        page_size=page_size,
    )
    return _paged(result, user, provider.id, page)


@router.get(
    "/available/",
    response_model=list[AvailableRequestOut],
    summary="Pending requests, nearest first",
)
async def available_requests(
    db: DBSession,
    user: CurrentUser,
    provider: CurrentProvider,
) -> list[AvailableRequestOut]:
    board = await requestService.list_available(db, provider)
    return [
        _present(request, user, provider.id, AvailableRequestOut, distance_km=distance)
        for request, distance in board
    ]


@router.get(
    "/stats/",
    response_model=StatsOut,
    summary="Admin dashboard aggregates",
)
async def dashboard_stats(db: DBSession, admin: AdminUser) -> StatsOut:
    stats = await settlementService.dashboard_stats(db)
    return StatsOut.model_validate(stats)


@router.get(
    "/events/",
    response_model=list[EventOut],
    summary="Change feed",
    description=(
        "Events with id greater than `after`, oldest first. Drivers only see "
        "events for their own requests."
    ),
)
async def request_events(
    db: DBSession,
    user: CurrentUser,
    after: int = Query(default=0, ge=0),
    limit: int = Query(default=100, ge=1),
) -> list[EventOut]:
    request_ids = None
    if user.role == UserRole.USER:
        own = await requestService.list_requests(db, user_id=user.id)
        request_ids = [r.id for r in own.items]
    events = await requestService.list_events(
        db, after=after, limit=limit, request_ids=request_ids
    )
    return [EventOut.model_validate(e) for e in events]


# ---------------------------------------------------------------------------
# Single request
# ---------------------------------------------------------------------------

@router.get(
    "/{request_id}/",
    response_model=RequestOut,
    summary="Request detail",
)
async def get_request(
    request_id: int,
    db: DBSession,
    user: CurrentUser,
) -> RequestOut:
    provider = await _provider_for(db, user)
    try:
        request = await requestService.get_visible_request(db, request_id, user, provider)
    except DispatchError as exc:
        raise to_http_exception(exc)
    return _present(request, user, provider.id if provider else None)


# ---------------------------------------------------------------------------
# Transitions
# ---------------------------------------------------------------------------

@router.post(
    "/{request_id}/assign/",
    response_model=RequestOut,
    summary="Accept a pending request",
    description=(
        "Binds the request to the calling provider. If another provider got "
        "there first the response is 409 with code `already_taken`."
    ),
)
async def accept_request(
    request_id: int,
    db: DBSession,
    user: CurrentUser,
    provider: CurrentProvider,
) -> RequestOut:
    try:
        request = await assignmentResolver.accept_request(db, request_id, provider)
    except DispatchError as exc:
        logger.info(
            "Provider %s could not accept request %s: %s", provider.id, request_id, exc
        )
        raise to_http_exception(exc)
    return _present(request, user, provider.id)


@router.post(
    "/{request_id}/admin_assign/",
    response_model=RequestOut,
    summary="Assign a pending request to a provider",
)
async def admin_assign(
    request_id: int,
    body: AdminAssignBody,
    db: DBSession,
    admin: AdminUser,
) -> RequestOut:
    try:
        request = await assignmentResolver.admin_assign(
            db, request_id, body.provider_id, admin
        )
    except DispatchError as exc:
        raise to_http_exception(exc)
    logger.info(
        "Admin %s dispatched request %s to provider %s",
        admin.id, request_id, body.provider_id,
    )
    return _present(request, admin)


@router.post(
    "/{request_id}/start/",
    response_model=RequestOut,
    summary="Start work on an assigned request",
)
async def start_request(
    request_id: int,
    db: DBSession,
    user: CurrentUser,
    provider: CurrentProvider,
) -> RequestOut:
    try:
        request = await requestService.start_request(db, request_id, provider)
    except DispatchError as exc:
        raise to_http_exception(exc)
    return _present(request, user, provider.id)


@router.post(
    "/{request_id}/complete/",
    response_model=RequestOut,
    summary="Complete a request with its final cost",
)
async def complete_request(
    request_id: int,
    body: CompleteBody,
    db: DBSession,
    user: CurrentUser,
    provider: CurrentProvider,
) -> RequestOut:
    try:
        request = await settlementService.complete_request(
            db, request_id, provider, body.final_cost
        )
    except DispatchError as exc:
        raise to_http_exception(exc)
    return _present(request, user, provider.id)


@router.post(
    "/{request_id}/cancel/",
    response_model=RequestOut,
    summary="Cancel a pending request",
)
async def cancel_request(
    request_id: int,
    db: DBSession,
    user: CurrentUser,
    body: Optional[CancelBody] = None,
) -> RequestOut:
    try:
        request = await requestService.cancel_request(
            db, request_id, user, reason=body.reason if body else None
        )
    except DispatchError as exc:
        raise to_http_exception(exc)
    logger.info("Request %s cancelled by user %s", request_id, user.id)
    return _present(request, user)
