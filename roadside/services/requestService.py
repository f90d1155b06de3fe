"""
Request Service
===============

Business logic for the service-request lifecycle.  All operations use async
SQLAlchemy sessions and enforce business rules including:

  - Required intake fields (service type, location, vehicle make and model)
  - At most one active request per requester (configurable)
  - State machine enforcement via requestStateManager
  - Event emission on every state change

Assignment lives in ``assignmentResolver`` and completion in
``settlementService``; both reuse ``get_request`` and ``apply_transition``
from here.

Key functions:
  - create_request   -- intake, lands in ``pending``
  - get_request      -- single request retrieval
  - get_visible_request -- retrieval with per-role visibility
  - list_requests    -- filtered, optionally paginated list
  - list_available   -- pending board, nearest first for a provider
  - start_request    -- bound provider starts work on site
  - cancel_request   -- requester or admin cancels while pending
  - list_events      -- change-feed read after a cursor
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional, Sequence

from sqlalchemy import exists, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from roadside.core.config import settings
from roadside.core.exceptions import (
    ConflictError,
    InvalidStateError,
    NotAuthorizedError,
    NotFoundError,
    ValidationError,
)
from roadside.events.requestEvents import (
    emit_request_cancelled,
    emit_request_created,
    emit_request_started,
)
from roadside.models.event import RequestEvent
from roadside.models.provider import Provider
from roadside.models.request import (
    ACTIVE_STATUSES,
    RequestPriority,
    RequestStatus,
    ServiceRequest,
    ServiceType,
)
from roadside.models.user import User, UserRole
from roadside.services.geoService import distance_between, validate_coordinates
from roadside.services.requestStateManager import (
    VALID_TRANSITIONS,
    ActorType,
    validate_transition,
)

logger = logging.getLogger(__name__)

_ROLE_ACTORS: dict[UserRole, ActorType] = {
    UserRole.USER: ActorType.USER,
    UserRole.PROVIDER: ActorType.PROVIDER,
    UserRole.ADMIN: ActorType.ADMIN,
}

MIN_VEHICLE_YEAR = 1900


# ---------------------------------------------------------------------------
# Pagination helper
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class PaginatedResult:
    """Generic container for a page of results plus metadata."""

    items: Sequence
    total_items: int
    page: int
    page_size: int

    @property
    def total_pages(self) -> int:
        if self.total_items == 0 or self.page_size == 0:
            return 0
        return math.ceil(self.total_items / self.page_size)


def actor_type_for(user: User) -> ActorType:
    """Map a user's role onto the state machine's actor type."""
    return _ROLE_ACTORS[user.role]


def apply_transition(
    request: ServiceRequest,
    new_status: RequestStatus,
    actor_type: ActorType,
) -> RequestStatus:
    """Validate and apply a status change in memory; return the old status.

    Raises:
        InvalidStateError: If the state machine rejects the transition.
        NotAuthorizedError: If the transition is valid but not for this actor.
    """
    old_status = request.status
    result = validate_transition(old_status, new_status, actor_type)
    if not result.allowed:
        logger.warning(
            "Rejected transition for request %s: %s -> %s by %s (%s)",
            request.id,
            old_status.value,
            new_status.value,
            actor_type.value,
            result.reason,
        )
        if new_status not in VALID_TRANSITIONS.get(old_status, set()):
            raise InvalidStateError(result.reason)
        raise NotAuthorizedError(result.reason or "Transition not allowed.")

    request.status = new_status
    return old_status


# ---------------------------------------------------------------------------
# Intake
# ---------------------------------------------------------------------------

def _required_text(name: str, value: Optional[str]) -> str:
    if value is None or not str(value).strip():
        raise ValidationError(f"'{name}' is required.")
    return str(value).strip()


def _parse_enum(enum_cls, name: str, value):
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(str(value).lower().strip())
    except ValueError:
        allowed = ", ".join(member.value for member in enum_cls)
        raise ValidationError(f"Invalid {name}: {value}. Must be one of: {allowed}.")


async def user_has_active_request(db: AsyncSession, user_id: int) -> bool:
    """True when the user owns a pending, assigned or in-progress request."""
    stmt = select(
        exists().where(
            ServiceRequest.user_id == user_id,
            ServiceRequest.status.in_(ACTIVE_STATUSES),
        )
    )
    return bool((await db.execute(stmt)).scalar())


async def create_request(
    db: AsyncSession,
    user: User,
    *,
    service_type: str | ServiceType | None,
    location_address: Optional[str],
    vehicle_make: Optional[str],
    vehicle_model: Optional[str],
    description: Optional[str] = None,
    priority: str | RequestPriority | None = None,
    latitude: float | Decimal | None = None,
    longitude: float | Decimal | None = None,
    vehicle_year: Optional[int] = None,
    vehicle_plate: Optional[str] = None,
) -> ServiceRequest:
    """Submit a new service request in ``pending``.

    Raises:
        NotAuthorizedError: If the caller is not a requester.
        ValidationError: If a required field is missing or malformed.
        ConflictError: If the requester already has an active request.
    """
    if user.role != UserRole.USER:
        raise NotAuthorizedError("Only drivers can submit service requests.")

    if service_type is None or (isinstance(service_type, str) and not service_type.strip()):
        raise ValidationError("'service_type' is required.")
    parsed_type = _parse_enum(ServiceType, "service_type", service_type)
    parsed_priority = (
        _parse_enum(RequestPriority, "priority", priority)
        if priority is not None
        else RequestPriority.MEDIUM
    )
    address = _required_text("location_address", location_address)
    make = _required_text("vehicle_make", vehicle_make)
    model = _required_text("vehicle_model", vehicle_model)

    if (latitude is None) != (longitude is None):
        raise ValidationError("Latitude and longitude must be supplied together.")
    if latitude is not None:
        validate_coordinates(latitude, longitude)

    if vehicle_year is not None:
        max_year = datetime.now(timezone.utc).year + 1
        if not MIN_VEHICLE_YEAR <= vehicle_year <= max_year:
            raise ValidationError(
                f"Vehicle year must be between {MIN_VEHICLE_YEAR} and {max_year}."
            )

    if settings.enforce_single_active_request and await user_has_active_request(db, user.id):
        raise ConflictError("You already have an active request.")

    request = ServiceRequest(
        user_id=user.id,
        service_type=parsed_type,
        priority=parsed_priority,
        status=RequestStatus.PENDING,
        description=description,
        location_address=address,
        latitude=Decimal(str(latitude)) if latitude is not None else None,
        longitude=Decimal(str(longitude)) if longitude is not None else None,
        vehicle_make=make,
        vehicle_model=model,
        vehicle_year=vehicle_year,
        vehicle_plate=vehicle_plate,
    )
    db.add(request)
    await db.flush()

    await emit_request_created(db, request.id, user.id, parsed_type.value)

    logger.info(
        "Request %s created: %s at %r for user %s",
        request.id,
        parsed_type.value,
        address,
        user.id,
    )
    return request


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------

async def get_request(db: AsyncSession, request_id: int) -> ServiceRequest:
    """Fetch a request by primary key, raising if not found."""
    request = await db.get(ServiceRequest, request_id)
    if request is None:
        raise NotFoundError("Request", request_id)
    return request


async def get_visible_request(
    db: AsyncSession,
    request_id: int,
    user: User,
    provider: Optional[Provider] = None,
) -> ServiceRequest:
    """Fetch a request the caller is allowed to see.

    Admins see everything, requesters see their own, providers see the
    pending board plus what they are bound to.
    """
    request = await get_request(db, request_id)
    if user.role == UserRole.ADMIN:
        return request
    if user.role == UserRole.USER and request.user_id == user.id:
        return request
    if user.role == UserRole.PROVIDER and (
        request.status == RequestStatus.PENDING
        or (provider is not None and request.provider_id == provider.id)
    ):
        return request
    raise NotAuthorizedError("You do not have access to this request.")


async def list_requests(
    db: AsyncSession,
    *,
    user_id: Optional[int] = None,
    provider_id: Optional[int] = None,
    status: Optional[RequestStatus] = None,
    page: Optional[int] = None,
    page_size: Optional[int] = None,
) -> PaginatedResult:
    """Return requests newest first, optionally filtered and paginated.

    Without ``page`` every matching row is returned in a single page.
    """
    filters = []
    if user_id is not None:
        filters.append(ServiceRequest.user_id == user_id)
    if provider_id is not None:
        filters.append(ServiceRequest.provider_id == provider_id)
    if status is not None:
        filters.append(ServiceRequest.status == status)

    count_stmt = select(func.count(ServiceRequest.id)).where(*filters)
    total_items: int = (await db.execute(count_stmt)).scalar_one()

    data_stmt = (
        select(ServiceRequest)
        .where(*filters)
        .order_by(ServiceRequest.created_at.desc(), ServiceRequest.id.desc())
    )
    if page is not None:
        size = min(page_size or settings.default_page_size, settings.max_page_size)
        data_stmt = data_stmt.offset((page - 1) * size).limit(size)
    else:
        page, size = 1, total_items

    requests = (await db.execute(data_stmt)).scalars().all()

    return PaginatedResult(
        items=requests,
        total_items=total_items,
        page=page,
        page_size=size,
    )


async def list_available(
    db: AsyncSession,
    provider: Provider,
) -> list[tuple[ServiceRequest, Optional[float]]]:
    """Pending requests paired with their distance from ``provider`` in km.

    Nearest first; requests (or a provider) without coordinates sort last,
    oldest first among themselves.
    """
    stmt = (
        select(ServiceRequest)
        .where(ServiceRequest.status == RequestStatus.PENDING)
        .order_by(ServiceRequest.created_at, ServiceRequest.id)
    )
    pending = (await db.execute(stmt)).scalars().all()

    board = [
        (
            request,
            distance_between(
                provider.latitude, provider.longitude, request.latitude, request.longitude
            ),
        )
        for request in pending
    ]
    # sort is stable, so ties keep creation order
    board.sort(key=lambda item: (item[1] is None, item[1] or 0.0))
    return board


async def list_events(
    db: AsyncSession,
    *,
    after: int = 0,
    limit: int = 100,
    request_ids: Optional[Sequence[int]] = None,
) -> list[RequestEvent]:
    """Events with ``id > after`` in cursor order."""
    stmt = (
        select(RequestEvent)
        .where(RequestEvent.id > after)
        .order_by(RequestEvent.id)
        .limit(min(limit, settings.max_page_size))
    )
    if request_ids is not None:
        stmt = stmt.where(RequestEvent.request_id.in_(request_ids))
    return list((await db.execute(stmt)).scalars().all())


# ---------------------------------------------------------------------------
# Transitions
# ---------------------------------------------------------------------------

async def start_request(
    db: AsyncSession,
    request_id: int,
    provider: Provider,
) -> ServiceRequest:
    """Move an assigned request to ``in_progress``.

    Raises:
        NotFoundError: If the request does not exist.
        NotAuthorizedError: If ``provider`` is not the bound provider.
        InvalidStateError: If the request is not ``assigned``.
    """
    request = await get_request(db, request_id)
    if request.provider_id != provider.id:
        raise NotAuthorizedError("Only the assigned provider can start this request.")

    old_status = apply_transition(request, RequestStatus.IN_PROGRESS, ActorType.PROVIDER)
    request.started_at = datetime.now(timezone.utc)
    await db.flush()

    await emit_request_started(db, request.id, provider.id, provider.user_id)

    logger.info(
        "Request %s transitioned: %s -> %s (provider=%s)",
        request.id,
        old_status.value,
        request.status.value,
        provider.id,
    )
    return request


async def cancel_request(
    db: AsyncSession,
    request_id: int,
    user: User,
    reason: Optional[str] = None,
) -> ServiceRequest:
    """Cancel a request that is still ``pending``.

    Raises:
        NotFoundError: If the request does not exist.
        NotAuthorizedError: If the caller is neither the requester nor an admin.
        InvalidStateError: If a provider is already bound or the request is
            finished.
    """
    request = await get_request(db, request_id)

    is_owner = user.role == UserRole.USER and request.user_id == user.id
    if not (is_owner or user.role == UserRole.ADMIN):
        raise NotAuthorizedError("Only the requester or an admin can cancel a request.")

    old_status = apply_transition(request, RequestStatus.CANCELLED, actor_type_for(user))
    request.cancelled_at = datetime.now(timezone.utc)
    request.cancellation_reason = reason
    await db.flush()

    await emit_request_cancelled(db, request.id, user.id, reason)

    logger.info(
        "Request %s cancelled: %s -> %s by %s (reason=%s)",
        request.id,
        old_status.value,
        request.status.value,
        user.id,
        reason,
    )
    return request
