"""
Assignment Resolver
===================

Binds a pending request to exactly one provider, whether the provider
self-accepts from the board or an admin dispatches one explicitly.

Exclusivity is enforced in the database, not in application memory.  The
binding is a single conditional update::

    UPDATE service_requests
       SET status = 'assigned', provider_id = :pid, ...
     WHERE id = :rid AND status = 'pending' AND provider_id IS NULL

Zero affected rows means another provider (or a cancel) got there first and
the caller receives ``AlreadyAssignedError``.  The provider is claimed the
same way (``online -> busy``) in the same transaction, so a failure on
either side rolls both back when the session dependency sees the exception.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from roadside.core.exceptions import (
    AlreadyAssignedError,
    InvalidStateError,
    NotAuthorizedError,
)
from roadside.events.requestEvents import emit_request_assigned
from roadside.models.provider import Provider
from roadside.models.request import AssignmentSource, RequestStatus, ServiceRequest
from roadside.models.user import User, UserRole
from roadside.services.availabilityTracker import claim_for_assignment, get_provider
from roadside.services.requestService import get_request

logger = logging.getLogger(__name__)


async def _bind(
    db: AsyncSession,
    request_id: int,
    provider_id: int,
    source: AssignmentSource,
    actor_id: int,
) -> ServiceRequest:
    request = await get_request(db, request_id)

    if request.status == RequestStatus.CANCELLED:
        raise InvalidStateError(f"Request {request_id} has been cancelled.")
    if request.status != RequestStatus.PENDING or request.provider_id is not None:
        logger.info(
            "Request %s already taken (status=%s, provider=%s); provider %s turned away",
            request_id,
            request.status.value,
            request.provider_id,
            provider_id,
        )
        raise AlreadyAssignedError(request_id)

    await claim_for_assignment(db, provider_id)

    stmt = (
        update(ServiceRequest)
        .where(
            ServiceRequest.id == request_id,
            ServiceRequest.status == RequestStatus.PENDING,
            ServiceRequest.provider_id.is_(None),
        )
        .values(
            status=RequestStatus.ASSIGNED,
            provider_id=provider_id,
            assignment_source=source,
            assigned_at=datetime.now(timezone.utc),
        )
        .execution_options(synchronize_session=False)
    )
    result = await db.execute(stmt)
    if result.rowcount != 1:
        logger.info(
            "Lost assignment race for request %s (provider %s)",
            request_id,
            provider_id,
        )
        raise AlreadyAssignedError(request_id)

    await db.refresh(request)
    await emit_request_assigned(db, request.id, provider_id, source.value, actor_id)

    logger.info(
        "Request %s assigned to provider %s (%s)",
        request.id,
        provider_id,
        source.value,
    )
    return request


async def accept_request(
    db: AsyncSession,
    request_id: int,
    provider: Provider,
) -> ServiceRequest:
    """Provider self-accepts a pending request from the board.

    Raises:
        NotFoundError: If the request does not exist.
        AlreadyAssignedError: If another provider already holds the request.
        ProviderUnavailableError: If ``provider`` is not online or is busy
            with another request.
        InvalidStateError: If the request was cancelled.
    """
    request = await _bind(
        db, request_id, provider.id, AssignmentSource.ACCEPTED, provider.user_id
    )
    await db.refresh(provider)
    return request


async def admin_assign(
    db: AsyncSession,
    request_id: int,
    provider_id: int,
    admin: User,
) -> ServiceRequest:
    """Admin dispatches a pending request to an explicit provider.

    Raises:
        NotAuthorizedError: If ``admin`` does not have the admin role.
        NotFoundError: If the request or provider does not exist.
        AlreadyAssignedError: If the request is already bound.
        ProviderUnavailableError: If the target provider is not eligible.
    """
    if admin.role != UserRole.ADMIN:
        raise NotAuthorizedError("Only admins can assign requests to providers.")

    await get_provider(db, provider_id)
    return await _bind(
        db, request_id, provider_id, AssignmentSource.DISPATCHED, admin.id
    )
