"""
Request Lifecycle Events
========================

Every state change of a service request emits an event.  Events are logged
and appended to the ``request_events`` table inside the caller's transaction,
which makes the table a change feed: clients can poll
``GET /requests/events/?after=<cursor>`` instead of re-reading full lists.

Events emitted:
  - request.created
  - request.assigned
  - request.started
  - request.completed
  - request.cancelled
"""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from roadside.models.event import RequestEvent

logger = logging.getLogger(__name__)


async def _record(
    db: AsyncSession,
    event_type: str,
    request_id: int,
    *,
    actor_id: Optional[int] = None,
    data: dict[str, Any] | None = None,
) -> RequestEvent:
    """Append an event row and log it."""
    event = RequestEvent(
        request_id=request_id,
        event_type=event_type,
        actor_id=actor_id,
        data=data or {},
    )
    db.add(event)
    await db.flush()
    logger.info(
        "Event emitted: %s for request %s (actor=%s)",
        event_type,
        request_id,
        actor_id,
    )
    return event


async def emit_request_created(
    db: AsyncSession,
    request_id: int,
    user_id: int,
    service_type: str,
) -> RequestEvent:
    """Emit event when a requester submits a new request."""
    return await _record(
        db,
        "request.created",
        request_id,
        actor_id=user_id,
        data={"service_type": service_type},
    )


async def emit_request_assigned(
    db: AsyncSession,
    request_id: int,
    provider_id: int,
    source: str,
    actor_id: int,
) -> RequestEvent:
    """Emit event when a provider is bound, by self-accept or admin dispatch."""
    return await _record(
        db,
        "request.assigned",
        request_id,
        actor_id=actor_id,
        data={"provider_id": provider_id, "source": source},
    )


async def emit_request_started(
    db: AsyncSession,
    request_id: int,
    provider_id: int,
    actor_id: int,
) -> RequestEvent:
    """Emit event when the bound provider starts work on site."""
    return await _record(
        db,
        "request.started",
        request_id,
        actor_id=actor_id,
        data={"provider_id": provider_id},
    )


async def emit_request_completed(
    db: AsyncSession,
    request_id: int,
    provider_id: int,
    final_cost: Decimal,
    actor_id: int,
) -> RequestEvent:
    """Emit event when a request is settled."""
    return await _record(
        db,
        "request.completed",
        request_id,
        actor_id=actor_id,
        data={"provider_id": provider_id, "final_cost": str(final_cost)},
    )


async def emit_request_cancelled(
    db: AsyncSession,
    request_id: int,
    cancelled_by: int,
    reason: str | None = None,
) -> RequestEvent:
    """Emit event when a pending request is cancelled."""
    return await _record(
        db,
        "request.cancelled",
        request_id,
        actor_id=cancelled_by,
        data={"reason": reason},
    )
