"""
Completion & Settlement
=======================

Closes out a request with its final cost and derives the dashboard figures
built on settled requests: average response time, provider earnings and
display formatting for amounts.

Response time is measured from request creation to completion.  Averages
round half up to whole minutes and are shown as ``"N min"`` below an hour,
otherwise as whole hours (``"2 hr"``).
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Iterable, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from roadside.core.exceptions import InvalidStateError, NotAuthorizedError, ValidationError
from roadside.events.requestEvents import emit_request_completed
from roadside.models.base import as_utc
from roadside.models.provider import Provider, ProviderStatus
from roadside.models.request import ACTIVE_STATUSES, RequestStatus, ServiceRequest
from roadside.services.availabilityTracker import release_after_completion
from roadside.services.requestService import apply_transition, get_request
from roadside.services.requestStateManager import ActorType

logger = logging.getLogger(__name__)

CENTS = Decimal("0.01")
# final_cost is Numeric(10, 2)
MAX_FINAL_COST = Decimal("100000000")
NOT_AVAILABLE = "N/A"


# ---------------------------------------------------------------------------
# Completion
# ---------------------------------------------------------------------------

def parse_final_cost(value) -> Decimal:
    """Coerce a submitted cost to a non-negative amount in cents.

    Raises:
        ValidationError: If the value is missing, not a finite number,
            negative or too large to store.
    """
    if value is None or isinstance(value, bool):
        raise ValidationError("'final_cost' is required.")
    try:
        amount = Decimal(str(value).strip())
    except InvalidOperation:
        raise ValidationError(f"Invalid final cost: {value!r}.")
    if not amount.is_finite():
        raise ValidationError("Final cost must be a finite number.")
    if amount < 0:
        raise ValidationError("Final cost cannot be negative.")
    if amount >= MAX_FINAL_COST:
        raise ValidationError("Final cost is too large.")
    return amount.quantize(CENTS, rounding=ROUND_HALF_UP)


async def complete_request(
    db: AsyncSession,
    request_id: int,
    provider: Provider,
    final_cost,
) -> ServiceRequest:
    """Settle a bound request with its final cost and free the provider.

    Raises:
        NotFoundError: If the request does not exist.
        NotAuthorizedError: If ``provider`` is not the bound provider.
        InvalidStateError: If the request is pending or already finished.
        ValidationError: If ``final_cost`` is not a non-negative number.
    """
    request = await get_request(db, request_id)
    if request.status == RequestStatus.PENDING:
        raise InvalidStateError(f"Request {request_id} has not been assigned yet.")
    if request.is_terminal:
        raise InvalidStateError(
            f"Request {request_id} is already {request.status.value}."
        )
    if request.provider_id != provider.id:
        raise NotAuthorizedError("Only the assigned provider can complete this request.")

    amount = parse_final_cost(final_cost)

    old_status = apply_transition(request, RequestStatus.COMPLETED, ActorType.PROVIDER)
    request.final_cost = amount
    request.completed_at = datetime.now(timezone.utc)
    await db.flush()

    await release_after_completion(db, provider.id)
    await emit_request_completed(db, request.id, provider.id, amount, provider.user_id)

    logger.info(
        "Request %s transitioned: %s -> %s (provider=%s, final_cost=%s)",
        request.id,
        old_status.value,
        request.status.value,
        provider.id,
        amount,
    )
    return request


# ---------------------------------------------------------------------------
# Derived figures
# ---------------------------------------------------------------------------

def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def response_minutes(request: ServiceRequest) -> Optional[float]:
    """Minutes from creation to completion, or ``None`` if not settled."""
    if request.status != RequestStatus.COMPLETED:
        return None
    if request.created_at is None or request.completed_at is None:
        return None
    delta = as_utc(request.completed_at) - as_utc(request.created_at)
    return delta.total_seconds() / 60


def average_response_minutes(requests: Iterable[ServiceRequest]) -> Optional[int]:
    """Mean response time over completed requests, in whole minutes."""
    samples = [m for m in (response_minutes(r) for r in requests) if m is not None]
    if not samples:
        return None
    return _round_half_up(sum(samples) / len(samples))


def format_response_time(minutes: Optional[int]) -> str:
    """``"15 min"`` below an hour, ``"2 hr"`` otherwise, ``"N/A"`` if unknown."""
    if minutes is None:
        return NOT_AVAILABLE
    if minutes < 60:
        return f"{minutes} min"
    return f"{_round_half_up(minutes / 60)} hr"


def total_earnings(requests: Iterable[ServiceRequest]) -> Decimal:
    """Sum of final costs over the completed requests in ``requests``."""
    total = sum(
        (
            r.final_cost
            for r in requests
            if r.status == RequestStatus.COMPLETED and r.final_cost is not None
        ),
        Decimal("0"),
    )
    return Decimal(total).quantize(CENTS)


def format_cost(amount: Optional[Decimal]) -> Optional[str]:
    """Dollar display string such as ``"$75.00"``; ``None`` stays ``None``."""
    if amount is None:
        return None
    return f"${Decimal(amount).quantize(CENTS, rounding=ROUND_HALF_UP):,.2f}"


# ---------------------------------------------------------------------------
# Aggregates
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ProviderEarnings:
    provider_id: int
    total: Decimal
    completed_count: int

    @property
    def total_display(self) -> str:
        return format_cost(self.total)


@dataclass(frozen=True)
class DashboardStats:
    """Figures shown on the admin dashboard."""

    total_requests: int
    pending_requests: int
    active_requests: int
    completed_requests: int
    total_providers: int
    online_providers: int
    avg_response_minutes: Optional[int]

    @property
    def avg_response_display(self) -> str:
        return format_response_time(self.avg_response_minutes)


async def provider_earnings(db: AsyncSession, provider_id: int) -> ProviderEarnings:
    """Total settled amount and job count for one provider."""
    stmt = select(ServiceRequest).where(
        ServiceRequest.provider_id == provider_id,
        ServiceRequest.status == RequestStatus.COMPLETED,
    )
    settled = (await db.execute(stmt)).scalars().all()
    return ProviderEarnings(
        provider_id=provider_id,
        total=total_earnings(settled),
        completed_count=len(settled),
    )


async def dashboard_stats(db: AsyncSession) -> DashboardStats:
    """Request and provider counts plus the average response time."""
    status_counts = dict(
        (
            await db.execute(
                select(ServiceRequest.status, func.count(ServiceRequest.id))
                .group_by(ServiceRequest.status)
            )
        ).all()
    )
    provider_counts = dict(
        (
            await db.execute(
                select(Provider.current_status, func.count(Provider.id))
                .group_by(Provider.current_status)
            )
        ).all()
    )
    completed = (
        await db.execute(
            select(ServiceRequest).where(ServiceRequest.status == RequestStatus.COMPLETED)
        )
    ).scalars().all()

    return DashboardStats(
        total_requests=sum(status_counts.values()),
        pending_requests=status_counts.get(RequestStatus.PENDING, 0),
        active_requests=sum(status_counts.get(s, 0) for s in ACTIVE_STATUSES),
        completed_requests=status_counts.get(RequestStatus.COMPLETED, 0),
        total_providers=sum(provider_counts.values()),
        online_providers=provider_counts.get(ProviderStatus.ONLINE, 0),
        avg_response_minutes=average_response_minutes(completed),
    )
