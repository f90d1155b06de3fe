"""
Provider Availability Tracker
=============================

Holds each provider's current status and last-known coordinates, and decides
whether a provider is eligible for new work.

Two inputs keep it current:

  - ``report_location``: high-frequency position pushes from the provider's
    device.  Last writer wins; no state transition.
  - ``set_status``: low-frequency explicit online/busy/offline toggle.

Eligibility is ``status == online`` AND no active bound request.  The second
half is checked against ``service_requests`` directly so a stale status flag
can never make a bound provider look free.  Assignment claims a provider with
a conditional update (``online -> busy``) and completion releases it
(``busy -> online``), both executed inside the caller's transaction.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional

from sqlalchemy import exists, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from roadside.core.exceptions import (
    ConflictError,
    InvalidStateError,
    NotAuthorizedError,
    NotFoundError,
    ProviderUnavailableError,
    ValidationError,
)
from roadside.models.provider import Provider, ProviderStatus
from roadside.models.request import ACTIVE_BOUND_STATUSES, ServiceRequest
from roadside.models.user import User, UserRole
from roadside.services.geoService import validate_coordinates

logger = logging.getLogger(__name__)

_REQUIRED_PROFILE_FIELDS = ("company_name", "license_number", "vehicle_type", "vehicle_plate")
_INSURANCE_FIELDS = ("insurance_provider", "insurance_policy_number")


# ---------------------------------------------------------------------------
# Lookups
# ---------------------------------------------------------------------------

async def get_provider(db: AsyncSession, provider_id: int) -> Provider:
    """Fetch a provider by primary key, raising if not found."""
    provider = await db.get(Provider, provider_id)
    if provider is None:
        raise NotFoundError("Provider", provider_id)
    return provider


async def get_provider_for_user(db: AsyncSession, user_id: int) -> Provider:
    """Fetch the provider profile owned by a user, raising if not found."""
    stmt = select(Provider).where(Provider.user_id == user_id)
    provider = (await db.execute(stmt)).scalar_one_or_none()
    if provider is None:
        raise NotFoundError("Provider profile for user", user_id)
    return provider


async def list_providers(
    db: AsyncSession,
    status: Optional[ProviderStatus] = None,
) -> list[Provider]:
    """All providers, optionally filtered by current status."""
    stmt = select(Provider).order_by(Provider.id)
    if status is not None:
        stmt = stmt.where(Provider.current_status == status)
    return list((await db.execute(stmt)).scalars().all())


# ---------------------------------------------------------------------------
# Profile setup
# ---------------------------------------------------------------------------

async def create_profile(
    db: AsyncSession,
    user: User,
    *,
    company_name: str,
    license_number: str,
    vehicle_type: str,
    vehicle_plate: str,
    insurance_provider: Optional[str] = None,
    insurance_policy_number: Optional[str] = None,
) -> Provider:
    """One-time provider profile setup for a user registered as a provider.

    Raises:
        NotAuthorizedError: If the user does not have the provider role.
        ValidationError: If a required field is blank.
        ConflictError: If the user already has a profile.
    """
    if user.role != UserRole.PROVIDER:
        raise NotAuthorizedError("Only users registered as providers can create a provider profile.")

    fields = {
        "company_name": company_name,
        "license_number": license_number,
        "vehicle_type": vehicle_type,
        "vehicle_plate": vehicle_plate,
        "insurance_provider": insurance_provider,
        "insurance_policy_number": insurance_policy_number,
    }
    fields = {k: v.strip() if isinstance(v, str) else v for k, v in fields.items()}

    missing = [name for name in _REQUIRED_PROFILE_FIELDS if not fields[name]]
    if missing:
        raise ValidationError(f"Missing required profile fields: {', '.join(missing)}.")

    existing = await db.execute(select(Provider.id).where(Provider.user_id == user.id))
    if existing.scalar_one_or_none() is not None:
        raise ConflictError("Provider profile already exists.")

    provider = Provider(
        user_id=user.id,
        current_status=ProviderStatus.OFFLINE,
        is_profile_complete=all(fields[name] for name in _INSURANCE_FIELDS),
        **fields,
    )
    db.add(provider)
    await db.flush()

    logger.info("Provider profile %s created for user %s", provider.id, user.id)
    return provider


# ---------------------------------------------------------------------------
# Eligibility
# ---------------------------------------------------------------------------

async def has_active_request(db: AsyncSession, provider_id: int) -> bool:
    """True when the provider is bound to an assigned or in-progress request."""
    stmt = select(
        exists().where(
            ServiceRequest.provider_id == provider_id,
            ServiceRequest.status.in_(ACTIVE_BOUND_STATUSES),
        )
    )
    return bool((await db.execute(stmt)).scalar())


async def is_eligible(db: AsyncSession, provider: Provider) -> bool:
    """Whether ``provider`` may be offered or may accept new work."""
    if provider.current_status != ProviderStatus.ONLINE:
        return False
    return not await has_active_request(db, provider.id)


async def claim_for_assignment(db: AsyncSession, provider_id: int) -> None:
    """Atomically move an eligible provider from ``online`` to ``busy``.

    Raises:
        ProviderUnavailableError: If the provider is not online or is already
            bound to an active request.
    """
    if await has_active_request(db, provider_id):
        raise ProviderUnavailableError(provider_id, "already bound to an active request")

    stmt = (
        update(Provider)
        .where(
            Provider.id == provider_id,
            Provider.current_status == ProviderStatus.ONLINE,
        )
        .values(current_status=ProviderStatus.BUSY)
    )
    result = await db.execute(stmt)
    if result.rowcount != 1:
        raise ProviderUnavailableError(provider_id, "provider is not online")


async def release_after_completion(db: AsyncSession, provider_id: int) -> None:
    """Return a provider to ``online`` once its bound request is settled.

    Only a provider still flagged ``busy`` is touched; one that went offline
    mid-job stays offline.
    """
    stmt = (
        update(Provider)
        .where(
            Provider.id == provider_id,
            Provider.current_status == ProviderStatus.BUSY,
        )
        .values(current_status=ProviderStatus.ONLINE)
    )
    await db.execute(stmt)


# ---------------------------------------------------------------------------
# Status & location updates
# ---------------------------------------------------------------------------

async def set_status(
    db: AsyncSession,
    provider: Provider,
    status: ProviderStatus,
) -> Provider:
    """Explicit status toggle from the provider dashboard.

    Raises:
        InvalidStateError: If the provider asks to go ``online`` while still
            bound to an active request.
    """
    if status == ProviderStatus.ONLINE and await has_active_request(db, provider.id):
        raise InvalidStateError(
            "Cannot go online while a request is still assigned; complete it first."
        )

    previous = provider.current_status
    provider.current_status = status
    await db.flush()

    logger.info(
        "Provider %s status %s -> %s",
        provider.id,
        previous.value if previous else None,
        status.value,
    )
    return provider


async def report_location(
    db: AsyncSession,
    provider: Provider,
    latitude: float | Decimal,
    longitude: float | Decimal,
) -> Provider:
    """Store the provider's latest GPS position (last writer wins)."""
    validate_coordinates(latitude, longitude)

    provider.latitude = Decimal(str(latitude))
    provider.longitude = Decimal(str(longitude))
    provider.location_updated_at = datetime.now(timezone.utc)
    await db.flush()

    logger.debug("Provider %s location (%s, %s)", provider.id, latitude, longitude)
    return provider
