"""
Provider API Routes
===================

Profile setup, availability and earnings for tow operators, plus the
provider directory used by the admin dispatch screen.

Routes:
  GET    /api/providers/                  -- List providers (admin, provider)
  GET    /api/providers/my_profile/       -- Caller's provider profile
  GET    /api/providers/my_earnings/      -- Settled totals for the caller
  POST   /api/providers/create_profile/   -- One-time profile setup
  PUT    /api/providers/update_location/  -- Report current GPS position
  PUT    /api/providers/update_status/    -- Toggle online / busy / offline
"""

from __future__ import annotations

import logging
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, Query, status

from roadside.api.deps import CurrentProvider, CurrentUser, DBSession, require_roles
from roadside.api.errors import to_http_exception
from roadside.api.schemas.provider import (
    EarningsOut,
    LocationUpdate,
    ProviderCreate,
    ProviderOut,
    StatusUpdate,
)
from roadside.core.exceptions import DispatchError
from roadside.models.provider import ProviderStatus
from roadside.models.user import User, UserRole
from roadside.services import availabilityTracker, settlementService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/providers", tags=["Providers"])

StaffUser = Annotated[User, Depends(require_roles(UserRole.ADMIN, UserRole.PROVIDER))]


@router.get(
    "/",
    response_model=list[ProviderOut],
    summary="List providers",
)
async def list_providers(
    db: DBSession,
    user: StaffUser,
    status_filter: Optional[ProviderStatus] = Query(default=None, alias="status"),
) -> list[ProviderOut]:
    providers = await availabilityTracker.list_providers(db, status=status_filter)
    return [ProviderOut.model_validate(p) for p in providers]


@router.get(
    "/my_profile/",
    response_model=ProviderOut,
    summary="Current provider's profile",
    description="404 until the provider has completed profile setup.",
)
async def my_profile(provider: CurrentProvider) -> ProviderOut:
    return ProviderOut.model_validate(provider)


@router.get(
    "/my_earnings/",
    response_model=EarningsOut,
    summary="Total earnings over completed requests",
)
async def my_earnings(db: DBSession, provider: CurrentProvider) -> EarningsOut:
    earnings = await settlementService.provider_earnings(db, provider.id)
    return EarningsOut.model_validate(earnings)


@router.post(
    "/create_profile/",
    response_model=ProviderOut,
    status_code=status.HTTP_201_CREATED,
    summary="One-time provider profile setup",
)
async def create_profile(
    db: DBSession,
    user: CurrentUser,
    body: ProviderCreate,
) -> ProviderOut:
    try:
        provider = await availabilityTracker.create_profile(
            db,
            user,
            company_name=body.company_name,
            license_number=body.license_number,
            vehicle_type=body.vehicle_type,
            vehicle_plate=body.vehicle_plate,
            insurance_provider=body.insurance_provider,
            insurance_policy_number=body.insurance_policy_number,
        )
    except DispatchError as exc:
        raise to_http_exception(exc)
    logger.info("User %s set up provider profile %s", user.id, provider.id)
    return ProviderOut.model_validate(provider)


@router.put(
    "/update_location/",
    response_model=ProviderOut,
    summary="Report the provider's current position",
)
async def update_location(
    body: LocationUpdate,
    db: DBSession,
    provider: CurrentProvider,
) -> ProviderOut:
    try:
        provider = await availabilityTracker.report_location(
            db, provider, body.latitude, body.longitude
        )
    except DispatchError as exc:
        raise to_http_exception(exc)
    return ProviderOut.model_validate(provider)


@router.put(
    "/update_status/",
    response_model=ProviderOut,
    summary="Set availability status",
    description="Going online while still bound to an active request is a 409.",
)
async def update_status(
    body: StatusUpdate,
    db: DBSession,
    provider: CurrentProvider,
) -> ProviderOut:
    try:
        provider = await availabilityTracker.set_status(db, provider, body.status)
    except DispatchError as exc:
        logger.info("Provider %s status change rejected: %s", provider.id, exc)
        raise to_http_exception(exc)
    return ProviderOut.model_validate(provider)
