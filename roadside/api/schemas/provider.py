"""
Pydantic v2 schemas for provider profile, availability and earnings.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from roadside.models.provider import ProviderStatus


class ProviderCreate(BaseModel):
    """Body for POST /providers/create_profile/."""

    company_name: Optional[str] = Field(default=None, max_length=200)
    license_number: Optional[str] = Field(default=None, max_length=100)
    vehicle_type: Optional[str] = Field(default=None, max_length=50)
    vehicle_plate: Optional[str] = Field(default=None, max_length=20)
    insurance_provider: Optional[str] = Field(default=None, max_length=200)
    insurance_policy_number: Optional[str] = Field(default=None, max_length=100)


class LocationUpdate(BaseModel):
    """Body for PUT /providers/update_location/."""

    latitude: float = Field(description="Decimal degrees, -90 to 90")
    longitude: float = Field(description="Decimal degrees, -180 to 180")


class StatusUpdate(BaseModel):
    """Body for PUT /providers/update_status/."""

    status: ProviderStatus


class ProviderOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    company_name: str
    license_number: str
    vehicle_type: str
    vehicle_plate: str
    insurance_provider: Optional[str] = None
    insurance_policy_number: Optional[str] = None
    is_profile_complete: bool
    current_status: ProviderStatus
    latitude: Optional[Decimal] = None
    longitude: Optional[Decimal] = None
    location_updated_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime


class EarningsOut(BaseModel):
    """Settled totals for the calling provider."""

    model_config = ConfigDict(from_attributes=True)

    provider_id: int
    total: Decimal
    total_display: str
    completed_count: int
