"""
Pydantic v2 schemas for the service-request API.

Intake fields are optional at the schema level on purpose: missing required
fields are reported by the request service as a 400 ``validation_error``
rather than a framework 422, so every client sees one error shape.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field

from roadside.models.request import (
    AssignmentSource,
    RequestPriority,
    RequestStatus,
    ServiceRequest,
    ServiceType,
)
from roadside.services.requestStateManager import ActorType, get_valid_transitions
from roadside.services.settlementService import format_cost


# ---------------------------------------------------------------------------
# Request bodies
# ---------------------------------------------------------------------------

class RequestCreate(BaseModel):
    """Body for POST /requests/."""

    service_type: Optional[str] = Field(
        default=None,
        description="towing, battery, tire, fuel, lockout, winch or other",
    )
    description: Optional[str] = Field(default=None, max_length=2000)
    priority: Optional[str] = Field(default=None, description="low, medium or high")
    location_address: Optional[str] = Field(default=None, max_length=500)
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    vehicle_make: Optional[str] = Field(default=None, max_length=100)
    vehicle_model: Optional[str] = Field(default=None, max_length=100)
    vehicle_year: Optional[int] = None
    vehicle_plate: Optional[str] = Field(default=None, max_length=20)


class AdminAssignBody(BaseModel):
    """Body for POST /requests/{id}/admin_assign/."""

    provider_id: int = Field(description="Provider to bind the request to")


class CompleteBody(BaseModel):
    """Body for POST /requests/{id}/complete/."""

    final_cost: Optional[Decimal] = Field(
        default=None, description="Amount charged, in dollars"
    )


class CancelBody(BaseModel):
    """Optional body for POST /requests/{id}/cancel/."""

    reason: Optional[str] = Field(default=None, max_length=1000)


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------

class RequestOut(BaseModel):
    """Full request representation returned by detail and list endpoints."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    provider_id: Optional[int] = None

    service_type: ServiceType
    priority: RequestPriority
    status: RequestStatus
    assignment_source: Optional[AssignmentSource] = None
    description: Optional[str] = None

    location_address: str
    latitude: Optional[Decimal] = None
    longitude: Optional[Decimal] = None

    vehicle_make: str
    vehicle_model: str
    vehicle_year: Optional[int] = None
    vehicle_plate: Optional[str] = None

    final_cost: Optional[Decimal] = None

    created_at: datetime
    updated_at: datetime
    assigned_at: Optional[datetime] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    cancellation_reason: Optional[str] = None

    available_actions: list[RequestStatus] = Field(
        default_factory=list,
        description="Statuses the caller may move this request to",
    )

    @computed_field  # type: ignore[prop-decorator]
    @property
    def final_cost_display(self) -> Optional[str]:
        return format_cost(self.final_cost)

    @classmethod
    def for_actor(
        cls,
        request: ServiceRequest,
        actor_type: ActorType,
        **extra: Any,
    ) -> "RequestOut":
        out = cls.model_validate(request)
        out.available_actions = get_valid_transitions(request.status, actor_type)
        for key, value in extra.items():
            setattr(out, key, value)
        return out


class AvailableRequestOut(RequestOut):
    """Pending request on the provider board, with distance when known."""

    distance_km: Optional[float] = None


class EventOut(BaseModel):
    """One change-feed entry."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    request_id: int
    event_type: str
    actor_id: Optional[int] = None
    data: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime


class StatsOut(BaseModel):
    """Admin dashboard aggregates."""

    model_config = ConfigDict(from_attributes=True)

    total_requests: int
    pending_requests: int
    active_requests: int
    completed_requests: int
    total_providers: int
    online_providers: int
    avg_response_minutes: Optional[int] = None
    avg_response_display: str
