"""
SQLAlchemy model for service_requests, the roadside-assistance job entity.
"""

import enum
from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import DateTime, Enum, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, IntegerPrimaryKeyMixin, TimestampMixin, enum_values


class ServiceType(str, enum.Enum):
    TOWING = "towing"
    BATTERY = "battery"
    TIRE = "tire"
    FUEL = "fuel"
    LOCKOUT = "lockout"
    WINCH = "winch"
    OTHER = "other"


class RequestPriority(str, enum.Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class RequestStatus(str, enum.Enum):
    PENDING = "pending"
    ASSIGNED = "assigned"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class AssignmentSource(str, enum.Enum):
    """How the bound provider came to hold the request."""

    ACCEPTED = "accepted"      # provider self-selected
    DISPATCHED = "dispatched"  # admin assigned


# A provider is bound and the job is not finished
ACTIVE_BOUND_STATUSES: frozenset[RequestStatus] = frozenset({
    RequestStatus.ASSIGNED,
    RequestStatus.IN_PROGRESS,
})

# Still drives the requester's "active request" view
ACTIVE_STATUSES: frozenset[RequestStatus] = ACTIVE_BOUND_STATUSES | {RequestStatus.PENDING}

TERMINAL_STATUSES: frozenset[RequestStatus] = frozenset({
    RequestStatus.COMPLETED,
    RequestStatus.CANCELLED,
})


class ServiceRequest(IntegerPrimaryKeyMixin, TimestampMixin, Base):
    __tablename__ = "service_requests"

    # Parties
    user_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    provider_id: Mapped[Optional[int]] = mapped_column(
        Integer,
        ForeignKey("providers.id", ondelete="RESTRICT"),
        nullable=True,
        index=True,
    )

    # Job details
    service_type: Mapped[ServiceType] = mapped_column(
        Enum(ServiceType, name="service_type", values_callable=enum_values),
        nullable=False,
    )
    priority: Mapped[RequestPriority] = mapped_column(
        Enum(RequestPriority, name="request_priority", values_callable=enum_values),
        nullable=False,
        default=RequestPriority.MEDIUM,
    )
    status: Mapped[RequestStatus] = mapped_column(
        Enum(RequestStatus, name="request_status", values_callable=enum_values),
        nullable=False,
        default=RequestStatus.PENDING,
        index=True,
    )
    assignment_source: Mapped[Optional[AssignmentSource]] = mapped_column(
        Enum(AssignmentSource, name="assignment_source", values_callable=enum_values),
        nullable=True,
    )
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Location
    location_address: Mapped[str] = mapped_column(String(500), nullable=False)
    latitude: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 7), nullable=True)
    longitude: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 7), nullable=True)

    # Vehicle
    vehicle_make: Mapped[str] = mapped_column(String(100), nullable=False)
    vehicle_model: Mapped[str] = mapped_column(String(100), nullable=False)
    vehicle_year: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    vehicle_plate: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)

    # Settlement
    final_cost: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2), nullable=True)

    # Lifecycle timestamps
    assigned_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    started_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    completed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    cancelled_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    cancellation_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Relationships
    user: Mapped["User"] = relationship("User", foreign_keys=[user_id])
    provider: Mapped[Optional["Provider"]] = relationship(
        "Provider", back_populates="assignments", foreign_keys=[provider_id]
    )
    events: Mapped[list["RequestEvent"]] = relationship(
        "RequestEvent", back_populates="request", order_by="RequestEvent.id"
    )

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def __repr__(self) -> str:
        return (
            f"<ServiceRequest(id={self.id}, type={self.service_type}, "
            f"status={self.status}, provider={self.provider_id})>"
        )
