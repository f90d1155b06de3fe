"""
SQLAlchemy model for provider profiles (tow operators).
"""

import enum
from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import Boolean, DateTime, Enum, ForeignKey, Integer, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, IntegerPrimaryKeyMixin, TimestampMixin, enum_values


class ProviderStatus(str, enum.Enum):
    ONLINE = "online"
    BUSY = "busy"
    OFFLINE = "offline"


class Provider(IntegerPrimaryKeyMixin, TimestampMixin, Base):
    __tablename__ = "providers"

    user_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
    )

    # Business details (set once at profile creation)
    company_name: Mapped[str] = mapped_column(String(200), nullable=False)
    license_number: Mapped[str] = mapped_column(String(100), nullable=False)
    vehicle_type: Mapped[str] = mapped_column(String(50), nullable=False)
    vehicle_plate: Mapped[str] = mapped_column(String(20), nullable=False)
    insurance_provider: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    insurance_policy_number: Mapped[Optional[str]] = mapped_column(
        String(100), nullable=True
    )
    is_profile_complete: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False
    )

    # Availability
    current_status: Mapped[ProviderStatus] = mapped_column(
        Enum(ProviderStatus, name="provider_status", values_callable=enum_values),
        nullable=False,
        default=ProviderStatus.OFFLINE,
    )
    latitude: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 7), nullable=True)
    longitude: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 7), nullable=True)
    location_updated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    # Relationships
    user: Mapped["User"] = relationship("User", back_populates="provider_profile")
    assignments: Mapped[list["ServiceRequest"]] = relationship(
        "ServiceRequest", back_populates="provider"
    )

    def __repr__(self) -> str:
        return (
            f"<Provider(id={self.id}, company={self.company_name}, "
            f"status={self.current_status})>"
        )
