"""
SQLAlchemy model for request_events, the append-only change feed.

Rows are written in the same transaction as the state change they record, so
a reader that polls ``id > cursor`` never observes an event for a change that
was rolled back.
"""

from datetime import datetime
from typing import Any, Optional

from sqlalchemy import JSON, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, IntegerPrimaryKeyMixin, utcnow


class RequestEvent(IntegerPrimaryKeyMixin, Base):
    __tablename__ = "request_events"

    request_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("service_requests.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    event_type: Mapped[str] = mapped_column(String(50), nullable=False)
    actor_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    data: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )

    request: Mapped["ServiceRequest"] = relationship(
        "ServiceRequest", back_populates="events"
    )

    def __repr__(self) -> str:
        return (
            f"<RequestEvent(id={self.id}, request={self.request_id}, "
            f"type={self.event_type})>"
        )
