"""
Roadside Dispatch SQLAlchemy Models
===================================

Central import point for all ORM models. Import ``Base`` from here for
Alembic auto-generation and for the ``create_all`` convenience in tests.

Usage::

    from roadside.models import Base, User, Provider, ServiceRequest
"""

# -- Base & Mixins --
from .base import Base, IntegerPrimaryKeyMixin, TimestampMixin

# -- Users --
from .user import AuthSession, User, UserRole

# -- Providers --
from .provider import Provider, ProviderStatus

# -- Requests --
from .request import (
    ACTIVE_BOUND_STATUSES,
    ACTIVE_STATUSES,
    TERMINAL_STATUSES,
    AssignmentSource,
    RequestPriority,
    RequestStatus,
    ServiceRequest,
    ServiceType,
)

# -- Change feed --
from .event import RequestEvent

__all__ = [
    # Base
    "Base",
    "IntegerPrimaryKeyMixin",
    "TimestampMixin",
    # Users
    "User",
    "UserRole",
    "AuthSession",
    # Providers
    "Provider",
    "ProviderStatus",
    # Requests
    "ServiceRequest",
    "ServiceType",
    "RequestPriority",
    "RequestStatus",
    "AssignmentSource",
    "ACTIVE_STATUSES",
    "ACTIVE_BOUND_STATUSES",
    "TERMINAL_STATUSES",
    # Change feed
    "RequestEvent",
]
