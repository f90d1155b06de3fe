"""Core infrastructure: configuration and the dispatch error taxonomy."""

from roadside.core.config import Settings, settings
from roadside.core.exceptions import (
    AlreadyAssignedError,
    AuthenticationError,
    ConflictError,
    DispatchError,
    InvalidStateError,
    NotAuthorizedError,
    NotFoundError,
    ProviderUnavailableError,
    ValidationError,
)

__all__ = [
    "Settings",
    "settings",
    "DispatchError",
    "ValidationError",
    "NotFoundError",
    "NotAuthorizedError",
    "InvalidStateError",
    "ConflictError",
    "AlreadyAssignedError",
    "ProviderUnavailableError",
    "AuthenticationError",
]
