"""
Dispatch error taxonomy.

Services raise these; route handlers translate them to HTTP responses via
``roadside.api.errors.to_http_exception``.  Every error carries a stable
machine-readable ``code`` so clients can tell a lost assignment race apart
from a generic failure.
"""

from __future__ import annotations

from typing import Any


class DispatchError(Exception):
    """Base class for all domain errors raised by the dispatch core."""

    code: str = "dispatch_error"

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class ValidationError(DispatchError):
    """Missing or malformed input."""

    code = "validation_error"


class NotFoundError(DispatchError):
    """Raised when a referenced entity does not exist."""

    code = "not_found"

    def __init__(self, entity: str, identifier: Any) -> None:
        self.entity = entity
        self.identifier = identifier
        super().__init__(f"{entity} '{identifier}' not found.")


class NotAuthorizedError(DispatchError):
    """The actor is not permitted to perform this mutation."""

    code = "not_authorized"


class InvalidStateError(DispatchError):
    """The transition is not legal from the entity's current state."""

    code = "invalid_state"


class ConflictError(DispatchError):
    """The mutation conflicts with existing state."""

    code = "conflict"


class AlreadyAssignedError(ConflictError):
    """Lost an assignment race: the request is no longer pending."""

    code = "already_taken"

    def __init__(self, request_id: int) -> None:
        self.request_id = request_id
        super().__init__(f"Request {request_id} has already been taken.")


class ProviderUnavailableError(ConflictError):
    """The provider is offline, busy, or already bound to an active request."""

    code = "provider_unavailable"

    def __init__(self, provider_id: int, reason: str) -> None:
        self.provider_id = provider_id
        super().__init__(f"Provider {provider_id} is not available: {reason}")


class AuthenticationError(DispatchError):
    """Missing, expired, revoked or malformed credential."""

    code = "authentication_failed"
