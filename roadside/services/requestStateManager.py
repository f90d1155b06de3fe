"""
Request State Manager
=====================

Finite state machine governing all valid service-request status transitions.
Every status change MUST go through ``validate_transition`` before being
persisted.

State machine overview::

    pending --> assigned --> in_progress --> completed
                    \\___________________________/^

    pending --> cancelled

``assigned`` is the single canonical "has a provider, not yet finished"
state.  Whether the provider self-accepted or was dispatched by an admin is
recorded separately in ``ServiceRequest.assignment_source``.

Guards enforce that only the correct actor type can trigger certain
transitions.  Binding checks ("is this *the* bound provider?") need the
request row and live in the services that perform the mutation.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass

from roadside.models.request import RequestStatus


# ---------------------------------------------------------------------------
# Actor types for guard enforcement
# ---------------------------------------------------------------------------

class ActorType(str, enum.Enum):
    USER = "user"
    PROVIDER = "provider"
    ADMIN = "admin"
    SYSTEM = "system"


# ---------------------------------------------------------------------------
# Transition guard result
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class TransitionResult:
    """Result of a transition validation attempt."""
    allowed: bool
    reason: str | None = None


# ---------------------------------------------------------------------------
# Transition definitions
# ---------------------------------------------------------------------------

VALID_TRANSITIONS: dict[RequestStatus, set[RequestStatus]] = {
    RequestStatus.PENDING: {
        RequestStatus.ASSIGNED,
        RequestStatus.CANCELLED,
    },
    RequestStatus.ASSIGNED: {
        RequestStatus.IN_PROGRESS,
        RequestStatus.COMPLETED,  # provider may finish without an explicit start
    },
    RequestStatus.IN_PROGRESS: {
        RequestStatus.COMPLETED,
    },
    # Terminal states
    RequestStatus.COMPLETED: set(),
    RequestStatus.CANCELLED: set(),
}

# Which actors may drive a request into each target status
_ACTOR_GUARDS: dict[RequestStatus, frozenset[ActorType]] = {
    RequestStatus.ASSIGNED: frozenset({ActorType.PROVIDER, ActorType.ADMIN, ActorType.SYSTEM}),
    RequestStatus.IN_PROGRESS: frozenset({ActorType.PROVIDER, ActorType.SYSTEM}),
    RequestStatus.COMPLETED: frozenset({ActorType.PROVIDER, ActorType.SYSTEM}),
    RequestStatus.CANCELLED: frozenset({ActorType.USER, ActorType.ADMIN, ActorType.SYSTEM}),
}

_GUARD_MESSAGES: dict[RequestStatus, str] = {
    RequestStatus.ASSIGNED: "Only a provider or an admin can assign a request.",
    RequestStatus.IN_PROGRESS: "Only the assigned provider can start work on a request.",
    RequestStatus.COMPLETED: "Only the assigned provider can complete a request.",
    RequestStatus.CANCELLED: "Only the requester or an admin can cancel a request.",
}


def _format_targets(targets: set[RequestStatus]) -> str:
    return ", ".join(s.value for s in sorted(targets, key=lambda s: s.value)) or "none"


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def validate_transition(
    current_status: RequestStatus,
    new_status: RequestStatus,
    actor_type: ActorType = ActorType.SYSTEM,
) -> TransitionResult:
    """Validate whether a request status transition is allowed.

    Checks two layers:
    1. Is the transition structurally valid per the state machine?
    2. Is this actor type permitted to drive the transition (guards)?

    Returns a ``TransitionResult`` with ``allowed=True`` if the transition
    is permitted, or ``allowed=False`` with a human-readable ``reason``.
    """
    allowed_targets = VALID_TRANSITIONS.get(current_status, set())
    if new_status not in allowed_targets:
        return TransitionResult(
            allowed=False,
            reason=(
                f"Invalid transition: '{current_status.value}' -> '{new_status.value}'. "
                f"Allowed transitions from '{current_status.value}': "
                f"{_format_targets(allowed_targets)}."
            ),
        )

    permitted = _ACTOR_GUARDS.get(new_status)
    if permitted is not None and actor_type not in permitted:
        return TransitionResult(allowed=False, reason=_GUARD_MESSAGES[new_status])

    return TransitionResult(allowed=True)


def get_valid_transitions(
    current_status: RequestStatus,
    actor_type: ActorType = ActorType.SYSTEM,
) -> list[RequestStatus]:
    """Return the statuses the given actor can move a request to.

    Exposed on request reads as ``available_actions`` so dashboards can show
    only the buttons that will succeed.
    """
    candidates = VALID_TRANSITIONS.get(current_status, set())
    valid = [
        target
        for target in candidates
        if validate_transition(current_status, target, actor_type).allowed
    ]
    return sorted(valid, key=lambda s: s.value)


def is_terminal(status: RequestStatus) -> bool:
    """A terminal status has no outgoing transitions."""
    return not VALID_TRANSITIONS.get(status)
