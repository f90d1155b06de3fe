"""
Explicit per-client credential.

The token lives on an ``ApiSession`` object handed to the client, never in
process-global state.  ``login`` establishes it; ``logout`` or any 401 from
the server invalidates it, after which authenticated calls fail fast with
``AuthenticationError`` until the caller logs in again.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional

from roadside.core.exceptions import AuthenticationError


@dataclass
class ApiSession:
    token: Optional[str] = None
    user: dict[str, Any] = field(default_factory=dict)
    scheme: str = "Bearer"

    @property
    def is_authenticated(self) -> bool:
        return bool(self.token)

    def establish(self, token: str, user: dict[str, Any] | None = None) -> None:
        self.token = token
        self.user = dict(user or {})

    def invalidate(self) -> None:
        self.token = None
        self.user = {}

    def auth_headers(self) -> dict[str, str]:
        """``Authorization`` header for the current token.

        Raises:
            AuthenticationError: If there is no live token.
        """
        if not self.token:
            raise AuthenticationError("Not logged in.")
        return {"Authorization": f"{self.scheme} {self.token}"}
