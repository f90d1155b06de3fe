"""
Translation of dispatch errors into HTTP responses.

Route handlers catch ``DispatchError`` subclasses raised by the services and
re-raise them through ``to_http_exception``.  The resulting
``DispatchHTTPException`` carries the error's machine-readable ``code``; the
handler registered in ``roadside.main`` renders it as
``{"detail": ..., "code": ...}``.
"""

from __future__ import annotations

from fastapi import HTTPException, Request, status
from fastapi.responses import JSONResponse

from roadside.core.exceptions import (
    AuthenticationError,
    ConflictError,
    DispatchError,
    InvalidStateError,
    NotAuthorizedError,
    NotFoundError,
    ValidationError,
)

# Most specific first; AlreadyAssignedError is caught by ConflictError
_STATUS_MAP: tuple[tuple[type[DispatchError], int], ...] = (
    (AuthenticationError, status.HTTP_401_UNAUTHORIZED),
    (ValidationError, status.HTTP_400_BAD_REQUEST),
    (NotAuthorizedError, status.HTTP_403_FORBIDDEN),
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (ConflictError, status.HTTP_409_CONFLICT),
    (InvalidStateError, status.HTTP_409_CONFLICT),
)


class DispatchHTTPException(HTTPException):
    """``HTTPException`` that remembers the domain error code."""

    def __init__(
        self,
        status_code: int,
        detail: str,
        code: str,
        headers: dict[str, str] | None = None,
    ) -> None:
        super().__init__(status_code=status_code, detail=detail, headers=headers)
        self.code = code


def status_for(exc: DispatchError) -> int:
    for exc_type, status_code in _STATUS_MAP:
        if isinstance(exc, exc_type):
            return status_code
    return status.HTTP_400_BAD_REQUEST


def to_http_exception(exc: DispatchError) -> DispatchHTTPException:
    """Map a domain error to the HTTP exception a route should raise."""
    status_code = status_for(exc)
    headers = None
    if status_code == status.HTTP_401_UNAUTHORIZED:
        headers = {"WWW-Authenticate": "Bearer"}
    return DispatchHTTPException(
        status_code=status_code,
        detail=exc.message,
        code=exc.code,
        headers=headers,
    )


async def dispatch_http_exception_handler(
    request: Request,
    exc: DispatchHTTPException,
) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail, "code": exc.code},
        headers=exc.headers,
    )
