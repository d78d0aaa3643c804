"""
RizzedIn — Domain error to HTTP translation shared by the routers.
"""

from __future__ import annotations

from fastapi import HTTPException, status

from app.services.exceptions import (
    ConflictError,
    InvalidStateError,
    NotFoundError,
    RizzedInError,
    UnauthorizedError,
    UpstreamUnavailableError,
)

_STATUS_CODES: dict[type[RizzedInError], int] = {
    NotFoundError: status.HTTP_404_NOT_FOUND,
    InvalidStateError: status.HTTP_409_CONFLICT,
    UnauthorizedError: status.HTTP_403_FORBIDDEN,
    ConflictError: status.HTTP_409_CONFLICT,
    UpstreamUnavailableError: status.HTTP_502_BAD_GATEWAY,
}


def to_http_exception(exc: Exception) -> HTTPException:
    """Map a service-layer exception onto the matching ``HTTPException``."""
    if isinstance(exc, ValueError):
        return HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)
        )
    for exc_type, code in _STATUS_CODES.items():
        if isinstance(exc, exc_type):
            return HTTPException(status_code=code, detail=str(exc))
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc)
    )
