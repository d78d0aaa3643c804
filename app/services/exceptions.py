"""
RizzedIn — Domain exceptions raised by the service layer.

Routers translate these into HTTP responses; nothing below the API layer
knows about status codes.
"""

from __future__ import annotations


class RizzedInError(Exception):
    """Base class for all domain errors."""


class NotFoundError(RizzedInError):
    """A user, chat or match does not exist."""

    def __init__(self, entity: str, key: object) -> None:
        self.entity = entity
        self.key = key
        super().__init__(f"{entity} {key} not found")


class InvalidStateError(RizzedInError):
    """The operation is not allowed in the entity's current state."""


class UnauthorizedError(RizzedInError):
    """The caller is not a party to the entity it is trying to change."""


class ConflictError(RizzedInError):
    """The entity already exists."""


class UpstreamUnavailableError(RizzedInError):
    """An external service (LLM, enrichment) failed or timed out."""


class UpstreamParseError(RizzedInError):
    """An external service returned output that could not be parsed."""
