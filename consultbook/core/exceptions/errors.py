"""
Errors raised by the booking engine and its API layer.
"""
from __future__ import annotations

from consultbook.core.exceptions.base import ProjectError, exception_factory


class ValidationError(ProjectError):
    """Bad input: an availability draft, a blank subject, an inverted date range."""

    default_code = "VALIDATION_ERROR"
    default_http_status = 400


class NotFoundError(ProjectError):
    default_code = "NOT_FOUND"
    default_http_status = 404


class UnauthorizedError(ProjectError):
    """No caller identity was forwarded by the gateway."""

    default_code = "UNAUTHORIZED"
    default_http_status = 401


class ForbiddenError(ProjectError):
    """Caller is known but not the resource's operator (or the booking's requester)."""

    default_code = "FORBIDDEN"
    default_http_status = 403


class ConflictError(ProjectError):
    default_code = "CONFLICT"
    default_http_status = 409


class SlotInvalidError(ProjectError):
    """Requested slot is closed, off-grid, inside the break window or in the past.

    details["reason"] says which.
    """

    default_code = "SLOT_INVALID"
    default_http_status = 409


class SlotTakenError(ConflictError):
    """Another active booking already holds the requested slot."""

    default_code = "SLOT_TAKEN"


class InvalidTransitionError(ProjectError):
    """Status change is not an edge of the lifecycle, or lost a concurrent update."""

    default_code = "INVALID_TRANSITION"
    default_http_status = 409


class NotAuthorizedError(ForbiddenError):
    """Actor may not apply this transition to this booking."""

    default_code = "NOT_AUTHORIZED"


StorageError = exception_factory("StorageError", code="STORAGE_ERROR", http_status=503)
"""Storage kept failing after the bounded internal retry."""
