"""
consultbook exceptions. Every error carries a code and an HTTP status; the API
turns them into JSON bodies without per-route handling.

    from consultbook.core.exceptions import SlotTakenError, exception_factory

    raise SlotTakenError("Slot already booked", details={"slot": "r1 2026-10-20 10:00"})

    QuotaExceeded = exception_factory("QuotaExceeded", code="QUOTA_EXCEEDED", http_status=429)
"""
from consultbook.core.exceptions.base import ProjectError, exception_factory
from consultbook.core.exceptions.errors import (
    ConflictError,
    ForbiddenError,
    InvalidTransitionError,
    NotAuthorizedError,
    NotFoundError,
    SlotInvalidError,
    SlotTakenError,
    StorageError,
    UnauthorizedError,
    ValidationError,
)

__all__ = [
    "ProjectError",
    "exception_factory",
    "ValidationError",
    "NotFoundError",
    "UnauthorizedError",
    "ForbiddenError",
    "ConflictError",
    "SlotInvalidError",
    "SlotTakenError",
    "InvalidTransitionError",
    "NotAuthorizedError",
    "StorageError",
]
