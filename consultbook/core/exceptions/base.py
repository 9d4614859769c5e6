"""
ProjectError: root of every error the booking engine raises on purpose.

Each error knows its API code and HTTP status, so routers never translate
exceptions by hand; the app-level handler turns any ProjectError into
``{"message", "code", "details"}``.
"""
from __future__ import annotations

import traceback
from typing import Any, Optional, Type


class ProjectError(Exception):
    """
    message      text safe to show to the caller
    code         stable slug clients branch on (SLOT_TAKEN, NOT_FOUND, ...)
    http_status  status the API answers with
    details      JSON-safe context: offending field, slot, transition edge
    cause        lower-level exception, logged but never sent to clients
    """

    default_code: str = "ERROR"
    default_http_status: int = 500

    def __init__(
        self,
        message: str,
        *,
        code: Optional[str] = None,
        http_status: Optional[int] = None,
        details: Optional[dict[str, Any]] = None,
        cause: Optional[BaseException] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or type(self).default_code
        self.http_status = http_status or type(self).default_http_status
        self.details: dict[str, Any] = dict(details or {})
        self.cause = cause

    def __str__(self) -> str:
        return self.message

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.code}, {self.http_status}: {self.message!r})"

    def to_dict(self, *, include_cause: bool = True) -> dict[str, Any]:
        """Serialize for logs (with cause) or for API bodies (include_cause=False)."""
        out: dict[str, Any] = {
            "message": self.message,
            "code": self.code,
            "http_status": self.http_status,
        }
        if self.details:
            out["details"] = self.details
        if include_cause and self.cause is not None:
            out["cause"] = str(self.cause)
            out["cause_traceback"] = traceback.format_exception(
                type(self.cause), self.cause, self.cause.__traceback__
            )
        return out


def exception_factory(
    name: str,
    *,
    code: Optional[str] = None,
    http_status: int = 500,
    base: Type[ProjectError] = ProjectError,
) -> Type[ProjectError]:
    """Build a ProjectError subclass without a class statement.

        StorageError = exception_factory("StorageError", code="STORAGE_ERROR", http_status=503)
    """
    attrs = {
        "default_code": code or name.upper().replace(" ", "_"),
        "default_http_status": http_status,
    }
    return type(name, (base,), attrs)
