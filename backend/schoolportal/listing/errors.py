"""Error taxonomy shared by the list query components."""

from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    INVALID_FILTER = "InvalidFilter"
    INVALID_PAGINATION = "InvalidPagination"
    STORE_UNAVAILABLE = "StoreUnavailable"
    SCOPE_VIOLATION = "ScopeViolation"


class ListQueryError(Exception):
    """Base class for failures raised while answering a list request."""

    kind: ErrorKind
    status_code = 500

    def __init__(self, message: str, *, field: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.field = field

    def to_dict(self):
        payload = {"error": self.message, "kind": self.kind.value}
        if self.field:
            payload["details"] = {self.field: self.message}
        return payload


class InvalidFilterError(ListQueryError):
    """A supplied filter value failed validation."""

    kind = ErrorKind.INVALID_FILTER
    status_code = 400


class InvalidPaginationError(ListQueryError, ValueError):
    """page or limit is missing its positive-integer shape."""

    kind = ErrorKind.INVALID_PAGINATION
    status_code = 400


class StoreUnavailableError(ListQueryError):
    """The record store could not be reached. Safe to retry."""

    kind = ErrorKind.STORE_UNAVAILABLE
    status_code = 503


class ScopeViolationError(ListQueryError):
    """A list was built without its server-side scope.

    This is a programming error, never a user-facing condition.
    """

    kind = ErrorKind.SCOPE_VIOLATION
    status_code = 500

    def to_dict(self):
        return {"error": "Internal server error.", "kind": self.kind.value}


__all__ = [
    "ErrorKind",
    "InvalidFilterError",
    "InvalidPaginationError",
    "ListQueryError",
    "ScopeViolationError",
    "StoreUnavailableError",
]
