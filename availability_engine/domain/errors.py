"""Error kinds surfaced by the availability engine."""

from __future__ import annotations

from typing import Any, Optional


class AvailabilityError(Exception):
    """Base exception carrying a machine-readable kind and optional field path."""

    kind = "AvailabilityError"

    def __init__(self, message: str, field: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.field = field

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"error": self.kind, "message": self.message}
        if self.field is not None:
            payload["field"] = self.field
        return payload


class ValidationError(AvailabilityError):
    """Raised when query input is malformed or out of range."""

    kind = "ValidationError"


class DatabaseError(AvailabilityError):
    """Raised when the persistence layer fails."""

    kind = "DatabaseError"


class CacheError(AvailabilityError):
    """Raised by cache stores; callers degrade to running without cache."""

    kind = "CacheError"


class BusinessLogicError(AvailabilityError):
    """Raised when fetched data is internally inconsistent."""

    kind = "BusinessLogicError"
