"""Typed failures raised by the booking core.

The HTTP adapter maps each class to its status_code; callers that need to
tell "fix your input" apart from "pick another time" switch on the class.
"""

from __future__ import annotations

from typing import Any, Optional


class BookingError(Exception):
    """Base class for all booking-domain failures."""

    status_code = 500

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        return {"message": self.message, "code": self.code, "details": self.details}


class BookingValidationError(BookingError):
    status_code = 400


class SlotUnavailableError(BookingError):
    """The requested interval overlaps at least one active booking."""

    status_code = 409

    def __init__(self, message: str, conflicts: Optional[list] = None, **kwargs: Any) -> None:
        self.conflicts = list(conflicts or [])
        super().__init__(message, **kwargs)


class BookingNotFoundError(BookingError):
    status_code = 404


class BookingAlreadyCancelledError(BookingError):
    status_code = 409


class StoreUnavailableError(BookingError):
    """The persistence layer failed; the operation may be retried."""

    status_code = 503
