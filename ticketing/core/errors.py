"""
Typed error taxonomy shared by the services and rendered by the API layer.

Every error carries a machine-readable ``code`` so callers (gate hardware,
counter UI) can show a specific, localized message instead of a generic one.
"""

from enum import Enum
from typing import Any, Dict, Optional

import sqlalchemy.exc


class AppError(Exception):
    """Base class for application errors."""

    status_code = 400
    default_code = "APP_ERROR"

    def __init__(self, message: str, code: Optional[str] = None, **details: Any):
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code
        self.details = details

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.message, "code": self.code, **self.details}


class ValidationError(AppError):
    """Malformed input, rejected before any write."""

    status_code = 400
    default_code = "VALIDATION_ERROR"


class NotFoundError(AppError):
    status_code = 404
    default_code = "NOT_FOUND"


class ConflictError(AppError):
    """The resource is in a state incompatible with the request."""

    status_code = 409
    default_code = "CONFLICT"


class TransientError(AppError):
    status_code = 503
    default_code = "TRANSIENT"


class StoreTimeoutError(TransientError):
    status_code = 504
    default_code = "STORE_TIMEOUT"


class InvariantViolation(AppError):
    """State that should be unreachable. Logged loudly, never repaired silently."""

    status_code = 500
    default_code = "INVARIANT_VIOLATION"


class BookingFailedError(AppError):
    status_code = 500
    default_code = "BOOKING_FAILED"


class ScanRejection(str, Enum):
    TICKET_NOT_FOUND = "TICKET_NOT_FOUND"
    TICKET_CANCELLED = "TICKET_CANCELLED"
    TICKET_EXPIRED = "TICKET_EXPIRED"
    ALREADY_INSIDE = "ALREADY_INSIDE"
    TICKET_COMPLETED = "TICKET_COMPLETED"
    NOT_INSIDE = "NOT_INSIDE"


_SCAN_MESSAGES = {
    ScanRejection.TICKET_NOT_FOUND: "Ticket not found",
    ScanRejection.TICKET_CANCELLED: "Ticket is cancelled",
    ScanRejection.TICKET_EXPIRED: "Ticket is expired",
    ScanRejection.ALREADY_INSIDE: "Guest already inside venue",
    ScanRejection.TICKET_COMPLETED: "Ticket already used (entry + exit completed)",
    ScanRejection.NOT_INSIDE: "Guest is not inside venue (no entry recorded)",
}


class GateScanRejected(AppError):
    """A gate scan refused by the ticket state machine."""

    status_code = 409

    def __init__(self, reason: ScanRejection, **details: Any):
        super().__init__(_SCAN_MESSAGES[reason], code=reason.value, **details)
        self.reason = reason
        if reason is ScanRejection.TICKET_NOT_FOUND:
            self.status_code = 404


def is_store_timeout(exc: BaseException) -> bool:
    """True when a store call failed because it ran out of time."""
    if isinstance(exc, (TimeoutError, sqlalchemy.exc.TimeoutError)):
        return True
    if isinstance(exc, sqlalchemy.exc.DBAPIError):
        orig = exc.orig
        return isinstance(orig, TimeoutError) or "timeout" in type(orig).__name__.lower()
    return False
