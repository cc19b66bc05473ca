"""
Domain errors raised by the order services.

Each error carries the HTTP status and a short category string; main.py turns
them into `{"detail": ..., "error": ...}` responses.
"""


class CanteenError(Exception):
    status_code = 500
    category = "internal_error"

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class NotFoundError(CanteenError):
    status_code = 404
    category = "not_found"


class ConflictError(CanteenError):
    """Raised for transitions attempted from the wrong state."""
    status_code = 409
    category = "conflict"


class ValidationError(CanteenError):
    status_code = 400
    category = "validation_error"


class PermissionDeniedError(CanteenError):
    status_code = 403
    category = "forbidden"


class CapacityExceededError(CanteenError):
    """Raised when the daily order sequence is exhausted."""
    status_code = 503
    category = "capacity_exceeded"


class InternalError(CanteenError):
    status_code = 500
    category = "internal_error"
