"""
Error taxonomy shared by the event store, its services and the HTTP layer.

Every error carries a stable ``error_code`` that the presentation layer can
match on, and the HTTP status the API answers with.
"""

from typing import Any, Optional


class EventStoreError(Exception):
    """Base class for all domain errors"""

    status_code = 400
    default_code = "EVENT_STORE_ERROR"

    def __init__(self, message: str, error_code: Optional[str] = None, details: Any = None):
        super().__init__(message)
        self.message = message
        self.error_code = error_code or self.default_code
        self.details = details


class ValidationError(EventStoreError):
    """Out-of-range rating or item id, oversize note, malformed email"""

    status_code = 422
    default_code = "VALIDATION_ERROR"


class ConflictError(EventStoreError):
    """Stale state token or duplicate entry"""

    status_code = 409
    default_code = "STATE_CONFLICT"


class InvalidStateError(EventStoreError):
    """Operation is not allowed in the event's current lifecycle state"""

    status_code = 409
    default_code = "INVALID_STATE"


class NotStartedError(InvalidStateError):
    default_code = "EVENT_NOT_STARTED"


class InvalidTransitionError(InvalidStateError):
    default_code = "INVALID_TRANSITION"


class AccessDenied(EventStoreError):
    """Caller lacks the capability for this event or action"""

    status_code = 403
    default_code = "ACCESS_DENIED"


class NotFoundError(EventStoreError):
    status_code = 404
    default_code = "NOT_FOUND"


class RateLimitError(EventStoreError):
    status_code = 429
    default_code = "RATE_LIMITED"

    def __init__(self, message: str = "Rate limit exceeded. Please try again later.", retry_after: float = 0.0):
        super().__init__(message, details={"retry_after": retry_after})
        self.retry_after = retry_after


class InsufficientDataError(EventStoreError):
    """Similarity query cannot be answered yet; a defined empty result, not a failure"""

    status_code = 200
    default_code = "INSUFFICIENT_DATA"
