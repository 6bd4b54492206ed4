"""
Error taxonomy shared by the services and the HTTP layer.

Every ``PortalError`` carries the HTTP status it maps to and a stable,
machine-readable ``reason`` string. ``DelegateUnavailable`` is the exception:
it never leaves the evaluator.
"""
from typing import Any, Dict, Optional


class PortalError(Exception):
    status_code = 500
    error_type = "internal_error"

    def __init__(self, message: str, reason: Optional[str] = None, **extra: Any):
        super().__init__(message)
        self.message = message
        self.reason = reason or self.error_type
        self.extra = extra

    def to_dict(self) -> Dict[str, Any]:
        body = {"message": self.message, "type": self.error_type, "reason": self.reason}
        body.update(self.extra)
        return body


class ValidationError(PortalError):
    status_code = 400
    error_type = "validation_error"


class AuthorizationError(PortalError):
    status_code = 403
    error_type = "authorization_error"


class NotFoundError(PortalError):
    status_code = 404
    error_type = "not_found"


class DeficitError(PortalError):
    status_code = 400
    error_type = "deficit"

    def __init__(self, available: int, requested: int):
        super().__init__(
            "Not enough questions in question bank for this class/subject",
            reason="not_enough_questions",
            available=available,
            requested=requested,
        )
        self.available = available
        self.requested = requested


class SequenceDriftError(PortalError):
    status_code = 500
    error_type = "sequence_drift"

    def __init__(self, table: str):
        super().__init__(f"Identity sequence for {table} is still colliding after repair", reason="sequence_drift")
        self.table = table


class IdentityConflict(Exception):
    """Raised by the store layer when an insert collides on a table's primary key."""

    def __init__(self, table: str):
        super().__init__(table)
        self.table = table


class DelegateUnavailable(Exception):
    """The grading delegate timed out, failed, or answered with garbage."""
