"""
errors.py - Error taxonomy for the policy-enforced store.

Errors are contracts, not strings. Every failure a caller can observe is one
of the classes below, each with a stable code.

RETRY SEMANTICS:
- Conflict is the only retryable error (the whole unit of work may be rerun)
- Everything else is surfaced to the caller as-is
"""

from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    UNAUTHORIZED = "UNAUTHORIZED"
    VALIDATION_FAILED = "VALIDATION_FAILED"
    LIMIT_EXCEEDED = "LIMIT_EXCEEDED"
    INVALID_TRANSITION = "INVALID_TRANSITION"
    CONFLICT = "CONFLICT"
    NOT_FOUND = "NOT_FOUND"


class GrievanceError(Exception):
    """Base exception for every typed store failure."""

    code: ErrorCode
    retryable: bool = False

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """
        Serialize the error into a plain dictionary suitable for external consumption.

        Returns:
            dict: error_code, message, retryable and details (empty dict if none).
        """
        return {
            "error_code": self.code.value,
            "message": self.message,
            "retryable": self.retryable,
            "details": self.details,
        }


class Unauthorized(GrievanceError):
    """Principal lacks the required role or ownership relation."""

    code = ErrorCode.UNAUTHORIZED


class ValidationFailed(GrievanceError):
    """Malformed input; the caller must correct it."""

    code = ErrorCode.VALIDATION_FAILED


class LimitExceeded(GrievanceError):
    """Active-complaint cap reached."""

    code = ErrorCode.LIMIT_EXCEEDED

    def __init__(self, current_count: int, limit: int):
        super().__init__(
            f"You cannot have more than {limit} active complaints at a time",
            details={"current_count": current_count, "limit": limit},
        )
        self.current_count = current_count
        self.limit = limit


class InvalidTransition(GrievanceError):
    """Status, withdrawal, rating or reveal state machine violation."""

    code = ErrorCode.INVALID_TRANSITION


class Conflict(GrievanceError):
    """Concurrent write detected. Safe to retry the whole unit of work."""

    code = ErrorCode.CONFLICT
    retryable = True


class NotFound(GrievanceError):
    """Unknown identifier, or a record the caller may not see."""

    code = ErrorCode.NOT_FOUND


def complaint_not_found(complaint_id: Any) -> NotFound:
    """Uniform response for missing and invisible complaints alike."""
    return NotFound(
        f"Complaint {complaint_id} not found",
        details={"complaint_id": str(complaint_id)},
    )
