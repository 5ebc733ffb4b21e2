"""Error Hierarchy — typed, categorized exceptions for every ledger failure mode.

Invariants:
    - Every error has a code (str), reason (str), category (ErrorCategory), severity (ErrorSeverity)
    - Domain errors (400-level) are expected outcomes; infrastructure errors (500-level) are critical
    - to_response() produces the envelope handed to the outer routing layer
    - No internal details (SQL, driver messages) leaked in user-facing messages

Design Decisions:
    - Single hierarchy with LedgerError base: callers catch one type at the boundary
    - reason is the stable machine value ("free_tier", "already_joined", ...);
      code is its upper-cased form for log filtering
    - ErrorContext as dataclass: rich observability without coupling to logging framework
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any
from datetime import datetime, timezone


class ErrorSeverity(str, Enum):
    """Error severity for observability and client handling."""
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class ErrorCategory(str, Enum):
    """High-level error categories for routing and handling."""
    VALIDATION = "validation"
    RESOURCE_NOT_FOUND = "resource_not_found"
    CONFLICT = "conflict"
    DATABASE = "database"
    TIMEOUT = "timeout"


@dataclass
class ErrorContext:
    """Rich context for error observability and debugging."""
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    challenge_id: str | None = None
    user_id: str | None = None
    operation: str | None = None
    debug_info: dict[str, Any] | None = None


class LedgerError(Exception):
    """Base exception for all ledger errors."""

    def __init__(
        self,
        message: str,
        reason: str,
        category: ErrorCategory,
        severity: ErrorSeverity = ErrorSeverity.ERROR,
        context: ErrorContext | None = None,
        http_status: int = 500,
    ):
        super().__init__(message)
        self.message = message
        self.reason = reason
        self.code = reason.upper()
        self.category = category
        self.severity = severity
        self.context = context or ErrorContext()
        self.http_status = http_status

    def to_response(self) -> dict:
        """Convert to standardized error envelope."""
        return {
            "error": {
                "code": self.code,
                "reason": self.reason,
                "message": self.message,
                "category": self.category.value,
                "severity": self.severity.value,
                "timestamp": self.context.timestamp.isoformat(),
                "context": {
                    "challenge_id": self.context.challenge_id,
                    "user_id": self.context.user_id,
                    "operation": self.context.operation,
                },
            }
        }


# ─── Domain Errors (400-level) ──────────────────────────────────

_VALIDATION_MESSAGES = {
    "free_tier": "This challenge is free and cannot be purchased.",
    "self_purchase": "You cannot purchase your own challenge.",
    "access_required": "Please purchase access to this challenge first.",
    "invalid_price": "Price is outside the bounds of the challenge tier.",
    "invalid_amount": "Distribution amount must be positive.",
    "invalid_tier": "Invalid price tier.",
    "invalid_title": "Title must be between 3 and 100 characters.",
    "invalid_distribution_set": "Distribution set is incomplete or spans several purchases.",
    "invalid_position": "Participant position must be 1 or greater.",
}

_CONFLICT_MESSAGES = {
    "already_purchased": "Challenge already purchased.",
    "already_joined": "Already participating in this challenge.",
}


class ValidationError(LedgerError):
    """Request is well-formed but disallowed (free-tier purchase, self-purchase, missing access)."""
    def __init__(
        self, reason: str, message: str | None = None,
        context: ErrorContext | None = None,
    ):
        super().__init__(
            message or _VALIDATION_MESSAGES.get(reason, reason),
            reason, ErrorCategory.VALIDATION,
            ErrorSeverity.WARNING, context, 400,
        )


class NotFoundError(LedgerError):
    """Referenced resource does not exist."""
    def __init__(
        self, resource_type: str, resource_id: str, context: ErrorContext | None = None,
    ):
        super().__init__(
            f"{resource_type} '{resource_id}' not found",
            "not_found", ErrorCategory.RESOURCE_NOT_FOUND,
            ErrorSeverity.WARNING, context, 404,
        )
        self.resource_type = resource_type
        self.resource_id = resource_id


class ConflictError(LedgerError):
    """Lost a race or repeated a one-time action (duplicate purchase, duplicate join)."""
    def __init__(
        self, reason: str, message: str | None = None,
        context: ErrorContext | None = None,
    ):
        super().__init__(
            message or _CONFLICT_MESSAGES.get(reason, reason),
            reason, ErrorCategory.CONFLICT,
            ErrorSeverity.WARNING, context, 409,
        )


# ─── Infrastructure Errors (500-level) ──────────────────────────

class PersistenceError(LedgerError):
    """Durable store unavailable or write failed for infrastructural reasons."""
    def __init__(
        self, message: str, operation: str, context: ErrorContext | None = None,
        reason: str = "persistence_error",
        category: ErrorCategory = ErrorCategory.DATABASE,
    ):
        super().__init__(
            f"Database {operation} failed: {message}",
            reason, category,
            ErrorSeverity.CRITICAL, context, 503,
        )
        self.operation = operation


class DeadlineExceededError(PersistenceError):
    """Unit of work did not complete within the configured deadline and was rolled back."""
    def __init__(
        self, operation: str, timeout_seconds: float,
        context: ErrorContext | None = None,
    ):
        super().__init__(
            f"exceeded {timeout_seconds}s deadline", operation, context,
            reason="deadline_exceeded", category=ErrorCategory.TIMEOUT,
        )
        self.timeout_seconds = timeout_seconds
