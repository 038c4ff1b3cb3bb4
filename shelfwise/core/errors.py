"""Error Hierarchy - typed, categorized exceptions for every Shelfwise failure mode.

Invariants:
    - Every error has a code (str), category (ErrorCategory), severity (ErrorSeverity)
    - Domain errors (400-level) carry a human-readable reason for the caller
    - to_response() produces the REST envelope
    - Messages name barcodes and rules, never SQL or stack details

Design Decisions:
    - Single hierarchy with ShelfwiseError base: FastAPI global handler catches all
    - ConflictError subclasses (DuplicateSummaryError, ConcurrencyError) keep the
      409 mapping while exposing a more specific code
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any
from datetime import datetime, timezone


class ErrorSeverity(str, Enum):
    """How loudly a failure should be logged and surfaced."""
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class ErrorCategory(str, Enum):
    """Coarse failure family, stable across error codes."""
    VALIDATION = "validation"
    BUSINESS_RULE = "business_rule"
    RESOURCE_NOT_FOUND = "resource_not_found"
    CONFLICT = "conflict"
    AUTHENTICATION = "authentication"
    AUTHORIZATION = "authorization"
    DATABASE = "database"
    INTERNAL = "internal"


@dataclass
class ErrorContext:
    """Who and what a failure concerns, plus caller-facing details."""
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    patron_barcode: str | None = None
    item_barcode: str | None = None
    user_message: str | None = None
    details: dict[str, Any] | None = None


class ShelfwiseError(Exception):
    """Base exception for all Shelfwise errors."""

    def __init__(
        self,
        message: str,
        code: str,
        category: ErrorCategory,
        severity: ErrorSeverity = ErrorSeverity.ERROR,
        context: ErrorContext | None = None,
        http_status: int = 500,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.category = category
        self.severity = severity
        self.context = context or ErrorContext()
        self.http_status = http_status

    def to_response(self) -> dict:
        """The {"error": {...}} envelope every non-2xx response carries."""
        return {
            "error": {
                "code": self.code,
                "message": self.context.user_message or self.message,
                "category": self.category.value,
                "severity": self.severity.value,
                "timestamp": self.context.timestamp.isoformat(),
                "context": {
                    "patron_barcode": self.context.patron_barcode,
                    "item_barcode": self.context.item_barcode,
                },
                "details": self.context.details or {},
            }
        }


# ─── Domain Errors (400-level) ──────────────────────────────────

class ValidationError(ShelfwiseError):
    """Input failed a structural check before any business rule ran."""
    def __init__(self, message: str, field: str, context: ErrorContext | None = None):
        super().__init__(
            message, "VALIDATION_ERROR", ErrorCategory.VALIDATION,
            ErrorSeverity.ERROR, context, 400,
        )
        self.field = field


class ResourceNotFoundError(ShelfwiseError):
    """No patron, item or summary matches the given key."""
    def __init__(
        self, resource_type: str, resource_id: str, context: ErrorContext | None = None,
    ):
        super().__init__(
            f"{resource_type} '{resource_id}' not found",
            "RESOURCE_NOT_FOUND", ErrorCategory.RESOURCE_NOT_FOUND,
            ErrorSeverity.ERROR, context, 404,
        )
        self.resource_type = resource_type
        self.resource_id = resource_id


class ConflictError(ShelfwiseError):
    """Current state violates the action's precondition (item out, already reviewed...)."""
    def __init__(
        self, message: str, code: str = "CONFLICT",
        context: ErrorContext | None = None,
    ):
        super().__init__(
            message, code, ErrorCategory.CONFLICT,
            ErrorSeverity.ERROR, context, 409,
        )


class DuplicateSummaryError(ConflictError):
    """A summary already exists for this (patron, book) pair."""
    def __init__(
        self,
        patron_barcode: str,
        book_barcode: str,
        prior_status: str | None = None,
        prior_points: int | None = None,
    ):
        ctx = ErrorContext(
            patron_barcode=patron_barcode,
            item_barcode=book_barcode,
            details={"prior_status": prior_status, "prior_points": prior_points},
        )
        message = "You have already submitted a summary for this book."
        if prior_status:
            message += f" Previous submission is {prior_status} ({prior_points or 0} points)."
        super().__init__(message, "DUPLICATE_SUMMARY", ctx)
        self.prior_status = prior_status
        self.prior_points = prior_points


class ConcurrencyError(ConflictError):
    """A concurrent writer changed the same record first."""
    def __init__(self, message: str, context: ErrorContext | None = None):
        super().__init__(message, "CONCURRENCY_CONFLICT", context)


class PreconditionFailedError(ShelfwiseError):
    """A business rule was not met (eligibility, monthly cap, point range...)."""
    def __init__(
        self, message: str, code: str = "PRECONDITION_FAILED",
        context: ErrorContext | None = None,
    ):
        super().__init__(
            message, code, ErrorCategory.BUSINESS_RULE,
            ErrorSeverity.ERROR, context, 412,
        )


class UnauthorizedError(ShelfwiseError):
    """No caller identity was supplied by the auth gateway."""
    def __init__(self, message: str = "Authentication required", context: ErrorContext | None = None):
        super().__init__(
            message, "UNAUTHORIZED", ErrorCategory.AUTHENTICATION,
            ErrorSeverity.WARNING, context, 401,
        )


class ForbiddenError(ShelfwiseError):
    """Caller is identified but its role lacks the permission."""
    def __init__(self, role: str, permission: str, context: ErrorContext | None = None):
        super().__init__(
            f"Role '{role}' is not allowed to perform {permission}",
            "FORBIDDEN", ErrorCategory.AUTHORIZATION,
            ErrorSeverity.WARNING, context, 403,
        )
        self.role = role
        self.permission = permission


# ─── Infrastructure Errors (500-level) ──────────────────────────

class DatabaseError(ShelfwiseError):
    """The database rejected or could not run a statement."""
    def __init__(self, message: str, operation: str, context: ErrorContext | None = None):
        super().__init__(
            f"Database {operation} failed: {message}",
            "DATABASE_ERROR", ErrorCategory.DATABASE,
            ErrorSeverity.CRITICAL, context, 503,
        )
        self.operation = operation
