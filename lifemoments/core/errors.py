"""Error Hierarchy — typed, categorized exceptions for all Life Moments failure modes.

Invariants:
    - Every error has a code (str), category (ErrorCategory), severity (ErrorSeverity)
    - Validation and not-found errors are caller-recoverable; storage errors are not retried
    - StorageError always carries its kind; the original exception is kept in `cause`
    - to_dict() produces the envelope handed to the UI layer
    - No driver-specific exception types cross the service boundary

Design Decisions:
    - Single hierarchy with LifeMomentsError base: callers can catch one type
    - ErrorContext as dataclass: rich observability without coupling to logging
    - Validation kinds as an Enum, not subclasses: one class, exhaustive kinds
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


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
    STORAGE = "storage"
    CONFLICT = "conflict"
    INTERNAL = "internal"


class ValidationErrorKind(str, Enum):
    """Field-constraint violations, in the order the validator checks them."""
    EMPTY_TITLE = "empty_title"
    TITLE_TOO_LONG = "title_too_long"
    DESCRIPTION_TOO_LONG = "description_too_long"
    MISSING_DATE = "missing_date"
    BAD_DATE_FORMAT = "bad_date_format"
    INVALID_DATE = "invalid_date"
    BAD_REPEAT_FREQUENCY = "bad_repeat_frequency"


class StorageErrorKind(str, Enum):
    """Storage failure classes. QUOTA_EXCEEDED is the user-actionable one."""
    IO = "io"
    QUOTA_EXCEEDED = "quota_exceeded"
    CORRUPTION = "corruption"
    CONFLICT = "conflict"


@dataclass
class ErrorContext:
    """Rich context for error observability and debugging."""
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    moment_id: str | None = None
    operation: str | None = None
    user_message: str | None = None
    debug_info: dict[str, Any] | None = None


class LifeMomentsError(Exception):
    """Base exception for all Life Moments errors."""

    def __init__(
        self,
        message: str,
        code: str,
        category: ErrorCategory,
        severity: ErrorSeverity = ErrorSeverity.ERROR,
        context: ErrorContext | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.category = category
        self.severity = severity
        self.context = context or ErrorContext()

    @property
    def recoverable(self) -> bool:
        return self.category in (
            ErrorCategory.VALIDATION, ErrorCategory.RESOURCE_NOT_FOUND,
        )

    def to_dict(self) -> dict:
        """Convert to the error envelope consumed by the UI layer."""
        return {
            "error": {
                "code": self.code,
                "message": self.context.user_message or self.message,
                "category": self.category.value,
                "severity": self.severity.value,
                "recoverable": self.recoverable,
                "timestamp": self.context.timestamp.isoformat(),
                "context": {
                    "moment_id": self.context.moment_id,
                    "operation": self.context.operation,
                },
            }
        }


# ─── Domain Errors ──────────────────────────────────────────────

_VALIDATION_MESSAGES: dict[ValidationErrorKind, str] = {
    ValidationErrorKind.EMPTY_TITLE: "Title is required",
    ValidationErrorKind.TITLE_TOO_LONG: "Title must be 100 characters or less",
    ValidationErrorKind.DESCRIPTION_TOO_LONG: "Description must be 200 characters or less",
    ValidationErrorKind.MISSING_DATE: "Date is required",
    ValidationErrorKind.BAD_DATE_FORMAT: "Date must be in YYYY-MM-DD format",
    ValidationErrorKind.INVALID_DATE: "Invalid date provided",
    ValidationErrorKind.BAD_REPEAT_FREQUENCY: "Invalid repeat frequency",
}


class MomentValidationError(LifeMomentsError):
    """Candidate moment violates a field constraint."""
    def __init__(
        self, kind: ValidationErrorKind, field: str, context: ErrorContext | None = None,
    ):
        super().__init__(
            _VALIDATION_MESSAGES[kind], "VALIDATION_ERROR", ErrorCategory.VALIDATION,
            ErrorSeverity.WARNING, context,
        )
        self.kind = kind
        self.field = field

    def to_dict(self) -> dict:
        body = super().to_dict()
        body["error"]["kind"] = self.kind.value
        body["error"]["field"] = self.field
        return body


class SchemaViolationError(LifeMomentsError):
    """Record rejected by the storage-boundary schema."""
    def __init__(self, details: list[dict], context: ErrorContext | None = None):
        fields = sorted({".".join(str(p) for p in d.get("loc", ())) for d in details})
        super().__init__(
            f"Record violates storage schema: {', '.join(fields) or 'unknown field'}",
            "SCHEMA_VIOLATION", ErrorCategory.VALIDATION,
            ErrorSeverity.ERROR, context,
        )
        self.details = details


class MomentNotFoundError(LifeMomentsError):
    """Requested moment does not exist (never created, or already removed)."""
    def __init__(self, moment_id: str, context: ErrorContext | None = None):
        ctx = context or ErrorContext()
        ctx.moment_id = moment_id
        super().__init__(
            f"Moment '{moment_id}' not found",
            "RESOURCE_NOT_FOUND", ErrorCategory.RESOURCE_NOT_FOUND,
            ErrorSeverity.WARNING, ctx,
        )
        self.moment_id = moment_id


class DuplicateMomentError(LifeMomentsError):
    """Insert attempted with an id that is already stored."""
    def __init__(self, moment_id: str, context: ErrorContext | None = None):
        ctx = context or ErrorContext()
        ctx.moment_id = moment_id
        super().__init__(
            f"Moment '{moment_id}' already exists",
            "DUPLICATE_MOMENT", ErrorCategory.CONFLICT,
            ErrorSeverity.ERROR, ctx,
        )
        self.moment_id = moment_id


# ─── Infrastructure Errors ──────────────────────────────────────

class StorageError(LifeMomentsError):
    """Local storage operation failed. Never retried by the core."""
    def __init__(
        self,
        message: str,
        operation: str,
        kind: StorageErrorKind = StorageErrorKind.IO,
        cause: BaseException | None = None,
        context: ErrorContext | None = None,
    ):
        ctx = context or ErrorContext()
        ctx.operation = operation
        if kind is StorageErrorKind.QUOTA_EXCEEDED and ctx.user_message is None:
            ctx.user_message = "Device storage is full. Free up space and try again."
        super().__init__(
            f"Storage {operation} failed: {message}",
            "QUOTA_EXCEEDED" if kind is StorageErrorKind.QUOTA_EXCEEDED else "STORAGE_ERROR",
            ErrorCategory.STORAGE,
            ErrorSeverity.CRITICAL, ctx,
        )
        self.operation = operation
        self.kind = kind
        self.cause = cause
        if cause is not None:
            self.__cause__ = cause

    @property
    def user_actionable(self) -> bool:
        return self.kind is StorageErrorKind.QUOTA_EXCEEDED

    def to_dict(self) -> dict:
        body = super().to_dict()
        body["error"]["kind"] = self.kind.value
        body["error"]["user_actionable"] = self.user_actionable
        return body
