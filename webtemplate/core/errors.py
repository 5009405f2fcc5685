"""Error Hierarchy — typed, categorized exceptions for every failure mode of the template.

Invariants:
    - Every error has a code (str), category (ErrorCategory), severity (ErrorSeverity)
    - to_response() produces the public envelope {"code": <http status>, "message": ...}
    - Request-level errors (401, 404) never outlive the request that raised them
    - No internal details (stack traces, SQL) in user-facing messages

Design Decisions:
    - Single hierarchy with WebTemplateError base: one FastAPI handler catches all
    - Token failures keep their fine-grained kind internally (logs, spans) while the
      HTTP response stays generic
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
    CONFIGURATION = "configuration"
    AUTHENTICATION = "authentication"
    VALIDATION = "validation"
    RESOURCE_NOT_FOUND = "resource_not_found"
    DATABASE = "database"
    SUBPROCESS = "subprocess"
    TRACING = "tracing"
    TIMEOUT = "timeout"
    INTERNAL = "internal"


@dataclass
class ErrorContext:
    """Rich context for error observability and debugging."""
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    path: str | None = None
    user_id: int | None = None
    debug_info: dict[str, Any] | None = None


class WebTemplateError(Exception):
    """Base exception for all web-template errors."""

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
        """Convert to the standard JSON error envelope."""
        return {"code": self.http_status, "message": self.message}


# ─── Startup Errors ─────────────────────────────────────────────

class ConfigLoadError(WebTemplateError):
    """Settings file missing, unreadable, or invalid. Fatal at startup."""
    def __init__(self, message: str, path: str | None = None):
        super().__init__(
            message, "CONFIG_LOAD_ERROR", ErrorCategory.CONFIGURATION,
            ErrorSeverity.CRITICAL, None, 500,
        )
        self.path = path


class TracingUnavailableError(WebTemplateError):
    """Tracer could not be built. Non-fatal: tracing is disabled."""
    def __init__(self, message: str):
        super().__init__(
            message, "TRACING_UNAVAILABLE", ErrorCategory.TRACING,
            ErrorSeverity.WARNING, None, 500,
        )


# ─── Authentication Errors (401) ────────────────────────────────

class AuthError(WebTemplateError):
    """Request could not be authenticated."""
    def __init__(
        self, message: str, code: str, context: ErrorContext | None = None,
    ):
        super().__init__(
            message, code, ErrorCategory.AUTHENTICATION,
            ErrorSeverity.WARNING, context, 401,
        )


class MissingAuthHeaderError(AuthError):
    """No Authorization header on a private route."""
    def __init__(self, context: ErrorContext | None = None):
        super().__init__(
            "Missing authentication token", "AUTH_MISSING_HEADER", context,
        )


class MalformedAuthHeaderError(AuthError):
    """Authorization header present but not of the form 'Bearer <token>'."""
    def __init__(self, context: ErrorContext | None = None):
        super().__init__(
            "Malformed authorization header", "AUTH_MALFORMED_HEADER", context,
        )


class InvalidTokenError(AuthError):
    """Token failed verification. Subclasses carry the precise reason."""
    public_message = "Token is invalid or expired"

    def __init__(
        self,
        reason: str = "token verification failed",
        code: str = "AUTH_INVALID_TOKEN",
        context: ErrorContext | None = None,
    ):
        super().__init__(self.public_message, code, context)
        self.reason = reason


class MalformedTokenError(InvalidTokenError):
    def __init__(self, reason: str = "token is malformed", context: ErrorContext | None = None):
        super().__init__(reason, "AUTH_TOKEN_MALFORMED", context)


class InvalidSignatureError(InvalidTokenError):
    def __init__(self, reason: str = "token signature is invalid", context: ErrorContext | None = None):
        super().__init__(reason, "AUTH_TOKEN_BAD_SIGNATURE", context)


class ExpiredTokenError(InvalidTokenError):
    def __init__(self, reason: str = "token has expired", context: ErrorContext | None = None):
        super().__init__(reason, "AUTH_TOKEN_EXPIRED", context)


class NotYetValidError(InvalidTokenError):
    def __init__(self, reason: str = "token is not yet valid", context: ErrorContext | None = None):
        super().__init__(reason, "AUTH_TOKEN_NOT_YET_VALID", context)


# ─── Resource Errors (400-level) ────────────────────────────────

class ResourceNotFoundError(WebTemplateError):
    """Requested resource does not exist."""
    def __init__(
        self, resource_type: str, resource_id: str, context: ErrorContext | None = None,
    ):
        super().__init__(
            f"{resource_type} '{resource_id}' not found",
            "RESOURCE_NOT_FOUND", ErrorCategory.RESOURCE_NOT_FOUND,
            ErrorSeverity.ERROR, context, 404,
        )


# ─── Infrastructure Errors (500-level) ──────────────────────────

class DatabaseError(WebTemplateError):
    """Database operation failed."""
    def __init__(self, message: str, operation: str, context: ErrorContext | None = None):
        super().__init__(
            f"Database {operation} failed: {message}",
            "DATABASE_ERROR", ErrorCategory.DATABASE,
            ErrorSeverity.CRITICAL, context, 503,
        )
        self.operation = operation


class MigrationError(WebTemplateError):
    """Base for failures of the external migration tool."""
    def __init__(
        self, message: str, code: str = "MIGRATION_ERROR",
        category: ErrorCategory = ErrorCategory.SUBPROCESS,
    ):
        super().__init__(
            message, code, category, ErrorSeverity.CRITICAL, None, 500,
        )


class MigrationToolMissingError(MigrationError):
    """Migration executable is not installed or not on PATH."""
    def __init__(self, executable: str):
        super().__init__(
            f"{executable} CLI is not installed or not on PATH",
            "MIGRATION_TOOL_MISSING",
        )
        self.executable = executable


class MigrationCommandError(MigrationError):
    """Migration command exited non-zero. Carries its combined output."""
    def __init__(self, action: str, returncode: int, output: str):
        super().__init__(
            f"migration {action} failed with exit code {returncode}",
            "MIGRATION_COMMAND_FAILED",
        )
        self.action = action
        self.returncode = returncode
        self.output = output


class MigrationTimeoutError(MigrationError):
    """Migration command exceeded its wall-clock budget and was killed."""
    def __init__(self, action: str, timeout: float, output: str = ""):
        super().__init__(
            f"migration {action} timed out after {timeout:g}s",
            "MIGRATION_TIMEOUT", ErrorCategory.TIMEOUT,
        )
        self.action = action
        self.timeout = timeout
        self.output = output
