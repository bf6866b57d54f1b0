"""Error Hierarchy — typed, categorized exceptions for all Backstage failure modes.

Invariants:
    - Every error has a code (str), category (ErrorCategory), severity (ErrorSeverity)
    - Validation/auth errors (400-level) are raised before any side effect
    - to_response() produces REST envelope; to_sse_event() produces SSE envelope
    - No internal details leaked in user-facing messages

Design Decisions:
    - Single hierarchy with BackstageError base: FastAPI global handler catches all
    - ErrorContext as dataclass: observability fields travel with the error, not the logger
    - ToolExecutionError never reaches the HTTP layer during a run; it is folded into
      the transcript as an errored ToolInvocation
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
    AUTH = "auth"
    RESOURCE_NOT_FOUND = "resource_not_found"
    TOOL = "tool"
    REMOTE_SESSION = "remote_session"
    DATABASE = "database"
    EXTERNAL_API = "external_api"
    INTERNAL = "internal"


@dataclass
class ErrorContext:
    """Rich context for error observability and debugging."""
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    user_id: str | None = None
    conversation_id: str | None = None
    tool_name: str | None = None
    step: int | None = None
    user_message: str | None = None
    debug_info: dict[str, Any] | None = None
    retry_after_ms: int | None = None


class BackstageError(Exception):
    """Base exception for all Backstage errors."""

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
        """Convert to standardized REST error response."""
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "category": self.category.value,
                "severity": self.severity.value,
                "timestamp": self.context.timestamp.isoformat(),
                "context": {
                    "conversation_id": self.context.conversation_id,
                    "tool_name": self.context.tool_name,
                    "step": self.context.step,
                    "retry_after_ms": self.context.retry_after_ms,
                },
            }
        }

    def to_sse_event(self) -> dict:
        """Convert to SSE error event."""
        return {
            "type": "error",
            "data": {
                "code": self.code,
                "message": self.context.user_message or self.message,
                "severity": self.severity.value,
                "recoverable": self.severity in (
                    ErrorSeverity.INFO, ErrorSeverity.WARNING,
                ),
                "tool_name": self.context.tool_name,
            },
        }


# ─── Request Errors (400-level) ─────────────────────────────────

class InputValidationError(BackstageError):
    """Missing or malformed input, rejected before any side effect."""
    def __init__(self, message: str, field: str, context: ErrorContext | None = None):
        super().__init__(
            message, "VALIDATION_ERROR", ErrorCategory.VALIDATION,
            ErrorSeverity.ERROR, context, 400,
        )
        self.field = field


class InvalidCredentialsError(BackstageError):
    """SSH credentials incomplete (host, username, password or key path)."""
    def __init__(self, message: str, context: ErrorContext | None = None):
        super().__init__(
            message, "INVALID_CREDENTIALS", ErrorCategory.VALIDATION,
            ErrorSeverity.ERROR, context, 400,
        )


class AuthError(BackstageError):
    """No identity for a user-scoped operation."""
    def __init__(
        self, message: str = "Authentication required.",
        context: ErrorContext | None = None,
    ):
        super().__init__(
            message, "AUTH_REQUIRED", ErrorCategory.AUTH,
            ErrorSeverity.ERROR, context, 401,
        )


class ResourceNotFoundError(BackstageError):
    """Requested resource does not exist."""
    def __init__(
        self, resource_type: str, resource_id: str, context: ErrorContext | None = None,
    ):
        super().__init__(
            f"{resource_type} '{resource_id}' not found",
            "RESOURCE_NOT_FOUND", ErrorCategory.RESOURCE_NOT_FOUND,
            ErrorSeverity.ERROR, context, 404,
        )


class InvocationAlreadySettledError(BackstageError):
    """A ToolInvocation in terminal state was asked to transition again."""
    def __init__(self, tool_call_id: str, state: str):
        super().__init__(
            f"Tool invocation '{tool_call_id}' is already settled ({state})",
            "INVOCATION_SETTLED", ErrorCategory.INTERNAL,
            ErrorSeverity.ERROR, None, 500,
        )
        self.tool_call_id = tool_call_id


# ─── Tool Errors ────────────────────────────────────────────────

class ToolUnavailableError(BackstageError):
    """A session-backed tool client failed to start — run rejected up front."""
    def __init__(self, client_kind: str, reason: str, context: ErrorContext | None = None):
        super().__init__(
            f"Tool client '{client_kind}' is unavailable: {reason}",
            "TOOL_UNAVAILABLE", ErrorCategory.TOOL,
            ErrorSeverity.CRITICAL, context, 500,
        )
        self.client_kind = client_kind


class ToolExecutionError(BackstageError):
    """A single tool invocation failed — recorded, run continues."""
    def __init__(self, tool_name: str, message: str, context: ErrorContext | None = None):
        ctx = context or ErrorContext()
        ctx.tool_name = tool_name
        super().__init__(
            message, "TOOL_EXECUTION_ERROR", ErrorCategory.TOOL,
            ErrorSeverity.WARNING, ctx, 500,
        )


# ─── Remote Session Errors ──────────────────────────────────────

class NotConnectedError(BackstageError):
    """No live remote session for this user."""
    def __init__(self, user_id: str, context: ErrorContext | None = None):
        ctx = context or ErrorContext()
        ctx.user_id = user_id
        super().__init__(
            "SSH not connected. Please initialize connection first.",
            "NOT_CONNECTED", ErrorCategory.REMOTE_SESSION,
            ErrorSeverity.ERROR, ctx, 500,
        )


class SessionConnectionError(BackstageError):
    """Remote transport failed (connect refused, dropped, auth rejected)."""
    def __init__(self, message: str, context: ErrorContext | None = None):
        super().__init__(
            message, "CONNECTION_ERROR", ErrorCategory.REMOTE_SESSION,
            ErrorSeverity.ERROR, context, 500,
        )


class RemoteFileError(BackstageError):
    """Reading or writing a remote file failed on the remote side."""
    def __init__(self, path: str, reason: str, context: ErrorContext | None = None):
        super().__init__(
            f"Remote file operation failed for '{path}': {reason}",
            "REMOTE_FILE_ERROR", ErrorCategory.REMOTE_SESSION,
            ErrorSeverity.ERROR, context, 500,
        )
        self.path = path


# ─── Infrastructure Errors (500-level) ──────────────────────────

class DatabaseError(BackstageError):
    """Database operation failed."""
    def __init__(self, message: str, operation: str, context: ErrorContext | None = None):
        super().__init__(
            f"Database {operation} failed: {message}",
            "DATABASE_ERROR", ErrorCategory.DATABASE,
            ErrorSeverity.CRITICAL, context, 503,
        )
        self.operation = operation


class PersistenceError(BackstageError):
    """Transcript could not be saved — logged, never re-fails a finished run."""
    def __init__(self, conversation_id: str, reason: str, context: ErrorContext | None = None):
        ctx = context or ErrorContext()
        ctx.conversation_id = conversation_id
        super().__init__(
            f"Failed to persist transcript '{conversation_id}': {reason}",
            "PERSISTENCE_ERROR", ErrorCategory.DATABASE,
            ErrorSeverity.ERROR, ctx, 503,
        )


class ModelCallError(BackstageError):
    """The model call itself failed — fatal to the run."""
    def __init__(
        self,
        message: str,
        api_error_type: str,
        retry_after_ms: int | None = None,
        context: ErrorContext | None = None,
    ):
        ctx = context or ErrorContext()
        ctx.retry_after_ms = retry_after_ms
        super().__init__(
            f"Model API error ({api_error_type}): {message}",
            "MODEL_CALL_ERROR", ErrorCategory.EXTERNAL_API,
            ErrorSeverity.CRITICAL, ctx, 503,
        )
        self.api_error_type = api_error_type
