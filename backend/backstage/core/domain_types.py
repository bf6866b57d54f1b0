"""Domain Types — rich types that replace bare primitives across the codebase.

Invariants:
    - UserId and ConversationId wrap str — never mix the two in signatures
    - All valid states encoded as Enums — no raw string matching

Design Decisions:
    - NewType over dataclass wrappers: zero runtime cost, full type-checker support
    - str Enums: serialize to JSON without custom encoders (SSE payloads and JSON columns)
"""

from enum import Enum
from typing import NewType


# ─── Identity Types ──────────────────────────────────────────────

UserId = NewType("UserId", str)
ConversationId = NewType("ConversationId", str)


# ─── Messages ────────────────────────────────────────────────────

class Role(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"


class PartType(str, Enum):
    TEXT = "text"
    TOOL_INVOCATION = "tool-invocation"
    STEP_START = "step-start"


class InvocationState(str, Enum):
    """ToolInvocation lifecycle: pending -> result | error, never back."""
    PENDING = "pending"
    RESULT = "result"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self is not InvocationState.PENDING


# Front-end states emitted before a result exists
LEGACY_PENDING_STATES = frozenset({"call", "partial-call"})


# ─── Runs ────────────────────────────────────────────────────────

class StopReason(str, Enum):
    DONE = "done"
    STEP_LIMIT_REACHED = "step_limit_reached"
    ERRORED = "errored"
    CANCELLED = "cancelled"


# ─── Tools ───────────────────────────────────────────────────────

class ToolKind(str, Enum):
    STATIC = "static"
    SESSION_BACKED = "session_backed"


class ClientKind(str, Enum):
    """Kinds of long-lived clients a session-backed tool group depends on."""
    REMOTE_SHELL = "remote_shell"
    BROWSER = "browser"


# ─── Remote session control ──────────────────────────────────────

class SessionAction(str, Enum):
    INITIALIZE = "initialize"
    EXECUTE = "execute"
    EDIT_FILE = "editFile"
    READ_FILE = "readFile"
    DISCONNECT = "disconnect"
