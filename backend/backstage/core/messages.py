"""Transcript Messages — Message, MessagePart and ToolInvocation with wire conversion.

Invariants:
    - ToolInvocation moves pending -> result | error exactly once
    - Message.content is a derived flattened text view; parts are authoritative
    - Wire shape is the UI message shape (camelCase: toolCallId, toolInvocation, createdAt)
    - from_wire() never raises on legacy states: "call" / "partial-call" read as pending

Design Decisions:
    - Plain dataclasses, no IO: the engine mutates invocations in place and the
      same object is referenced by the assistant part and the tool message
    - Wire conversion lives next to the types so routes, persistence and SSE share it
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from backstage.core.domain_types import (
    InvocationState, LEGACY_PENDING_STATES, PartType, Role,
)
from backstage.core.errors import InvocationAlreadySettledError


def new_message_id(prefix: str = "msg") -> str:
    return f"{prefix}_{uuid.uuid4().hex[:16]}"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class ToolInvocation:
    """A single model request to run a named tool, and its eventual outcome."""

    tool_call_id: str
    tool_name: str
    args: dict = field(default_factory=dict)
    state: InvocationState = InvocationState.PENDING
    result: Any = None
    error: str | None = None

    def resolve(self, result: Any) -> None:
        self._ensure_pending()
        self.state = InvocationState.RESULT
        self.result = result

    def fail(self, message: str) -> None:
        self._ensure_pending()
        self.state = InvocationState.ERROR
        self.error = message

    def _ensure_pending(self) -> None:
        if self.state.is_terminal:
            raise InvocationAlreadySettledError(
                self.tool_call_id, self.state.value,
            )

    def to_wire(self) -> dict:
        data = {
            "toolCallId": self.tool_call_id,
            "toolName": self.tool_name,
            "args": self.args,
            "state": self.state.value,
        }
        if self.state == InvocationState.RESULT:
            data["result"] = self.result
        if self.state == InvocationState.ERROR:
            data["error"] = self.error
        return data

    @classmethod
    def from_wire(cls, data: dict) -> "ToolInvocation":
        raw_state = data.get("state") or InvocationState.PENDING.value
        if raw_state in LEGACY_PENDING_STATES:
            state = InvocationState.PENDING
        else:
            state = InvocationState(raw_state)
        return cls(
            tool_call_id=data["toolCallId"],
            tool_name=data["toolName"],
            args=dict(data.get("args") or {}),
            state=state,
            result=data.get("result"),
            error=data.get("error"),
        )


@dataclass
class MessagePart:
    type: PartType
    text: str | None = None
    tool_invocation: ToolInvocation | None = None

    @classmethod
    def text_part(cls, text: str) -> "MessagePart":
        return cls(type=PartType.TEXT, text=text)

    @classmethod
    def invocation_part(cls, invocation: ToolInvocation) -> "MessagePart":
        return cls(type=PartType.TOOL_INVOCATION, tool_invocation=invocation)

    def to_wire(self) -> dict:
        if self.type == PartType.TEXT:
            return {"type": self.type.value, "text": self.text or ""}
        if self.type == PartType.TOOL_INVOCATION:
            return {
                "type": self.type.value,
                "toolInvocation": self.tool_invocation.to_wire(),
            }
        return {"type": self.type.value}

    @classmethod
    def from_wire(cls, data: dict) -> "MessagePart":
        ptype = PartType(data["type"])
        if ptype == PartType.TEXT:
            return cls.text_part(data.get("text") or "")
        if ptype == PartType.TOOL_INVOCATION:
            return cls.invocation_part(
                ToolInvocation.from_wire(data["toolInvocation"]),
            )
        return cls(type=ptype)


@dataclass
class Message:
    """One transcript entry. conversation_id is set when merged for persistence."""

    role: Role
    content: str = ""
    parts: list[MessagePart] = field(default_factory=list)
    id: str = field(default_factory=new_message_id)
    created_at: datetime = field(default_factory=_utcnow)
    conversation_id: str | None = None

    def tool_invocations(self) -> list[ToolInvocation]:
        return [
            p.tool_invocation for p in self.parts
            if p.type == PartType.TOOL_INVOCATION and p.tool_invocation
        ]

    def text(self) -> str:
        """Concatenated text parts, falling back to content."""
        texts = [p.text for p in self.parts if p.type == PartType.TEXT and p.text]
        if texts:
            return "\n".join(texts)
        return self.content or ""

    def with_conversation(self, conversation_id: str | None) -> "Message":
        return Message(
            role=self.role,
            content=self.content,
            parts=list(self.parts),
            id=self.id,
            created_at=self.created_at,
            conversation_id=conversation_id,
        )

    def to_wire(self) -> dict:
        data = {
            "id": self.id,
            "role": self.role.value,
            "content": self.content,
            "parts": [p.to_wire() for p in self.parts],
            "createdAt": self.created_at.isoformat(),
        }
        if self.conversation_id is not None:
            data["session"] = self.conversation_id
        return data

    @classmethod
    def from_wire(cls, data: dict) -> "Message":
        created = data.get("createdAt")
        if isinstance(created, str):
            created_at = datetime.fromisoformat(created.replace("Z", "+00:00"))
        elif isinstance(created, datetime):
            created_at = created
        else:
            created_at = _utcnow()
        parts = [MessagePart.from_wire(p) for p in data.get("parts") or []]
        content = data.get("content") or ""
        if not parts and content:
            parts = [MessagePart.text_part(content)]
        return cls(
            role=Role(data["role"]),
            content=content,
            parts=parts,
            id=data.get("id") or new_message_id(),
            created_at=created_at,
            conversation_id=data.get("session"),
        )


def flatten_content(parts: list[MessagePart]) -> str:
    """Derive the flattened text view used as content fallback."""
    texts = [p.text for p in parts if p.type == PartType.TEXT and p.text]
    if texts:
        return "\n".join(texts)
    names = [
        p.tool_invocation.tool_name for p in parts
        if p.type == PartType.TOOL_INVOCATION and p.tool_invocation
    ]
    if names:
        return f"[Tool Interaction: {', '.join(names)}]"
    return ""


def tool_message(invocations: list[ToolInvocation]) -> Message:
    """Build the `tool` message that carries a step's settled invocations."""
    parts = [MessagePart.invocation_part(inv) for inv in invocations]
    return Message(
        role=Role.TOOL,
        content=flatten_content(parts),
        parts=parts,
        id=new_message_id("tool"),
    )
