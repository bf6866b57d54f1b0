"""Cast Schemas — request body for POST /cast and the UI message payload shape.

Invariants:
    - Message payloads use the UI wire keys (toolCallId, toolName, toolInvocation, createdAt)
    - Invocation state accepts the legacy "call" / "partial-call" values
    - stepLimit, when given, is at least 1; the route caps it at cast_max_step_limit

Design Decisions:
    - Emptiness of `messages` is checked by the route, so the caller gets the
      domain message "Messages cannot be empty" instead of a generic field error
"""

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

from backstage.core.messages import Message


class ToolInvocationPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    tool_call_id: str = Field(alias="toolCallId", min_length=1)
    tool_name: str = Field(alias="toolName", min_length=1)
    args: dict[str, Any] = Field(default_factory=dict)
    state: Literal["pending", "result", "error", "call", "partial-call"] = "pending"
    result: Any = None
    error: str | None = None


class MessagePartPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    type: Literal["text", "tool-invocation", "step-start"]
    text: str | None = None
    tool_invocation: ToolInvocationPayload | None = Field(None, alias="toolInvocation")

    @model_validator(mode="after")
    def check_invocation_present(self) -> "MessagePartPayload":
        if self.type == "tool-invocation" and self.tool_invocation is None:
            raise ValueError("tool-invocation parts require toolInvocation")
        return self


class MessagePayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str | None = Field(None, max_length=128)
    role: Literal["user", "assistant", "tool"]
    content: str = ""
    parts: list[MessagePartPayload] | None = None
    created_at: datetime | None = Field(None, alias="createdAt")

    def to_message(self) -> Message:
        return Message.from_wire(self.model_dump(by_alias=True, exclude_none=True))


class CastBody(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    messages: list[MessagePayload] = Field(default_factory=list)
    model: str | None = None
    tools: list[str] = Field(default_factory=list)
    custom_info: str = Field("", alias="customInfo", max_length=20_000)
    session_id: str | None = Field(None, alias="sessionId", max_length=128)
    step_limit: int | None = Field(None, alias="stepLimit", ge=1)
