"""Format Messages — pure conversion between transcript Messages and Anthropic message params.

Invariants:
    - Output alternates user/assistant; consecutive same-role entries are concatenated
    - Every tool_use block emitted is immediately answered by a tool_result block
    - Pending invocations (never settled) are dropped: a tool_use without a result
      is rejected by the API
    - Errored invocations are sent back with is_error=True and the error text

Design Decisions:
    - Results are looked up across the whole transcript by toolCallId, so both
      UI-style history (results inside assistant parts) and engine-style history
      (separate `tool` messages) convert the same way
"""

import json
from typing import Any

from backstage.core.domain_types import InvocationState, PartType, Role
from backstage.core.messages import (
    Message, MessagePart, ToolInvocation, flatten_content, new_message_id,
)


def to_anthropic_messages(messages: list[Message]) -> list[dict]:
    """Convert a transcript to the Anthropic `messages` parameter."""
    settled = _settled_invocations(messages)
    out: list[dict] = []
    for message in messages:
        if message.role == Role.USER:
            text = message.text()
            if text:
                _append(out, "user", [{"type": "text", "text": text}])
        elif message.role == Role.ASSISTANT:
            blocks, answered = _assistant_blocks(message, settled)
            if blocks:
                _append(out, "assistant", blocks)
            if answered:
                _append(out, "user", [tool_result_block(inv) for inv in answered])
        # Role.TOOL: already answered alongside the assistant message
    return out


def tool_result_block(invocation: ToolInvocation) -> dict:
    if invocation.state == InvocationState.ERROR:
        return {
            "type": "tool_result",
            "tool_use_id": invocation.tool_call_id,
            "content": invocation.error or "Tool execution failed",
            "is_error": True,
        }
    return {
        "type": "tool_result",
        "tool_use_id": invocation.tool_call_id,
        "content": _result_text(invocation.result),
    }


def assistant_message_from_response(response: Any) -> Message:
    """Build the assistant Message for one model response (invocations pending)."""
    parts: list[MessagePart] = []
    for block in response.content:
        btype = getattr(block, "type", None)
        if btype == "text" and block.text:
            parts.append(MessagePart.text_part(block.text))
        elif btype == "tool_use":
            parts.append(MessagePart.invocation_part(ToolInvocation(
                tool_call_id=block.id,
                tool_name=block.name,
                args=dict(block.input or {}),
            )))
    return Message(
        role=Role.ASSISTANT,
        content=flatten_content(parts),
        parts=parts,
        id=new_message_id("asst"),
    )


# -- Internals -----------------------------------------------------------------

def _settled_invocations(messages: list[Message]) -> dict[str, ToolInvocation]:
    settled: dict[str, ToolInvocation] = {}
    for message in messages:
        for inv in message.tool_invocations():
            if inv.state.is_terminal:
                settled.setdefault(inv.tool_call_id, inv)
    return settled


def _assistant_blocks(
    message: Message, settled: dict[str, ToolInvocation],
) -> tuple[list[dict], list[ToolInvocation]]:
    blocks: list[dict] = []
    answered: list[ToolInvocation] = []
    for part in message.parts:
        if part.type == PartType.TEXT and part.text:
            blocks.append({"type": "text", "text": part.text})
        elif part.type == PartType.TOOL_INVOCATION and part.tool_invocation:
            inv = settled.get(part.tool_invocation.tool_call_id)
            if inv is None:
                continue
            blocks.append({
                "type": "tool_use",
                "id": inv.tool_call_id,
                "name": inv.tool_name,
                "input": inv.args,
            })
            answered.append(inv)
    if not blocks and message.content:
        blocks.append({"type": "text", "text": message.content})
    return blocks, answered


def _append(out: list[dict], role: str, blocks: list[dict]) -> None:
    if out and out[-1]["role"] == role:
        out[-1]["content"].extend(blocks)
        return
    out.append({"role": role, "content": list(blocks)})


def _result_text(result: Any) -> str:
    if isinstance(result, str):
        return result
    return json.dumps(result, ensure_ascii=False, default=str)
