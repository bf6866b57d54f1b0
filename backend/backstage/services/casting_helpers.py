"""Casting Helpers — pure SSE event builders and stream event processing.

Invariants:
    - All functions are pure (stateless, deterministic)
    - SSE event dicts are {"type": ..., "data": ...}
    - Event types: step_start, text, tool_call, tool_result, tool_error, error,
      run_result, done

Design Decisions:
    - Extracted from casting_engine.py so the loop reads top to bottom
    - process_stream_event returns (event_or_None, text_lstrip) — caller decides yield timing
"""

import json
from typing import Any

from backstage.core.domain_types import InvocationState, StopReason
from backstage.core.errors import ErrorSeverity
from backstage.core.messages import ToolInvocation

_PREVIEW_CHARS = 300


# -- SSE event builders --------------------------------------------------------

def step_start_event(step: int) -> dict:
    return {"type": "step_start", "data": {"step": step}}


def text_event(text: str) -> dict:
    return {"type": "text", "data": text}


def tool_call_event(name: str, tool_call_id: str) -> dict:
    return {
        "type": "tool_call",
        "data": {"tool": name, "toolCallId": tool_call_id},
    }


def tool_outcome_event(invocation: ToolInvocation) -> dict:
    """tool_result or tool_error for a settled invocation."""
    if invocation.state == InvocationState.ERROR:
        return {
            "type": "tool_error",
            "data": {
                "tool": invocation.tool_name,
                "toolCallId": invocation.tool_call_id,
                "message": invocation.error,
            },
        }
    return {
        "type": "tool_result",
        "data": {
            "tool": invocation.tool_name,
            "toolCallId": invocation.tool_call_id,
            "result_preview": preview(invocation.result),
        },
    }


def run_result_event(result: Any) -> dict:
    return {"type": "run_result", "data": result.to_wire()}


def done_event(stop_reason: StopReason, error: bool = False) -> dict:
    return {
        "type": "done",
        "data": {"error": error, "stop_reason": stop_reason.value},
    }


def unexpected_error_event() -> dict:
    return {
        "type": "error",
        "data": {
            "code": "INTERNAL_ERROR",
            "message": "An unexpected error occurred",
            "severity": ErrorSeverity.CRITICAL.value,
            "recoverable": False,
        },
    }


def preview(result: Any) -> str:
    if isinstance(result, str):
        text = result
    else:
        text = json.dumps(result, ensure_ascii=False, default=str)
    return text[:_PREVIEW_CHARS]


# -- Stream event processing ---------------------------------------------------

def process_stream_event(
    event: Any, text_lstrip: bool,
) -> tuple[dict | None, bool]:
    """Process a single stream event. Returns (sse_or_None, new_text_lstrip)."""
    etype = getattr(event, "type", None)

    if etype == "content_block_start":
        return _handle_block_start(event.content_block, text_lstrip)

    if etype == "content_block_delta":
        return _handle_block_delta(event.delta, text_lstrip)

    return None, text_lstrip


def _handle_block_start(
    cb: Any, text_lstrip: bool,
) -> tuple[dict | None, bool]:
    bt = getattr(cb, "type", None)
    if bt == "text":
        return None, True
    if bt == "tool_use":
        return tool_call_event(cb.name, cb.id), text_lstrip
    return None, text_lstrip


def _handle_block_delta(
    delta: Any, text_lstrip: bool,
) -> tuple[dict | None, bool]:
    dt = getattr(delta, "type", None)
    if dt == "text_delta" and delta.text:
        txt = delta.text
        if text_lstrip:
            txt = txt.lstrip()
            if not txt:
                return None, True
        return text_event(txt), False
    return None, text_lstrip
