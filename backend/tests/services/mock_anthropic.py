"""Mock Anthropic Client — scripted streaming responses for casting engine tests.

Invariants:
    - MockAnthropicClient serves one scripted stream per stream_message() call
    - A scripted Exception is raised from stream_message() instead of a stream
    - Every tool_use block gets a unique id (toolu_<name>_<n>)
    - _Stream supports both `async for event` and `await get_final_message()`

Design Decisions:
    - Flat mock classes (no inheritance): simple, explicit, easy to debug
    - Builders return _Stream objects: events for streaming, message for post-processing
"""

import asyncio
import itertools
from contextlib import asynccontextmanager

_ids = itertools.count(1)


def _next_tool_id(name: str) -> str:
    return f"toolu_{name}_{next(_ids)}"


# -- Mock Anthropic SDK objects ------------------------------------------------


class _Block:
    """Mock content block (text or tool_use) with attribute access."""

    def __init__(self, **kwargs):
        self._data = kwargs
        for k, v in kwargs.items():
            setattr(self, k, v)

    def model_dump(self, exclude_none=False):
        d = dict(self._data)
        if exclude_none:
            d = {k: v for k, v in d.items() if v is not None}
        return d

    def __repr__(self):
        return f"_Block({self._data})"


class _Usage:
    def __init__(self, input_tokens=100, output_tokens=50):
        self.input_tokens = input_tokens
        self.output_tokens = output_tokens


class _Message:
    """Mock Message returned by stream.get_final_message()."""

    def __init__(self, content, stop_reason="end_turn", tokens=(100, 50)):
        self.content = content
        self.stop_reason = stop_reason
        self.usage = _Usage(*tokens)


class _StreamEvent:
    def __init__(self, type, content_block=None, delta=None):
        self.type = type
        self.content_block = content_block
        self.delta = delta


class _Delta:
    def __init__(self, type, text=None):
        self.type = type
        self.text = text


class _Stream:
    """Mock async iterable stream with get_final_message()."""

    def __init__(self, events, message, event_delay: float = 0.0):
        self._events = events
        self._message = message
        self._idx = 0
        self.event_delay = event_delay

    def __aiter__(self):
        return self

    async def __anext__(self):
        if self._idx >= len(self._events):
            raise StopAsyncIteration
        if self.event_delay:
            await asyncio.sleep(self.event_delay)
        ev = self._events[self._idx]
        self._idx += 1
        return ev

    async def get_final_message(self):
        return self._message


class MockAnthropicClient:
    """Replaces ResilientAnthropicClient. Sequences pre-configured responses."""

    def __init__(self, responses):
        self._responses = list(responses)
        self._idx = 0
        self.calls = []
        self.open_streams = 0

    @asynccontextmanager
    async def stream_message(self, **kwargs):
        self.calls.append(kwargs)
        if self._idx >= len(self._responses):
            raise RuntimeError(
                f"MockAnthropicClient: no response at index {self._idx} "
                f"(configured {len(self._responses)})",
            )
        scripted = self._responses[self._idx]
        self._idx += 1
        if isinstance(scripted, Exception):
            raise scripted
        self.open_streams += 1
        try:
            yield scripted
        finally:
            self.open_streams -= 1


# -- Builder helpers -----------------------------------------------------------


def _text_events(text):
    return [
        _StreamEvent("content_block_start", content_block=_Block(type="text", text="")),
        _StreamEvent("content_block_delta", delta=_Delta("text_delta", text=text)),
    ]


def text_response(text, stop_reason="end_turn", tokens=(100, 50)):
    """Text-only response: the model is done."""
    return _Stream(
        _text_events(text),
        _Message([_Block(type="text", text=text)], stop_reason, tokens),
    )


def tool_response(name, tool_input, text=None, stop_reason="tool_use", tokens=(150, 80)):
    """One tool_use block, optionally preceded by text."""
    return multi_tool_response([{"name": name, "input": tool_input}], text, stop_reason, tokens)


def multi_tool_response(tools, text=None, stop_reason="tool_use", tokens=(200, 120)):
    """Several tool_use blocks in one assistant turn."""
    events, content = [], []
    if text:
        events.extend(_text_events(text))
        content.append(_Block(type="text", text=text))
    for t in tools:
        tid = t.get("id") or _next_tool_id(t["name"])
        content.append(_Block(type="tool_use", id=tid, name=t["name"], input=t["input"]))
        events.append(_StreamEvent(
            "content_block_start",
            content_block=_Block(type="tool_use", id=tid, name=t["name"], input={}),
        ))
    return _Stream(events, _Message(content, stop_reason, tokens))


def slow_text_response(text, chunks=5, delay=0.05):
    """Text streamed in several delayed deltas, for cancellation tests."""
    events = [_StreamEvent("content_block_start", content_block=_Block(type="text", text=""))]
    events.extend(
        _StreamEvent("content_block_delta", delta=_Delta("text_delta", text=f"{text}{i} "))
        for i in range(chunks)
    )
    return _Stream(events, _Message([_Block(type="text", text=text)]), event_delay=delay)
