"""Boundary Protocols — contracts between core and shell.

Invariants:
    - Core NEVER imports from shell — dependency arrows point inward only
    - The casting engine sees the model, transcript storage and tool clients
      only through these Protocols
    - Implementations provided by shell via dependency injection

Design Decisions:
    - Protocol over ABC: structural subtyping, test fakes need no inheritance
"""

from contextlib import AbstractAsyncContextManager
from typing import Any, Protocol

from backstage.core.messages import Message


class ModelClient(Protocol):
    """Streaming model adapter (ResilientAnthropicClient in production)."""
    def stream_message(self, **kwargs: Any) -> AbstractAsyncContextManager: ...


class TranscriptBridge(Protocol):
    """Persists the merged transcript once per run."""
    async def save_transcript(
        self,
        conversation_id: str,
        user_id: str | None,
        messages: list[Message],
        model_key: str | None = None,
    ) -> bool: ...

    async def load_transcript(self, conversation_id: str) -> list[Message]: ...


class KnowledgeRepository(Protocol):
    """Per-user text snippets backing the knowledge tools."""
    async def add_text(self, user_id: str | None, text: str) -> dict: ...
    async def search(self, user_id: str | None, query: str, limit: int = 5) -> list[dict]: ...


class RemoteShell(Protocol):
    """What terminal tool handlers need from a user's remote session."""
    async def initialize(self, credentials: dict) -> dict: ...
    async def execute(self, command: str) -> dict: ...
    async def read_file(self, path: str) -> str: ...
    async def edit_file(self, path: str, content: str) -> dict: ...
    async def disconnect(self) -> bool: ...
    def status(self) -> dict: ...
    def command_log(self) -> list[dict]: ...


class BrowserSession(Protocol):
    """An MCP-backed browser driver scoped to one run."""
    async def list_tools(self) -> list[dict]: ...
    async def call_tool(self, name: str, arguments: dict) -> Any: ...
    async def close(self) -> None: ...
