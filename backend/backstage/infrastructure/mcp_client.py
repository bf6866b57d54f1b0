"""Browser MCP Client — stdio MCP session to a browser-automation server.

Invariants:
    - start() returns only after the MCP handshake and initial tools/list succeed,
      or raises MCPClientError
    - close() is idempotent and always terminates the server subprocess
    - call_tool() after close() raises MCPClientError

Design Decisions:
    - The stdio_client / ClientSession context lives in one dedicated task:
      anyio cancel scopes must be exited by the task that entered them, and a
      run starts the client in the request task but closes it from the
      streaming task
    - structuredContent is preferred over raw content blocks when the server
      provides it
"""

import asyncio
import logging
from typing import Any

from mcp import ClientSession, StdioServerParameters
from mcp.client.stdio import stdio_client

logger = logging.getLogger(__name__)


class MCPClientError(Exception):
    """MCP server could not be started or a call failed at the protocol level."""


class BrowserMCPClient:
    def __init__(
        self,
        command: str,
        args: list[str] | None = None,
        env: dict[str, str] | None = None,
        start_timeout: float = 60,
    ):
        self.command = command
        self.args = list(args or [])
        self.env = env
        self.start_timeout = start_timeout
        self._session: ClientSession | None = None
        self._tools: list[dict] = []
        self._ready = asyncio.Event()
        self._stop = asyncio.Event()
        self._runner: asyncio.Task | None = None
        self._startup_error: BaseException | None = None
        self._closed = False

    async def start(self) -> "BrowserMCPClient":
        self._runner = asyncio.create_task(self._serve(), name="browser-mcp")
        try:
            await asyncio.wait_for(self._ready.wait(), timeout=self.start_timeout)
        except asyncio.TimeoutError:
            await self.close()
            raise MCPClientError(
                f"MCP server '{self.command}' did not start within {self.start_timeout}s",
            )
        if self._startup_error is not None:
            await self.close()
            raise MCPClientError(
                f"MCP server '{self.command}' failed to start: {self._startup_error}",
            ) from self._startup_error
        logger.info(f"Browser MCP client started with {len(self._tools)} tools")
        return self

    async def list_tools(self) -> list[dict]:
        return list(self._tools)

    async def call_tool(self, name: str, arguments: dict) -> Any:
        if self._closed or self._session is None:
            raise MCPClientError("Browser client is closed")
        result = await self._session.call_tool(name, arguments or {})
        if getattr(result, "isError", False):
            raise MCPClientError(_content_text(result) or f"Browser tool '{name}' failed")
        structured = getattr(result, "structuredContent", None)
        if structured is not None:
            return structured
        return {"content": _content_blocks(result)}

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._stop.set()
        if self._runner is not None:
            try:
                await asyncio.wait_for(self._runner, timeout=10)
            except asyncio.TimeoutError:
                self._runner.cancel()
                logger.warning("Browser MCP client did not stop in time; cancelled")
        self._session = None

    async def _serve(self) -> None:
        params = StdioServerParameters(
            command=self.command, args=self.args, env=self.env,
        )
        try:
            async with stdio_client(params) as (read, write):
                async with ClientSession(read, write) as session:
                    await session.initialize()
                    listed = await session.list_tools()
                    self._tools = [_tool_schema(t) for t in listed.tools or []]
                    self._session = session
                    self._ready.set()
                    await self._stop.wait()
        except Exception as e:
            logger.error(f"Browser MCP session ended with error: {e}")
            self._startup_error = e
        finally:
            self._session = None
            self._ready.set()


def _tool_schema(tool: Any) -> dict:
    schema = getattr(tool, "inputSchema", None) or {"type": "object", "properties": {}}
    if hasattr(schema, "model_dump"):
        schema = schema.model_dump()
    return {
        "name": str(tool.name),
        "description": str(getattr(tool, "description", None) or ""),
        "input_schema": schema if isinstance(schema, dict) else {"type": "object"},
    }


def _content_blocks(result: Any) -> list[dict]:
    return [
        {"type": getattr(b, "type", None), "text": getattr(b, "text", None)}
        for b in getattr(result, "content", None) or []
    ]


def _content_text(result: Any) -> str:
    return "\n".join(b["text"] for b in _content_blocks(result) if b["text"])
