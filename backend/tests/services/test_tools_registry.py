"""Tools Registry — tests for resolving selected keys into run handlers.

Tests cover:
    - Group keys, their aliases and individual tool names
    - Unknown keys ignored
    - remote_shell without a user → AuthError before any client starts
    - Browser handlers come from the MCP server's tool list
    - A failed MCP call surfaces as ToolExecutionError
    - Casting engine releases started clients when resolution fails
"""

import pytest

from backstage.core.domain_types import ClientKind
from backstage.core.errors import AuthError, ToolExecutionError, ToolUnavailableError
from backstage.infrastructure.mcp_client import MCPClientError
from backstage.services.casting_engine import CastingEngine
from backstage.services.define_terminal_tools import TOOLS_TERMINAL
from backstage.services.tools_registry import ToolRegistry, select_groups

from tests.services.mock_anthropic import MockAnthropicClient


class _FakeBrowser:
    def __init__(self, ctx):
        self.calls = []

    async def list_tools(self):
        return [
            {"name": "browser_navigate", "description": "Open a URL",
             "input_schema": {"type": "object", "properties": {"url": {"type": "string"}}}},
            {"name": "browser_snapshot", "description": "Page snapshot", "input_schema": None},
        ]

    async def call_tool(self, name, arguments):
        self.calls.append((name, arguments))
        return {"content": [{"type": "text", "text": f"{name} ok"}]}


class _BrokenBrowser(_FakeBrowser):
    async def call_tool(self, name, arguments):
        raise MCPClientError("Element not found")


class _FakeKnowledge:
    async def add_text(self, user_id, text):
        return {"id": "k1"}

    async def search(self, user_id, query, limit=5):
        return []


def test_select_groups_mixes_groups_and_names():
    groups = select_groups(["knowledge", "terminal_execute_command", "terminal_read_file"])

    assert groups == {
        "knowledge": None,
        "remote_shell": {"terminal_execute_command", "terminal_read_file"},
    }


def test_select_groups_whole_group_wins_over_names():
    groups = select_groups(["remote_shell", "terminal_execute_command"])

    assert groups == {"remote_shell": None}


def test_select_groups_accepts_group_aliases():
    assert select_groups(["remoteShell"]) == {"remote_shell": None}
    assert select_groups(["terminal", "terminal_read_file"]) == {"remote_shell": None}


def test_select_groups_ignores_unknown_keys():
    assert select_groups(["teleporter", ""]) == {}


async def test_resolve_remote_shell_group(make_lifecycle, client_spy):
    registry = ToolRegistry(make_lifecycle())

    tools = await registry.resolve(["remote_shell"])

    assert set(tools) == {t["name"] for t in TOOLS_TERMINAL}
    assert all(h.group == "remote_shell" for h in tools.values())
    assert client_spy.started == [ClientKind.REMOTE_SHELL]


async def test_resolve_single_tool_name(make_lifecycle):
    registry = ToolRegistry(make_lifecycle())

    tools = await registry.resolve(["terminal_execute_command"])

    assert list(tools) == ["terminal_execute_command"]


async def test_resolve_remote_shell_without_user_raises_auth(make_lifecycle, client_spy):
    registry = ToolRegistry(make_lifecycle(user_id=None))

    with pytest.raises(AuthError):
        await registry.resolve(["browser", "remote_shell"])

    assert client_spy.started == []


async def test_resolve_browser_uses_server_tool_list(make_lifecycle, client_spy):
    registry = ToolRegistry(make_lifecycle(makers={ClientKind.BROWSER: _FakeBrowser}))

    tools = await registry.resolve(["browser"])
    result = await tools["browser_navigate"].execute({"url": "https://example.com"})

    assert set(tools) == {"browser_navigate", "browser_snapshot"}
    assert tools["browser_snapshot"].input_schema == {"type": "object", "properties": {}}
    assert client_spy.clients[ClientKind.BROWSER].calls == [
        ("browser_navigate", {"url": "https://example.com"}),
    ]
    assert result["content"][0]["text"] == "browser_navigate ok"


async def test_browser_call_failure_is_tool_execution_error(make_lifecycle):
    registry = ToolRegistry(make_lifecycle(makers={ClientKind.BROWSER: _BrokenBrowser}))
    tools = await registry.resolve(["browser"])

    with pytest.raises(ToolExecutionError) as exc_info:
        await tools["browser_navigate"].execute({"url": "https://example.com"})

    assert exc_info.value.message == "Element not found"
    assert exc_info.value.context.tool_name == "browser_navigate"


async def test_resolve_knowledge_needs_no_client(make_lifecycle, client_spy):
    registry = ToolRegistry(make_lifecycle(), knowledge=_FakeKnowledge())

    tools = await registry.resolve(["knowledge"])

    assert set(tools) == {"add_knowledge", "lookup_knowledge"}
    assert client_spy.started == []


async def test_resolve_knowledge_without_store_is_empty(make_lifecycle):
    registry = ToolRegistry(make_lifecycle())

    assert await registry.resolve(["knowledge"]) == {}


async def test_engine_resolution_failure_releases_started_clients(make_lifecycle, client_spy):
    client_spy.fail_start[ClientKind.BROWSER] = OSError("spawn failed")
    lifecycle = make_lifecycle()
    client = MockAnthropicClient([])
    engine = CastingEngine(client, ToolRegistry(lifecycle), lifecycle)

    with pytest.raises(ToolUnavailableError):
        await engine.resolve_tools(["remote_shell", "browser"])

    assert client_spy.stop_count(ClientKind.REMOTE_SHELL) == 1
    assert lifecycle.released
    assert engine.model_calls == 0
    assert client.calls == []
