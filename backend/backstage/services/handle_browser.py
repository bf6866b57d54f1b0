"""Browser Handlers — one ToolHandler per tool reported by the MCP browser server.

Invariants:
    - Tool names and schemas come from the server's tools/list at client start
    - Each handler forwards its arguments unchanged to call_tool
    - A failed MCP call surfaces as ToolExecutionError carrying the server's text
"""

from backstage.core.errors import ToolExecutionError
from backstage.core.repository_protocols import BrowserSession
from backstage.infrastructure.mcp_client import MCPClientError
from backstage.services.tool_dispatch import ToolHandler


async def browser_handlers(client: BrowserSession, group: str = "browser") -> dict[str, ToolHandler]:
    tools = await client.list_tools()
    return {
        t["name"]: ToolHandler(
            name=t["name"],
            description=t.get("description", ""),
            input_schema=t.get("input_schema") or {"type": "object", "properties": {}},
            execute=_forward(client, t["name"]),
            group=group,
        )
        for t in tools
    }


def _forward(client: BrowserSession, name: str):
    async def call(args: dict):
        try:
            return await client.call_tool(name, args)
        except MCPClientError as e:
            raise ToolExecutionError(name, str(e)) from e
    return call
