"""Tools Registry — resolves selected tool keys into the handler set for one run.

Invariants:
    - Keys are catalog group keys (remote_shell, browser, knowledge), their aliases
      (remoteShell, terminal), or individual tool names inside a static-schema
      group (e.g. terminal_execute_command)
    - Unknown keys are logged and ignored
    - Authorization is checked for every selected group before any client starts:
      remote_shell without a user raises AuthError
    - Session-backed groups obtain their client through the lifecycle, so start
      failures surface as ToolUnavailableError

Design Decisions:
    - Explicit name -> method maps per group: adding a tool means editing the
      schema list AND the map, and a mismatch fails loudly at resolution
"""

import logging

from backstage.core.catalog import get_tool
from backstage.core.domain_types import ClientKind
from backstage.core.errors import AuthError
from backstage.core.repository_protocols import KnowledgeRepository
from backstage.services.define_knowledge_tools import TOOLS_KNOWLEDGE
from backstage.services.define_terminal_tools import TOOLS_TERMINAL
from backstage.services.handle_browser import browser_handlers
from backstage.services.handle_knowledge import KnowledgeHandlers
from backstage.services.handle_terminal import TerminalHandlers
from backstage.services.tool_clients import ToolClientLifecycle
from backstage.services.tool_dispatch import ToolHandler

logger = logging.getLogger(__name__)

REMOTE_SHELL = "remote_shell"
BROWSER = "browser"
KNOWLEDGE = "knowledge"

# Individual tool name -> owning group, for groups with static schemas
_GROUP_OF_TOOL = {
    **{t["name"]: REMOTE_SHELL for t in TOOLS_TERMINAL},
    **{t["name"]: KNOWLEDGE for t in TOOLS_KNOWLEDGE},
}


def _terminal_methods(h: TerminalHandlers) -> dict:
    return {
        "terminal_initialize_ssh": h.initialize_ssh,
        "terminal_execute_command": h.execute_command,
        "terminal_read_file": h.read_file,
        "terminal_edit_file": h.edit_file,
        "terminal_disconnect_ssh": h.disconnect_ssh,
        "terminal_read_command_log": h.read_command_log,
        "terminal_launch_dev_server": h.launch_dev_server,
        "terminal_check_dev_server": h.check_dev_server,
    }


def _knowledge_methods(h: KnowledgeHandlers) -> dict:
    return {
        "add_knowledge": h.add_knowledge,
        "lookup_knowledge": h.lookup_knowledge,
    }


def bind_handlers(schemas: list[dict], methods: dict, group: str) -> dict[str, ToolHandler]:
    missing = [s["name"] for s in schemas if s["name"] not in methods]
    if missing:
        raise KeyError(f"No handler bound for tools: {', '.join(missing)}")
    return {
        s["name"]: ToolHandler(
            name=s["name"],
            description=s["description"],
            input_schema=s["input_schema"],
            execute=methods[s["name"]],
            group=group,
        )
        for s in schemas
    }


def select_groups(selected_keys: list[str]) -> dict[str, set[str] | None]:
    """Group -> None (whole group) or the subset of tool names selected."""
    groups: dict[str, set[str] | None] = {}
    for key in selected_keys or []:
        descriptor = get_tool(key)
        if descriptor is not None:
            groups[descriptor.key] = None
            continue
        group = _GROUP_OF_TOOL.get(key)
        if group is None:
            logger.warning(f"Ignoring unknown tool key '{key}'")
            continue
        if group in groups and groups[group] is None:
            continue
        groups.setdefault(group, set()).add(key)
    return groups


class ToolRegistry:
    def __init__(
        self,
        lifecycle: ToolClientLifecycle,
        knowledge: KnowledgeRepository | None = None,
    ):
        self.lifecycle = lifecycle
        self.knowledge = knowledge

    @property
    def user_id(self) -> str | None:
        return self.lifecycle.context.user_id

    async def resolve(self, selected_keys: list[str]) -> dict[str, ToolHandler]:
        groups = select_groups(selected_keys)
        if REMOTE_SHELL in groups and not self.user_id:
            raise AuthError("Authentication required for remote shell tools.")

        handlers: dict[str, ToolHandler] = {}
        for group, names in groups.items():
            group_handlers = await self._group_handlers(group)
            if names is not None:
                group_handlers = {n: h for n, h in group_handlers.items() if n in names}
            handlers.update(group_handlers)
        return handlers

    async def _group_handlers(self, group: str) -> dict[str, ToolHandler]:
        if group == REMOTE_SHELL:
            shell = await self.lifecycle.acquire(ClientKind.REMOTE_SHELL)
            return bind_handlers(
                TOOLS_TERMINAL, _terminal_methods(TerminalHandlers(shell)), group,
            )
        if group == BROWSER:
            client = await self.lifecycle.acquire(ClientKind.BROWSER)
            return await browser_handlers(client, group)
        if group == KNOWLEDGE:
            if self.knowledge is None:
                logger.warning("Knowledge tools selected but no store is configured")
                return {}
            handlers = KnowledgeHandlers(self.knowledge, self.user_id)
            return bind_handlers(TOOLS_KNOWLEDGE, _knowledge_methods(handlers), group)
        logger.warning(f"Tool group '{group}' has no handlers")
        return {}
