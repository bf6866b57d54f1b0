"""Agent System Prompt — behavioral contract for a casting run.

Invariants:
    - Only tools actually resolved for this run are listed
    - The caller's customInfo is appended verbatim, after everything else
    - Sections are XML-tagged for reliable parsing

Design Decisions:
    - Tool groups are described by group, then each tool name is listed, so the
      model can tell "not selected" apart from "failed"
"""

from backstage.services.tool_dispatch import ToolHandler

IDENTITY = """<identity>
You are a multi-purpose agent that works with browsers, remote terminals and
project files through tools. You are concise, action-oriented, and use your
tools effectively.
</identity>"""

PRINCIPLES = """<principles>
1. Accomplish the request in the most efficient way possible. Do not keep
   calling tools after an error without the user's permission.
2. You can only use the tools listed under <available_tools>. If a request
   needs a tool you do not have, say so.
3. If you hit a critical error (lost SSH connection, unexpected tool output),
   stop and report it clearly.
4. After each successful tool call, report the result briefly.
</principles>"""

_GROUP_NOTES = {
    "remote_shell": (
        "Terminal tools run on a remote server over SSH. Call "
        "terminal_initialize_ssh first if no session is active."
    ),
    "browser": "Browser tools control a headless browser page.",
    "knowledge": "Knowledge tools store and look up the user's saved notes.",
}


def build_system_prompt(custom_info: str | None, tools: dict[str, ToolHandler]) -> str:
    sections = [IDENTITY, PRINCIPLES, _tools_section(tools)]
    if custom_info and custom_info.strip():
        sections.append(custom_info)
    return "\n\n".join(sections)


def _tools_section(tools: dict[str, ToolHandler]) -> str:
    if not tools:
        return "<available_tools>\nNo tools are available in this session.\n</available_tools>"
    by_group: dict[str, list[str]] = {}
    for name, handler in tools.items():
        by_group.setdefault(handler.group or "other", []).append(name)
    lines = ["<available_tools>"]
    for group, names in by_group.items():
        note = _GROUP_NOTES.get(group)
        lines.append(f"[{group}]" + (f" {note}" if note else ""))
        lines.extend(f"- {n}" for n in names)
    lines.append("</available_tools>")
    return "\n".join(lines)
