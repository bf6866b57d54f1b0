"""Catalog — static registry of selectable models and tool groups.

Invariants:
    - Descriptors are frozen and loaded once at import; lookups never mutate
    - Model keys are unique; tool keys and their aliases are unique
    - get_tool() accepts an alias and returns the canonical descriptor
    - Session-backed tool groups always name the ClientKind they depend on

Design Decisions:
    - Tuples of frozen dataclasses over a config file: the catalog ships with the code
    - Non-Claude models are reached through an Anthropic-compatible proxy
      (settings.model_proxy_base_url), so every descriptor uses the same provider adapter
"""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Mapping

from backstage.core.domain_types import ClientKind, ToolKind


@dataclass(frozen=True)
class ModelDescriptor:
    key: str
    display_name: str
    provider_config: Mapping[str, Any] = field(default_factory=dict)

    @property
    def max_tokens(self) -> int:
        return int(self.provider_config.get("max_tokens", 8192))

    @property
    def proxied(self) -> bool:
        return bool(self.provider_config.get("proxied", False))


@dataclass(frozen=True)
class ToolDescriptor:
    key: str
    label: str
    kind: ToolKind
    client_kind: ClientKind | None = None
    capability_schema: Mapping[str, Any] = field(default_factory=dict)
    aliases: tuple[str, ...] = ()


def _anthropic(max_tokens: int = 8192, proxied: bool = False) -> Mapping[str, Any]:
    return MappingProxyType({
        "provider": "anthropic",
        "max_tokens": max_tokens,
        "proxied": proxied,
    })


MODELS: tuple[ModelDescriptor, ...] = (
    ModelDescriptor("claude-3-5-sonnet-latest", "Claude 3.5 Sonnet", _anthropic()),
    ModelDescriptor("claude-3-7-sonnet-20250219", "Claude 3.7 Sonnet", _anthropic(16384)),
    ModelDescriptor("claude-sonnet-4-20250514", "Claude Sonnet 4", _anthropic(16384)),
    ModelDescriptor("gpt-4.1", "GPT-4.1 (proxy)", _anthropic(proxied=True)),
    ModelDescriptor("gpt-4.1-nano", "GPT-4.1 nano (proxy)", _anthropic(proxied=True)),
    ModelDescriptor("o3", "o3 (proxy)", _anthropic(proxied=True)),
    ModelDescriptor("grok-3-latest", "Grok 3 (proxy)", _anthropic(proxied=True)),
    ModelDescriptor("gemini-2.5-pro-preview-03-25", "Gemini 2.5 Pro (proxy)", _anthropic(proxied=True)),
)

TOOLS: tuple[ToolDescriptor, ...] = (
    ToolDescriptor(
        "remote_shell", "Terminal Commands", ToolKind.SESSION_BACKED,
        ClientKind.REMOTE_SHELL,
        MappingProxyType({"actions": ("initialize", "execute", "readFile", "editFile", "disconnect")}),
        aliases=("remoteShell", "terminal"),
    ),
    ToolDescriptor(
        "browser", "Browser Control", ToolKind.SESSION_BACKED,
        ClientKind.BROWSER,
        MappingProxyType({"transport": "mcp-stdio"}),
    ),
    ToolDescriptor(
        "knowledge", "Knowledge Base", ToolKind.STATIC,
        None,
        MappingProxyType({"operations": ("add", "lookup")}),
    ),
)

_MODELS_BY_KEY = MappingProxyType({m.key: m for m in MODELS})
_TOOLS_BY_KEY = MappingProxyType({
    **{alias: t for t in TOOLS for alias in t.aliases},
    **{t.key: t for t in TOOLS},
})


def get_model(key: str | None) -> ModelDescriptor | None:
    if not key:
        return None
    return _MODELS_BY_KEY.get(key)


def get_tool(key: str | None) -> ToolDescriptor | None:
    if not key:
        return None
    return _TOOLS_BY_KEY.get(key)


def model_options() -> list[dict]:
    return [{"key": m.key, "label": m.display_name} for m in MODELS]


def tool_options() -> list[dict]:
    return [
        {"key": t.key, "label": t.label, "kind": t.kind.value}
        for t in TOOLS
    ]


def catalog_snapshot() -> dict:
    """Catalog Resolver contract: {models: [...], tools: [...]}."""
    return {"models": model_options(), "tools": tool_options()}
