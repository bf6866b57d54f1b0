"""Tool Client Lifecycle — per-run arena for long-lived tool clients.

Invariants:
    - At most one client per ClientKind per run; concurrent acquires of the same
      kind share one start (per-kind lock)
    - A start failure raises ToolUnavailableError and leaves nothing acquired
    - release_all() stops every started client exactly once, in reverse start
      order; stop failures are logged and never propagated
    - After release_all(), acquire() refuses and further release_all() calls are no-ops

Design Decisions:
    - Capability-keyed factory registry ({ClientKind: ClientFactory}) over
      per-tool hardcoded setup: adding a client kind means registering one factory
    - The arena is created per request and handed to the casting engine, whose
      finalize hook owns the single release_all() call
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Mapping

from backstage.config import Settings
from backstage.core.domain_types import ClientKind
from backstage.core.errors import ToolUnavailableError
from backstage.infrastructure.mcp_client import BrowserMCPClient
from backstage.services.props_manager import PropsManager

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ClientContext:
    user_id: str | None = None
    conversation_id: str | None = None


@dataclass(frozen=True)
class ClientFactory:
    kind: ClientKind
    start: Callable[[ClientContext], Awaitable[Any]]
    stop: Callable[[Any], Awaitable[None]]


class ToolClientLifecycle:
    """Starts clients on demand for one run and releases them all at the end."""

    def __init__(
        self,
        factories: Mapping[ClientKind, ClientFactory],
        context: ClientContext | None = None,
    ):
        self._factories = dict(factories)
        self._context = context or ClientContext()
        self._clients: dict[ClientKind, Any] = {}
        self._order: list[ClientKind] = []
        self._locks: dict[ClientKind, asyncio.Lock] = {}
        self._released = False

    @property
    def context(self) -> ClientContext:
        return self._context

    @property
    def released(self) -> bool:
        return self._released

    @property
    def acquired_kinds(self) -> list[ClientKind]:
        return list(self._order)

    async def acquire(self, kind: ClientKind) -> Any:
        if self._released:
            raise ToolUnavailableError(kind.value, "run already finished")
        lock = self._locks.setdefault(kind, asyncio.Lock())
        async with lock:
            if kind in self._clients:
                return self._clients[kind]
            factory = self._factories.get(kind)
            if factory is None:
                raise ToolUnavailableError(kind.value, "no client factory registered")
            try:
                client = await factory.start(self._context)
            except Exception as e:
                logger.error(
                    f"Failed to start {kind.value} client: {e}",
                    extra={"client_kind": kind.value, "user_id": self._context.user_id},
                )
                raise ToolUnavailableError(kind.value, str(e)) from e
            if self._released:
                await self._stop(kind, client)
                raise ToolUnavailableError(kind.value, "run finished while starting")
            self._clients[kind] = client
            self._order.append(kind)
            logger.info(
                f"Started {kind.value} client",
                extra={"client_kind": kind.value, "user_id": self._context.user_id},
            )
            return client

    async def release_all(self) -> None:
        if self._released:
            return
        self._released = True
        for kind in reversed(self._order):
            await self._stop(kind, self._clients.pop(kind))

    async def _stop(self, kind: ClientKind, client: Any) -> None:
        try:
            await self._factories[kind].stop(client)
        except Exception as e:
            logger.error(
                f"Failed to release {kind.value} client: {e}",
                extra={"client_kind": kind.value, "user_id": self._context.user_id},
                exc_info=True,
            )


def build_client_factories(
    settings: Settings, props: PropsManager,
) -> dict[ClientKind, ClientFactory]:
    """Production factories: a Props capability and a stdio MCP browser."""

    async def start_remote_shell(ctx: ClientContext):
        if not ctx.user_id:
            raise ValueError("remote shell requires an authenticated user")
        return props.capability(ctx.user_id)

    async def start_browser(ctx: ClientContext):
        client = BrowserMCPClient(
            settings.browser_mcp_command,
            settings.browser_mcp_args,
            start_timeout=settings.browser_mcp_start_timeout_seconds,
        )
        return await client.start()

    async def stop_client(client) -> None:
        await client.close()

    return {
        ClientKind.REMOTE_SHELL: ClientFactory(
            ClientKind.REMOTE_SHELL, start_remote_shell, stop_client,
        ),
        ClientKind.BROWSER: ClientFactory(
            ClientKind.BROWSER, start_browser, stop_client,
        ),
    }
