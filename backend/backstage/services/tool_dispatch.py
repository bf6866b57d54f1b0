"""Tool Dispatch — explicit routing from tool_name to handler, settling each invocation.

Invariants:
    - Every mapping is visible in the resolved handler dict — no getattr magic
    - execute() never raises for tool failures: the invocation is settled
      `error` with a human-readable message and the run continues
    - Unknown tools settle `error` ("Tool 'x' is not available in this run")
    - Exceptions outside the BackstageError hierarchy are wrapped in
      ToolExecutionError before settling
    - CancelledError is not caught; cancellation belongs to the run

Design Decisions:
    - ToolHandler carries its own Anthropic schema so the dispatch table and the
      `tools` request parameter can never drift apart
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Mapping

from backstage.core.errors import BackstageError, ToolExecutionError
from backstage.core.messages import ToolInvocation

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ToolHandler:
    name: str
    description: str
    input_schema: dict
    execute: Callable[[dict], Awaitable[Any]]
    group: str | None = field(default=None, compare=False)

    def schema(self) -> dict:
        return {
            "name": self.name,
            "description": self.description,
            "input_schema": self.input_schema,
        }


class ToolDispatch:
    """Routes tool_name -> ToolHandler for one run."""

    def __init__(self, handlers: Mapping[str, ToolHandler]):
        self._handlers = dict(handlers)

    @property
    def names(self) -> list[str]:
        return list(self._handlers)

    def schemas(self) -> list[dict]:
        return [h.schema() for h in self._handlers.values()]

    async def execute(self, invocation: ToolInvocation, step: int | None = None) -> ToolInvocation:
        """Run the handler and settle the invocation in place."""
        name = invocation.tool_name
        log_extra = {
            "tool_name": name, "tool_call_id": invocation.tool_call_id, "step": step,
        }
        handler = self._handlers.get(name)
        if handler is None:
            logger.warning(f"Model requested unavailable tool '{name}'", extra=log_extra)
            invocation.fail(f"Tool '{name}' is not available in this run")
            return invocation
        try:
            result = await self._call(handler, invocation.args or {}, log_extra)
        except BackstageError as e:
            logger.warning(
                f"Tool error: {e.message}",
                extra={**log_extra, "error_code": e.code},
            )
            invocation.fail(e.message)
        else:
            invocation.resolve(result)
        return invocation

    async def _call(self, handler: ToolHandler, args: dict, log_extra: dict) -> Any:
        """Run one handler; anything outside the domain hierarchy becomes ToolExecutionError."""
        try:
            return await handler.execute(args)
        except BackstageError:
            raise
        except Exception as e:
            logger.error(
                f"Unexpected error in tool '{handler.name}': {e}",
                extra=log_extra, exc_info=True,
            )
            raise ToolExecutionError(handler.name, f"Tool '{handler.name}' failed: {e}") from e
