"""Casting Engine — bounded multi-step tool-calling run with streaming SSE delivery.

Invariants:
    - At most step_limit model calls per run; exhausting the bound stops with
      step_limit_reached, never an error
    - Tool resolution happens before any model call; a resolution failure releases
      every client started so far and the run never begins
    - Every tool invocation of a step is settled (result | error) before the next
      model call; tool failures never abort the run
    - A model-call failure aborts the run with stop reason `errored`
    - The finalize hook (merge, persist, release_all) runs exactly once per run,
      whether the run is done, truncated, errored, cancelled or abandoned by the caller
    - Persistence failures are logged and never re-fail a finished run

Design Decisions:
    - Async generator of event dicts: the route turns them into SSE lines, tests
      iterate them directly
    - get_final_message() builds the assistant message after streaming
    - Tool calls of one step run concurrently (asyncio.gather); each settles its
      own invocation
    - Finalize runs shielded in its own task: an HTTP disconnect cancels the
      streaming task repeatedly, and the transcript must still be saved
    - Cooperative cancel(): checked at step boundaries and between stream events
"""

import asyncio
import logging
from contextlib import aclosing
from dataclasses import dataclass, field

from backstage.core.catalog import ModelDescriptor
from backstage.core.domain_types import StopReason
from backstage.core.errors import BackstageError, ErrorContext, ModelCallError
from backstage.core.format_messages import (
    assistant_message_from_response, to_anthropic_messages,
)
from backstage.core.messages import Message, tool_message
from backstage.core.repository_protocols import ModelClient, TranscriptBridge
from backstage.core.transcript_merge import merge_transcript
from backstage.services.casting_helpers import (
    done_event, process_stream_event, run_result_event, step_start_event,
    tool_outcome_event, unexpected_error_event,
)
from backstage.services.tool_clients import ToolClientLifecycle
from backstage.services.tool_dispatch import ToolDispatch, ToolHandler
from backstage.services.tools_registry import ToolRegistry

logger = logging.getLogger(__name__)


@dataclass
class CastRequest:
    model: ModelDescriptor
    tools: dict[str, ToolHandler]
    system_prompt: str
    messages: list[Message]
    step_limit: int = 20
    conversation_id: str | None = None
    user_id: str | None = None
    max_tokens: int | None = None


@dataclass
class RunResult:
    final_messages: list[Message]
    stop_reason: StopReason
    error: BackstageError | None = None
    produced: list[Message] = field(default_factory=list)
    steps: int = 0
    persisted: bool = False

    def to_wire(self) -> dict:
        return {
            "stopReason": self.stop_reason.value,
            "steps": self.steps,
            "persisted": self.persisted,
            "error": self.error.code if self.error else None,
            "messages": [m.to_wire() for m in self.produced],
        }


class CastingEngine:
    """One engine per run: resolve_tools(), then iterate run()."""

    def __init__(
        self,
        model_client: ModelClient,
        registry: ToolRegistry,
        lifecycle: ToolClientLifecycle,
        transcript_store: TranscriptBridge | None = None,
    ):
        self.client = model_client
        self.registry = registry
        self.lifecycle = lifecycle
        self.transcript_store = transcript_store
        self.model_calls = 0
        self.result: RunResult | None = None
        self._cancel = asyncio.Event()
        self._finalize_task: asyncio.Task | None = None
        self._last_response = None

    def cancel(self) -> None:
        self._cancel.set()

    @property
    def cancelled(self) -> bool:
        return self._cancel.is_set()

    async def resolve_tools(self, selected_keys: list[str]) -> dict[str, ToolHandler]:
        resolved = False
        try:
            tools = await self.registry.resolve(selected_keys)
            resolved = True
            return tools
        finally:
            if not resolved:
                await self.lifecycle.release_all()

    async def run(self, request: CastRequest):
        """Async generator yielding SSE event dicts."""
        ctx = ErrorContext(
            user_id=request.user_id, conversation_id=request.conversation_id,
        )
        log_extra = {"conversation_id": request.conversation_id, "user_id": request.user_id}
        dispatch = ToolDispatch(request.tools)
        produced: list[Message] = []
        stop_reason = StopReason.ERRORED
        error: BackstageError | None = None
        steps = 0

        try:
            stop_reason = StopReason.STEP_LIMIT_REACHED
            for step in range(1, request.step_limit + 1):
                if self.cancelled:
                    stop_reason = StopReason.CANCELLED
                    break
                steps = step
                ctx.step = step
                yield step_start_event(step)

                async with aclosing(
                    self._stream_step(request, produced, dispatch, ctx),
                ) as stream_events:
                    async for sse in stream_events:
                        yield sse
                response = self._last_response
                if response is None:
                    stop_reason = StopReason.CANCELLED
                    break

                assistant = assistant_message_from_response(response)
                produced.append(assistant)
                invocations = assistant.tool_invocations()
                if not invocations:
                    stop_reason = StopReason.DONE
                    break

                await asyncio.gather(*(
                    dispatch.execute(inv, step) for inv in invocations
                ))
                for inv in invocations:
                    yield tool_outcome_event(inv)
                produced.append(tool_message(invocations))

        except ModelCallError as e:
            logger.error(f"Model call failed: {e.message}", extra={**log_extra, "step": steps})
            stop_reason = StopReason.ERRORED
            error = e
            yield e.to_sse_event()
        except (asyncio.CancelledError, GeneratorExit):
            logger.info("Run aborted by caller", extra=log_extra)
            stop_reason = StopReason.CANCELLED
            raise
        except Exception as e:
            logger.error(f"Unexpected error in casting run: {e}", extra=log_extra, exc_info=True)
            stop_reason = StopReason.ERRORED
            yield unexpected_error_event()
        finally:
            if self._finalize_task is None:
                self._finalize_task = asyncio.ensure_future(
                    self._finalize(request, produced, stop_reason, error, steps),
                )
            await asyncio.shield(self._finalize_task)

        yield run_result_event(self.result)
        yield done_event(stop_reason, error=stop_reason == StopReason.ERRORED)

    async def _stream_step(self, request, produced, dispatch, ctx):
        """Yields text/tool_call events; sets self._last_response (None if cancelled)."""
        self._last_response = None
        text_lstrip = True
        self.model_calls += 1
        async with self.client.stream_message(
            model=request.model.key,
            max_tokens=request.max_tokens or request.model.max_tokens,
            system=request.system_prompt,
            tools=dispatch.schemas(),
            messages=to_anthropic_messages(request.messages + produced),
            context=ctx,
        ) as stream:
            async for event in stream:
                if self.cancelled:
                    return
                sse, text_lstrip = process_stream_event(event, text_lstrip)
                if sse:
                    yield sse
            response = await stream.get_final_message()

        usage = getattr(response, "usage", None)
        if usage is not None:
            logger.info(
                "Step completed",
                extra={
                    "step": ctx.step,
                    "conversation_id": ctx.conversation_id,
                    "input_tokens": usage.input_tokens,
                    "output_tokens": usage.output_tokens,
                    "stop_reason": getattr(response, "stop_reason", None),
                },
            )
        self._last_response = response

    async def _finalize(
        self,
        request: CastRequest,
        produced: list[Message],
        stop_reason: StopReason,
        error: BackstageError | None,
        steps: int,
    ) -> RunResult:
        """Merge, persist, release. Never raises."""
        persisted = False
        final = merge_transcript(request.messages, produced, request.conversation_id)
        try:
            if request.conversation_id and produced and self.transcript_store:
                persisted = await self.transcript_store.save_transcript(
                    request.conversation_id, request.user_id, final, request.model.key,
                )
        except Exception as e:
            logger.error(
                f"Failed to save transcript: {e}",
                extra={"conversation_id": request.conversation_id},
            )
        finally:
            await self.lifecycle.release_all()

        self.result = RunResult(
            final_messages=final,
            stop_reason=stop_reason,
            error=error,
            produced=list(produced),
            steps=steps,
            persisted=persisted,
        )
        logger.info(
            f"Run finished after {steps} steps",
            extra={
                "conversation_id": request.conversation_id,
                "user_id": request.user_id,
                "stop_reason": stop_reason.value,
            },
        )
        return self.result
