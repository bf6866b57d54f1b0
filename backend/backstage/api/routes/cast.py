"""Cast Route — runs one bounded tool-calling loop and streams it as SSE.

Invariants:
    - Request validation (messages, model, auth, tool clients) completes before
      the response starts; failures map to the JSON error envelope
    - Tool clients started during resolution are released even if the stream
      body never runs (background release_all is a no-op after finalize)
    - stepLimit is capped at settings.cast_max_step_limit

Design Decisions:
    - StreamingResponse for SSE: event_generator yields formatted SSE lines
    - One model client per base URL, reused across streams
"""

import asyncio
import json
import logging
from contextlib import aclosing

from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse
from starlette.background import BackgroundTask

from backstage.api.dependencies import (
    get_client_factories, get_knowledge_store, get_transcript_store, get_user_id,
)
from backstage.config import Settings, get_settings
from backstage.core.catalog import ModelDescriptor, catalog_snapshot, get_model
from backstage.core.errors import InputValidationError
from backstage.infrastructure.anthropic_client import ResilientAnthropicClient
from backstage.schemas.cast import CastBody
from backstage.services.casting_engine import CastingEngine, CastRequest
from backstage.services.knowledge_store import KnowledgeStore
from backstage.services.system_prompt import build_system_prompt
from backstage.services.tool_clients import ClientContext, ToolClientLifecycle
from backstage.services.tools_registry import ToolRegistry
from backstage.services.transcript_store import TranscriptStore

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/cast", tags=["cast"])

# Keep proxies and browsers from batching small SSE chunks
_SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "X-Accel-Buffering": "no",
    "Connection": "keep-alive",
}


@router.get("/catalog")
async def get_catalog():
    """Selectable models and tool groups."""
    return catalog_snapshot()


@router.post("")
async def cast(
    body: CastBody,
    user_id: str | None = Depends(get_user_id),
    settings: Settings = Depends(get_settings),
    factories: dict = Depends(get_client_factories),
    transcripts: TranscriptStore = Depends(get_transcript_store),
    knowledge: KnowledgeStore = Depends(get_knowledge_store),
):
    if not body.messages:
        raise InputValidationError("Messages cannot be empty", "messages")
    model_key = (body.model or "").strip()
    if not model_key:
        raise InputValidationError("Model is required", "model")
    model = get_model(model_key)
    if model is None:
        raise InputValidationError(f"Invalid model: '{model_key}'", "model")
    model_client = _get_model_client(model)
    step_limit = min(
        body.step_limit or settings.cast_default_step_limit,
        settings.cast_max_step_limit,
    )
    conversation_id = body.session_id

    lifecycle = ToolClientLifecycle(
        factories, ClientContext(user_id=user_id, conversation_id=conversation_id),
    )
    engine = CastingEngine(
        model_client, ToolRegistry(lifecycle, knowledge), lifecycle, transcripts,
    )
    tools = await engine.resolve_tools(body.tools)

    request = CastRequest(
        model=model,
        tools=tools,
        system_prompt=build_system_prompt(body.custom_info, tools),
        messages=[m.to_message() for m in body.messages],
        step_limit=step_limit,
        conversation_id=conversation_id,
        user_id=user_id,
        max_tokens=settings.cast_max_tokens,
    )
    logger.info(
        f"Cast started with {len(tools)} tools",
        extra={"conversation_id": conversation_id, "user_id": user_id},
    )

    async def event_generator():
        try:
            async with aclosing(engine.run(request)) as events:
                async for event in events:
                    yield _sse_line(event)
        except asyncio.CancelledError:
            logger.info(
                "Client disconnected from cast stream",
                extra={"conversation_id": conversation_id},
            )
            return

    return StreamingResponse(
        event_generator(),
        media_type="text/event-stream",
        headers=_SSE_HEADERS,
        background=BackgroundTask(lifecycle.release_all),
    )


# -- Helpers -------------------------------------------------------------------

_model_clients: dict[str | None, ResilientAnthropicClient] = {}


def _get_model_client(model: ModelDescriptor) -> ResilientAnthropicClient:
    """One client per base URL: direct Anthropic or the model proxy."""
    settings = get_settings()
    if model.proxied:
        if not settings.model_proxy_base_url:
            raise InputValidationError(
                f"Model '{model.key}' requires a model proxy and none is configured",
                "model",
            )
        base_url = settings.model_proxy_base_url
    else:
        base_url = settings.anthropic_base_url
    client = _model_clients.get(base_url)
    if client is None:
        client = ResilientAnthropicClient(
            api_key=settings.anthropic_api_key,
            base_url=base_url,
            max_retries=settings.anthropic_max_retries,
            base_delay_ms=settings.anthropic_base_delay_ms,
            max_delay_ms=settings.anthropic_max_delay_ms,
            timeout_seconds=settings.anthropic_timeout_seconds,
        )
        _model_clients[base_url] = client
    return client


def _sse_line(event: dict) -> str:
    """Format event as SSE data line."""
    return f"data: {json.dumps(event, ensure_ascii=False, default=str)}\n\n"
