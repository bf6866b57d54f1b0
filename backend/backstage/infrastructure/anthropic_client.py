"""Resilient Anthropic Client — wraps AsyncAnthropic with retry, backoff, and error mapping.

Invariants:
    - Opening a stream is retried: rate limits (429) back off with jitter and
      respect Retry-After; transient errors (5xx, connection, 529 overloaded)
      retry up to max_retries times
    - Client errors (4xx except 429) and timeouts fail immediately, no retry
    - Once the stream is open nothing is retried: a half-streamed step cannot be replayed
    - All failures mapped to ModelCallError (core/errors.py)

Design Decisions:
    - Wrapper over raw client: isolates retry logic from the casting engine
    - base_url per instance: proxied (non-Claude) models get their own instance
      pointed at the Anthropic-compatible proxy
    - ±25% jitter on backoff: prevents thundering herd on shared rate limits
"""

import asyncio
import logging
import random
from contextlib import asynccontextmanager

import anthropic
from anthropic import (
    APIConnectionError,
    APIError,
    APIStatusError,
    APITimeoutError,
    InternalServerError,
    RateLimitError,
)

from backstage.core.errors import ErrorContext, ModelCallError

logger = logging.getLogger(__name__)

# OverloadedError (HTTP 529) is not re-exported by every SDK release; match the status.
_OVERLOADED_STATUS = 529


def _is_overloaded(e: APIError) -> bool:
    return isinstance(e, APIStatusError) and e.status_code == _OVERLOADED_STATUS


class ResilientAnthropicClient:
    """Wraps Anthropic client with retry logic, timeouts, and error mapping."""

    def __init__(
        self,
        api_key: str,
        base_url: str | None = None,
        max_retries: int = 3,
        base_delay_ms: int = 1000,
        max_delay_ms: int = 60_000,
        timeout_seconds: int = 300,
    ):
        self.client = anthropic.AsyncAnthropic(
            api_key=api_key,
            base_url=base_url or None,
            timeout=timeout_seconds,
            max_retries=0,
        )
        self.max_retries = max_retries
        self.base_delay_ms = base_delay_ms
        self.max_delay_ms = max_delay_ms

    @asynccontextmanager
    async def stream_message(
        self,
        *,
        model: str,
        max_tokens: int,
        system: str,
        tools: list,
        messages: list,
        context: ErrorContext | None = None,
    ):
        """Stream a message with SDK error -> ModelCallError mapping.

        Catches errors from both connection setup AND mid-stream (errors
        raised in the caller's `async for` propagate through the yield).
        CancelledError (BaseException) passes through uncaught.
        """
        kwargs = {
            "model": model, "max_tokens": max_tokens,
            "messages": messages,
        }
        if system:
            kwargs["system"] = system
        if tools:
            kwargs["tools"] = tools
        manager, stream = await self._open_stream(kwargs, context)
        try:
            yield stream
        except RateLimitError as e:
            raise ModelCallError(
                "Rate limit exceeded (streaming)",
                "rate_limit",
                retry_after_ms=self._extract_retry_after(e),
                context=context,
            )
        except APITimeoutError:
            raise ModelCallError(
                "API timeout during stream", "timeout", context=context,
            )
        except (APIConnectionError, InternalServerError) as e:
            raise ModelCallError(
                f"Connection error during stream: {e}",
                "connection_error",
                context=context,
            )
        except APIError as e:
            if _is_overloaded(e):
                raise ModelCallError(
                    "Model API overloaded (529)", "overloaded", context=context,
                )
            raise ModelCallError(str(e), "client_error", context=context)
        finally:
            await manager.__aexit__(None, None, None)

    async def _open_stream(self, kwargs: dict, context: ErrorContext | None):
        """Enter the SDK stream manager, retrying failures before the first event."""
        for attempt in range(self.max_retries + 1):
            manager = self.client.messages.stream(**kwargs)
            try:
                stream = await manager.__aenter__()
                if attempt:
                    logger.info(
                        "Anthropic stream opened after retry",
                        extra={"attempt": attempt + 1},
                    )
                return manager, stream

            except RateLimitError as e:
                await self._handle_rate_limit(e, attempt, context)

            except APITimeoutError:
                raise ModelCallError("API timeout", "timeout", context=context)

            except (APIConnectionError, InternalServerError) as e:
                await self._handle_transient_error(e, attempt, context, "connection_error")

            except APIError as e:
                if _is_overloaded(e):
                    await self._handle_transient_error(e, attempt, context, "overloaded")
                    continue
                raise ModelCallError(str(e), "client_error", context=context)
        raise ModelCallError("Retries exhausted", "connection_error", context=context)

    async def _handle_rate_limit(
        self, e: RateLimitError, attempt: int, context: ErrorContext | None,
    ) -> None:
        retry_after_ms = self._extract_retry_after(e)
        if attempt >= self.max_retries:
            raise ModelCallError(
                "Rate limit exceeded after retries",
                "rate_limit",
                retry_after_ms=retry_after_ms,
                context=context,
            )
        delay = retry_after_ms or self._backoff(attempt)
        logger.warning(
            f"Rate limit hit, retry after {delay}ms (attempt {attempt + 1})",
            extra={"attempt": attempt + 1},
        )
        await asyncio.sleep(delay / 1000)

    async def _handle_transient_error(
        self, e: Exception, attempt: int, context: ErrorContext | None, kind: str,
    ) -> None:
        if attempt >= self.max_retries:
            raise ModelCallError(
                f"Transient failure after {self.max_retries} retries: {e}",
                kind,
                context=context,
            )
        delay = self._backoff(attempt)
        logger.warning(
            f"Transient error, retry after {delay}ms: {e}",
            extra={"attempt": attempt + 1},
        )
        await asyncio.sleep(delay / 1000)

    def _backoff(self, attempt: int) -> int:
        """Exponential backoff with ±25% jitter."""
        delay = min(self.max_delay_ms, (2 ** attempt) * self.base_delay_ms)
        return int(delay * random.uniform(0.75, 1.25))  # nosec B311

    def _extract_retry_after(self, error: RateLimitError) -> int | None:
        """Retry-After header in milliseconds, when present and numeric."""
        response = getattr(error, "response", None)
        if response is None:
            return None
        val = response.headers.get("retry-after")
        if val and val.isdigit():
            return int(val) * 1000
        return None
