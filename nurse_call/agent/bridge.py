"""Streaming bridge between a chat turn and the local model.

Every call that gets past input validation emits exactly one START and one
END event, whatever happens in between.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable

from nurse_call.agent.retry import RetryPolicy, is_unreachable, run_recovery
from nurse_call.agent.session import build_request
from nurse_call.agent.state import ConversationContext
from nurse_call.clients.ollama import OllamaClient
from nurse_call.config import Settings
from nurse_call.errors import InvalidInput, RetryExhausted, ServiceUnavailable
from nurse_call.schemas.stream import StreamEvent

logger = logging.getLogger(__name__)

TokenSink = Callable[[StreamEvent], Awaitable[None]]

FALLBACK_APOLOGY = (
    "I apologize, but I was unable to generate a response. Please try again."
)
STREAM_ERROR_TEXT = "An error occurred while processing your message."
UNAVAILABLE_TEXT = (
    "I'm sorry, the assistant is not available right now. Please try again "
    "shortly, or use your bedside call button if you need help."
)


@dataclass
class StreamResult:
    """Raw model output of one streamed turn."""

    text: str
    has_content: bool
    token_count: int


class StreamingBridge:
    """Probe, open and relay one model token stream to a sink."""

    def __init__(
        self,
        client: OllamaClient,
        settings: Settings,
        retry: RetryPolicy | None = None,
    ) -> None:
        self.client = client
        self.settings = settings
        self.retry = retry or RetryPolicy(
            max_attempts=settings.retry_max_attempts,
            base_delay=settings.retry_base_delay_seconds,
        )
        self._recovery_tasks: set[asyncio.Task] = set()

    async def probe(self) -> str:
        """Liveness check with a short timeout; raises ServiceUnavailable."""
        try:
            version = await asyncio.wait_for(
                self.client.version(timeout=self.settings.probe_timeout_seconds),
                timeout=self.settings.probe_timeout_seconds,
            )
        except Exception as e:
            logger.error("Ollama service ping failed: %s", e)
            if is_unreachable(e) or isinstance(e, asyncio.TimeoutError):
                self._recover_in_background()
            raise ServiceUnavailable("Ollama service is not available") from e
        logger.debug("Ollama version: %s", version)
        return version

    def _recover_in_background(self) -> None:
        task = asyncio.create_task(run_recovery(self.retry.recovery))
        self._recovery_tasks.add(task)
        task.add_done_callback(self._recovery_tasks.discard)

    async def stream(
        self,
        user_message: str,
        on_token: TokenSink,
        context: ConversationContext | None = None,
    ) -> StreamResult:
        """Stream one model turn for ``user_message`` into ``on_token``.

        Raises:
            InvalidInput: empty message (nothing is emitted).
            ServiceUnavailable: liveness probe failed.
            RetryExhausted: the stream could not be opened.
            Exception: any mid-stream failure, re-raised after END.
        """
        if not user_message or not user_message.strip():
            raise InvalidInput("Empty message provided")

        await on_token(StreamEvent.start())
        try:
            result = await self._relay(user_message, on_token, context)
        except asyncio.CancelledError:
            # Client went away: stop forwarding, nothing left to deliver to
            raise
        except (ServiceUnavailable, RetryExhausted):
            await _emit_quietly(on_token, StreamEvent.error(UNAVAILABLE_TEXT))
            await _emit_quietly(on_token, StreamEvent.end())
            raise
        except Exception:
            logger.exception("Streaming error")
            await _emit_quietly(on_token, StreamEvent.error(STREAM_ERROR_TEXT))
            await _emit_quietly(on_token, StreamEvent.end())
            raise
        await on_token(StreamEvent.end())
        return result

    async def _relay(
        self,
        user_message: str,
        on_token: TokenSink,
        context: ConversationContext | None,
    ) -> StreamResult:
        await self.probe()
        messages = build_request(user_message, context or ConversationContext())
        stream = await self.retry.execute(
            lambda: self.client.open_chat_stream(
                self.settings.chat_model,
                messages,
                self.settings.decoding_options(),
            )
        )
        parts: list[str] = []
        try:
            async for token in stream:
                parts.append(token)
                await on_token(StreamEvent.token(token))
        finally:
            await stream.aclose()

        logger.info("Model stream finished: %d content tokens", len(parts))
        if not parts:
            await on_token(StreamEvent.token(FALLBACK_APOLOGY))
        return StreamResult(text="".join(parts), has_content=bool(parts), token_count=len(parts))


async def _emit_quietly(on_token: TokenSink, event: StreamEvent) -> None:
    """Emit on a failure path; a broken sink must not mask the original error."""
    try:
        await on_token(event)
    except Exception as e:
        logger.warning("Could not deliver %s event: %s", event.kind.value, e)
