"""Chat turn orchestration: session -> model -> interpreter -> reply -> fan-out."""

from __future__ import annotations

import asyncio
import logging

from nurse_call.agent.bridge import FALLBACK_APOLOGY, StreamingBridge, TokenSink
from nurse_call.agent.extractor import ResponseFieldExtractor
from nurse_call.agent.interpreter import ToolCallInterpreter, TurnResult
from nurse_call.agent.session import ChatSession, build_request
from nurse_call.errors import InvalidInput, ParseError, UnknownTool
from nurse_call.realtime.presence import PresenceRouter
from nurse_call.schemas.stream import StreamEvent, StreamKind
from nurse_call.verification import validate_reply

logger = logging.getLogger(__name__)

GENERIC_APOLOGY = (
    "I'm sorry, I couldn't process that. Please try again, or use your "
    "bedside call button if you need help right away."
)


class ChatPipeline:
    """Runs chat turns for sessions, streaming or not."""

    def __init__(
        self,
        bridge: StreamingBridge,
        interpreter: ToolCallInterpreter,
        presence: PresenceRouter | None = None,
    ) -> None:
        self.bridge = bridge
        self.interpreter = interpreter
        self.presence = presence

    async def run_streaming_turn(
        self, session: ChatSession, user_message: str, send: TokenSink
    ) -> TurnResult | None:
        """Stream one turn to ``send``.

        The ``response`` prose is forwarded while the model is still
        generating; the tool outcome follows once the full turn parses, then
        END. Returns None when the turn produced no usable reply.
        """
        extractor = ResponseFieldExtractor()
        started = False

        async def relay(event: StreamEvent) -> None:
            nonlocal started
            if event.kind is StreamKind.START:
                started = True
                await send(event)
            elif event.kind is StreamKind.TOKEN:
                prose = extractor.feed(event.payload)
                if prose:
                    await send(StreamEvent.token(prose))
            elif event.kind is StreamKind.ERROR:
                await send(event)
            # END is held back until the tool outcome has been sent

        try:
            result = await self.bridge.stream(user_message, relay, session.context)
            turn = await self._finish_turn(session, user_message, result.text, extractor, send)
            if not result.has_content:
                await send(StreamEvent.token(FALLBACK_APOLOGY))
        except asyncio.CancelledError:
            raise
        except Exception:
            if started:
                await _send_end(send)
            raise
        await _send_end(send)
        return turn

    async def _finish_turn(
        self,
        session: ChatSession,
        user_message: str,
        raw_output: str,
        extractor: ResponseFieldExtractor,
        send: TokenSink,
    ) -> TurnResult | None:
        if not raw_output:
            session.record_turn(user_message, None)
            return None
        turn = await self._interpret(session, user_message, raw_output)
        if turn is None:
            prefix = "\n" if extractor.text else ""
            await send(StreamEvent.token(prefix + GENERIC_APOLOGY))
            return None
        if not extractor.text and turn.response:
            await send(StreamEvent.token(turn.response))
        if turn.action_text:
            await send(StreamEvent.token("\n" + turn.action_text))
        return turn

    async def run_turn(self, session: ChatSession, user_message: str) -> TurnResult:
        """Non-streamed structured turn (REST ``/chat``)."""
        if not user_message or not user_message.strip():
            raise InvalidInput("Empty message provided")
        settings = self.bridge.settings
        client = self.bridge.client
        messages = build_request(user_message, session.context)
        output = await self.bridge.retry.execute(
            lambda: client.chat(
                settings.structured_model,
                messages,
                settings.decoding_options(streaming=False),
            )
        )
        turn = await self._interpret(session, user_message, output)
        return turn or TurnResult(response=GENERIC_APOLOGY)

    async def _interpret(
        self, session: ChatSession, user_message: str, raw_output: str
    ) -> TurnResult | None:
        try:
            turn = await self.interpreter.interpret(raw_output, session.context)
        except ParseError as e:
            logger.warning("Unparseable model turn in %s: %s", session.session_id, e)
            session.record_turn(user_message, None)
            return None
        except UnknownTool as e:
            logger.error("Model hallucinated tool %r in %s", e.name, session.session_id)
            session.record_turn(user_message, None)
            return None

        check = validate_reply(turn.text)
        if not check["passed"]:
            logger.warning("Reply check failed in %s: %s", session.session_id, check["issues"])
        session.record_turn(user_message, raw_output)
        if turn.request and self.presence is not None:
            await self.presence.broadcast_new_request(turn.request)
        return turn


async def _send_end(send: TokenSink) -> None:
    try:
        await send(StreamEvent.end())
    except Exception as e:
        logger.warning("Could not deliver end event: %s", e)
