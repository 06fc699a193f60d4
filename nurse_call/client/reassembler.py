"""Client-side reassembly of ``chat response`` events into display messages."""

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Callable

from nurse_call.schemas.stream import StreamEvent, StreamKind

if TYPE_CHECKING:
    from nurse_call.config import Settings


@dataclass
class AssistantMessage:
    text: str
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    sender: str = "assistant"
    complete: bool = False
    is_error: bool = False
    timestamp: str = field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat()
    )


class StreamReassembler:
    """Rebuild assistant messages from one channel's token stream.

    ``bubbles`` is what a chat view renders (including the in-progress one);
    ``messages`` holds only finalised replies. A pending reply is finalised on
    END, on the next START, or by ``expire_idle`` after ``idle_timeout``
    seconds without events. An ERROR event becomes its own complete bubble
    flagged ``is_error``; it does not close the reply being streamed.
    """

    def __init__(
        self,
        idle_timeout: float | None = 30.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.idle_timeout = idle_timeout
        self._clock = clock
        self.bubbles: list[AssistantMessage] = []
        self.messages: list[AssistantMessage] = []
        self.errors: list[str] = []
        self._pending: list[str] = []
        self._open: AssistantMessage | None = None
        self._last_event: float | None = None
        self._streaming = False

    @classmethod
    def from_settings(cls, settings: Settings) -> StreamReassembler:
        return cls(idle_timeout=settings.stream_idle_timeout_seconds)

    @property
    def is_typing(self) -> bool:
        return self._streaming

    @property
    def pending_text(self) -> str:
        return "".join(self._pending)

    def feed(self, event: StreamEvent | str, now: float | None = None) -> AssistantMessage | None:
        """Consume one event; returns the message finalised by it, if any."""
        if isinstance(event, str):
            event = StreamEvent.from_legacy(event)
        self._last_event = self._clock() if now is None else now

        if event.kind is StreamKind.START:
            finished = self._finalize()
            self._streaming = True
            return finished
        if event.kind is StreamKind.END:
            finished = self._finalize()
            self._streaming = False
            self._last_event = None
            return finished
        if event.kind is StreamKind.ERROR:
            self.errors.append(event.payload)
            notice = AssistantMessage(text=event.payload, complete=True, is_error=True)
            self.bubbles.append(notice)
            self.messages.append(notice)
            return notice

        self._pending.append(event.payload)
        if self._open is None:
            self._open = AssistantMessage(text=event.payload)
            self.bubbles.append(self._open)
        else:
            self._open.text += event.payload
        return None

    def expire_idle(self, now: float | None = None) -> AssistantMessage | None:
        """Force-finalise a reply whose END never arrived."""
        if self.idle_timeout is None or self._last_event is None:
            return None
        now = self._clock() if now is None else now
        if now - self._last_event < self.idle_timeout:
            return None
        self._last_event = None
        self._streaming = False
        return self._finalize()

    def _finalize(self) -> AssistantMessage | None:
        text = "".join(self._pending)
        bubble = self._open
        self._pending = []
        self._open = None
        if not text:
            return None
        if bubble is None:
            bubble = AssistantMessage(text=text)
            self.bubbles.append(bubble)
        bubble.text = text
        bubble.complete = True
        self.messages.append(bubble)
        return bubble
