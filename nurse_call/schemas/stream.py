"""Stream envelope sent on the ``chat response`` channel.

Start, end and error markers travel as a discriminated ``kind`` instead of
magic strings. ``to_legacy``/``from_legacy`` keep the older string form
(``[START]``, ``[END]``, ``[ERROR] <text>``) readable for existing clients.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel

START_MARKER = "[START]"
END_MARKER = "[END]"
ERROR_PREFIX = "[ERROR] "


class StreamKind(str, Enum):
    START = "start"
    TOKEN = "token"
    ERROR = "error"
    END = "end"


class StreamEvent(BaseModel):
    kind: StreamKind
    payload: str = ""

    @classmethod
    def start(cls) -> StreamEvent:
        return cls(kind=StreamKind.START)

    @classmethod
    def end(cls) -> StreamEvent:
        return cls(kind=StreamKind.END)

    @classmethod
    def token(cls, text: str) -> StreamEvent:
        return cls(kind=StreamKind.TOKEN, payload=text)

    @classmethod
    def error(cls, text: str) -> StreamEvent:
        return cls(kind=StreamKind.ERROR, payload=text)

    @property
    def is_content(self) -> bool:
        return self.kind is StreamKind.TOKEN

    def to_legacy(self) -> str:
        if self.kind is StreamKind.START:
            return START_MARKER
        if self.kind is StreamKind.END:
            return END_MARKER
        if self.kind is StreamKind.ERROR:
            return ERROR_PREFIX + self.payload
        return self.payload

    @classmethod
    def from_legacy(cls, text: str) -> StreamEvent:
        if text == START_MARKER:
            return cls.start()
        if text == END_MARKER:
            return cls.end()
        if text.startswith(ERROR_PREFIX):
            return cls.error(text[len(ERROR_PREFIX):])
        return cls.token(text)
