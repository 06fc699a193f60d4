"""Incremental extraction of the ``response`` field from a streamed JSON turn.

The model streams its whole envelope token by token. Only the top-level
``response`` string is prose meant for the patient, so it is decoded and
forwarded as it arrives; everything else (thoughts, function_call) is left
for the full parse once the turn is complete.
"""

from __future__ import annotations

_ESCAPES = {
    "n": "\n",
    "t": "\t",
    "r": "\r",
    "b": "\b",
    "f": "\f",
    '"': '"',
    "\\": "\\",
    "/": "/",
}

RESPONSE_KEY = "response"


class ResponseFieldExtractor:
    """Feed raw chunks, get back newly decoded characters of ``response``."""

    def __init__(self, key: str = RESPONSE_KEY) -> None:
        self.key = key
        self._depth = 0
        self._in_string = False
        self._escape = False
        self._unicode: list[str] | None = None
        self._high_surrogate: int | None = None
        self._string_is_key = False
        self._buffer: list[str] = []
        self._last_key: str | None = None
        self._awaiting_value = False
        self._emitting = False
        self._done = False
        self._emitted: list[str] = []

    @property
    def text(self) -> str:
        """Everything emitted so far."""
        return "".join(self._emitted)

    @property
    def complete(self) -> bool:
        return self._done

    def feed(self, chunk: str) -> str:
        out: list[str] = []
        for ch in chunk:
            if self._in_string:
                self._string_char(ch, out)
            else:
                self._structural_char(ch)
        emitted = "".join(out)
        if emitted:
            self._emitted.append(emitted)
        return emitted

    def _structural_char(self, ch: str) -> None:
        if ch == '"':
            self._in_string = True
            self._buffer = []
            at_top = self._depth == 1
            self._string_is_key = at_top and not self._awaiting_value
            self._emitting = (
                at_top
                and self._awaiting_value
                and self._last_key == self.key
                and not self._done
            )
        elif ch in "{[":
            self._depth += 1
            if self._depth > 1:
                self._awaiting_value = False
        elif ch in "}]":
            self._depth -= 1
        elif ch == ":" and self._depth == 1:
            self._awaiting_value = True
        elif ch == "," and self._depth == 1:
            self._awaiting_value = False
            self._last_key = None

    def _string_char(self, ch: str, out: list[str]) -> None:
        if self._unicode is not None:
            self._unicode.append(ch)
            if len(self._unicode) == 4:
                digits = "".join(self._unicode)
                self._unicode = None
                try:
                    code = int(digits, 16)
                except ValueError:
                    # Malformed escape; the full parse will reject the turn
                    return
                self._decoded_code_point(code, out)
            return
        if self._escape:
            self._escape = False
            if ch == "u":
                self._unicode = []
            else:
                self._append(_ESCAPES.get(ch, ch), out)
            return
        if ch == "\\":
            self._escape = True
        elif ch == '"':
            self._close_string()
        else:
            self._append(ch, out)

    def _decoded_code_point(self, code: int, out: list[str]) -> None:
        if 0xD800 <= code < 0xDC00:
            self._high_surrogate = code
            return
        if 0xDC00 <= code < 0xE000 and self._high_surrogate is not None:
            code = 0x10000 + ((self._high_surrogate - 0xD800) << 10) + (code - 0xDC00)
        self._high_surrogate = None
        self._append(chr(code), out)

    def _append(self, text: str, out: list[str]) -> None:
        if self._emitting:
            out.append(text)
        elif self._string_is_key:
            self._buffer.append(text)

    def _close_string(self) -> None:
        self._in_string = False
        if self._emitting:
            self._emitting = False
            self._done = True
            self._awaiting_value = False
        elif self._string_is_key:
            self._last_key = "".join(self._buffer)
        elif self._depth == 1:
            self._awaiting_value = False
