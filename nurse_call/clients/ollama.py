"""Ollama chat client: liveness probe, structured turns, and token streaming."""

from __future__ import annotations

import json
import logging
from typing import Any, AsyncIterator

import httpx

logger = logging.getLogger(__name__)


class ModelStreamError(RuntimeError):
    """The model service reported an error inside a response body."""


def to_ollama_messages(messages: list[Any]) -> list[dict[str, str]]:
    """Convert session messages to Ollama ``{role, content}`` dicts."""
    return [{"role": m.role, "content": m.content} for m in messages]


class ChatStream:
    """An open NDJSON token stream; iterate for content fragments, then aclose()."""

    def __init__(self, response: httpx.Response) -> None:
        self.response = response
        self.chunk_count = 0

    async def __aiter__(self) -> AsyncIterator[str]:
        async for line in self.response.aiter_lines():
            if not line.strip():
                continue
            part = json.loads(line)
            self.chunk_count += 1
            if part.get("error"):
                raise ModelStreamError(part["error"])
            content = part.get("message", {}).get("content", "")
            if content:
                yield content
            if part.get("done"):
                break

    async def aclose(self) -> None:
        await self.response.aclose()


class OllamaClient:
    """Async client for a local Ollama server (``/api/version``, ``/api/chat``)."""

    def __init__(self, base_url: str = "http://localhost:11434", timeout: float = 120.0) -> None:
        self.base_url = base_url.rstrip("/")
        self.http = httpx.AsyncClient(timeout=timeout)

    async def version(self, timeout: float = 5.0) -> str:
        """Liveness probe. Returns the server version string."""
        resp = await self.http.get(f"{self.base_url}/api/version", timeout=timeout)
        resp.raise_for_status()
        return resp.json().get("version", "")

    async def chat(
        self,
        model: str,
        messages: list[Any],
        options: dict[str, Any] | None = None,
        response_format: str | None = "json",
    ) -> str:
        """Single non-streamed chat turn. Returns the assistant content."""
        payload: dict[str, Any] = {
            "model": model,
            "messages": to_ollama_messages(messages),
            "stream": False,
            "options": options or {},
        }
        if response_format:
            payload["format"] = response_format
        resp = await self.http.post(f"{self.base_url}/api/chat", json=payload)
        resp.raise_for_status()
        data = resp.json()
        if data.get("error"):
            raise ModelStreamError(data["error"])
        return data.get("message", {}).get("content", "")

    async def open_chat_stream(
        self,
        model: str,
        messages: list[Any],
        options: dict[str, Any] | None = None,
        response_format: str | None = "json",
    ) -> ChatStream:
        """Send a streaming chat request and return once headers arrive."""
        payload: dict[str, Any] = {
            "model": model,
            "messages": to_ollama_messages(messages),
            "stream": True,
            "options": options or {},
        }
        if response_format:
            payload["format"] = response_format
        request = self.http.build_request("POST", f"{self.base_url}/api/chat", json=payload)
        response = await self.http.send(request, stream=True)
        if response.status_code >= 400:
            await response.aread()
            await response.aclose()
            response.raise_for_status()
        return ChatStream(response)

    async def close(self) -> None:
        await self.http.aclose()
