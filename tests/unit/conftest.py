"""Shared test fixtures for nurse call unit tests."""

import asyncio
import json
import os
import tempfile

import pytest

from nurse_call.agent.retry import RetryPolicy
from nurse_call.config import Settings
from nurse_call.persistence.store import DomainStore
from nurse_call.tools import requests as requests_tool


class FakeChatStream:
    """Stands in for clients.ollama.ChatStream."""

    def __init__(self, tokens, error=None, block=False):
        self.tokens = list(tokens)
        self.error = error
        self.block = block
        self.closed = False

    async def __aiter__(self):
        for token in self.tokens:
            yield token
        if self.error is not None:
            raise self.error
        if self.block:
            await asyncio.Event().wait()

    async def aclose(self):
        self.closed = True


class FakeModelClient:
    """In-memory OllamaClient: scripted version probe, streams and chat output."""

    def __init__(
        self,
        tokens=(),
        stream_error=None,
        block=False,
        version_error=None,
        open_errors=(),
        chat_output="",
    ):
        self.tokens = list(tokens)
        self.stream_error = stream_error
        self.block = block
        self.version_error = version_error
        self.open_errors = list(open_errors)
        self.chat_output = chat_output
        self.open_calls = 0
        self.chat_calls = 0
        self.streams = []
        self.last_messages = None
        self.last_options = None
        self.last_format = None

    async def version(self, timeout=5.0):
        if self.version_error is not None:
            raise self.version_error
        return "0.5.7"

    async def open_chat_stream(self, model, messages, options=None, response_format="json"):
        self.open_calls += 1
        self.last_messages = messages
        self.last_options = options
        self.last_format = response_format
        if self.open_errors:
            error = self.open_errors.pop(0)
            if error is not None:
                raise error
        stream = FakeChatStream(self.tokens, error=self.stream_error, block=self.block)
        self.streams.append(stream)
        return stream

    async def chat(self, model, messages, options=None, response_format="json"):
        self.chat_calls += 1
        self.last_messages = messages
        return self.chat_output


class EventCollector:
    """Async token sink that records every StreamEvent."""

    def __init__(self):
        self.events = []

    async def __call__(self, event):
        self.events.append(event)

    @property
    def kinds(self):
        return [e.kind.value for e in self.events]

    @property
    def content(self):
        return "".join(e.payload for e in self.events if e.kind.value == "token")


class RecordingConnection:
    """Presence connection that records emitted frames."""

    def __init__(self, connection_id):
        self.connection_id = connection_id
        self.frames = []

    async def emit(self, event, data):
        self.frames.append((event, data))


def envelope(response, function_call=None, thoughts="thinking"):
    data = {"thoughts": thoughts, "response": response}
    if function_call is not None:
        data["function_call"] = function_call
    return json.dumps(data)


def chunked(text, size=7):
    return [text[i : i + size] for i in range(0, len(text), size)]


@pytest.fixture
def settings():
    return Settings(
        ollama_host="http://ollama.test",
        retry_max_attempts=3,
        retry_base_delay_seconds=0.01,
        probe_timeout_seconds=1.0,
        db_path=":memory:",
        log_dir=tempfile.gettempdir(),
    )


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def retry(sleeps):
    async def fake_sleep(delay):
        sleeps.append(delay)

    return RetryPolicy(max_attempts=3, base_delay=0.01, sleep=fake_sleep)


@pytest.fixture
def make_model_client():
    return FakeModelClient


@pytest.fixture
def collector():
    return EventCollector()


@pytest.fixture
def make_connection():
    return RecordingConnection


@pytest.fixture
def make_envelope():
    return envelope


@pytest.fixture
def make_chunks():
    return chunked


@pytest.fixture
async def store():
    """Temporary SQLite-backed DomainStore, injected into the request tools."""
    with tempfile.NamedTemporaryFile(suffix=".db", delete=False) as f:
        db_path = f.name
    s = DomainStore(db_path)
    await s.init_db()
    requests_tool.set_store(s)
    yield s
    await s.close()
    os.unlink(db_path)
