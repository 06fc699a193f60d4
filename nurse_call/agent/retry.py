"""Bounded exponential-backoff retry for calls into the local model service."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Protocol, TypeVar

import httpx

from nurse_call.errors import InvalidInput, RetryExhausted

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Substrings that mean nothing is listening on the model port
_UNREACHABLE_MARKERS = ("ECONNREFUSED", "Connection refused", "fetch failed")


class Recovery(Protocol):
    """Out-of-band action tried when the model service looks unreachable."""

    async def attempt(self) -> None: ...


class NoopRecovery:
    async def attempt(self) -> None:
        return None


class OllamaLauncher:
    """Best-effort ``ollama serve`` spawn for single-host deployments."""

    def __init__(self, executable: str = "ollama") -> None:
        self.executable = executable
        self._process: asyncio.subprocess.Process | None = None

    async def attempt(self) -> None:
        if self._process is not None and self._process.returncode is None:
            return
        try:
            self._process = await asyncio.create_subprocess_exec(
                self.executable,
                "serve",
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.DEVNULL,
            )
            logger.info("Spawned %s serve (pid %s)", self.executable, self._process.pid)
        except OSError as e:
            logger.error("Could not start Ollama: %s", e)


def is_unreachable(error: BaseException) -> bool:
    """True when the error says the model service is not listening."""
    if isinstance(error, (httpx.ConnectError, ConnectionRefusedError)):
        return True
    text = str(error)
    return any(marker in text for marker in _UNREACHABLE_MARKERS)


async def run_recovery(recovery: Recovery) -> None:
    """Run a recovery action; never raises."""
    try:
        await recovery.attempt()
    except Exception:
        logger.exception("Model service recovery attempt failed")


class RetryPolicy:
    """Run an async operation, retrying with ``2**attempt * base_delay`` waits.

    Args:
        max_attempts: Default attempt budget for ``execute``.
        base_delay: Seconds multiplied by ``2**attempt`` between attempts.
        recovery: Tried (best-effort) when a failure looks like the model
            service is down.
        no_retry: Exception types re-raised immediately without retrying.
        sleep: Awaitable sleep, injectable for tests.
    """

    def __init__(
        self,
        max_attempts: int = 3,
        base_delay: float = 1.0,
        recovery: Recovery | None = None,
        no_retry: tuple[type[BaseException], ...] = (InvalidInput,),
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.recovery: Recovery = recovery or NoopRecovery()
        self.no_retry = no_retry
        self._sleep = sleep

    def delay_for(self, attempt: int) -> float:
        """Wait after the ``attempt``-th (1-based) failure."""
        return (2**attempt) * self.base_delay

    async def execute(
        self,
        operation: Callable[[], Awaitable[T]],
        max_attempts: int | None = None,
    ) -> T:
        attempts = max_attempts or self.max_attempts
        last_error: Exception | None = None
        for attempt in range(1, attempts + 1):
            try:
                return await operation()
            except self.no_retry:
                raise
            except Exception as e:
                last_error = e
                logger.warning("Attempt %d/%d failed: %s", attempt, attempts, e)
                if is_unreachable(e):
                    logger.error(
                        "Model service connection failed. Ensure Ollama is running."
                    )
                    await run_recovery(self.recovery)
                if attempt < attempts:
                    await self._sleep(self.delay_for(attempt))
        assert last_error is not None
        raise RetryExhausted(last_error, attempts) from last_error
