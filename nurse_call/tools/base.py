"""Shared tool plumbing: result envelopes and the error handler decorator.

Tools never raise into the interpreter. They return ``{"status": "success",
"data": {...}}`` or ``{"status": "error", "error": ..., "retryable": ...}``
and the interpreter turns an error into the matching patient apology.
"""

import functools
import logging
from typing import Any, Callable

from nurse_call.errors import NotFound, PersistenceError

logger = logging.getLogger(__name__)


def success_result(summary: str, record_id: str | None = None, **data: Any) -> dict[str, Any]:
    """Envelope for a tool that did its job; ``summary`` is patient-facing."""
    return {
        "status": "success",
        "data": {"summary": summary, "record_id": record_id, **data},
    }


def error_result(tool_name: str, message: str, retryable: bool) -> dict[str, Any]:
    return {
        "status": "error",
        "error": f"Tool '{tool_name}' {message}",
        "retryable": retryable,
    }


def tool_error_handler(func: Callable) -> Callable:
    """Decorator that turns store and runtime failures into error envelopes."""

    @functools.wraps(func)
    async def wrapper(*args: Any, **kwargs: Any) -> dict[str, Any]:
        name = func.__name__
        try:
            result: dict[str, Any] = await func(*args, **kwargs)
            return result
        except TimeoutError:
            logger.warning("Tool %s timed out", name)
            return error_result(name, "timed out. Try again.", retryable=True)
        except PersistenceError as e:
            logger.error("Tool %s could not reach the store: %s", name, e)
            return error_result(name, f"failed: {type(e).__name__}: {e}", retryable=True)
        except NotFound as e:
            logger.warning("Tool %s found nothing: %s", name, e)
            return error_result(name, f"failed: {type(e).__name__}: {e}", retryable=False)
        except Exception as e:
            logger.exception("Tool %s failed: %s", name, e)
            return error_result(name, f"failed: {type(e).__name__}: {e}", retryable=False)

    return wrapper
