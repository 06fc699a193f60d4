"""Unit tests for the tool error handler decorator."""

import pytest

from nurse_call.errors import NotFound, PersistenceError
from nurse_call.tools.base import success_result, tool_error_handler


@pytest.mark.asyncio
async def test_error_handler_catches_exceptions():
    @tool_error_handler
    async def failing_tool():
        raise ValueError("something broke")

    result = await failing_tool()
    assert result["status"] == "error"
    assert "ValueError" in result["error"]


@pytest.mark.asyncio
async def test_error_handler_catches_timeout():
    @tool_error_handler
    async def slow_tool():
        raise TimeoutError("too slow")

    result = await slow_tool()
    assert result["status"] == "error"
    assert "timed out" in result["error"]


@pytest.mark.asyncio
async def test_error_handler_catches_persistence_failure():
    @tool_error_handler
    async def writing_tool():
        raise PersistenceError("database is locked")

    result = await writing_tool()
    assert result["status"] == "error"
    assert "database is locked" in result["error"]


@pytest.mark.asyncio
async def test_error_handler_catches_not_found():
    @tool_error_handler
    async def lookup_tool():
        raise NotFound("request abc not found")

    result = await lookup_tool()
    assert result["status"] == "error"


@pytest.mark.asyncio
async def test_error_handler_passes_through_success():
    @tool_error_handler
    async def ok_tool(value):
        return {"status": "success", "data": value}

    result = await ok_tool(3)
    assert result == {"status": "success", "data": 3}


@pytest.mark.asyncio
async def test_store_failures_are_retryable_lookups_are_not():
    @tool_error_handler
    async def flaky_store():
        raise PersistenceError("locked")

    @tool_error_handler
    async def missing_row():
        raise NotFound("gone")

    assert (await flaky_store())["retryable"] is True
    assert (await missing_row())["retryable"] is False


def test_success_result_envelope():
    result = success_result("Done", record_id="r-1", request={"id": "r-1"})
    assert result == {
        "status": "success",
        "data": {"summary": "Done", "record_id": "r-1", "request": {"id": "r-1"}},
    }
