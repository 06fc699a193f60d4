"""Nurse call assistant LangChain tool registry."""

from langchain_core.utils.function_calling import convert_to_openai_tool

from nurse_call.tools.requests import create_request, get_patient_requests

ALL_TOOLS = [
    create_request,
    get_patient_requests,
]

TOOLS_BY_NAME = {t.name: t for t in ALL_TOOLS}


def tool_schemas() -> list[dict]:
    """Model-visible tool declarations (injected arguments excluded)."""
    return [convert_to_openai_tool(t) for t in ALL_TOOLS]


__all__ = ["ALL_TOOLS", "TOOLS_BY_NAME", "tool_schemas"]
