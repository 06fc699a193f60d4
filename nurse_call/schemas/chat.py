"""Request/response schemas for the chat endpoint."""

from pydantic import BaseModel


class ChatRequest(BaseModel):
    message: str
    conversation_id: str | None = None
    patient_id: str | None = None
    room: str | None = None


class ToolCall(BaseModel):
    name: str
    args: dict


class ChatResponse(BaseModel):
    response: str
    conversation_id: str
    tool_calls: list[ToolCall] = []
    request_id: str | None = None
    session_locked: bool = False
