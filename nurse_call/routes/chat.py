"""Chat endpoint: one structured, non-streamed turn through the assistant."""

from fastapi import APIRouter, HTTPException, Request

from nurse_call.agent.pipeline import ChatPipeline
from nurse_call.agent.session import SessionRegistry
from nurse_call.errors import InvalidInput, RetryExhausted, SessionBindingError
from nurse_call.schemas.chat import ChatRequest, ChatResponse, ToolCall

router = APIRouter()


@router.post("/chat", response_model=ChatResponse)
async def chat(req: ChatRequest, request: Request):
    """Process a patient chat message and return the assistant's reply."""
    pipeline: ChatPipeline = request.app.state.chat_pipeline
    sessions: SessionRegistry = request.app.state.sessions

    session = sessions.get_or_create(req.conversation_id)
    try:
        session.bind_patient(req.patient_id, req.room)
    except SessionBindingError as e:
        raise HTTPException(status_code=400, detail=str(e))

    try:
        turn = await pipeline.run_turn(session, req.message)
    except InvalidInput as e:
        raise HTTPException(status_code=400, detail=str(e))
    except RetryExhausted:
        raise HTTPException(
            status_code=503, detail="The assistant is not available right now."
        )

    tool_calls = []
    if turn.invocation is not None:
        tool_calls.append(ToolCall(
            name=turn.invocation.name,
            args=turn.invocation.parameters.model_dump(mode="json"),
        ))

    return ChatResponse(
        response=turn.text,
        conversation_id=session.session_id,
        tool_calls=tool_calls,
        request_id=turn.record_id,
        session_locked=session.context.patient_id is not None,
    )
