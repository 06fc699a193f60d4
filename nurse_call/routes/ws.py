"""WebSocket transport: department rooms, request relays, and streamed chat.

Frames are JSON objects ``{"event": <name>, "data": <payload>}``.

Inbound: ``join``, ``chat message``, ``newRequest``, ``updateRequest``.
Outbound: ``chat response`` (stream envelopes), ``requestUpdate``,
``messageRead``, ``error``.
"""

from __future__ import annotations

import asyncio
import json
import logging
import uuid
from typing import Any

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from nurse_call.agent.pipeline import ChatPipeline
from nurse_call.agent.session import ChatSession
from nurse_call.errors import InvalidInput, NurseCallError, SessionBindingError
from nurse_call.realtime.presence import PresenceRouter
from nurse_call.schemas.domain import UserRole
from nurse_call.schemas.stream import StreamEvent

router = APIRouter()
logger = logging.getLogger(__name__)

CHAT_RESPONSE_EVENT = "chat response"
ERROR_EVENT = "error"


class WebSocketConnection:
    """One client socket; sends are serialised so frames never interleave."""

    def __init__(self, websocket: WebSocket) -> None:
        self.connection_id = uuid.uuid4().hex
        self.websocket = websocket
        self._send_lock = asyncio.Lock()

    async def emit(self, event: str, data: Any) -> None:
        async with self._send_lock:
            await self.websocket.send_json({"event": event, "data": data})


async def _run_chat_turn(
    pipeline: ChatPipeline,
    session: ChatSession,
    connection: WebSocketConnection,
    text: Any,
) -> None:
    async def send(event: StreamEvent) -> None:
        await connection.emit(CHAT_RESPONSE_EVENT, event.model_dump(mode="json"))

    try:
        if not isinstance(text, str):
            raise InvalidInput("Chat message must be a string")
        await pipeline.run_streaming_turn(session, text, send)
    except asyncio.CancelledError:
        raise
    except InvalidInput as e:
        await send(StreamEvent.error(str(e)))
    except NurseCallError as e:
        # Already surfaced to the client as an error event + END
        logger.warning("Chat turn failed for %s: %s", session.session_id, e)
    except Exception:
        logger.exception("LLM processing error for %s", session.session_id)


def _handle_join(
    presence: PresenceRouter,
    session: ChatSession,
    connection_id: str,
    data: dict[str, Any],
) -> None:
    role = data.get("role", "")
    user_id = data.get("userId") or data.get("user_id")
    if role == UserRole.PATIENT.value:
        session.bind_patient(user_id, data.get("room"))
    presence.join(connection_id, role, data.get("department"), user_id=user_id)


@router.websocket("/ws")
async def socket_endpoint(websocket: WebSocket):
    await websocket.accept()
    presence: PresenceRouter = websocket.app.state.presence
    pipeline: ChatPipeline = websocket.app.state.chat_pipeline
    sessions = websocket.app.state.sessions

    connection = WebSocketConnection(websocket)
    presence.connect(connection)
    session = sessions.get_or_create(connection.connection_id)
    turn_task: asyncio.Task | None = None

    try:
        while True:
            raw = await websocket.receive_text()
            try:
                frame = json.loads(raw)
            except json.JSONDecodeError:
                await connection.emit(ERROR_EVENT, {"message": "Frames must be JSON"})
                continue
            if not isinstance(frame, dict):
                await connection.emit(ERROR_EVENT, {"message": "Frames must be objects"})
                continue
            event, data = frame.get("event"), frame.get("data")

            if event == "join" and isinstance(data, dict):
                try:
                    _handle_join(presence, session, connection.connection_id, data)
                except SessionBindingError as e:
                    await connection.emit(ERROR_EVENT, {"message": str(e)})
            elif event == "chat message":
                if turn_task is not None and not turn_task.done():
                    await connection.emit(
                        CHAT_RESPONSE_EVENT,
                        StreamEvent.error(
                            "Please wait for the current reply to finish."
                        ).model_dump(mode="json"),
                    )
                    continue
                turn_task = asyncio.create_task(
                    _run_chat_turn(pipeline, session, connection, data)
                )
            elif event == "newRequest" and isinstance(data, dict):
                await presence.broadcast_new_request(data)
            elif event == "updateRequest" and isinstance(data, dict):
                await presence.broadcast_request_update(data)
            else:
                await connection.emit(ERROR_EVENT, {"message": f"Unsupported event: {event}"})
    except WebSocketDisconnect:
        pass
    finally:
        if turn_task is not None and not turn_task.done():
            turn_task.cancel()
        presence.disconnect(connection.connection_id)
        sessions.drop(connection.connection_id)
