"""Staff/patient messaging endpoints with live read receipts."""

import logging

from fastapi import APIRouter, HTTPException, Request

from nurse_call.errors import NotFound, PersistenceError
from nurse_call.schemas.requests import MarkReadBody, MessageOut, SendMessageBody

router = APIRouter(prefix="/messages")
logger = logging.getLogger(__name__)


@router.post("", response_model=MessageOut, status_code=201)
async def send_message(body: SendMessageBody, request: Request):
    try:
        record = await request.app.state.store.create_message(
            sender_id=body.sender_id,
            receiver_id=body.receiver_id,
            content=body.content,
            message_type=body.message_type,
            image_url=body.image_url,
        )
    except PersistenceError as e:
        logger.error("Error sending message: %s", e)
        raise HTTPException(status_code=503, detail="Error sending message")
    return MessageOut(**record.to_dict())


@router.get("/conversation", response_model=list[MessageOut])
async def get_conversation(user_a: str, user_b: str, request: Request):
    records = await request.app.state.store.list_conversation(user_a, user_b)
    return [MessageOut(**r.to_dict()) for r in records]


@router.post("/{message_id}/read")
async def mark_message_read(message_id: str, body: MarkReadBody, request: Request):
    """Receiver marks a message read; the sender's connections are told live."""
    store = request.app.state.store
    try:
        message = await store.get_message(message_id)
    except NotFound:
        raise HTTPException(status_code=404, detail="Message not found")
    if message.receiver_id != body.reader_id:
        raise HTTPException(
            status_code=403, detail="Not authorized to mark this message as read"
        )
    await store.mark_message_read(message_id)
    await request.app.state.presence.broadcast_message_read(
        message_id, user_id=message.sender_id
    )
    return {"message": "Message marked as read"}
