"""Request/response schemas for assistance requests and messages."""

from pydantic import BaseModel, Field

from nurse_call.schemas.domain import NursingDepartment, RequestPriority, RequestStatus


class CreateRequestBody(BaseModel):
    patient_id: str
    description: str = Field(min_length=1)
    department: NursingDepartment
    priority: RequestPriority = RequestPriority.MEDIUM
    room: str | None = None
    nurse_id: str | None = None


class UpdateRequestBody(BaseModel):
    status: RequestStatus | None = None
    nurse_id: str | None = None


class RequestOut(BaseModel):
    id: str
    patient_id: str | None
    nurse_id: str | None = None
    priority: str
    status: str
    description: str
    department: str
    room: str | None = None
    created_at: str
    updated_at: str


class RequestList(BaseModel):
    requests: list[RequestOut]
    count: int


class SendMessageBody(BaseModel):
    sender_id: str
    receiver_id: str
    content: str = Field(min_length=1)
    message_type: str = "text"
    image_url: str | None = None


class MarkReadBody(BaseModel):
    reader_id: str


class MessageOut(BaseModel):
    id: str
    sender_id: str
    receiver_id: str
    content: str
    message_type: str
    image_url: str | None = None
    is_read: bool
    created_at: str
