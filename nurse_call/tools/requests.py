"""Assistance-request LangChain tools offered to the chat model."""

from typing import Annotated, Any

from langchain_core.tools import InjectedToolArg, tool
from pydantic import BaseModel, Field, field_validator

from nurse_call.persistence.store import DomainStore, RequestRecord
from nurse_call.schemas.domain import NursingDepartment, RequestPriority, RequestStatus
from nurse_call.tools.base import success_result, tool_error_handler
from nurse_call.verification.output_validator import scrub_sentinels

UNKNOWN_ROOM = "Unknown"

CREATE_APOLOGY = (
    "I apologize, but I encountered an error while creating your request. "
    "Please try again or call for assistance using your bedside button."
)
QUERY_APOLOGY = (
    "I apologize, but I encountered an error while retrieving your requests. "
    "Please try again or call for assistance using your bedside button."
)

_store: DomainStore | None = None


def set_store(store: DomainStore) -> None:
    global _store
    _store = store


def _get_store() -> DomainStore:
    if _store is None:
        raise RuntimeError("Domain store not initialized, call set_store() first")
    return _store


class CreateRequestParams(BaseModel):
    """Parameters the model supplies for ``create_request``."""

    priority: RequestPriority = Field(description="Priority level of the request")
    description: str = Field(
        min_length=1, description="Detailed description of the assistance needed"
    )
    department: NursingDepartment = Field(
        description="Department responsible for handling the request"
    )

    @field_validator("description", mode="before")
    @classmethod
    def _strip_stream_markers(cls, value: Any) -> Any:
        # Markers are removed before min_length is checked
        if isinstance(value, str):
            return scrub_sentinels(value)
        return value


class CreateRequestArgs(CreateRequestParams):
    # Filled from the session, never by the model
    room: Annotated[str, InjectedToolArg] = UNKNOWN_ROOM
    patient_id: Annotated[str | None, InjectedToolArg] = None


class GetPatientRequestsParams(BaseModel):
    """Parameters the model supplies for ``get_patient_requests``."""

    patientId: str = Field(min_length=1, description="ID of the patient")
    status: RequestStatus | None = Field(
        default=None, description="Filter requests by status"
    )


def confirmation_summary(priority: str, department: str, description: str, room: str) -> str:
    return (
        "I've created a request for nursing assistance:\n\n"
        f"Priority: {priority}\n"
        f"Department: {department}\n"
        f"Description: {description}\n"
        f"Room: {room}\n\n"
        "A nurse will be notified and will assist you soon."
    )


def format_request_listing(requests: list[RequestRecord]) -> str:
    if not requests:
        return "You don't have any requests matching that right now."
    entries = [
        f"Priority: {r.priority}\n"
        f"Department: {r.department}\n"
        f"Description: {r.description}\n"
        f"Room: {r.room or UNKNOWN_ROOM}\n"
        f"Status: {r.status}"
        for r in requests
    ]
    return "Here are your requests:\n\n" + "\n\n".join(entries)


@tool(args_schema=CreateRequestArgs)
@tool_error_handler
async def create_request(
    priority: str,
    description: str,
    department: str,
    room: str = UNKNOWN_ROOM,
    patient_id: str | None = None,
) -> dict[str, Any]:
    """Create a patient assistance request."""
    store = _get_store()
    priority = RequestPriority(priority).value
    department = NursingDepartment(department).value
    record = await store.create_request(
        patient_id=patient_id,
        priority=priority,
        description=description,
        department=department,
        room=room,
    )
    return success_result(
        confirmation_summary(priority, department, description, room),
        record_id=record.id,
        request=record.to_dict(),
    )


@tool(args_schema=GetPatientRequestsParams)
@tool_error_handler
async def get_patient_requests(patientId: str, status: str | None = None) -> dict[str, Any]:
    """Retrieve patient requests."""
    store = _get_store()
    status_value = RequestStatus(status).value if status else None
    requests = await store.find_requests(patient_id=patientId, status=status_value)
    return success_result(
        format_request_listing(requests),
        requests=[r.to_dict() for r in requests],
    )
