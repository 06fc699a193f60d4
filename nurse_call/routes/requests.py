"""Assistance request endpoints; every mutation is pushed to the department room."""

import logging

from fastapi import APIRouter, HTTPException, Request

from nurse_call.errors import NotFound, PersistenceError
from nurse_call.persistence.store import DomainStore
from nurse_call.realtime.presence import PresenceRouter
from nurse_call.schemas.domain import NursingDepartment, RequestPriority, RequestStatus
from nurse_call.schemas.requests import (
    CreateRequestBody,
    RequestList,
    RequestOut,
    UpdateRequestBody,
)

router = APIRouter(prefix="/requests")
logger = logging.getLogger(__name__)


def _store(request: Request) -> DomainStore:
    return request.app.state.store


def _presence(request: Request) -> PresenceRouter:
    return request.app.state.presence


@router.post("", response_model=RequestOut, status_code=201)
async def create_request(body: CreateRequestBody, request: Request):
    try:
        record = await _store(request).create_request(
            patient_id=body.patient_id,
            priority=body.priority.value,
            description=body.description,
            department=body.department.value,
            room=body.room,
            nurse_id=body.nurse_id,
        )
    except PersistenceError as e:
        logger.error("Error creating request: %s", e)
        raise HTTPException(status_code=503, detail="Error creating request")
    await _presence(request).broadcast_new_request(record)
    return RequestOut(**record.to_dict())


@router.get("", response_model=RequestList)
async def list_requests(
    request: Request,
    status: RequestStatus | None = None,
    priority: RequestPriority | None = None,
    department: NursingDepartment | None = None,
    patient_id: str | None = None,
    nurse_id: str | None = None,
):
    try:
        records = await _store(request).find_requests(
            status=status,
            priority=priority,
            department=department,
            patient_id=patient_id,
            nurse_id=nurse_id,
        )
    except PersistenceError as e:
        logger.error("Error fetching requests: %s", e)
        raise HTTPException(status_code=503, detail="Error fetching requests")
    return RequestList(
        requests=[RequestOut(**r.to_dict()) for r in records],
        count=len(records),
    )


@router.get("/{request_id}", response_model=RequestOut)
async def get_request(request_id: str, request: Request):
    try:
        record = await _store(request).get_request(request_id)
    except NotFound:
        raise HTTPException(status_code=404, detail="Request not found")
    return RequestOut(**record.to_dict())


@router.patch("/{request_id}", response_model=RequestOut)
async def update_request(request_id: str, body: UpdateRequestBody, request: Request):
    if body.status is None and body.nurse_id is None:
        raise HTTPException(status_code=400, detail="Nothing to update")
    try:
        record = await _store(request).update_request(
            request_id,
            status=body.status.value if body.status else None,
            nurse_id=body.nurse_id,
        )
    except NotFound:
        raise HTTPException(status_code=404, detail="Request not found")
    except PersistenceError as e:
        logger.error("Error updating request %s: %s", request_id, e)
        raise HTTPException(status_code=503, detail="Error updating request")
    await _presence(request).broadcast_request_update(record)
    return RequestOut(**record.to_dict())
