"""Unit tests for the SQLite-backed domain store."""

import itertools
from unittest.mock import patch

import pytest

from nurse_call.errors import NotFound
from nurse_call.schemas.domain import NursingDepartment, RequestPriority, RequestStatus


@pytest.mark.asyncio
async def test_create_and_get_request(store):
    """A new request is PENDING and round-trips through get_request."""
    record = await store.create_request(
        patient_id="p-1",
        priority=RequestPriority.HIGH,
        description="Chest pain",
        department=NursingDepartment.CARDIOLOGY,
        room="204",
    )
    assert record.status == "pending"
    assert record.priority == "high"
    assert record.department == "Cardiology"

    fetched = await store.get_request(record.id)
    assert fetched == record


@pytest.mark.asyncio
async def test_get_missing_request_raises(store):
    with pytest.raises(NotFound):
        await store.get_request("nope")


@pytest.mark.asyncio
async def test_find_requests_filters_and_orders_newest_first(store):
    stamps = (f"2026-10-19T10:00:0{i}+00:00" for i in itertools.count())
    with patch("nurse_call.persistence.store._now_iso", lambda: next(stamps)):
        first = await store.create_request("p-1", "low", "Blanket", "Oncology")
        second = await store.create_request("p-1", "high", "Pain", "Oncology")
        await store.create_request("p-2", "high", "Fever", "Pediatrics")

    mine = await store.find_requests(patient_id="p-1")
    assert [r.id for r in mine] == [second.id, first.id]

    urgent = await store.find_requests(priority=RequestPriority.HIGH, department="Oncology")
    assert [r.id for r in urgent] == [second.id]

    # None filters are ignored
    assert len(await store.find_requests(patient_id=None, status=None)) == 3


@pytest.mark.asyncio
async def test_find_requests_rejects_unknown_filter(store):
    with pytest.raises(ValueError):
        await store.find_requests(colour="red")


@pytest.mark.asyncio
async def test_update_request_status_and_nurse(store):
    record = await store.create_request("p-1", "medium", "Help walking", "Orthopedics")

    updated = await store.update_request(
        record.id, status=RequestStatus.ASSIGNED, nurse_id="nurse-3"
    )
    assert updated.status == "assigned"
    assert updated.nurse_id == "nurse-3"

    completed = await store.update_request_status(record.id, "completed")
    assert completed.status == "completed"
    assert completed.nurse_id == "nurse-3"


@pytest.mark.asyncio
async def test_update_missing_request_raises(store):
    with pytest.raises(NotFound):
        await store.update_request("nope", status="completed")


@pytest.mark.asyncio
async def test_messages_conversation_and_read_receipt(store):
    stamps = (f"2026-10-19T11:00:0{i}+00:00" for i in itertools.count())
    with patch("nurse_call.persistence.store._now_iso", lambda: next(stamps)):
        hello = await store.create_message("nurse-1", "p-1", "On my way")
        reply = await store.create_message("p-1", "nurse-1", "Thank you")
        await store.create_message("nurse-1", "p-2", "Unrelated")

    conversation = await store.list_conversation("p-1", "nurse-1")
    assert [m.id for m in conversation] == [hello.id, reply.id]
    assert conversation[0].is_read is False

    read = await store.mark_message_read(hello.id)
    assert read.is_read is True


@pytest.mark.asyncio
async def test_mark_missing_message_raises(store):
    with pytest.raises(NotFound):
        await store.mark_message_read("nope")


@pytest.mark.asyncio
async def test_store_initializes_lazily(tmp_path):
    from nurse_call.persistence.store import DomainStore

    lazy = DomainStore(str(tmp_path / "lazy.db"))
    record = await lazy.create_request(None, "low", "Water", "Geriatrics")
    assert (await lazy.get_request(record.id)).patient_id is None
    await lazy.close()
