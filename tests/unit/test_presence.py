"""Unit tests for department rooms and request fan-out."""

import asyncio

import pytest

from nurse_call.realtime.presence import (
    MESSAGE_READ_EVENT,
    REQUEST_UPDATE_EVENT,
    PresenceRouter,
    room_name,
)


class FailingConnection:
    def __init__(self, connection_id):
        self.connection_id = connection_id

    async def emit(self, event, data):
        raise ConnectionResetError("peer gone")


class StalledConnection:
    def __init__(self, connection_id):
        self.connection_id = connection_id

    async def emit(self, event, data):
        await asyncio.sleep(10)


def _request(department="Cardiology", request_id="r-1", **extra):
    return {"id": request_id, "department": department, "priority": "high", **extra}


@pytest.fixture
def router():
    return PresenceRouter(send_timeout=0.05)


@pytest.mark.asyncio
async def test_new_request_reaches_only_its_department(router, make_connection):
    cardio = make_connection("c-1")
    neuro = make_connection("c-2")
    patient = make_connection("c-3")
    for conn in (cardio, neuro, patient):
        router.connect(conn)
    router.join("c-1", "nurse", "Cardiology")
    router.join("c-2", "admin", "Neurology")
    router.join("c-3", "patient", "Cardiology")

    delivered = await router.broadcast_new_request(_request())

    assert delivered == 1
    assert cardio.frames == [(REQUEST_UPDATE_EVENT, {"type": "new", "request": _request()})]
    assert neuro.frames == []
    assert patient.frames == []


@pytest.mark.asyncio
async def test_update_event_type(router, make_connection):
    nurse = make_connection("c-1")
    router.connect(nurse)
    router.join("c-1", "nurse", "Surgery")

    await router.broadcast_request_update(_request("Surgery", status="assigned"))

    event, data = nurse.frames[0]
    assert event == REQUEST_UPDATE_EVENT
    assert data["type"] == "update"
    assert data["request"]["status"] == "assigned"


@pytest.mark.asyncio
async def test_record_objects_are_serialised(router, make_connection, store):
    nurse = make_connection("c-1")
    router.connect(nurse)
    router.join("c-1", "nurse", "Oncology")
    record = await store.create_request("p-1", "low", "Water", "Oncology")

    await router.broadcast_new_request(record)

    assert nurse.frames[0][1]["request"] == record.to_dict()


@pytest.mark.asyncio
async def test_members_see_broadcasts_in_source_order(router, make_connection):
    nurse = make_connection("c-1")
    router.connect(nurse)
    router.join("c-1", "nurse", "Maternity")

    await asyncio.gather(
        *(router.broadcast_new_request(_request("Maternity", f"r-{i}")) for i in range(5))
    )

    assert [data["request"]["id"] for _, data in nurse.frames] == [f"r-{i}" for i in range(5)]


@pytest.mark.asyncio
async def test_failing_and_stalled_members_are_skipped(router, make_connection):
    healthy = make_connection("c-1")
    router.connect(FailingConnection("c-0"))
    router.connect(StalledConnection("c-2"))
    router.connect(healthy)
    for cid in ("c-0", "c-1", "c-2"):
        router.join(cid, "nurse", "Emergency")

    delivered = await router.broadcast_new_request(_request("Emergency"))

    assert delivered == 1
    assert len(healthy.frames) == 1


@pytest.mark.asyncio
async def test_rejoin_moves_connection(router, make_connection):
    nurse = make_connection("c-1")
    router.connect(nurse)
    assert router.join("c-1", "nurse", "Cardiology") is True
    assert router.join("c-1", "nurse", "Neurology") is True

    assert router.department_of("c-1") == "Neurology"
    assert router.members("Cardiology") == []
    await router.broadcast_new_request(_request("Cardiology"))
    await router.broadcast_new_request(_request("Neurology", "r-2"))
    assert [data["request"]["id"] for _, data in nurse.frames] == ["r-2"]


@pytest.mark.asyncio
async def test_patient_join_is_a_no_op(router, make_connection):
    router.connect(make_connection("c-1"))
    assert router.join("c-1", "patient", "Cardiology") is False
    assert router.department_of("c-1") is None


def test_join_without_department_or_connection(router, make_connection):
    router.connect(make_connection("c-1"))
    assert router.join("c-1", "nurse", None) is False
    assert router.join("unknown", "nurse", "Cardiology") is False


@pytest.mark.asyncio
async def test_disconnect_leaves_room(router, make_connection):
    nurse = make_connection("c-1")
    router.connect(nurse)
    router.join("c-1", "nurse", "Geriatrics")
    router.disconnect("c-1")

    assert await router.broadcast_new_request(_request("Geriatrics")) == 0
    assert router.members("Geriatrics") == []
    router.disconnect("c-1")


@pytest.mark.asyncio
async def test_request_without_department_is_not_broadcast(router, make_connection):
    nurse = make_connection("c-1")
    router.connect(nurse)
    router.join("c-1", "nurse", "Cardiology")

    assert await router.broadcast_new_request({"id": "r-1"}) == 0
    assert nurse.frames == []


@pytest.mark.asyncio
async def test_message_read_targets_known_user(router, make_connection):
    sender = make_connection("c-1")
    other = make_connection("c-2")
    router.connect(sender)
    router.connect(other)
    router.join("c-1", "patient", None, user_id="p-1")

    delivered = await router.broadcast_message_read("m-1", user_id="p-1")

    assert delivered == 1
    assert sender.frames == [(MESSAGE_READ_EVENT, {"messageId": "m-1"})]
    assert other.frames == []


@pytest.mark.asyncio
async def test_message_read_for_unknown_user_reaches_everyone(router, make_connection):
    a, b = make_connection("c-1"), make_connection("c-2")
    router.connect(a)
    router.connect(b)

    assert await router.broadcast_message_read("m-1", user_id="ghost") == 2


def test_room_name():
    assert room_name("Intensive Care") == "department:Intensive Care"
