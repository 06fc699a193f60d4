"""Unit tests for the LangChain tool registry."""

from nurse_call.schemas.domain import NursingDepartment
from nurse_call.tools import ALL_TOOLS, TOOLS_BY_NAME, tool_schemas


def test_all_tools_count():
    assert len(ALL_TOOLS) == 2


def test_all_tools_have_names():
    for t in ALL_TOOLS:
        assert hasattr(t, "name")
        assert t.name
    assert set(TOOLS_BY_NAME) == {"create_request", "get_patient_requests"}


def test_create_request_schema_offers_only_model_arguments():
    schema = next(
        s for s in tool_schemas() if s["function"]["name"] == "create_request"
    )
    params = schema["function"]["parameters"]
    assert set(params["properties"]) == {"priority", "description", "department"}
    assert set(params["required"]) == {"priority", "description", "department"}


def test_department_enum_lists_every_department():
    schema = next(
        s for s in tool_schemas() if s["function"]["name"] == "create_request"
    )
    text = str(schema)
    for department in NursingDepartment:
        assert department.value in text


def test_get_patient_requests_requires_patient_id():
    schema = next(
        s for s in tool_schemas() if s["function"]["name"] == "get_patient_requests"
    )
    params = schema["function"]["parameters"]
    assert params["required"] == ["patientId"]
