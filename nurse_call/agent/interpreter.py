"""Turn one complete JSON model turn into reply text plus side effects.

The model answers in a fixed envelope::

    {"thoughts": "...", "response": "...", "function_call": {"name": ..., "parameters": {...}}}

The whole turn is buffered before parsing, so a tool is only ever run from a
complete, validated envelope. Anything else fails closed with ``ParseError``.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from typing import Annotated, Any, Literal, Union

from langchain_core.tools import BaseTool
from pydantic import BaseModel, Field, TypeAdapter, ValidationError

from nurse_call.agent.state import ConversationContext
from nurse_call.errors import ParseError, UnknownTool
from nurse_call.tools import TOOLS_BY_NAME
from nurse_call.tools.requests import (
    CREATE_APOLOGY,
    QUERY_APOLOGY,
    UNKNOWN_ROOM,
    CreateRequestParams,
    GetPatientRequestsParams,
)

logger = logging.getLogger(__name__)

_CODE_FENCE = re.compile(r"^\s*```(?:json)?\s*(.*?)\s*```\s*$", re.DOTALL)


class CreateRequestCall(BaseModel):
    name: Literal["create_request"]
    parameters: CreateRequestParams


class GetPatientRequestsCall(BaseModel):
    name: Literal["get_patient_requests"]
    parameters: GetPatientRequestsParams


ToolInvocation = Annotated[
    Union[CreateRequestCall, GetPatientRequestsCall],
    Field(discriminator="name"),
]

_invocation_adapter: TypeAdapter[Any] = TypeAdapter(ToolInvocation)


@dataclass
class TurnResult:
    """What the patient sees for one turn, and what it did."""

    response: str
    action_text: str | None = None
    invocation: CreateRequestCall | GetPatientRequestsCall | None = None
    record_id: str | None = None
    request: dict[str, Any] | None = None

    @property
    def text(self) -> str:
        if self.action_text:
            return f"{self.response}\n{self.action_text}"
        return self.response


def _load_json(output: str) -> Any:
    """json.loads with code-fence and surrounding-prose tolerance."""
    text = output.strip()
    fenced = _CODE_FENCE.match(text)
    if fenced:
        text = fenced.group(1)
    try:
        return json.loads(text)
    except json.JSONDecodeError as first_error:
        start, end = text.find("{"), text.rfind("}")
        if start == -1 or end <= start:
            raise ParseError(f"Model output is not JSON: {first_error}") from first_error
        try:
            return json.loads(text[start : end + 1])
        except json.JSONDecodeError as e:
            raise ParseError(f"Model output is not JSON: {e}") from e


def parse_envelope(output: str) -> tuple[str, dict[str, Any] | None]:
    """Return ``(response, function_call)`` from a model turn."""
    data = _load_json(output)
    if not isinstance(data, dict):
        raise ParseError("Model output is not a JSON object")
    response = data.get("response")
    if not isinstance(response, str):
        raise ParseError("Model output has no 'response' string")

    call = data.get("function_call")
    if call is None or call == {} or call == "":
        return response, None
    if not isinstance(call, dict):
        raise ParseError("'function_call' must be an object")
    name = call.get("name")
    if name in (None, ""):
        return response, None
    if not isinstance(name, str):
        raise ParseError("'function_call.name' must be a string")

    params = call.get("parameters", call.get("arguments", {}))
    # Some models JSON-encode the arguments
    if isinstance(params, str):
        try:
            params = json.loads(params) if params.strip() else {}
        except json.JSONDecodeError as e:
            raise ParseError(f"'function_call.parameters' is not JSON: {e}") from e
    if params is None:
        params = {}
    if not isinstance(params, dict):
        raise ParseError("'function_call.parameters' must be an object")
    return response, {"name": name, "parameters": params}


class ToolCallInterpreter:
    """Parse a model turn, validate its tool call, and run it."""

    def __init__(self, tools: dict[str, BaseTool] | None = None) -> None:
        self.tools = tools if tools is not None else TOOLS_BY_NAME

    def parse_invocation(
        self, call: dict[str, Any]
    ) -> CreateRequestCall | GetPatientRequestsCall:
        if call["name"] not in self.tools:
            logger.error("Model invoked undeclared tool %r", call["name"])
            raise UnknownTool(call["name"])
        try:
            return _invocation_adapter.validate_python(call)
        except ValidationError as e:
            raise ParseError(
                f"Invalid parameters for {call['name']}: {e.error_count()} error(s)"
            ) from e

    async def interpret(
        self, model_output: str, context: ConversationContext | None = None
    ) -> TurnResult:
        context = context or ConversationContext()
        response, call = parse_envelope(model_output)
        if call is None:
            return TurnResult(response=response)

        invocation = self.parse_invocation(call)
        if isinstance(invocation, CreateRequestCall):
            return await self._create_request(response, invocation, context)
        return await self._get_patient_requests(response, invocation, context)

    async def _create_request(
        self,
        response: str,
        invocation: CreateRequestCall,
        context: ConversationContext,
    ) -> TurnResult:
        tool_input = {
            **invocation.parameters.model_dump(mode="json"),
            "room": context.room or UNKNOWN_ROOM,
            "patient_id": context.patient_id,
        }
        result = await self.tools["create_request"].ainvoke(tool_input)
        if result.get("status") != "success":
            logger.error("create_request failed: %s", result.get("error"))
            return TurnResult(
                response=response, action_text=CREATE_APOLOGY, invocation=invocation
            )
        data = result["data"]
        return TurnResult(
            response=response,
            action_text=data["summary"],
            invocation=invocation,
            record_id=data["record_id"],
            request=data["request"],
        )

    async def _get_patient_requests(
        self,
        response: str,
        invocation: GetPatientRequestsCall,
        context: ConversationContext,
    ) -> TurnResult:
        params = invocation.parameters
        patient_id = params.patientId
        # The session-bound patient wins over whatever the model supplied
        if context.patient_id and context.patient_id != patient_id:
            logger.warning(
                "Overriding patientId %s -> %s in get_patient_requests",
                patient_id,
                context.patient_id,
            )
            patient_id = context.patient_id
        status = params.status.value if params.status else None
        result = await self.tools["get_patient_requests"].ainvoke(
            {"patientId": patient_id, "status": status}
        )
        if result.get("status") != "success":
            logger.error("get_patient_requests failed: %s", result.get("error"))
            return TurnResult(
                response=response, action_text=QUERY_APOLOGY, invocation=invocation
            )
        return TurnResult(
            response=response,
            action_text=result["data"]["summary"],
            invocation=invocation,
        )
