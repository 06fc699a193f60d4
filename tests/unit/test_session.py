"""Unit tests for chat sessions, patient binding and model request building."""

import pytest

from nurse_call.agent.session import ChatSession, SessionRegistry, build_request, system_prompt
from nurse_call.agent.state import ChatMessage, ConversationContext
from nurse_call.errors import SessionBindingError


def test_build_request_orders_system_history_user():
    history = [
        ChatMessage(role="user", content="I feel dizzy"),
        ChatMessage(role="assistant", content='{"response": "Sit down, please."}'),
    ]
    context = ConversationContext(prior_messages=history, patient_id="p-1", room="12B")

    messages = build_request("It is getting worse", context)

    assert [m.role for m in messages] == ["system", "user", "assistant", "user"]
    assert messages[1:3] == history
    assert messages[-1].content == "It is getting worse"


def test_system_prompt_declares_envelope_and_tools():
    prompt = system_prompt(ConversationContext())
    assert '"function_call"' in prompt
    assert "create_request" in prompt
    assert "get_patient_requests" in prompt
    assert "Current Patient Context" not in prompt


def test_system_prompt_hides_injected_tool_args():
    prompt = system_prompt(ConversationContext())
    # room and patient_id come from the session, never from the model
    assert '"room"' not in prompt
    assert '"patient_id"' not in prompt


def test_system_prompt_includes_known_context():
    prompt = system_prompt(ConversationContext(patient_id="p-9", room="305"))
    assert "## Current Patient Context" in prompt
    assert "Patient ID: p-9" in prompt
    assert "Room: 305" in prompt


def test_late_binding_sets_patient_and_room():
    session = ChatSession(session_id="s-1")
    session.bind_patient(None)
    assert session.context.patient_id is None

    session.bind_patient("p-1", room="204")
    assert session.context.patient_id == "p-1"
    assert session.context.room == "204"


def test_rebinding_same_patient_is_allowed():
    session = ChatSession(session_id="s-1")
    session.bind_patient("p-1")
    session.bind_patient("p-1", room="205")
    assert session.context.room == "205"


def test_switching_patient_is_rejected():
    session = ChatSession(session_id="s-1")
    session.bind_patient("p-1")

    with pytest.raises(SessionBindingError, match="mid-conversation"):
        session.bind_patient("p-2")

    assert session.context.patient_id == "p-1"


def test_record_turn_trims_to_newest_messages():
    session = ChatSession(session_id="s-1", max_history=4)
    for i in range(3):
        session.record_turn(f"question {i}", f"answer {i}")

    history = session.context.prior_messages
    assert len(history) == 4
    assert history[0].content == "question 1"
    assert history[-1].content == "answer 2"


def test_record_turn_without_assistant_output():
    session = ChatSession(session_id="s-1")
    session.record_turn("hello", None)
    assert [m.role for m in session.context.prior_messages] == ["user"]


def test_registry_reuses_and_drops_sessions():
    registry = SessionRegistry(max_history=6)
    first = registry.get_or_create("conn-1")
    assert registry.get_or_create("conn-1") is first
    assert first.max_history == 6

    generated = registry.get_or_create()
    assert generated.session_id
    assert len(registry) == 2

    registry.drop("conn-1")
    assert registry.get("conn-1") is None
    registry.drop("conn-1")
    assert len(registry) == 1


def test_sessions_do_not_share_history():
    registry = SessionRegistry()
    a = registry.get_or_create("a")
    b = registry.get_or_create("b")
    a.record_turn("only in a", "ok")
    assert b.context.prior_messages == []
