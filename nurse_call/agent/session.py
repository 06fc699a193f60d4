"""Conversational sessions: model request building and per-connection context."""

from __future__ import annotations

import json
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone

from nurse_call.agent.prompts import CONVERSATION_FOCUS, HOSPITAL_ASSISTANT_SYSTEM_PROMPT
from nurse_call.agent.state import ChatMessage, ConversationContext
from nurse_call.errors import SessionBindingError
from nurse_call.tools import tool_schemas

logger = logging.getLogger(__name__)


def system_prompt(context: ConversationContext) -> str:
    """Fixed prompt plus tool declarations and whatever the context knows."""
    prompt = HOSPITAL_ASSISTANT_SYSTEM_PROMPT
    prompt += "\n## Available functions\n" + json.dumps(tool_schemas(), indent=2)
    details = []
    if context.patient_id:
        details.append(f"Patient ID: {context.patient_id}")
    if context.room:
        details.append(f"Room: {context.room}")
    if context.department_hint:
        details.append(f"Likely department: {context.department_hint}")
    if details:
        prompt += "\n\n## Current Patient Context\n" + "\n".join(details)
    return prompt + "\n\n" + CONVERSATION_FOCUS


def build_request(user_message: str, context: ConversationContext) -> list[ChatMessage]:
    """System prompt, then prior turns, then the new user message."""
    return [
        ChatMessage(role="system", content=system_prompt(context)),
        *context.prior_messages,
        ChatMessage(role="user", content=user_message),
    ]


@dataclass
class ChatSession:
    """Server-side session state, one per connection or REST conversation."""

    session_id: str
    context: ConversationContext = field(default_factory=ConversationContext)
    max_history: int = 20
    created_at: str = field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat()
    )

    def bind_patient(self, patient_id: str | None, room: str | None = None) -> None:
        """Late-bind the patient; rejects switching patients mid-conversation."""
        current = self.context.patient_id
        if current and patient_id and patient_id != current:
            raise SessionBindingError(
                "Cannot change patient context mid-conversation. "
                "Start a new conversation."
            )
        if patient_id and not current:
            self.context.patient_id = patient_id
        if room:
            self.context.room = room

    def record_turn(self, user_message: str, assistant_output: str | None) -> None:
        """Append one exchange to history, keeping the newest ``max_history`` messages."""
        history = self.context.prior_messages
        history.append(ChatMessage(role="user", content=user_message))
        if assistant_output:
            history.append(ChatMessage(role="assistant", content=assistant_output))
        if len(history) > self.max_history:
            del history[: len(history) - self.max_history]


class SessionRegistry:
    """In-memory sessions keyed by connection id or conversation id."""

    def __init__(self, max_history: int = 20) -> None:
        self.max_history = max_history
        self._sessions: dict[str, ChatSession] = {}

    def get_or_create(self, session_id: str | None = None) -> ChatSession:
        session_id = session_id or str(uuid.uuid4())
        session = self._sessions.get(session_id)
        if session is None:
            session = ChatSession(session_id=session_id, max_history=self.max_history)
            self._sessions[session_id] = session
        return session

    def get(self, session_id: str) -> ChatSession | None:
        return self._sessions.get(session_id)

    def drop(self, session_id: str) -> None:
        if self._sessions.pop(session_id, None) is not None:
            logger.debug("Session %s dropped", session_id)

    def __len__(self) -> int:
        return len(self._sessions)
