"""Per-conversation state passed explicitly through each chat turn."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal

Role = Literal["system", "user", "assistant"]


@dataclass
class ChatMessage:
    role: Role
    content: str


@dataclass
class ConversationContext:
    """Context for one chat exchange: history plus who and where the patient is."""

    prior_messages: list[ChatMessage] = field(default_factory=list)
    patient_id: str | None = None
    room: str | None = None
    department_hint: str | None = None
