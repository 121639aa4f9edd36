"""Data models for journal conversations and messages."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

ROLE_USER = "user"
ROLE_ASSISTANT = "assistant"
ROLE_SYSTEM = "system"
# Older journals stored assistant replies as "ai".
ROLE_LEGACY_AI = "ai"

_DISPLAY_ROLES = {
    ROLE_USER: "You",
    ROLE_ASSISTANT: "AI",
    ROLE_LEGACY_AI: "AI",
    ROLE_SYSTEM: "System",
}

STATUS_IN_PROGRESS = "inProgress"
# Set once the day has a summary.
STATUS_COMPLETED = "completed"
STATUS_FUTURE = "future"

_DISPLAY_STATUSES = {
    STATUS_COMPLETED: "Completed",
    STATUS_IN_PROGRESS: "In Progress",
    STATUS_FUTURE: "Future",
}


@dataclass
class Message:
    """A single journal message."""

    id: str
    conversation_id: str
    content: str
    role: str
    order: int
    timestamp: datetime

    @property
    def display_role(self) -> str:
        return _DISPLAY_ROLES.get(self.role, "Unknown")

    @property
    def is_user_message(self) -> bool:
        return self.role == ROLE_USER

    @property
    def is_assistant_message(self) -> bool:
        return self.role in (ROLE_ASSISTANT, ROLE_LEGACY_AI)

    @property
    def is_empty(self) -> bool:
        return not self.content.strip()


@dataclass
class Conversation:
    """One calendar day of journaling.

    ``messages`` is a snapshot taken when the conversation was fetched,
    sorted by ``order``.
    """

    id: str
    date: datetime  # start of day in the store's reference timezone
    day_number: int
    timestamp: datetime
    summary: str | None = None
    status: str = STATUS_IN_PROGRESS
    messages: list[Message] = field(default_factory=list)

    @property
    def has_messages(self) -> bool:
        return bool(self.messages)

    @property
    def has_summary(self) -> bool:
        return bool(self.summary)

    @property
    def last_message(self) -> Message | None:
        return self.messages[-1] if self.messages else None

    @property
    def display_status(self) -> str:
        return _DISPLAY_STATUSES.get(self.status, "Unknown")
