"""Conversation history models."""

from datetime import datetime, timezone

from pydantic import BaseModel, Field

from nova.models.llm import MessageRole


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ConversationMessage(BaseModel):
    role: MessageRole
    content: str
    tool_call_id: str | None = None
    timestamp: datetime = Field(default_factory=_utcnow)


class ConversationContext(BaseModel):
    """Transcript of one conversation, as shown in the history view."""

    conversation_id: str
    user_id: str | None = None
    messages: list[ConversationMessage] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=_utcnow)
    last_updated: datetime = Field(default_factory=_utcnow)
    message_count: int = 0

    def add_message(self, role: MessageRole, content: str) -> None:
        """Add a message to the conversation."""
        self.messages.append(ConversationMessage(role=role, content=content))
        self.message_count += 1
        self.last_updated = _utcnow()

    def clear(self) -> None:
        self.messages = []
        self.message_count = 0
        self.last_updated = _utcnow()
