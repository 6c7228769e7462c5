"""Conversation history management service."""

from typing import Any

from nova.core.logging import LogEvents, get_logger
from nova.models.conversation import ConversationContext
from nova.models.llm import MessageRole

logger = get_logger("history_service")


class HistoryService:
    """Keeps a capped transcript per conversation id.

    In-memory and process-scoped: history is lost on restart and is not shared
    between server instances.
    """

    def __init__(self, max_messages: int = 50) -> None:
        self._history: dict[str, ConversationContext] = {}
        self._max_messages = max_messages

    def get_or_create_context(
        self,
        conversation_id: str,
        user_id: str | None = None,
    ) -> ConversationContext:
        """Get existing context or create a new one."""
        if conversation_id not in self._history:
            self._history[conversation_id] = ConversationContext(
                conversation_id=conversation_id,
                user_id=user_id,
            )
            logger.debug(
                "conversation_context_created",
                conversation_id=conversation_id,
                user_id=user_id,
            )
        return self._history[conversation_id]

    def get_context(self, conversation_id: str) -> ConversationContext | None:
        context = self._history.get(conversation_id)
        if context:
            logger.debug(
                LogEvents.HISTORY_RETRIEVED,
                conversation_id=conversation_id,
                message_count=context.message_count,
            )
        return context

    def add_message(
        self,
        conversation_id: str,
        role: MessageRole,
        content: str,
        user_id: str | None = None,
    ) -> ConversationContext:
        """Add a message to the conversation history."""
        context = self.get_or_create_context(conversation_id, user_id)
        context.add_message(role, content)

        # Trim history if too long
        if len(context.messages) > self._max_messages:
            context.messages = context.messages[-self._max_messages:]

        logger.debug(
            LogEvents.HISTORY_UPDATED,
            conversation_id=conversation_id,
            role=role.value,
            message_count=context.message_count,
        )
        return context

    def delete_context(self, conversation_id: str) -> bool:
        if conversation_id in self._history:
            del self._history[conversation_id]
            logger.info("conversation_context_deleted", conversation_id=conversation_id)
            return True
        return False

    def get_stats(self) -> dict[str, Any]:
        """Get statistics about conversation history."""
        return {
            "total_conversations": len(self._history),
            "total_messages": sum(len(c.messages) for c in self._history.values()),
        }
