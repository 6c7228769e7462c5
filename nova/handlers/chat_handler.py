"""Handler for streamed chat turns (``POST /universal-chat``)."""

import asyncio
import uuid
from collections.abc import AsyncIterator

from fastapi.responses import JSONResponse, StreamingResponse

from nova.core.exceptions import LLMError, LLMQuotaError, LLMRateLimitError
from nova.core.logging import LogEvents, get_logger
from nova.handlers.responses import error_response
from nova.models.api import ChatRequest, IncomingMessage
from nova.models.connectors import UserContext
from nova.models.llm import ChatMessage, MessageRole
from nova.services.conversation import ConversationController, PreparedTurn
from nova.services.history_service import HistoryService
from nova.services.request_supervisor import RequestSupervisor
from nova.utils.sse import DONE_EVENT, content_event, error_event

logger = get_logger("chat_handler")

REQUEST_KIND = "chat"
CONVERSATION_ROLES = {MessageRole.USER, MessageRole.ASSISTANT, MessageRole.SYSTEM}


def to_chat_messages(messages: list[IncomingMessage]) -> list[ChatMessage]:
    """Keep user, assistant and system messages; drop anything else the client sent."""
    converted = []
    for message in messages:
        try:
            role = MessageRole(message.role)
        except ValueError:
            continue
        if role in CONVERSATION_ROLES:
            converted.append(ChatMessage(role=role, content=message.content))
    return converted


def supersession_key(request: ChatRequest, user: UserContext | None) -> str:
    """Key under which a new stream replaces the caller's previous one.

    Anonymous requests without a conversation id get a key of their own, so
    unrelated callers never cancel each other.
    """
    if request.conversation_id:
        return f"conversation:{request.conversation_id}"
    if user is not None:
        return f"user:{user.user_id}"
    return f"request:{uuid.uuid4().hex}"


class ChatHandler:
    """Runs the conversation loop and relays the final pass as Server-Sent Events."""

    def __init__(
        self,
        controller: ConversationController,
        history: HistoryService,
        supervisor: RequestSupervisor,
    ) -> None:
        self._controller = controller
        self._history = history
        self._supervisor = supervisor

    async def handle(
        self,
        request: ChatRequest,
        user: UserContext | None = None,
    ) -> JSONResponse | StreamingResponse:
        messages = to_chat_messages(request.messages)
        if not any(m.role == MessageRole.USER for m in messages):
            return error_response("At least one user message is required")

        key = supersession_key(request, user)
        cancel = self._supervisor.begin(REQUEST_KIND, key)

        try:
            turn = await self._controller.prepare(messages, request.connected_sources, user)
        except LLMRateLimitError:
            self._supervisor.finish(REQUEST_KIND, key, cancel)
            return error_response("Rate limits exceeded, please try again later.", status_code=429)
        except LLMQuotaError:
            self._supervisor.finish(REQUEST_KIND, key, cancel)
            return error_response(
                "Payment required, please add funds to your workspace.", status_code=402
            )
        except LLMError as e:
            self._supervisor.finish(REQUEST_KIND, key, cancel)
            logger.error(LogEvents.LLM_REQUEST_FAILED, error=str(e))
            return error_response(e.message, status_code=500)

        if request.conversation_id:
            last_user = next(m for m in reversed(messages) if m.role == MessageRole.USER)
            self._history.add_message(
                request.conversation_id,
                MessageRole.USER,
                last_user.content or "",
                user_id=user.user_id if user else None,
            )

        return StreamingResponse(
            self._events(turn, cancel, key, request.conversation_id, user),
            media_type="text/event-stream",
            headers={"Cache-Control": "no-cache", "Connection": "keep-alive"},
        )

    async def _events(
        self,
        turn: PreparedTurn,
        cancel: asyncio.Event,
        key: str,
        conversation_id: str | None,
        user: UserContext | None,
    ) -> AsyncIterator[str]:
        parts: list[str] = []
        try:
            async for text in self._controller.stream(turn, cancel=cancel):
                parts.append(text)
                yield content_event(text)
        except LLMError as e:
            logger.error(LogEvents.STREAM_FAILED, error=str(e), chars_sent=sum(map(len, parts)))
            yield error_event(e.message)
        finally:
            self._supervisor.finish(REQUEST_KIND, key, cancel)

        text = "".join(parts)
        if conversation_id and text:
            self._history.add_message(
                conversation_id,
                MessageRole.ASSISTANT,
                text,
                user_id=user.user_id if user else None,
            )

        logger.info(
            LogEvents.STREAM_COMPLETED,
            chars=len(text),
            tool_rounds=turn.rounds,
            superseded=cancel.is_set(),
        )
        yield DONE_EVENT
