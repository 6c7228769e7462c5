"""Conversation loop: model pass with tools, tool execution, final streamed pass."""

import asyncio
import json
from collections.abc import AsyncIterator, Sequence
from enum import Enum

from pydantic import BaseModel, Field

from nova.config import Settings, get_settings
from nova.core.logging import LogEvents, get_logger
from nova.models.connectors import ConnectedSource, UserContext
from nova.models.feedback import PromptAdjustment
from nova.models.llm import ChatMessage, MessageRole, ToolCall, ToolResult
from nova.models.results import ErrorKind
from nova.providers.base import BaseLLMProvider
from nova.services.feedback_service import FeedbackStore, LearningStore
from nova.services.prompt_builder import PromptBuilder
from nova.services.tool_router import ToolRouter
from nova.utils.intent_parser import nudge_text, parse_intent, select_tool_nudge

logger = get_logger("conversation")


class LoopState(str, Enum):
    AWAITING_MODEL = "awaiting_model"
    EXECUTING_TOOLS = "executing_tools"
    STREAMING = "streaming"


class PreparedTurn(BaseModel):
    """Everything the final streaming pass needs."""

    messages: list[ChatMessage]
    system_prompt: str
    tool_results: list[ToolResult] = Field(default_factory=list)
    rounds: int = 0
    nudge: str | None = None


class ConversationController:
    """Runs one chat turn against the model gateway.

    ``prepare`` does the non-streaming work: the first model pass with tools
    (and a first-pass nudge when the intent parser finds one), then up to
    ``max_tool_rounds`` rounds of tool execution. ``stream`` makes the final
    call without tools and yields text deltas.

    Gateway rate limit and quota errors raised by ``prepare`` propagate so the
    caller can answer before any stream begins.
    """

    def __init__(
        self,
        provider: BaseLLMProvider,
        router: ToolRouter,
        prompt_builder: PromptBuilder | None = None,
        feedback_store: FeedbackStore | None = None,
        learning_store: LearningStore | None = None,
        settings: Settings | None = None,
    ) -> None:
        self._provider = provider
        self._router = router
        self._prompts = prompt_builder or PromptBuilder()
        self._feedback = feedback_store
        self._learning = learning_store
        self._settings = settings or get_settings()

    def adjustments(self) -> list[PromptAdjustment]:
        adjustments: list[PromptAdjustment] = []
        if self._feedback is not None:
            adjustments.extend(self._feedback.get_adjustments())
        if self._learning is not None:
            adjustments.extend(self._learning.get_adjustments())
        return adjustments

    def system_prompt(self, sources: Sequence[ConnectedSource]) -> str:
        """Base system prompt for a request (no nudges)."""
        return self._prompts.build(self._router.active_connectors(sources), self.adjustments())

    async def prepare(
        self,
        messages: list[ChatMessage],
        sources: Sequence[ConnectedSource] = (),
        user: UserContext | None = None,
    ) -> PreparedTurn:
        """Run the tool-calling passes and return the history for the final pass."""
        tools = self._router.available_tools(sources)
        base_prompt = self.system_prompt(sources)

        last_user = next(
            (m.content for m in reversed(messages) if m.role == MessageRole.USER and m.content),
            "",
        )
        intent = parse_intent(last_user)
        nudge = select_tool_nudge(intent, (t.name for t in tools))
        first_prompt = base_prompt
        if nudge:
            first_prompt = f"{base_prompt}\n\n{nudge_text(nudge, intent)}"
            logger.info(LogEvents.LOOP_NUDGE_APPLIED, tool=nudge)

        history = list(messages)
        results: list[ToolResult] = []
        max_rounds = self._settings.max_tool_rounds

        self._transition(LoopState.AWAITING_MODEL, tool_count=len(tools))
        logger.info(
            LogEvents.LLM_REQUEST_STARTED,
            provider=self._provider.provider_name,
            model=self._provider.model,
            tool_count=len(tools),
        )
        response = await self._provider.chat(
            history, system_prompt=first_prompt, tools=tools or None
        )
        logger.info(
            LogEvents.LLM_REQUEST_COMPLETED,
            finish_reason=response.finish_reason,
            tool_calls=len(response.tool_calls or []),
        )

        rounds = 0
        while response.tool_calls:
            if rounds >= max_rounds:
                logger.info(
                    LogEvents.LOOP_ROUND_LIMIT_REACHED,
                    rounds=rounds,
                    skipped=[tc.name for tc in response.tool_calls],
                )
                break
            rounds += 1

            self._transition(LoopState.EXECUTING_TOOLS, round=rounds)
            logger.debug(
                LogEvents.LLM_TOOL_CALL,
                tool_count=len(response.tool_calls),
                tools=[tc.name for tc in response.tool_calls],
            )
            history.append(
                ChatMessage(
                    role=MessageRole.ASSISTANT,
                    content=response.content,
                    tool_calls=response.tool_calls,
                )
            )
            round_results = await self.execute_tools(response.tool_calls, sources, user)
            history.extend(ChatMessage.from_tool_result(r) for r in round_results)
            results.extend(round_results)

            if rounds >= max_rounds:
                break

            # Later passes carry no nudge
            self._transition(LoopState.AWAITING_MODEL, round=rounds + 1)
            response = await self._provider.chat(
                history, system_prompt=base_prompt, tools=tools or None
            )

        self._transition(LoopState.STREAMING, rounds=rounds)
        return PreparedTurn(
            messages=history,
            system_prompt=base_prompt,
            tool_results=results,
            rounds=rounds,
            nudge=nudge,
        )

    async def execute_tools(
        self,
        calls: list[ToolCall],
        sources: Sequence[ConnectedSource] = (),
        user: UserContext | None = None,
    ) -> list[ToolResult]:
        """Execute tool calls, returning results in request order."""
        if self._settings.parallel_tool_execution:
            return list(
                await asyncio.gather(*(self._execute_one(c, sources, user) for c in calls))
            )

        results = []
        for call in calls:
            results.append(await self._execute_one(call, sources, user))
        return results

    async def _execute_one(
        self,
        call: ToolCall,
        sources: Sequence[ConnectedSource],
        user: UserContext | None,
    ) -> ToolResult:
        try:
            result = await self._router.dispatch(call.name, call.arguments, sources, user)
        except Exception as e:
            logger.error(LogEvents.TOOL_ERROR, tool=call.name, error=str(e), exc_info=True)
            payload = {"error": str(e) or type(e).__name__, "error_type": ErrorKind.UPSTREAM.value}
            return ToolResult(
                tool_call_id=call.id, name=call.name, content=json.dumps(payload), is_error=True
            )

        return ToolResult(
            tool_call_id=call.id,
            name=call.name,
            content=json.dumps(result.to_payload(), default=str),
            is_error=not result.ok,
        )

    async def stream(
        self,
        turn: PreparedTurn,
        cancel: asyncio.Event | None = None,
    ) -> AsyncIterator[str]:
        """Yield text deltas of the final pass, stopping early once ``cancel`` is set."""
        logger.info(
            LogEvents.LLM_STREAMING_STARTED,
            provider=self._provider.provider_name,
            model=self._provider.model,
            message_count=len(turn.messages),
        )
        async for chunk in self._provider.stream(turn.messages, system_prompt=turn.system_prompt):
            if cancel is not None and cancel.is_set():
                logger.info(LogEvents.STREAM_SUPERSEDED)
                return
            if chunk.content:
                yield chunk.content
            if chunk.done:
                break

    def _transition(self, state: LoopState, **context: object) -> None:
        logger.debug(LogEvents.LOOP_STATE_CHANGED, state=state.value, **context)
