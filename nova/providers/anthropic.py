"""Anthropic Claude provider."""

from collections.abc import AsyncIterator
from typing import Any

import anthropic
from anthropic import AsyncAnthropic

from nova.core.exceptions import LLMProviderError
from nova.core.logging import get_logger
from nova.models.llm import ChatMessage, LLMResponse, MessageRole, StreamChunk, TokenUsage, ToolCall
from nova.models.tools import ToolDescriptor
from nova.providers.base import BaseLLMProvider

logger = get_logger("anthropic_provider")


class AnthropicProvider(BaseLLMProvider):
    """Anthropic Claude API provider."""

    provider_name = "anthropic"

    def __init__(
        self,
        api_key: str | None = None,
        model: str = "claude-sonnet-4-20250514",
        max_tokens: int = 8192,
        base_url: str | None = None,
        timeout: int = 120,
        client: AsyncAnthropic | None = None,
    ) -> None:
        super().__init__(
            api_key=api_key,
            model=model,
            max_tokens=max_tokens,
            base_url=base_url,
            timeout=timeout,
        )
        self.client = client or AsyncAnthropic(api_key=api_key, timeout=timeout)

    def _convert_messages(
        self,
        messages: list[ChatMessage],
        system_prompt: str | None = None,
        flatten_tools: bool = False,
    ) -> tuple[str | None, list[dict[str, Any]]]:
        """Convert messages to Anthropic format, extracting system prompt.

        With ``flatten_tools`` tool calls and results are rendered as plain text,
        for requests that declare no tools.
        """
        anthropic_messages = []
        system = system_prompt

        for msg in messages:
            if msg.role == MessageRole.SYSTEM:
                system = f"{system}\n\n{msg.content}" if system else msg.content
                continue
            if flatten_tools and msg.role == MessageRole.TOOL:
                anthropic_messages.append(
                    {"role": "user", "content": f"[Result of {msg.name or 'tool'}]: {msg.content}"}
                )
                continue
            if flatten_tools and msg.role == MessageRole.ASSISTANT and msg.tool_calls:
                names = ", ".join(tc.name for tc in msg.tool_calls)
                text = msg.content or f"[Called {names}]"
                anthropic_messages.append({"role": "assistant", "content": text})
                continue
            anthropic_messages.append(msg.to_anthropic_format())

        return system, anthropic_messages

    def _parse_response(self, response: Any) -> LLMResponse:
        """Parse Anthropic response to unified format."""
        content = ""
        tool_calls = []

        for block in response.content:
            if block.type == "text":
                content += block.text
            elif block.type == "tool_use":
                tool_calls.append(
                    ToolCall(
                        id=block.id,
                        name=block.name,
                        arguments=block.input if isinstance(block.input, dict) else {},
                    )
                )

        finish_reason = "stop"
        if response.stop_reason == "tool_use":
            finish_reason = "tool_calls"
        elif response.stop_reason == "max_tokens":
            finish_reason = "length"

        return LLMResponse(
            content=content,
            tool_calls=tool_calls or None,
            finish_reason=finish_reason,
            usage=TokenUsage.from_anthropic(response.usage),
            model=response.model,
            provider=self.provider_name,
        )

    def _map_error(self, error: anthropic.APIError, stage: str) -> LLMProviderError:
        return self.gateway_error(
            getattr(error, "status_code", None), str(getattr(error, "message", error)), stage
        )

    async def chat(
        self,
        messages: list[ChatMessage],
        system_prompt: str | None = None,
        tools: list[ToolDescriptor] | None = None,
        **kwargs: Any,
    ) -> LLMResponse:
        """Send a chat completion request to Anthropic."""
        system, anthropic_messages = self._convert_messages(messages, system_prompt)

        request_kwargs: dict[str, Any] = {
            "model": self.model,
            "max_tokens": self.max_tokens,
            "messages": anthropic_messages,
        }
        if system:
            request_kwargs["system"] = system
        if tools:
            request_kwargs["tools"] = [tool.to_anthropic_format() for tool in tools]

        logger.debug(
            "anthropic_request",
            model=self.model,
            message_count=len(anthropic_messages),
            tool_count=len(tools or []),
        )

        try:
            response = await self.client.messages.create(**request_kwargs)
        except anthropic.APIError as e:
            raise self._map_error(e, "request") from e

        result = self._parse_response(response)
        logger.debug(
            "anthropic_response",
            finish_reason=result.finish_reason,
            tool_calls=len(result.tool_calls) if result.tool_calls else 0,
        )
        return result

    async def stream(
        self,
        messages: list[ChatMessage],
        system_prompt: str | None = None,
        **kwargs: Any,
    ) -> AsyncIterator[StreamChunk]:
        """Stream a chat completion response from Anthropic."""
        system, anthropic_messages = self._convert_messages(messages, system_prompt, flatten_tools=True)

        request_kwargs: dict[str, Any] = {
            "model": self.model,
            "max_tokens": self.max_tokens,
            "messages": anthropic_messages,
        }
        if system:
            request_kwargs["system"] = system

        logger.debug(
            "anthropic_stream_start",
            model=self.model,
            message_count=len(anthropic_messages),
        )

        try:
            async with self.client.messages.stream(**request_kwargs) as stream:
                async for event in stream:
                    if event.type == "content_block_delta" and hasattr(event.delta, "text"):
                        yield StreamChunk(content=event.delta.text)
                    elif event.type == "message_stop":
                        yield StreamChunk(done=True, finish_reason="stop")
        except anthropic.APIError as e:
            raise self._map_error(e, "stream") from e

    async def health_check(self) -> bool:
        """Check if Anthropic API is accessible."""
        try:
            response = await self.client.messages.create(
                model=self.model or "claude-sonnet-4-20250514",
                max_tokens=10,
                messages=[{"role": "user", "content": "Hi"}],
            )
            return response is not None
        except anthropic.APIError as e:
            logger.warning("anthropic_health_check_failed", error=str(e))
            return False
