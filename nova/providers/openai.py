"""OpenAI-compatible gateway provider."""

import json
from collections.abc import AsyncIterator
from typing import Any

import openai
from openai import AsyncOpenAI

from nova.core.exceptions import LLMProviderError
from nova.core.logging import get_logger
from nova.models.llm import ChatMessage, LLMResponse, StreamChunk, TokenUsage, ToolCall
from nova.models.tools import ToolDescriptor
from nova.providers.base import BaseLLMProvider

logger = get_logger("openai_provider")


class OpenAIProvider(BaseLLMProvider):
    """Provider for OpenAI or any gateway exposing the chat completions API."""

    provider_name = "openai"

    def __init__(
        self,
        api_key: str | None = None,
        model: str = "gpt-4o-mini",
        max_tokens: int = 4096,
        base_url: str | None = None,
        timeout: int = 120,
        client: AsyncOpenAI | None = None,
    ) -> None:
        super().__init__(
            api_key=api_key,
            model=model,
            max_tokens=max_tokens,
            base_url=base_url,
            timeout=timeout,
        )
        self.client = client or AsyncOpenAI(
            api_key=api_key, base_url=base_url, timeout=timeout
        )

    def _convert_messages(
        self, messages: list[ChatMessage], system_prompt: str | None = None
    ) -> list[dict[str, Any]]:
        """Convert messages to OpenAI format."""
        openai_messages = []
        if system_prompt:
            openai_messages.append({"role": "system", "content": system_prompt})
        for msg in messages:
            openai_messages.append(msg.to_openai_format())
        return openai_messages

    def _convert_tools(
        self, tools: list[ToolDescriptor] | None
    ) -> list[dict[str, Any]] | None:
        if not tools:
            return None
        return [tool.to_openai_format() for tool in tools]

    def _parse_response(self, response: Any) -> LLMResponse:
        """Parse an OpenAI response into the unified format."""
        choice = response.choices[0]
        message = choice.message

        tool_calls = []
        for tc in message.tool_calls or []:
            try:
                args = json.loads(tc.function.arguments or "{}")
            except json.JSONDecodeError:
                logger.warning(
                    "openai_tool_arguments_invalid",
                    tool=tc.function.name,
                    arguments=tc.function.arguments,
                )
                args = {}
            tool_calls.append(ToolCall(id=tc.id, name=tc.function.name, arguments=args))

        finish_reason_map = {
            "stop": "stop",
            "tool_calls": "tool_calls",
            "length": "length",
            "content_filter": "error",
        }
        finish_reason = finish_reason_map.get(choice.finish_reason or "stop", "stop")

        return LLMResponse(
            content=message.content or "",
            tool_calls=tool_calls or None,
            finish_reason=finish_reason,
            usage=TokenUsage.from_openai(response.usage) if response.usage else None,
            model=response.model or self.get_model_name(),
            provider=self.provider_name,
        )

    def _map_error(self, error: openai.APIError, stage: str) -> LLMProviderError:
        """Translate SDK errors into the gateway exception family."""
        return self.gateway_error(getattr(error, "status_code", None), str(error), stage)

    async def chat(
        self,
        messages: list[ChatMessage],
        system_prompt: str | None = None,
        tools: list[ToolDescriptor] | None = None,
        **kwargs: Any,
    ) -> LLMResponse:
        """Send a chat completion request."""
        openai_messages = self._convert_messages(messages, system_prompt)
        openai_tools = self._convert_tools(tools)

        logger.debug(
            "openai_request",
            model=self.model,
            message_count=len(openai_messages),
            tool_count=len(openai_tools or []),
        )

        request_kwargs: dict[str, Any] = {
            "model": self.model,
            "max_tokens": self.max_tokens,
            "messages": openai_messages,
        }
        if openai_tools:
            request_kwargs["tools"] = openai_tools

        try:
            response = await self.client.chat.completions.create(**request_kwargs)
        except openai.APIError as e:
            raise self._map_error(e, "request") from e

        result = self._parse_response(response)
        logger.debug(
            "openai_response",
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
        """Stream a chat completion response."""
        openai_messages = self._convert_messages(messages, system_prompt)

        logger.debug(
            "openai_stream_start",
            model=self.model,
            message_count=len(openai_messages),
        )

        try:
            stream = await self.client.chat.completions.create(
                model=self.model,
                max_tokens=self.max_tokens,
                messages=openai_messages,
                stream=True,
            )

            async for chunk in stream:
                if not chunk.choices:
                    continue

                choice = chunk.choices[0]
                if choice.delta and choice.delta.content:
                    yield StreamChunk(content=choice.delta.content)

                if choice.finish_reason:
                    yield StreamChunk(done=True, finish_reason=choice.finish_reason)

        except openai.APIError as e:
            raise self._map_error(e, "stream") from e

    async def health_check(self) -> bool:
        """Check if the gateway is reachable with the configured key."""
        try:
            response = await self.client.chat.completions.create(
                model=self.model or "gpt-4o-mini",
                max_tokens=10,
                messages=[{"role": "user", "content": "Hi"}],
            )
            return response is not None
        except openai.APIError as e:
            logger.warning("openai_health_check_failed", error=str(e))
            return False
