"""Abstract base class for model gateway providers."""

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from typing import Any

from nova.core.exceptions import (
    LLMAuthenticationError,
    LLMProviderError,
    LLMQuotaError,
    LLMRateLimitError,
)
from nova.core.logging import get_logger
from nova.models.llm import ChatMessage, LLMResponse, StreamChunk
from nova.models.tools import ToolDescriptor

logger = get_logger("providers")

# Gateways that report exhausted credits as a 429 include one of these in the body
QUOTA_MARKERS = ("insufficient_quota", "credit balance", "payment required", "billing")


class BaseLLMProvider(ABC):
    """A model gateway that can answer with tool calls and stream a final answer.

    Subclasses translate :class:`ChatMessage` history and tool descriptors into
    their SDK's request shape, and raise only the ``LLM*`` exception family.
    """

    provider_name: str = "base"

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        max_tokens: int = 4096,
        base_url: str | None = None,
        timeout: int = 120,
    ) -> None:
        self.api_key = api_key
        self.model = model
        self.max_tokens = max_tokens
        self.base_url = base_url
        self.timeout = timeout

    @abstractmethod
    async def chat(
        self,
        messages: list[ChatMessage],
        system_prompt: str | None = None,
        tools: list[ToolDescriptor] | None = None,
        **kwargs: Any,
    ) -> LLMResponse:
        """Non-streaming completion; the response may carry tool calls."""

    @abstractmethod
    def stream(
        self,
        messages: list[ChatMessage],
        system_prompt: str | None = None,
        **kwargs: Any,
    ) -> AsyncIterator[StreamChunk]:
        """Stream the final answer without tools, ending with a ``done`` chunk."""

    @abstractmethod
    async def health_check(self) -> bool:
        pass

    def gateway_error(self, status_code: int | None, detail: str, stage: str) -> LLMProviderError:
        """Map a failed gateway call onto the ``LLM*`` exception family.

        Credit exhaustion is checked before rate limiting because some gateways
        answer 429 for both.
        """
        event = f"{self.provider_name}_{stage}_error"
        lowered = detail.lower()

        if status_code == 402 or any(marker in lowered for marker in QUOTA_MARKERS):
            logger.warning(event, kind="quota", status_code=status_code, error=detail)
            return LLMQuotaError("Usage credits exhausted", provider=self.provider_name)
        if status_code == 429:
            logger.warning(event, kind="rate_limit", error=detail)
            return LLMRateLimitError("Rate limit exceeded", provider=self.provider_name)
        if status_code in (401, 403):
            logger.error(event, kind="auth", status_code=status_code)
            return LLMAuthenticationError(
                "Authentication failed", provider=self.provider_name, status_code=status_code
            )

        logger.error(event, error=detail, status_code=status_code)
        return LLMProviderError(
            f"API error: {detail}",
            provider=self.provider_name,
            model=self.model,
            status_code=status_code,
        )

    def get_model_name(self) -> str:
        """Get the current model name."""
        return self.model or "unknown"

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(model={self.model})"
