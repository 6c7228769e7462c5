"""Pytest configuration and fixtures."""

import json
from collections.abc import AsyncIterator, Callable
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from nova.config import Settings
from nova.db.engine import create_db_engine, init_db
from nova.models.llm import ChatMessage, LLMResponse, MessageRole, StreamChunk, TokenUsage
from nova.models.tools import ToolDescriptor
from nova.providers.base import BaseLLMProvider


def make_settings(**overrides: Any) -> Settings:
    """Settings with defaults only; the process environment and .env are ignored."""
    values: dict[str, Any] = {"openai_api_key": "test_key", "log_level": "DEBUG"}
    values.update(overrides)
    return Settings.model_construct(**values)


def json_response(payload: Any, status_code: int = 200, **kwargs: Any) -> httpx.Response:
    return httpx.Response(status_code, content=json.dumps(payload), **kwargs)


class RecordingTransport:
    """``httpx.MockTransport`` handler that records requests and delegates to a function."""

    def __init__(self, handler: Callable[[httpx.Request], httpx.Response]) -> None:
        self._handler = handler
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self._handler(request)

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self))


class FakeProvider(BaseLLMProvider):
    """Scripted model gateway that records every call."""

    provider_name = "fake"

    def __init__(
        self,
        responses: list[LLMResponse | Exception] | None = None,
        stream_chunks: list[str | Exception] | None = None,
    ) -> None:
        super().__init__(api_key="test", model="fake-model")
        self.responses = list(responses or [])
        self.stream_chunks = list(stream_chunks if stream_chunks is not None else ["Hello", " there"])
        self.chat_calls: list[dict[str, Any]] = []
        self.stream_calls: list[dict[str, Any]] = []

    async def chat(
        self,
        messages: list[ChatMessage],
        system_prompt: str | None = None,
        tools: list[ToolDescriptor] | None = None,
        **kwargs: Any,
    ) -> LLMResponse:
        self.chat_calls.append(
            {"messages": list(messages), "system_prompt": system_prompt, "tools": tools}
        )
        response = self.responses.pop(0) if self.responses else text_response("")
        if isinstance(response, Exception):
            raise response
        return response

    async def stream(
        self,
        messages: list[ChatMessage],
        system_prompt: str | None = None,
        **kwargs: Any,
    ) -> AsyncIterator[StreamChunk]:
        self.stream_calls.append({"messages": list(messages), "system_prompt": system_prompt})
        for chunk in self.stream_chunks:
            if isinstance(chunk, Exception):
                raise chunk
            yield StreamChunk(content=chunk)
        yield StreamChunk(done=True, finish_reason="stop")

    async def health_check(self) -> bool:
        return True


def text_response(content: str) -> LLMResponse:
    return LLMResponse(
        content=content,
        tool_calls=None,
        finish_reason="stop",
        model="fake-model",
        provider="fake",
    )


@pytest.fixture
def settings():
    """Create settings isolated from the environment."""
    return make_settings()


@pytest.fixture
def engine():
    """In-memory database with all tables created."""
    engine = create_db_engine("sqlite://")
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def mock_settings():
    """Create mock settings."""
    settings = MagicMock()
    settings.default_llm_provider = MagicMock(value="openai")
    settings.openai_api_key = "test_key"
    settings.app_env = MagicMock(value="development")
    settings.is_development = True
    settings.log_level = "DEBUG"
    settings.max_tool_rounds = 1
    settings.parallel_tool_execution = False
    return settings


@pytest.fixture
def mock_router():
    """Create a mock tool router."""
    router = MagicMock()
    router.available_tools = MagicMock(return_value=[])
    router.active_connectors = MagicMock(return_value=set())
    router.dispatch = AsyncMock()
    return router


@pytest.fixture
def mock_llm_response():
    """Create mock LLM response."""
    return LLMResponse(
        content="This is a test response.",
        tool_calls=None,
        finish_reason="stop",
        usage=TokenUsage(prompt_tokens=10, completion_tokens=20, total_tokens=30),
        model="fake-model",
        provider="fake",
    )


@pytest.fixture
def sample_chat_messages():
    """Create sample chat messages."""
    return [
        ChatMessage(role=MessageRole.USER, content="Hello"),
        ChatMessage(role=MessageRole.ASSISTANT, content="Hi there!"),
        ChatMessage(role=MessageRole.USER, content="How are you?"),
    ]
