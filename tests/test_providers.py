"""Tests for model gateway error mapping and response parsing."""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import httpx
import openai
import pytest

from nova.core.exceptions import (
    LLMAuthenticationError,
    LLMProviderError,
    LLMQuotaError,
    LLMRateLimitError,
)
from nova.models.llm import ChatMessage, MessageRole
from nova.providers.openai import OpenAIProvider
from tests.conftest import FakeProvider


@pytest.mark.parametrize(
    "status_code,detail,expected",
    [
        (402, "Payment required", LLMQuotaError),
        (429, "Error code: 429 - {'code': 'insufficient_quota'}", LLMQuotaError),
        (429, "Too many requests", LLMRateLimitError),
        (401, "invalid api key", LLMAuthenticationError),
        (500, "upstream exploded", LLMProviderError),
        (None, "Connection error.", LLMProviderError),
    ],
)
def test_gateway_error_mapping(status_code, detail, expected):
    error = FakeProvider().gateway_error(status_code, detail, "request")

    assert type(error) is expected
    assert error.provider == "fake"


def make_openai_provider(create: AsyncMock) -> OpenAIProvider:
    client = MagicMock()
    client.chat.completions.create = create
    return OpenAIProvider(api_key="sk-test", client=client)


@pytest.mark.asyncio
async def test_openai_quota_429_is_a_quota_error():
    request = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")
    sdk_error = openai.RateLimitError(
        "Error code: 429 - You exceeded your current quota (insufficient_quota)",
        response=httpx.Response(429, request=request),
        body=None,
    )
    provider = make_openai_provider(AsyncMock(side_effect=sdk_error))

    with pytest.raises(LLMQuotaError):
        await provider.chat([ChatMessage(role=MessageRole.USER, content="hi")])


@pytest.mark.asyncio
async def test_openai_tool_calls_are_parsed():
    completion = SimpleNamespace(
        model="gpt-4o-mini",
        usage=None,
        choices=[
            SimpleNamespace(
                finish_reason="tool_calls",
                message=SimpleNamespace(
                    content=None,
                    tool_calls=[
                        SimpleNamespace(
                            id="call_1",
                            function=SimpleNamespace(
                                name="servicenow_get_incident",
                                arguments='{"incident_number": "INC0010010"}',
                            ),
                        ),
                        SimpleNamespace(
                            id="call_2",
                            function=SimpleNamespace(name="jira_list_projects", arguments="{not json"),
                        ),
                    ],
                ),
            )
        ],
    )
    create = AsyncMock(return_value=completion)
    provider = make_openai_provider(create)

    response = await provider.chat(
        [ChatMessage(role=MessageRole.USER, content="INC0010010?")], system_prompt="Be brief."
    )

    assert response.finish_reason == "tool_calls"
    assert response.content == ""
    assert [tc.arguments for tc in response.tool_calls] == [{"incident_number": "INC0010010"}, {}]
    sent = create.await_args.kwargs["messages"]
    assert sent[0] == {"role": "system", "content": "Be brief."}
