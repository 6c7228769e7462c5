"""Tests for the conversation loop."""

import asyncio
import json

import httpx
import pytest

from nova.connectors.registry import ConnectorRegistry
from nova.core.exceptions import LLMQuotaError, LLMRateLimitError
from nova.models.connectors import ConnectedSource
from nova.models.llm import ChatMessage, LLMResponse, MessageRole, ToolCall
from nova.models.results import ErrorKind, NormalizedResult
from nova.services.conversation import ConversationController
from nova.services.credential_resolver import CredentialResolver, GoogleTokenRefresher, TokenCache
from nova.services.document_index import DocumentIndex
from nova.services.feedback_service import FeedbackStore, LearningStore
from nova.services.tool_router import ToolRouter
from nova.tools.catalog import ToolCatalog
from tests.conftest import FakeProvider, RecordingTransport, json_response, make_settings, text_response

COUNT_TOOL = ToolCatalog().get("servicenow_get_article_count").descriptor


def tool_response(*calls: tuple[str, str, dict]) -> LLMResponse:
    return LLMResponse(
        content="",
        tool_calls=[ToolCall(id=call_id, name=name, arguments=args) for call_id, name, args in calls],
        finish_reason="tool_calls",
        model="fake-model",
        provider="fake",
    )


def user(text: str) -> list[ChatMessage]:
    return [ChatMessage(role=MessageRole.USER, content=text)]


def make_controller(provider, router, **overrides) -> ConversationController:
    return ConversationController(provider, router, settings=make_settings(**overrides))


class TestPrepare:
    @pytest.mark.asyncio
    async def test_plain_answer_needs_no_tools(self, mock_router):
        provider = FakeProvider([text_response("Hi")])
        controller = make_controller(provider, mock_router)

        turn = await controller.prepare(user("Hello"))

        assert turn.rounds == 0
        assert turn.tool_results == []
        assert len(turn.messages) == 1
        assert provider.chat_calls[0]["tools"] is None
        mock_router.dispatch.assert_not_called()

    @pytest.mark.asyncio
    async def test_tool_results_follow_request_order(self, mock_router):
        async def dispatch(name, arguments, sources, user):
            await asyncio.sleep(0.02 if name == "slow" else 0)
            return NormalizedResult.success({"tool": name})

        mock_router.dispatch.side_effect = dispatch
        provider = FakeProvider([tool_response(("1", "slow", {}), ("2", "fast", {}))])
        controller = make_controller(provider, mock_router, parallel_tool_execution=True)

        turn = await controller.prepare(user("go"))

        assert [r.tool_call_id for r in turn.tool_results] == ["1", "2"]
        assert [m.role for m in turn.messages] == [
            MessageRole.USER,
            MessageRole.ASSISTANT,
            MessageRole.TOOL,
            MessageRole.TOOL,
        ]
        assert json.loads(turn.messages[2].content) == {"tool": "slow"}

    @pytest.mark.asyncio
    async def test_tool_exception_is_contained(self, mock_router):
        async def dispatch(name, arguments, sources, user):
            if name == "broken":
                raise RuntimeError("boom")
            return NormalizedResult.success({"ok": True})

        mock_router.dispatch.side_effect = dispatch
        provider = FakeProvider([tool_response(("1", "broken", {}), ("2", "works", {}))])
        controller = make_controller(provider, mock_router)

        turn = await controller.prepare(user("go"))

        broken, works = turn.tool_results
        assert broken.is_error
        assert json.loads(broken.content) == {"error": "boom", "error_type": "upstream_api_error"}
        assert not works.is_error

    @pytest.mark.asyncio
    async def test_failed_result_is_marked_as_error(self, mock_router):
        mock_router.dispatch.return_value = NormalizedResult.failure(
            ErrorKind.CONFIGURATION, "Jira is not connected. Please connect Jira in Settings."
        )
        provider = FakeProvider([tool_response(("1", "jira_search_issues", {"query": "x"}))])
        controller = make_controller(provider, mock_router)

        turn = await controller.prepare(user("find jira bugs"))

        result = turn.tool_results[0]
        assert result.is_error
        assert json.loads(result.content)["error_type"] == "configuration_error"

    @pytest.mark.asyncio
    async def test_success_data_with_error_field_is_not_an_error(self, mock_router):
        record = {"key": "OPS-7", "error": "Disk full on node 3"}
        mock_router.dispatch.return_value = NormalizedResult.success(record)
        provider = FakeProvider([tool_response(("1", "jira_get_issue", {"issue_key": "OPS-7"}))])
        controller = make_controller(provider, mock_router)

        turn = await controller.prepare(user("what is OPS-7 about"))

        result = turn.tool_results[0]
        assert not result.is_error
        assert json.loads(result.content) == {"result": record}

    @pytest.mark.asyncio
    @pytest.mark.parametrize("error", [
        LLMRateLimitError("Rate limit exceeded", provider="fake"),
        LLMQuotaError("Usage credits exhausted", provider="fake"),
    ])
    async def test_gateway_errors_propagate(self, mock_router, error):
        controller = make_controller(FakeProvider([error]), mock_router)

        with pytest.raises(type(error)):
            await controller.prepare(user("Hello"))

    @pytest.mark.asyncio
    async def test_round_limit_stops_tool_execution(self, mock_router):
        mock_router.dispatch.return_value = NormalizedResult.success({"n": 1})
        provider = FakeProvider(
            [
                tool_response(("1", "a", {})),
                tool_response(("2", "b", {})),
            ]
        )
        controller = make_controller(provider, mock_router, max_tool_rounds=1)

        turn = await controller.prepare(user("go"))

        assert turn.rounds == 1
        assert mock_router.dispatch.await_count == 1
        assert len(provider.chat_calls) == 1
        assert turn.messages[-1].role == MessageRole.TOOL

    @pytest.mark.asyncio
    async def test_second_round_runs_when_allowed(self, mock_router):
        mock_router.dispatch.return_value = NormalizedResult.success({"n": 1})
        provider = FakeProvider(
            [
                tool_response(("1", "a", {})),
                tool_response(("2", "b", {})),
            ]
        )
        controller = make_controller(provider, mock_router, max_tool_rounds=2)

        turn = await controller.prepare(user("go"))

        assert turn.rounds == 2
        assert len(provider.chat_calls) == 2
        tool_call_ids = {m.tool_call_id for m in turn.messages if m.role == MessageRole.TOOL}
        assert tool_call_ids == {"1", "2"}

    @pytest.mark.asyncio
    async def test_nudge_only_on_first_pass(self, mock_router):
        mock_router.available_tools.return_value = [COUNT_TOOL]
        mock_router.dispatch.return_value = NormalizedResult.success({"count": 5})
        provider = FakeProvider(
            [
                tool_response(("1", "servicenow_get_article_count", {})),
                text_response("There are 5 articles."),
            ]
        )
        controller = make_controller(provider, mock_router, max_tool_rounds=2)

        turn = await controller.prepare(user("How many knowledge articles do we have?"))

        assert turn.nudge == "servicenow_get_article_count"
        assert "`servicenow_get_article_count`" in provider.chat_calls[0]["system_prompt"]
        assert "`servicenow_get_article_count`" not in provider.chat_calls[1]["system_prompt"]
        assert "`servicenow_get_article_count`" not in turn.system_prompt

    @pytest.mark.asyncio
    async def test_nudge_needs_available_tool(self, mock_router):
        provider = FakeProvider([text_response("Please connect ServiceNow.")])
        controller = make_controller(provider, mock_router)

        turn = await controller.prepare(user("How many articles are there?"))

        assert turn.nudge is None

    @pytest.mark.asyncio
    async def test_learned_guidance_reaches_system_prompt(self, mock_router):
        learning = LearningStore()
        learning.learn_from_conversation("You should always start with a short summary")
        provider = FakeProvider([text_response("ok")])
        controller = ConversationController(
            provider,
            mock_router,
            feedback_store=FeedbackStore(),
            learning_store=learning,
            settings=make_settings(),
        )

        await controller.prepare(user("hi"))

        assert "Learned guidance" in provider.chat_calls[0]["system_prompt"]


class TestStream:
    @pytest.mark.asyncio
    async def test_final_pass_streams_without_tools(self, mock_router):
        provider = FakeProvider([text_response("")], stream_chunks=["The answer", " is 42."])
        controller = make_controller(provider, mock_router)

        turn = await controller.prepare(user("question"))
        text = [chunk async for chunk in controller.stream(turn)]

        assert "".join(text) == "The answer is 42."
        assert provider.stream_calls[0]["system_prompt"] == turn.system_prompt

    @pytest.mark.asyncio
    async def test_cancelled_stream_stops(self, mock_router):
        provider = FakeProvider([text_response("")], stream_chunks=["a", "b"])
        controller = make_controller(provider, mock_router)
        cancel = asyncio.Event()
        cancel.set()

        turn = await controller.prepare(user("question"))
        text = [chunk async for chunk in controller.stream(turn, cancel)]

        assert text == []


class TestCountQueryEndToEnd:
    @pytest.mark.asyncio
    async def test_article_count_reaches_the_model(self, engine):
        def servicenow(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/api/now/stats/kb_knowledge"
            return json_response({"result": {"stats": {"count": "1287"}}})

        settings = make_settings()
        transport = RecordingTransport(servicenow)
        client = transport.client()
        registry = ConnectorRegistry.create(client, DocumentIndex(engine), settings)
        resolver = CredentialResolver(GoogleTokenRefresher(client, settings), TokenCache(), settings=settings)
        router = ToolRouter(ToolCatalog(), registry, resolver, settings)
        source = ConnectedSource(
            type="servicenow",
            config={"instanceUrl": "dev1.service-now.com", "username": "a", "password": "b"},
        )

        provider = FakeProvider(
            [tool_response(("call_1", "servicenow_get_article_count", {}))],
            stream_chunks=["You have 1287 knowledge articles."],
        )
        controller = ConversationController(provider, router, settings=settings)

        turn = await controller.prepare(user("how many articles are in the knowledge base?"), [source])
        text = "".join([chunk async for chunk in controller.stream(turn)])

        tools = {t.name for t in provider.chat_calls[0]["tools"]}
        assert "servicenow_get_article_count" in tools
        assert json.loads(turn.tool_results[0].content) == {"count": 1287, "table": "kb_knowledge"}
        assert "1287" in text
        registry.close()
