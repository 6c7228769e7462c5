"""Tests for the Slack, Notion and Webex adapters."""

import json
from types import SimpleNamespace
from unittest.mock import MagicMock

import httpx
import pytest
import requests

from nova.connectors.webex import WebexConnector
from nova.connectors.workspace import NotionConnector, SlackConnector
from nova.models.connectors import ConnectorType, Credentials
from nova.models.results import ErrorKind
from nova.utils.message_chunker import chunk_message
from tests.conftest import RecordingTransport, json_response, make_settings

SLACK = Credentials(connector_type=ConnectorType.SLACK, values={"botToken": "xoxb-1"})
NOTION = Credentials(connector_type=ConnectorType.NOTION, values={"integrationToken": "secret_1"})
WEBEX = Credentials(connector_type=ConnectorType.WEBEX, values={"accessToken": "webex-token"})


class TestSlack:
    @pytest.mark.asyncio
    async def test_error_envelope_with_http_200_is_auth_error(self):
        transport = RecordingTransport(lambda request: json_response({"ok": False, "error": "invalid_auth"}))
        connector = SlackConnector(transport.client(), make_settings())
        result = await connector.execute("list_channels", {}, SLACK)

        assert result.kind == ErrorKind.AUTH

    @pytest.mark.asyncio
    async def test_ratelimited_envelope(self):
        transport = RecordingTransport(lambda request: json_response({"ok": False, "error": "ratelimited"}))
        connector = SlackConnector(transport.client(), make_settings())
        result = await connector.execute("search_messages", {"query": "deploy"}, SLACK)

        assert result.kind == ErrorKind.RATE_LIMIT

    @pytest.mark.asyncio
    async def test_post_message_echoes_timestamp(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert json.loads(request.content) == {"channel": "C1", "text": "hi"}
            return json_response({"ok": True, "channel": "C1", "ts": "1700000000.0001"})

        transport = RecordingTransport(handler)
        connector = SlackConnector(transport.client(), make_settings())
        result = await connector.execute("postMessage", {"channel": "C1", "text": "hi"}, SLACK)

        assert result.ok
        assert result.data["ts"] == "1700000000.0001"


class TestNotion:
    @pytest.mark.asyncio
    async def test_search_extracts_titles(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.headers["notion-version"] == "2022-06-28"
            return json_response(
                {
                    "results": [
                        {
                            "id": "p1",
                            "object": "page",
                            "properties": {
                                "Name": {"type": "title", "title": [{"plain_text": "Roadmap"}]}
                            },
                        },
                        {"id": "d1", "object": "database", "title": [{"plain_text": "Tasks"}]},
                        {"id": "p2", "object": "page", "properties": {}},
                    ]
                }
            )

        transport = RecordingTransport(handler)
        connector = NotionConnector(transport.client(), make_settings())
        result = await connector.execute("search", {"query": "road"}, NOTION)

        assert [r["title"] for r in result.data["results"]] == ["Roadmap", "Tasks", "Untitled"]


class TestWebex:
    def make_connector(self, api: MagicMock) -> WebexConnector:
        return WebexConnector(httpx.AsyncClient(), make_settings(), api_factory=lambda token: api)

    @pytest.mark.asyncio
    async def test_list_messages_filters_by_query(self):
        api = MagicMock()
        api.messages.list.return_value = iter(
            [
                SimpleNamespace(id="m1", text="Deploy finished", personEmail="a@x.io", created="t1"),
                SimpleNamespace(id="m2", text="Lunch?", personEmail="b@x.io", created="t2"),
            ]
        )
        connector = self.make_connector(api)
        try:
            result = await connector.execute(
                "list_messages", {"room_id": "R1", "query": "deploy"}, WEBEX
            )
        finally:
            connector.close()

        assert result.ok
        assert [m["id"] for m in result.data["messages"]] == ["m1"]
        api.messages.list.assert_called_once_with(roomId="R1", max=20)

    @pytest.mark.asyncio
    async def test_send_long_message_in_chunks(self):
        api = MagicMock()
        text = ("word " * 1000 + "\n\n") * 2
        expected_chunks = len(chunk_message(text))
        api.messages.create.side_effect = [SimpleNamespace(id=str(i)) for i in range(expected_chunks)]
        connector = self.make_connector(api)
        try:
            result = await connector.execute(
                "send_message", {"room_id": "R1", "text": text}, WEBEX
            )
        finally:
            connector.close()

        assert result.ok
        assert result.data["id"] == "0"
        assert result.data["chunks"] == expected_chunks
        assert api.messages.create.call_count == expected_chunks

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "error",
        [
            requests.exceptions.ConnectionError("connection refused"),
            requests.exceptions.ReadTimeout("read timed out"),
        ],
    )
    async def test_transport_errors_become_results(self, error):
        api = MagicMock()
        api.people.me.side_effect = error
        connector = self.make_connector(api)
        try:
            result = await connector.execute("test_connection", {}, WEBEX)
        finally:
            connector.close()

        assert not result.ok
        assert result.kind == ErrorKind.UPSTREAM

    def test_sdk_timeout_follows_settings(self):
        connector = WebexConnector(httpx.AsyncClient(), make_settings(connector_metadata_timeout=7.0))
        try:
            api = connector._default_api("webex-token")
        finally:
            connector.close()

        assert api.single_request_timeout == 7


class TestChunker:
    def test_short_message_is_one_chunk(self):
        assert chunk_message("hello") == ["hello"]

    def test_chunks_respect_max_length(self):
        text = "First paragraph. " * 20 + "\n\n" + "Second paragraph. " * 20
        chunks = chunk_message(text, max_length=200)

        assert len(chunks) > 1
        assert all(len(c) <= 200 for c in chunks)
