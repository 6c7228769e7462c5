"""Tests for the Google Drive and Gmail adapters."""

import base64

import httpx
import pytest

from nova.connectors.google import GmailConnector, GoogleDriveConnector, escape_drive_query
from nova.models.connectors import ConnectorType, Credentials
from nova.models.results import ErrorKind
from tests.conftest import RecordingTransport, json_response, make_settings

DRIVE_CREDENTIALS = Credentials(
    connector_type=ConnectorType.GOOGLE_DRIVE, values={"accessToken": "ya29.token"}
)
GMAIL_CREDENTIALS = Credentials(
    connector_type=ConnectorType.EMAIL, values={"accessToken": "ya29.token"}
)


def test_escape_drive_query():
    assert escape_drive_query("bob's file") == "bob\\'s file"


class TestDrive:
    @pytest.mark.asyncio
    async def test_list_files_sends_bearer_token(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.headers["authorization"] == "Bearer ya29.token"
            assert request.url.params["q"] == "trashed = false"
            return json_response(
                {"files": [{"id": "f1", "name": "Plan", "mimeType": "text/plain"}]}
            )

        transport = RecordingTransport(handler)
        connector = GoogleDriveConnector(transport.client(), make_settings())
        result = await connector.execute("list_files", {}, DRIVE_CREDENTIALS)

        assert result.ok
        assert result.data["total"] == 1
        assert result.data["files"][0]["mime_type"] == "text/plain"

    @pytest.mark.asyncio
    async def test_search_merges_fulltext_and_name_results(self):
        def handler(request: httpx.Request) -> httpx.Response:
            if "fullText" in request.url.params["q"]:
                return json_response({"files": [{"id": "a"}, {"id": "b"}]})
            return json_response({"files": [{"id": "b"}, {"id": "c"}]})

        transport = RecordingTransport(handler)
        connector = GoogleDriveConnector(transport.client(), make_settings())
        result = await connector.execute("searchFiles", {"query": "budget"}, DRIVE_CREDENTIALS)

        assert [f["id"] for f in result.data["files"]] == ["a", "b", "c"]

    @pytest.mark.asyncio
    async def test_read_google_doc_is_exported(self):
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path.endswith("/export"):
                assert request.url.params["mimeType"] == "text/plain"
                return httpx.Response(200, text="Doc body")
            return json_response(
                {"id": "d1", "name": "Notes", "mimeType": "application/vnd.google-apps.document"}
            )

        transport = RecordingTransport(handler)
        connector = GoogleDriveConnector(transport.client(), make_settings())
        result = await connector.execute("read_file", {"file_id": "d1"}, DRIVE_CREDENTIALS)

        assert result.ok
        assert result.data["content"] == "Doc body"
        assert result.data["truncated"] is False

    @pytest.mark.asyncio
    async def test_disabled_api_is_explained(self):
        body = {
            "error": {
                "code": 403,
                "message": "Drive API has not been used",
                "errors": [{"reason": "accessNotConfigured"}],
            }
        }
        transport = RecordingTransport(lambda request: json_response(body, 403))
        connector = GoogleDriveConnector(transport.client(), make_settings())
        result = await connector.execute("list_files", {}, DRIVE_CREDENTIALS)

        assert result.kind == ErrorKind.AUTH
        assert "disabled" in result.error

    @pytest.mark.asyncio
    async def test_missing_token_never_calls_google(self):
        transport = RecordingTransport(lambda request: json_response({}))
        connector = GoogleDriveConnector(transport.client(), make_settings())
        empty = Credentials(connector_type=ConnectorType.GOOGLE_DRIVE)
        result = await connector.execute("list_files", {}, empty)

        assert result.kind == ErrorKind.CONFIGURATION
        assert transport.requests == []


class TestGmail:
    @pytest.mark.asyncio
    async def test_get_email_decodes_plain_text_part(self):
        encoded = base64.urlsafe_b64encode(b"Hello from Gmail").decode().rstrip("=")

        def handler(request: httpx.Request) -> httpx.Response:
            return json_response(
                {
                    "id": "m1",
                    "payload": {
                        "headers": [{"name": "Subject", "value": "Hi"}],
                        "mimeType": "multipart/alternative",
                        "parts": [
                            {"mimeType": "text/html", "body": {"data": ""}},
                            {"mimeType": "text/plain", "body": {"data": encoded}},
                        ],
                    },
                }
            )

        transport = RecordingTransport(handler)
        connector = GmailConnector(transport.client(), make_settings())
        result = await connector.execute("get_email", {"email_id": "m1"}, GMAIL_CREDENTIALS)

        assert result.ok
        assert result.data["email"]["subject"] == "Hi"
        assert result.data["email"]["body"] == "Hello from Gmail"

    @pytest.mark.asyncio
    async def test_search_emails_fetches_summaries(self):
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path.endswith("/messages"):
                assert request.url.params["q"] == "from:alice"
                return json_response({"messages": [{"id": "m1"}]})
            return json_response(
                {
                    "id": "m1",
                    "threadId": "t1",
                    "snippet": "quarterly numbers",
                    "payload": {"headers": [{"name": "From", "value": "alice@acme.io"}]},
                }
            )

        transport = RecordingTransport(handler)
        connector = GmailConnector(transport.client(), make_settings())
        result = await connector.execute(
            "search_emails", {"query": "from:alice"}, GMAIL_CREDENTIALS
        )

        email = result.data["emails"][0]
        assert email["from"] == "alice@acme.io"
        assert email["subject"] == "(no subject)"
