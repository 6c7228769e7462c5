"""Tests for the Jira and Confluence adapters."""

import json

import httpx
import pytest

from nova.connectors.atlassian import (
    ConfluenceConnector,
    JiraConnector,
    adf_to_text,
    build_jql,
    text_to_adf,
)
from nova.models.connectors import ConnectorType, Credentials
from nova.models.results import ErrorKind
from tests.conftest import RecordingTransport, json_response, make_settings

JIRA_CREDENTIALS = Credentials(
    connector_type=ConnectorType.JIRA,
    values={"url": "https://acme.atlassian.net/", "email": "a@acme.io", "apiToken": "tok"},
)
CONFLUENCE_CREDENTIALS = Credentials(
    connector_type=ConnectorType.CONFLUENCE,
    values={"url": "https://acme.atlassian.net", "email": "a@acme.io", "apiToken": "tok"},
)


class TestJql:
    def test_free_text_becomes_text_search(self):
        assert build_jql("login bug") == 'text ~ "login bug" ORDER BY created DESC'

    def test_jql_passes_through(self):
        assert build_jql("project = OPS AND status = Done") == "project = OPS AND status = Done"

    def test_filters_are_combined(self):
        jql = build_jql("crash", project="OPS", status="Open")
        assert jql == 'project = "OPS" AND status = "Open" AND text ~ "crash" ORDER BY created DESC'

    def test_empty_query(self):
        assert build_jql(None) == "ORDER BY created DESC"


class TestAdf:
    def test_text_to_adf_one_paragraph_per_line(self):
        doc = text_to_adf("first\n\nthird")
        assert doc["type"] == "doc"
        assert len(doc["content"]) == 3
        assert doc["content"][1]["content"] == []

    def test_adf_to_text(self):
        assert adf_to_text(text_to_adf("one\ntwo")) == "one\ntwo"
        assert adf_to_text(None) == ""


class TestJiraConnector:
    @pytest.mark.asyncio
    async def test_search_issues(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/rest/api/3/search/jql"
            assert request.headers["authorization"].startswith("Basic ")
            return json_response(
                {
                    "issues": [
                        {
                            "key": "OPS-1",
                            "id": "10001",
                            "fields": {"summary": "Login fails", "status": {"name": "Open"}},
                        }
                    ]
                }
            )

        transport = RecordingTransport(handler)
        connector = JiraConnector(transport.client(), make_settings())
        result = await connector.execute("search_issues", {"query": "login"}, JIRA_CREDENTIALS)

        assert result.ok
        issue = result.data["issues"][0]
        assert issue["key"] == "OPS-1"
        assert issue["assignee"] == "Unassigned"
        assert issue["url"] == "https://acme.atlassian.net/browse/OPS-1"

    @pytest.mark.asyncio
    async def test_create_issue_sends_adf_description(self):
        def handler(request: httpx.Request) -> httpx.Response:
            fields = json.loads(request.content)["fields"]
            assert fields["project"] == {"key": "OPS"}
            assert fields["issuetype"] == {"name": "Task"}
            assert fields["description"]["type"] == "doc"
            return json_response({"key": "OPS-42", "id": "4242"}, status_code=201)

        transport = RecordingTransport(handler)
        connector = JiraConnector(transport.client(), make_settings())
        result = await connector.execute(
            "createIssue",
            {"project_key": "OPS", "summary": "New thing", "description": "details"},
            JIRA_CREDENTIALS,
        )

        assert result.ok
        assert result.data["key"] == "OPS-42"

    @pytest.mark.asyncio
    async def test_update_issue_with_unknown_status_is_validation_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return json_response(
                {"transitions": [{"id": "31", "name": "Done", "to": {"name": "Done"}}]}
            )

        transport = RecordingTransport(handler)
        connector = JiraConnector(transport.client(), make_settings())
        result = await connector.execute(
            "update_issue", {"issue_key": "ops-1", "status": "Blocked"}, JIRA_CREDENTIALS
        )

        assert result.kind == ErrorKind.VALIDATION
        assert "Blocked" in result.error

    @pytest.mark.asyncio
    async def test_update_issue_transitions_status(self):
        def handler(request: httpx.Request) -> httpx.Response:
            if request.method == "GET":
                return json_response(
                    {"transitions": [{"id": "31", "name": "Close", "to": {"name": "Done"}}]}
                )
            assert json.loads(request.content) == {"transition": {"id": "31"}}
            return httpx.Response(204)

        transport = RecordingTransport(handler)
        connector = JiraConnector(transport.client(), make_settings())
        result = await connector.execute(
            "update_issue", {"issue_key": "OPS-1", "status": "done"}, JIRA_CREDENTIALS
        )

        assert result.ok
        assert result.data["status"] == "Done"
        assert result.data["updated_fields"] == ["status"]

    @pytest.mark.asyncio
    async def test_missing_issue_is_not_found(self):
        transport = RecordingTransport(lambda request: json_response({"errorMessages": []}, 404))
        connector = JiraConnector(transport.client(), make_settings())
        result = await connector.execute("get_issue", {"issue_key": "OPS-9"}, JIRA_CREDENTIALS)

        assert result.kind == ErrorKind.NOT_FOUND
        assert result.http_status == 404


class TestConfluenceConnector:
    @pytest.mark.asyncio
    async def test_search_builds_page_urls(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/wiki/rest/api/content/search"
            assert 'text ~ "onboarding"' in request.url.params["cql"]
            return json_response(
                {
                    "_links": {"base": "https://acme.atlassian.net/wiki"},
                    "results": [
                        {
                            "id": "1",
                            "title": "Onboarding",
                            "type": "page",
                            "space": {"key": "HR"},
                            "_links": {"webui": "/spaces/HR/pages/1"},
                        }
                    ],
                }
            )

        transport = RecordingTransport(handler)
        connector = ConfluenceConnector(transport.client(), make_settings())
        result = await connector.execute("search", {"query": "onboarding"}, CONFLUENCE_CREDENTIALS)

        assert result.ok
        assert result.data["results"][0]["url"] == "https://acme.atlassian.net/wiki/spaces/HR/pages/1"
