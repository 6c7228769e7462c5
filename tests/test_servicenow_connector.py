"""Tests for the ServiceNow adapter."""

import json

import httpx
import pytest

from nova.connectors.servicenow import ServiceNowConnector, display
from nova.models.connectors import ConnectorType, CredentialSource, Credentials
from nova.models.results import ErrorKind
from tests.conftest import RecordingTransport, json_response, make_settings

CREDENTIALS = Credentials(
    connector_type=ConnectorType.SERVICENOW,
    values={"instanceUrl": "dev123.service-now.com", "username": "admin", "password": "pw"},
    source=CredentialSource.REQUEST,
)


def make_connector(handler) -> tuple[ServiceNowConnector, RecordingTransport]:
    transport = RecordingTransport(handler)
    return ServiceNowConnector(transport.client(), make_settings()), transport


class TestDisplay:
    def test_unwraps_reference_fields(self):
        assert display({"display_value": "Network", "value": "abc"}) == "Network"
        assert display({"value": "abc"}) == "abc"

    def test_plain_and_empty_values(self):
        assert display("INC001") == "INC001"
        assert display(None, "Unassigned") == "Unassigned"
        assert display("", "n/a") == "n/a"


class TestCounts:
    @pytest.mark.asyncio
    async def test_count_from_stats_api(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/api/now/stats/kb_knowledge"
            return json_response({"result": {"stats": {"count": "42"}}})

        connector, transport = make_connector(handler)
        result = await connector.execute("get_article_count", {}, CREDENTIALS)

        assert result.ok
        assert result.data == {"count": 42, "table": "kb_knowledge"}
        assert str(transport.requests[0].url).startswith("https://dev123.service-now.com/")

    @pytest.mark.asyncio
    async def test_count_falls_back_to_total_count_header(self):
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path.startswith("/api/now/stats/"):
                return json_response({"error": "not allowed"}, status_code=500)
            return json_response({"result": [{}]}, headers={"X-Total-Count": "7"})

        connector, transport = make_connector(handler)
        result = await connector.execute("getIncidentCount", {}, CREDENTIALS)

        assert result.ok
        assert result.data["count"] == 7
        assert transport.requests[1].url.params["sysparm_limit"] == "1"

    @pytest.mark.asyncio
    async def test_count_without_any_total_is_an_error_not_zero(self):
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path.startswith("/api/now/stats/"):
                return json_response({"result": {}})
            return json_response({"result": []})

        connector, _ = make_connector(handler)
        result = await connector.execute("get_catalog_item_count", {}, CREDENTIALS)

        assert not result.ok
        assert result.kind == ErrorKind.UPSTREAM
        assert result.data is None

    @pytest.mark.asyncio
    async def test_rejected_credentials_map_to_auth_error(self):
        connector, _ = make_connector(lambda request: httpx.Response(401, text="User Not Authenticated"))
        result = await connector.execute("get_incident_count", {}, CREDENTIALS)

        assert not result.ok
        assert result.kind == ErrorKind.AUTH
        assert result.http_status == 401
        assert result.hint


class TestIncidents:
    @pytest.mark.asyncio
    async def test_get_incident_formats_record(self):
        record = {
            "sys_id": "abc123",
            "number": "INC0010010",
            "short_description": "VPN down",
            "state": "2",
            "priority": {"display_value": "1 - Critical", "value": "1"},
            "assignment_group": "",
        }

        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.params["sysparm_query"] == "number=INC0010010"
            return json_response({"result": [record]})

        connector, _ = make_connector(handler)
        result = await connector.execute(
            "get_incident", {"incident_number": "inc0010010"}, CREDENTIALS
        )

        incident = result.data["incident"]
        assert incident["state"] == "In Progress"
        assert incident["priority"] == "1 - Critical"
        assert incident["assignment_group"] == "Unassigned"
        assert incident["url"].endswith("sys_id=abc123")

    @pytest.mark.asyncio
    async def test_missing_incident_is_not_found(self):
        connector, _ = make_connector(lambda request: json_response({"result": []}))
        result = await connector.execute(
            "get_incident", {"incident_number": "INC0000001"}, CREDENTIALS
        )

        assert result.kind == ErrorKind.NOT_FOUND

    @pytest.mark.asyncio
    async def test_create_incident_echoes_number(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.method == "POST"
            body = json.loads(request.content)
            assert body["short_description"] == "Printer on fire"
            assert body["urgency"] == "2"
            return json_response(
                {"result": {"sys_id": "s1", "number": "INC0020002", "short_description": "Printer on fire"}},
                status_code=201,
            )

        connector, _ = make_connector(handler)
        result = await connector.execute(
            "createIncident", {"short_description": "Printer on fire"}, CREDENTIALS
        )

        assert result.ok
        assert result.data["number"] == "INC0020002"
        assert result.data["state"] == "New"

    @pytest.mark.asyncio
    async def test_create_incident_without_number_fails(self):
        connector, _ = make_connector(lambda request: json_response({"result": {}}, status_code=201))
        result = await connector.execute(
            "create_incident", {"short_description": "x"}, CREDENTIALS
        )

        assert not result.ok
        assert result.kind == ErrorKind.UPSTREAM

    @pytest.mark.asyncio
    async def test_update_incident_maps_state_name(self):
        def handler(request: httpx.Request) -> httpx.Response:
            if request.method == "GET":
                return json_response({"result": [{"sys_id": "s9", "number": "INC0000009"}]})
            assert request.url.path == "/api/now/table/incident/s9"
            assert json.loads(request.content) == {"state": "6", "close_notes": "fixed"}
            return json_response({"result": {"number": "INC0000009", "sys_id": "s9", "state": "6"}})

        connector, _ = make_connector(handler)
        result = await connector.execute(
            "update_incident",
            {"incident_number": "INC0000009", "state": "resolved", "close_notes": "fixed"},
            CREDENTIALS,
        )

        assert result.ok
        assert result.data["state"] == "Resolved"
        assert result.data["updated_fields"] == ["close_notes", "state"]
        assert result.data["sys_id"] == "s9"

    @pytest.mark.asyncio
    async def test_update_incident_without_number_in_response_fails(self):
        def handler(request: httpx.Request) -> httpx.Response:
            if request.method == "GET":
                return json_response({"result": [{"sys_id": "s9", "number": "INC0000009"}]})
            return json_response({})

        connector, transport = make_connector(handler)
        result = await connector.execute(
            "update_incident", {"incident_number": "INC0000009", "urgency": "1"}, CREDENTIALS
        )

        assert not result.ok
        assert result.kind == ErrorKind.UPSTREAM
        assert [r.method for r in transport.requests] == ["GET", "PATCH"]


class TestDispatch:
    @pytest.mark.asyncio
    async def test_unknown_action(self):
        connector, transport = make_connector(lambda request: json_response({}))
        result = await connector.execute("delete_everything", {}, CREDENTIALS)

        assert result.kind == ErrorKind.UNKNOWN_ACTION
        assert transport.requests == []

    @pytest.mark.asyncio
    async def test_missing_required_parameter(self):
        connector, transport = make_connector(lambda request: json_response({}))
        result = await connector.execute("search_articles", {}, CREDENTIALS)

        assert result.kind == ErrorKind.VALIDATION
        assert "query" in result.error
        assert transport.requests == []

    @pytest.mark.asyncio
    async def test_incomplete_credentials(self):
        connector, transport = make_connector(lambda request: json_response({}))
        partial = Credentials(
            connector_type=ConnectorType.SERVICENOW, values={"instanceUrl": "x"}
        )
        result = await connector.execute("get_incident_count", {}, partial)

        assert result.kind == ErrorKind.CONFIGURATION
        assert transport.requests == []

    @pytest.mark.asyncio
    async def test_test_connection_alias(self):
        connector, _ = make_connector(lambda request: json_response({"result": []}))
        result = await connector.execute("testConnection", {}, CREDENTIALS)

        assert result.ok
        assert result.data["connected"] is True

    def test_actions_include_inherited_test_connection(self):
        assert "test_connection" in ServiceNowConnector.actions()
        assert "get_article_count" in ServiceNowConnector.actions()
