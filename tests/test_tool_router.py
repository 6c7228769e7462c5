"""Tests for tool visibility and dispatch."""

import httpx
import pytest

from nova.connectors.registry import ConnectorRegistry
from nova.models.connectors import ConnectedSource, ConnectorType
from nova.models.results import ErrorKind
from nova.services.credential_resolver import CredentialResolver, GoogleTokenRefresher, TokenCache
from nova.services.document_index import DocumentIndex
from nova.services.tool_router import ToolRouter
from nova.tools.catalog import ToolCatalog
from nova.tools.validation import dropped_arguments, validate_tool_arguments
from tests.conftest import RecordingTransport, json_response, make_settings

SERVICENOW = ConnectedSource(
    id="sn",
    name="ServiceNow",
    type="servicenow",
    config={"instanceUrl": "dev1.service-now.com", "username": "a", "password": "b"},
)


def servicenow_api(request: httpx.Request) -> httpx.Response:
    if request.url.path == "/api/now/stats/kb_knowledge":
        return json_response({"result": {"stats": {"count": "12"}}})
    return json_response({"result": []})


@pytest.fixture
def index(engine):
    return DocumentIndex(engine)


def make_router(index, handler=servicenow_api, **overrides):
    settings = make_settings(**overrides)
    transport = RecordingTransport(handler)
    client = transport.client()
    registry = ConnectorRegistry.create(client, index, settings)
    resolver = CredentialResolver(GoogleTokenRefresher(client, settings), TokenCache(), settings=settings)
    return ToolRouter(ToolCatalog(), registry, resolver, settings), transport


class TestCatalog:
    def test_every_tool_maps_to_a_declared_action(self, index):
        registry = ConnectorRegistry.create(httpx.AsyncClient(), index, make_settings())
        for spec in ToolCatalog():
            adapter = registry.get(spec.connector)
            assert adapter is not None, spec.name
            assert adapter.resolve_action(spec.action) is not None, spec.name

    def test_duplicate_names_are_rejected(self):
        spec = next(iter(ToolCatalog()))
        with pytest.raises(ValueError):
            ToolCatalog([spec, spec])


class TestVisibility:
    def test_no_sources_means_no_tools(self, index):
        router, _ = make_router(index)
        assert router.available_tools([]) == []

    def test_only_connected_sources_are_visible(self, index):
        router, _ = make_router(index)
        names = {t.name for t in router.available_tools([SERVICENOW])}

        assert "servicenow_get_article_count" in names
        assert not any(n.startswith("jira_") for n in names)
        assert "search_documents" not in names

    def test_fallback_credentials_make_tools_visible(self, index):
        router, _ = make_router(index, github_access_token="ghp_env")
        names = {t.name for t in router.available_tools([])}

        assert "github_list_repos" in names
        assert ConnectorType.GITHUB in router.active_connectors([])

    def test_partial_fallback_is_not_enough(self, index):
        router, _ = make_router(index, jira_url="https://acme.atlassian.net")
        assert router.available_tools([]) == []

    def test_cross_source_search_follows_document_sources(self, index):
        router, _ = make_router(index)
        names = {t.name for t in router.available_tools([ConnectedSource(type="notion")])}

        assert "search_documents" in names
        assert "file_search_documents" not in names


class TestDispatch:
    @pytest.mark.asyncio
    async def test_dispatches_to_bound_action(self, index):
        router, transport = make_router(index)
        result = await router.dispatch("servicenow_get_article_count", {}, [SERVICENOW])

        assert result.ok
        assert result.data["count"] == 12
        assert len(transport.requests) == 1

    @pytest.mark.asyncio
    async def test_unknown_tool(self, index):
        router, transport = make_router(index)
        result = await router.dispatch("servicenow_drop_tables", {}, [SERVICENOW])

        assert result.kind == ErrorKind.UNKNOWN_TOOL
        assert transport.requests == []

    @pytest.mark.asyncio
    async def test_unconfigured_connector_makes_no_network_call(self, index):
        router, transport = make_router(index)
        result = await router.dispatch("servicenow_get_incident_count", {}, [])

        assert result.kind == ErrorKind.CONFIGURATION
        assert "Settings" in result.error
        assert transport.requests == []

    @pytest.mark.asyncio
    async def test_invalid_arguments(self, index):
        router, transport = make_router(index)
        result = await router.dispatch("servicenow_get_incident", {}, [SERVICENOW])
        bad_enum = await router.dispatch(
            "servicenow_list_incidents", {"status": "exploded"}, [SERVICENOW]
        )

        assert result.kind == ErrorKind.VALIDATION
        assert bad_enum.kind == ErrorKind.VALIDATION
        assert transport.requests == []

    @pytest.mark.asyncio
    async def test_unknown_arguments_are_dropped(self, index):
        router, transport = make_router(index)
        result = await router.dispatch(
            "servicenow_get_article_count", {"verbose": True}, [SERVICENOW]
        )

        assert result.ok
        assert "verbose" not in transport.requests[0].url.params

    @pytest.mark.asyncio
    async def test_document_search_needs_no_credentials(self, index):
        from nova.models.documents import DocumentInput

        await index.ingest("file", "txt", [DocumentInput(title="FAQ", content="Reset your VPN token")])
        router, transport = make_router(index)

        result = await router.dispatch(
            "file_search_documents", {"query": "vpn"}, [ConnectedSource(type="file")]
        )

        assert result.ok
        assert result.data["total"] == 1
        assert transport.requests == []


class TestArgumentValidation:
    def test_types_and_bools(self):
        descriptor = ToolCatalog().get("servicenow_list_incidents").descriptor

        accepted, errors = validate_tool_arguments(descriptor, {"limit": True})
        assert errors == ["Invalid type for limit: expected integer"]
        assert accepted == {}

        accepted, errors = validate_tool_arguments(descriptor, {"limit": 5, "extra": 1})
        assert accepted == {"limit": 5}
        assert errors == []
        assert dropped_arguments(descriptor, {"limit": 5, "extra": 1}) == ["extra"]
