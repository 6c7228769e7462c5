"""Tests for credential resolution, OAuth refresh and the token cache."""

from datetime import datetime, timedelta, timezone
from urllib.parse import parse_qs

import httpx
import pytest

from nova.models.connectors import (
    ConnectedSource,
    ConnectorType,
    CredentialSource,
    OAuthTokenSet,
    UserContext,
)
from nova.models.results import ErrorKind
from nova.services.credential_resolver import (
    CredentialResolver,
    GoogleTokenRefresher,
    RefreshedToken,
    TokenCache,
)
from nova.services.credential_store import CredentialStore
from tests.conftest import RecordingTransport, json_response, make_settings

USER = UserContext(user_id="user-1", email="u@acme.io")


def token_endpoint(request: httpx.Request) -> httpx.Response:
    form = parse_qs(request.content.decode())
    assert form["grant_type"] == ["refresh_token"]
    return json_response({"access_token": "ya29.fresh", "expires_in": 3600})


def make_resolver(handler=token_endpoint, store=None, **overrides):
    settings = make_settings(
        google_client_id="client-id", google_client_secret="client-secret", **overrides
    )
    transport = RecordingTransport(handler)
    refresher = GoogleTokenRefresher(transport.client(), settings)
    resolver = CredentialResolver(refresher, TokenCache(), store=store, settings=settings)
    return resolver, transport


class TestResolutionOrder:
    @pytest.mark.asyncio
    async def test_request_config_is_used(self):
        resolver, _ = make_resolver()
        source = ConnectedSource(
            type="servicenow",
            config={"instanceUrl": "dev1.service-now.com", "username": "a", "password": "b"},
        )
        result = await resolver.resolve(ConnectorType.SERVICENOW, None, [source])

        assert result.ok
        assert result.data.source == CredentialSource.REQUEST
        assert result.data.get("instanceUrl") == "dev1.service-now.com"

    @pytest.mark.asyncio
    async def test_missing_credentials_is_configuration_error(self):
        resolver, transport = make_resolver()
        result = await resolver.resolve(ConnectorType.SERVICENOW)

        assert not result.ok
        assert result.kind == ErrorKind.CONFIGURATION
        assert result.error == "ServiceNow is not connected. Please connect ServiceNow in Settings."
        assert result.hint == "Missing: instanceUrl, username, password"
        assert transport.requests == []

    @pytest.mark.asyncio
    async def test_partial_request_config_is_not_completed_from_environment(self):
        resolver, transport = make_resolver(
            servicenow_instance="dev1.service-now.com",
            servicenow_username="svc",
            servicenow_password="s3cret",
        )
        source = ConnectedSource(
            type="servicenow", config={"instanceUrl": "https://attacker.example"}
        )
        result = await resolver.resolve(ConnectorType.SERVICENOW, None, [source])

        assert not result.ok
        assert result.kind == ErrorKind.CONFIGURATION
        assert result.hint == "Missing: username, password"
        assert "s3cret" not in repr(result.to_payload())
        assert transport.requests == []

    @pytest.mark.asyncio
    async def test_environment_is_used_as_a_complete_set(self):
        resolver, _ = make_resolver(
            servicenow_instance="dev1.service-now.com",
            servicenow_username="svc",
            servicenow_password="s3cret",
        )
        source = ConnectedSource(type="servicenow", config={"username": ""})
        result = await resolver.resolve(ConnectorType.SERVICENOW, None, [source])

        assert result.ok
        assert result.data.values == {
            "instanceUrl": "dev1.service-now.com",
            "username": "svc",
            "password": "s3cret",
        }
        assert result.data.source == CredentialSource.ENVIRONMENT

    @pytest.mark.asyncio
    async def test_environment_only(self):
        resolver, _ = make_resolver(github_access_token="ghp_env")
        result = await resolver.resolve(ConnectorType.GITHUB)

        assert result.ok
        assert result.data.source == CredentialSource.ENVIRONMENT
        assert result.data.get("accessToken") == "ghp_env"

    @pytest.mark.asyncio
    async def test_stored_row_is_used_for_signed_in_user(self, engine):
        store = CredentialStore(engine)
        await store.save(
            USER.user_id,
            "github",
            "GitHub",
            tokens=OAuthTokenSet(access_token="ghp_stored"),
        )
        resolver, _ = make_resolver(store=store)
        result = await resolver.resolve(ConnectorType.GITHUB, USER)

        assert result.ok
        assert result.data.source == CredentialSource.STORED
        assert result.data.get("accessToken") == "ghp_stored"


class TestOAuthRefresh:
    @pytest.mark.asyncio
    async def test_expiring_stored_token_is_refreshed_and_persisted(self, engine):
        store = CredentialStore(engine)
        old_expiry = datetime.now(timezone.utc) + timedelta(seconds=30)
        await store.save(
            USER.user_id,
            "google-drive",
            "Google Drive",
            tokens=OAuthTokenSet(
                access_token="ya29.old", refresh_token="1//refresh", expires_at=old_expiry
            ),
        )
        resolver, transport = make_resolver(store=store)

        result = await resolver.resolve(ConnectorType.GOOGLE_DRIVE, USER)

        assert result.ok
        assert result.data.get("accessToken") == "ya29.fresh"
        assert len(transport.requests) == 1

        stored = await store.get(USER.user_id, "google-drive")
        assert stored.tokens.access_token == "ya29.fresh"
        assert stored.tokens.refresh_token == "1//refresh"
        assert stored.tokens.expires_at > old_expiry

    @pytest.mark.asyncio
    async def test_token_far_from_expiry_is_not_refreshed(self, engine):
        store = CredentialStore(engine)
        await store.save(
            USER.user_id,
            "email",
            "Gmail",
            tokens=OAuthTokenSet(
                access_token="ya29.valid",
                refresh_token="1//refresh",
                expires_at=datetime.now(timezone.utc) + timedelta(hours=1),
            ),
        )
        resolver, transport = make_resolver(store=store)

        result = await resolver.resolve(ConnectorType.EMAIL, USER)

        assert result.data.get("accessToken") == "ya29.valid"
        assert transport.requests == []

    @pytest.mark.asyncio
    async def test_failed_refresh_keeps_existing_token(self, engine):
        store = CredentialStore(engine)
        await store.save(
            USER.user_id,
            "google-drive",
            "Google Drive",
            tokens=OAuthTokenSet(
                access_token="ya29.old",
                refresh_token="1//refresh",
                expires_at=datetime.now(timezone.utc) - timedelta(minutes=1),
            ),
        )
        resolver, _ = make_resolver(
            handler=lambda request: json_response({"error": "invalid_grant"}, 400), store=store
        )

        result = await resolver.resolve(ConnectorType.GOOGLE_DRIVE, USER)

        assert result.ok
        assert result.data.get("accessToken") == "ya29.old"

    @pytest.mark.asyncio
    async def test_non_json_token_response_keeps_existing_token(self, engine):
        store = CredentialStore(engine)
        await store.save(
            USER.user_id,
            "google-drive",
            "Google Drive",
            tokens=OAuthTokenSet(
                access_token="ya29.old",
                refresh_token="1//refresh",
                expires_at=datetime.now(timezone.utc) - timedelta(minutes=1),
            ),
        )
        resolver, transport = make_resolver(
            handler=lambda request: httpx.Response(200, text="<html>"), store=store
        )

        result = await resolver.resolve(ConnectorType.GOOGLE_DRIVE, USER)

        assert result.ok
        assert result.data.get("accessToken") == "ya29.old"
        assert len(transport.requests) == 1

    @pytest.mark.asyncio
    async def test_refresher_returns_none_for_html_body(self):
        transport = RecordingTransport(lambda request: httpx.Response(200, text="<html>"))
        settings = make_settings(google_client_id="client-id", google_client_secret="client-secret")
        refresher = GoogleTokenRefresher(transport.client(), settings)

        assert await refresher.refresh("1//x") is None

    @pytest.mark.asyncio
    async def test_refresh_token_in_request_is_exchanged_once(self):
        resolver, transport = make_resolver()
        source = ConnectedSource(type="google_drive", config={"accessToken": "1//refresh-token"})

        first = await resolver.resolve(ConnectorType.GOOGLE_DRIVE, None, [source])
        second = await resolver.resolve(ConnectorType.GOOGLE_DRIVE, None, [source])

        assert first.data.get("accessToken") == "ya29.fresh"
        assert second.data.get("accessToken") == "ya29.fresh"
        assert len(transport.requests) == 1

    @pytest.mark.asyncio
    async def test_non_google_token_is_not_exchanged(self):
        resolver, transport = make_resolver()
        source = ConnectedSource(type="github", config={"accessToken": "1//not-google"})

        result = await resolver.resolve(ConnectorType.GITHUB, None, [source])

        assert result.data.get("accessToken") == "1//not-google"
        assert transport.requests == []

    @pytest.mark.asyncio
    async def test_refresh_stored_rejects_non_google(self):
        resolver, _ = make_resolver()
        tokens = OAuthTokenSet(access_token="a", refresh_token="r")

        assert await resolver.refresh_stored("u", ConnectorType.GITHUB, tokens) is None

    @pytest.mark.asyncio
    async def test_refresher_without_client_credentials(self):
        transport = RecordingTransport(token_endpoint)
        refresher = GoogleTokenRefresher(transport.client(), make_settings())

        assert await refresher.refresh("1//x") is None
        assert transport.requests == []


class TestTokenCache:
    def test_key_uses_refresh_token_prefix(self):
        assert TokenCache.key("google", "1//0abcdefghijklmnop") == "google_1//0abcdef"

    def test_entries_expire_inside_buffer(self):
        now = datetime(2026, 1, 1, tzinfo=timezone.utc)
        clock = {"now": now}
        cache = TokenCache(buffer_seconds=60, clock=lambda: clock["now"])
        cache.put("k", RefreshedToken(access_token="t", expires_at=now + timedelta(seconds=120)))

        assert cache.get("k").access_token == "t"

        clock["now"] = now + timedelta(seconds=61)
        assert cache.get("k") is None
        assert len(cache) == 0
