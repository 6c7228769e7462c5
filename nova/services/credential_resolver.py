"""Credential resolution for connector calls.

Resolution order for a connector:

1. config supplied with the request's connected sources,
2. the user's stored connector row, with OAuth refresh applied,
3. server-wide fallback credentials from the environment, used as a complete
   set and only when the caller supplied none of the required fields.

If required fields are still missing the result is a ``configuration_error``.
A partial per-user config is never completed with server secrets.
"""

from collections.abc import Callable, Sequence
from datetime import datetime, timedelta, timezone

import httpx
from pydantic import BaseModel

from nova.config import Settings, get_settings
from nova.core.logging import LogEvents, get_logger
from nova.models.connectors import (
    ConnectedSource,
    ConnectorType,
    CredentialSource,
    Credentials,
    OAuthTokenSet,
    UserContext,
)
from nova.models.results import ErrorKind, NormalizedResult
from nova.services.credential_store import CredentialStore

logger = get_logger("credential_resolver")

# Google refresh tokens start with this prefix; access tokens never do
GOOGLE_REFRESH_TOKEN_PREFIX = "1//"
DEFAULT_EXPIRES_IN = 3600


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RefreshedToken(BaseModel):
    access_token: str
    expires_at: datetime
    refresh_token: str | None = None


class TokenCache:
    """Recently refreshed access tokens, keyed by provider and refresh-token prefix.

    Process-scoped and non-durable. Each server instance keeps its own entries,
    so two instances may each refresh the same token once.
    """

    def __init__(
        self,
        buffer_seconds: int = 60,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._entries: dict[str, RefreshedToken] = {}
        self._buffer = timedelta(seconds=buffer_seconds)
        self._clock = clock

    @staticmethod
    def key(provider: str, refresh_token: str) -> str:
        return f"{provider}_{refresh_token[:10]}"

    def get(self, key: str) -> RefreshedToken | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.expires_at - self._buffer <= self._clock():
            del self._entries[key]
            return None
        return entry

    def put(self, key: str, token: RefreshedToken) -> None:
        self._entries[key] = token

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


class GoogleTokenRefresher:
    """Exchanges a Google refresh token for a new access token."""

    provider = "google"

    def __init__(self, client: httpx.AsyncClient, settings: Settings | None = None) -> None:
        self._client = client
        self._settings = settings or get_settings()

    async def refresh(self, refresh_token: str) -> RefreshedToken | None:
        """Return a new token, or ``None`` if the exchange fails."""
        settings = self._settings
        if not settings.google_client_id or not settings.google_client_secret:
            logger.warning(
                LogEvents.TOKEN_REFRESH_FAILED,
                provider=self.provider,
                reason="google client credentials not configured",
            )
            return None

        try:
            response = await self._client.post(
                settings.google_token_url,
                data={
                    "client_id": settings.google_client_id,
                    "client_secret": settings.google_client_secret,
                    "refresh_token": refresh_token,
                    "grant_type": "refresh_token",
                },
                timeout=settings.connector_metadata_timeout,
            )
        except httpx.HTTPError as e:
            logger.warning(LogEvents.TOKEN_REFRESH_FAILED, provider=self.provider, error=str(e))
            return None

        if not response.is_success:
            logger.warning(
                LogEvents.TOKEN_REFRESH_FAILED,
                provider=self.provider,
                status_code=response.status_code,
                body=response.text[:200],
            )
            return None

        try:
            body = response.json()
        except ValueError:
            logger.warning(
                LogEvents.TOKEN_REFRESH_FAILED,
                provider=self.provider,
                reason="invalid JSON body",
                body=response.text[:200],
            )
            return None
        if not isinstance(body, dict):
            body = {}

        access_token = body.get("access_token")
        if not access_token:
            logger.warning(
                LogEvents.TOKEN_REFRESH_FAILED,
                provider=self.provider,
                reason="no access_token in response",
            )
            return None

        expires_in = int(body.get("expires_in") or DEFAULT_EXPIRES_IN)
        logger.info(LogEvents.TOKEN_REFRESHED, provider=self.provider, expires_in=expires_in)
        return RefreshedToken(
            access_token=access_token,
            expires_at=_utcnow() + timedelta(seconds=expires_in),
            refresh_token=body.get("refresh_token"),
        )


class CredentialResolver:
    """Produces credentials for one connector call."""

    def __init__(
        self,
        refresher: GoogleTokenRefresher,
        token_cache: TokenCache,
        store: CredentialStore | None = None,
        settings: Settings | None = None,
    ) -> None:
        self._refresher = refresher
        self._cache = token_cache
        self._store = store
        self._settings = settings or get_settings()

    async def resolve(
        self,
        connector: ConnectorType,
        user: UserContext | None = None,
        connected_sources: Sequence[ConnectedSource] = (),
    ) -> NormalizedResult:
        """Resolve credentials; ``data`` holds :class:`Credentials` on success."""
        values: dict[str, object] = {}
        source = CredentialSource.NONE

        requested = next(
            (s for s in connected_sources if s.connector_type == connector), None
        )
        if requested is not None:
            values.update({k: v for k, v in requested.config.items() if v not in (None, "")})
            source = CredentialSource.REQUEST

        if user is not None and self._store is not None:
            stored = await self._store.get(user.user_id, connector.value)
            if stored is not None and stored.is_connected:
                for key, value in stored.config.items():
                    if value not in (None, ""):
                        values.setdefault(key, value)
                if stored.tokens is not None:
                    values["accessToken"] = await self._fresh_access_token(
                        user.user_id, connector, stored.tokens
                    )
                if source == CredentialSource.NONE:
                    source = CredentialSource.STORED

        token = values.get("accessToken")
        if (
            connector.is_google
            and isinstance(token, str)
            and token.startswith(GOOGLE_REFRESH_TOKEN_PREFIX)
        ):
            refreshed = await self.exchange(token)
            if refreshed is not None:
                values["accessToken"] = refreshed.access_token

        # Server credentials are never combined with a user-supplied host or secret
        user_supplied = [f for f in connector.required_fields if values.get(f) not in (None, "")]
        fallback = self._settings.fallback_credentials(connector)
        if fallback and not user_supplied:
            values.update(fallback)
            source = CredentialSource.ENVIRONMENT
        elif fallback:
            logger.debug(
                LogEvents.CREDENTIALS_FALLBACK_SKIPPED,
                connector=connector.value,
                supplied=user_supplied,
            )

        credentials = Credentials(connector_type=connector, values=values, source=source)
        missing = credentials.missing()
        if missing:
            logger.info(
                LogEvents.CREDENTIALS_MISSING,
                connector=connector.value,
                missing=missing,
            )
            name = connector.display_name
            return NormalizedResult.failure(
                ErrorKind.CONFIGURATION,
                f"{name} is not connected. Please connect {name} in Settings.",
                hint=f"Missing: {', '.join(missing)}",
            )

        logger.debug(
            LogEvents.CREDENTIALS_RESOLVED,
            connector=connector.value,
            source=source.value,
        )
        return NormalizedResult.success(credentials)

    async def exchange(self, refresh_token: str, force: bool = False) -> RefreshedToken | None:
        """Exchange a refresh token, reusing a cached result unless ``force`` is set."""
        key = TokenCache.key(self._refresher.provider, refresh_token)
        if not force:
            cached = self._cache.get(key)
            if cached is not None:
                logger.debug(LogEvents.TOKEN_CACHE_HIT, provider=self._refresher.provider)
                return cached

        refreshed = await self._refresher.refresh(refresh_token)
        if refreshed is not None:
            self._cache.put(key, refreshed)
        return refreshed

    async def refresh_stored(
        self,
        user_id: str,
        connector: ConnectorType,
        tokens: OAuthTokenSet,
        force: bool = False,
    ) -> OAuthTokenSet | None:
        """Refresh a user's stored tokens and persist the new set.

        Returns ``None`` when the connector has no refresh support, no refresh
        token is stored, or the exchange fails.
        """
        if not connector.is_google or not tokens.refresh_token:
            return None

        refreshed = await self.exchange(tokens.refresh_token, force=force)
        if refreshed is None:
            return None

        new_tokens = OAuthTokenSet(
            access_token=refreshed.access_token,
            refresh_token=refreshed.refresh_token or tokens.refresh_token,
            expires_at=refreshed.expires_at,
        )
        if self._store is not None:
            await self._store.update_tokens(user_id, connector.value, new_tokens)
        return new_tokens

    async def _fresh_access_token(
        self, user_id: str, connector: ConnectorType, tokens: OAuthTokenSet
    ) -> str:
        """The stored access token, refreshed first if it is about to expire."""
        margin = self._settings.oauth_refresh_margin_seconds
        if not tokens.refresh_token or not tokens.expires_within(margin):
            return tokens.access_token

        refreshed = await self.refresh_stored(user_id, connector, tokens)
        if refreshed is None:
            logger.warning(
                LogEvents.TOKEN_REFRESH_FAILED,
                connector=connector.value,
                user_id=user_id,
                fallback="existing access token",
            )
            return tokens.access_token
        return refreshed.access_token
