"""Handler for stored OAuth tokens (``POST /oauth-connector``)."""

from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Coroutine

from fastapi.responses import JSONResponse

from nova.core.logging import get_logger
from nova.handlers.responses import error_response
from nova.models.api import OAuthConnectorRequest
from nova.models.connectors import ConnectorType, OAuthTokenSet, UserContext
from nova.services.credential_resolver import CredentialResolver
from nova.services.credential_store import CredentialStore

logger = get_logger("oauth_handler")

DEFAULT_TOKEN_LIFETIME = timedelta(seconds=3600)
# get-token refreshes tokens that expire within this window
GET_TOKEN_REFRESH_MARGIN = 300

ActionFunc = Callable[..., Coroutine[Any, Any, JSONResponse]]


class OAuthHandler:
    """Saves, returns, refreshes and revokes a user's OAuth tokens.

    Every action is scoped to the authenticated user's own connector row.
    """

    def __init__(self, store: CredentialStore, resolver: CredentialResolver) -> None:
        self._store = store
        self._resolver = resolver
        self._actions: dict[str, ActionFunc] = {
            "save-tokens": self._save_tokens,
            "get-token": self._get_token,
            "refresh-token": self._refresh_token,
            "revoke": self._revoke,
        }

    async def handle(self, request: OAuthConnectorRequest, user: UserContext) -> JSONResponse:
        action = self._actions.get(request.action)
        if action is None:
            return error_response(f"Unknown action: {request.action}")

        connector = ConnectorType.parse(request.connector_id)
        if connector is None:
            return error_response(f"Unknown connector: {request.connector_id}")

        logger.info("oauth_action", action=request.action, connector=connector.value, user_id=user.user_id)
        return await action(request=request, connector=connector, user=user)

    async def _save_tokens(
        self, request: OAuthConnectorRequest, connector: ConnectorType, user: UserContext
    ) -> JSONResponse:
        if not request.access_token:
            return error_response("Access token is required")

        expires_at = request.expires_at or datetime.now(timezone.utc) + DEFAULT_TOKEN_LIFETIME
        tokens = OAuthTokenSet(
            access_token=request.access_token,
            refresh_token=request.refresh_token,
            expires_at=expires_at,
        )
        config = {"email": request.email} if request.email else {}
        await self._store.save(
            user.user_id,
            connector.value,
            name=connector.display_name,
            tokens=tokens,
            config=config,
        )
        return JSONResponse({"success": True, "message": "Tokens saved successfully"})

    async def _get_token(
        self, request: OAuthConnectorRequest, connector: ConnectorType, user: UserContext
    ) -> JSONResponse:
        stored = await self._store.get(user.user_id, connector.value)
        if stored is None:
            return error_response("Connector not found", status_code=404)
        if not stored.is_connected:
            return error_response("Connector is not connected")
        if stored.tokens is None or not stored.tokens.access_token:
            return error_response("No access token found")

        tokens = stored.tokens
        if tokens.refresh_token and tokens.expires_within(GET_TOKEN_REFRESH_MARGIN):
            refreshed = await self._resolver.refresh_stored(user.user_id, connector, tokens)
            if refreshed is not None:
                return JSONResponse({"success": True, "accessToken": refreshed.access_token})

        return JSONResponse({"success": True, "accessToken": tokens.access_token})

    async def _refresh_token(
        self, request: OAuthConnectorRequest, connector: ConnectorType, user: UserContext
    ) -> JSONResponse:
        stored = await self._store.get(user.user_id, connector.value)
        if stored is None:
            return error_response("Connector not found", status_code=404)
        if stored.tokens is None or not stored.tokens.refresh_token:
            return error_response("No refresh token available")
        if not connector.is_google:
            return error_response("Token refresh not supported for this connector")

        refreshed = await self._resolver.refresh_stored(
            user.user_id, connector, stored.tokens, force=True
        )
        if refreshed is None:
            return error_response("Failed to refresh token", status_code=500)
        return JSONResponse({"success": True, "accessToken": refreshed.access_token})

    async def _revoke(
        self, request: OAuthConnectorRequest, connector: ConnectorType, user: UserContext
    ) -> JSONResponse:
        await self._store.delete(user.user_id, connector.value)
        return JSONResponse({"success": True, "message": "Connector revoked"})
