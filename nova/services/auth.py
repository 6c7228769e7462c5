"""Caller authentication against an external user-info endpoint."""

import httpx

from nova.config import Settings, get_settings
from nova.core.logging import LogEvents, get_logger
from nova.models.connectors import UserContext

logger = get_logger("auth")


def bearer_token(authorization: str | None) -> str | None:
    """Extract the token from an ``Authorization: Bearer ...`` header value."""
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


class UserAuthenticator:
    """Resolves a bearer token to a :class:`UserContext`.

    The token is checked by calling ``auth_userinfo_url``, which must answer
    2xx with a JSON body carrying ``id`` (or ``sub``) and optionally ``email``.
    """

    def __init__(self, client: httpx.AsyncClient, settings: Settings | None = None) -> None:
        self._client = client
        self._settings = settings or get_settings()

    async def authenticate(self, token: str | None) -> UserContext | None:
        if not token:
            return None

        url = self._settings.auth_userinfo_url
        if not url:
            logger.warning(LogEvents.USER_AUTH_FAILED, reason="auth_userinfo_url not configured")
            return None

        headers = {"Authorization": f"Bearer {token}"}
        if self._settings.auth_api_key:
            headers["apikey"] = self._settings.auth_api_key

        try:
            response = await self._client.get(
                url, headers=headers, timeout=self._settings.connector_metadata_timeout
            )
        except httpx.HTTPError as e:
            logger.warning(LogEvents.USER_AUTH_FAILED, error=str(e))
            return None

        if not response.is_success:
            logger.info(LogEvents.USER_AUTH_FAILED, status_code=response.status_code)
            return None

        body = response.json()
        user_id = body.get("id") or body.get("sub")
        if not user_id:
            logger.warning(LogEvents.USER_AUTH_FAILED, reason="no user id in response")
            return None

        logger.debug(LogEvents.USER_AUTHENTICATED, user_id=user_id)
        return UserContext(user_id=str(user_id), email=body.get("email"), access_token=token)
