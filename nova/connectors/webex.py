"""Webex messaging adapter built on the Webex Teams SDK."""

import asyncio
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from itertools import islice
from typing import Any

import httpx
import requests
from webexteamssdk import WebexTeamsAPI
from webexteamssdk.exceptions import ApiError

from nova.config import Settings
from nova.connectors.base import BaseConnector, action
from nova.core.exceptions import (
    AuthError,
    NotFoundError,
    NovaException,
    UpstreamAPIError,
    UpstreamRateLimit,
)
from nova.core.logging import get_logger
from nova.models.connectors import ConnectorType, Credentials
from nova.utils.message_chunker import chunk_message

logger = get_logger("webex_connector")


class WebexConnector(BaseConnector):
    """Rooms and messages. The SDK is synchronous and runs in a thread pool."""

    connector_type = ConnectorType.WEBEX

    def __init__(
        self,
        client: httpx.AsyncClient,
        settings: Settings | None = None,
        api_factory: Callable[[str], Any] | None = None,
    ) -> None:
        super().__init__(client, settings)
        self._api_factory = api_factory or self._default_api
        self._executor = ThreadPoolExecutor(max_workers=4)

    def _default_api(self, token: str) -> WebexTeamsAPI:
        return WebexTeamsAPI(
            access_token=token,
            single_request_timeout=int(self._settings.connector_metadata_timeout),
        )

    async def _run_sync(self, func: Any, *args: Any, **kwargs: Any) -> Any:
        """Run a synchronous SDK call in the thread pool, mapping SDK errors."""
        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(self._executor, lambda: func(*args, **kwargs))
        except ApiError as e:
            raise self._map_api_error(e) from e
        except requests.exceptions.Timeout as e:
            logger.warning("webex_timeout", error=str(e))
            raise UpstreamAPIError("Webex did not respond in time") from e
        except requests.exceptions.RequestException as e:
            logger.warning("webex_transport_error", error=str(e))
            raise UpstreamAPIError(f"Could not reach Webex: {e}") from e

    def _map_api_error(self, error: ApiError) -> NovaException:
        status = getattr(error, "status_code", None)
        logger.warning("webex_api_error", status_code=status, error=str(error))
        if status in (401, 403):
            return AuthError(
                f"Webex rejected the access token ({status})",
                hint="Reconnect Webex in Settings or check the bot token.",
                status_code=status,
            )
        if status == 404:
            return NotFoundError("Webex could not find the requested room or message", status_code=404)
        if status == 429:
            return UpstreamRateLimit("Webex rate limit reached, try again shortly", status_code=429)
        return UpstreamAPIError(f"Webex API error: {error}", status_code=status)

    def _api(self, credentials: Credentials) -> Any:
        return self._api_factory(credentials.get("accessToken"))

    async def test_connection(
        self, params: dict[str, Any], credentials: Credentials
    ) -> dict[str, Any]:
        me = await self._run_sync(self._api(credentials).people.me)
        return {"connected": True, "message": f"Connected to Webex as {me.displayName}"}

    @action(aliases=("listRooms", "getRooms"))
    async def list_rooms(
        self, params: dict[str, Any], credentials: Credentials
    ) -> dict[str, Any]:
        api = self._api(credentials)
        limit = max(1, min(int(params.get("limit") or 20), 50))
        rooms = await self._run_sync(
            lambda: list(islice(api.rooms.list(sortBy="lastactivity", max=limit), limit))
        )
        formatted = [
            {
                "id": r.id,
                "title": r.title,
                "type": r.type,
                "last_activity": str(getattr(r, "lastActivity", "") or ""),
            }
            for r in rooms
        ]
        return {"total": len(formatted), "rooms": formatted}

    @action(required=("room_id",), aliases=("listMessages", "getMessages"))
    async def list_messages(
        self, params: dict[str, Any], credentials: Credentials
    ) -> dict[str, Any]:
        api = self._api(credentials)
        limit = max(1, min(int(params.get("limit") or 20), 50))
        messages = await self._run_sync(
            lambda: list(islice(api.messages.list(roomId=params["room_id"], max=limit), limit))
        )
        query = str(params.get("query") or "").lower()
        formatted = [
            {
                "id": m.id,
                "text": getattr(m, "text", "") or "",
                "from": getattr(m, "personEmail", ""),
                "created": str(getattr(m, "created", "") or ""),
            }
            for m in messages
        ]
        if query:
            formatted = [m for m in formatted if query in m["text"].lower()]
        return {"room_id": params["room_id"], "total": len(formatted), "messages": formatted}

    @action(required=("room_id", "text"), aliases=("sendMessage",), echoes="id")
    async def send_message(
        self, params: dict[str, Any], credentials: Credentials
    ) -> dict[str, Any]:
        api = self._api(credentials)
        chunks = chunk_message(str(params["text"]))
        ids = []
        for chunk in chunks:
            message = await self._run_sync(
                api.messages.create, roomId=params["room_id"], markdown=chunk
            )
            ids.append(message.id)

        logger.info("webex_message_sent", room_id=params["room_id"], chunks=len(ids))
        return {"id": ids[0] if ids else None, "message_ids": ids, "chunks": len(ids)}

    def close(self) -> None:
        self._executor.shutdown(wait=False)
