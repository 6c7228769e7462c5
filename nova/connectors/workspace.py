"""Team workspace adapters: Slack and Notion."""

from typing import Any

import httpx

from nova.connectors.base import BaseConnector, action
from nova.core.exceptions import AuthError, UpstreamAPIError, UpstreamRateLimit
from nova.models.connectors import ConnectorType, Credentials

SLACK_API = "https://slack.com/api"
NOTION_API = "https://api.notion.com/v1"
NOTION_VERSION = "2022-06-28"

SLACK_AUTH_ERRORS = {"invalid_auth", "not_authed", "token_revoked", "account_inactive", "missing_scope"}


class SlackConnector(BaseConnector):
    """Slack Web API. Errors arrive as ``ok: false`` envelopes with HTTP 200."""

    connector_type = ConnectorType.SLACK

    async def _call(
        self,
        credentials: Credentials,
        method: str,
        endpoint: str,
        params: dict[str, Any] | None = None,
        json: Any = None,
    ) -> dict[str, Any]:
        response = await self._request(
            method,
            f"{SLACK_API}/{endpoint}",
            headers={"Authorization": f"Bearer {credentials.get('botToken')}"},
            params=params,
            json=json,
        )
        body = response.json()
        if body.get("ok"):
            return body

        error = body.get("error", "unknown_error")
        if error in SLACK_AUTH_ERRORS:
            raise AuthError(
                f"Slack rejected the token ({error})",
                hint="Reconnect Slack in Settings and grant the required scopes.",
            )
        if error == "ratelimited":
            raise UpstreamRateLimit("Slack rate limit reached, try again shortly")
        raise UpstreamAPIError(f"Slack API error: {error}")

    async def test_connection(
        self, params: dict[str, Any], credentials: Credentials
    ) -> dict[str, Any]:
        body = await self._call(credentials, "POST", "auth.test")
        return {
            "connected": True,
            "message": f"Connected to Slack workspace {body.get('team', '')}".strip(),
        }

    @action(required=("query",), aliases=("searchMessages",))
    async def search_messages(
        self, params: dict[str, Any], credentials: Credentials
    ) -> dict[str, Any]:
        body = await self._call(
            credentials, "GET", "search.messages", params={"query": params["query"], "count": 10}
        )
        matches = [
            {
                "text": m.get("text"),
                "user": m.get("username") or m.get("user"),
                "channel": (m.get("channel") or {}).get("name"),
                "ts": m.get("ts"),
                "url": m.get("permalink"),
            }
            for m in (body.get("messages") or {}).get("matches", [])
        ]
        return {"query": params["query"], "total": len(matches), "messages": matches}

    @action(aliases=("getChannels", "listChannels"))
    async def list_channels(
        self, params: dict[str, Any], credentials: Credentials
    ) -> dict[str, Any]:
        body = await self._call(
            credentials,
            "GET",
            "conversations.list",
            params={"limit": 50, "exclude_archived": "true"},
        )
        channels = [
            {
                "id": c.get("id"),
                "name": c.get("name"),
                "members": c.get("num_members"),
                "topic": (c.get("topic") or {}).get("value"),
            }
            for c in body.get("channels", [])
        ]
        return {"total": len(channels), "channels": channels}

    @action(required=("channel", "text"), aliases=("postMessage", "sendMessage"), echoes="ts")
    async def post_message(
        self, params: dict[str, Any], credentials: Credentials
    ) -> dict[str, Any]:
        body = await self._call(
            credentials,
            "POST",
            "chat.postMessage",
            json={"channel": params["channel"], "text": params["text"]},
        )
        return {"channel": body.get("channel"), "ts": body.get("ts")}


def _notion_title(item: dict[str, Any]) -> str:
    """Pages keep the title in a ``title`` property; databases in ``title``."""
    if isinstance(item.get("title"), list):
        return "".join(t.get("plain_text", "") for t in item["title"]) or "Untitled"
    for prop in (item.get("properties") or {}).values():
        if isinstance(prop, dict) and prop.get("type") == "title":
            return "".join(t.get("plain_text", "") for t in prop.get("title", [])) or "Untitled"
    return "Untitled"


class NotionConnector(BaseConnector):
    """Notion search over pages and databases shared with the integration."""

    connector_type = ConnectorType.NOTION

    def _headers(self, credentials: Credentials) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {credentials.get('integrationToken')}",
            "Notion-Version": NOTION_VERSION,
        }

    async def _search(self, credentials: Credentials, body: dict[str, Any]) -> list[dict[str, Any]]:
        response: httpx.Response = await self._request(
            "POST", f"{NOTION_API}/search", headers=self._headers(credentials), json=body
        )
        return [
            {
                "id": r.get("id"),
                "object": r.get("object"),
                "title": _notion_title(r),
                "last_edited_time": r.get("last_edited_time"),
                "url": r.get("url"),
            }
            for r in response.json().get("results", [])
        ]

    async def test_connection(
        self, params: dict[str, Any], credentials: Credentials
    ) -> dict[str, Any]:
        await self._request("GET", f"{NOTION_API}/users/me", headers=self._headers(credentials))
        return {"connected": True, "message": "Successfully connected to Notion"}

    @action(required=("query",), aliases=("searchPages",))
    async def search(
        self, params: dict[str, Any], credentials: Credentials
    ) -> dict[str, Any]:
        results = await self._search(credentials, {"query": params["query"], "page_size": 10})
        return {"query": params["query"], "total": len(results), "results": results}

    @action(aliases=("getDatabases",))
    async def list_databases(
        self, params: dict[str, Any], credentials: Credentials
    ) -> dict[str, Any]:
        results = await self._search(
            credentials,
            {"filter": {"property": "object", "value": "database"}, "page_size": 10},
        )
        return {"total": len(results), "databases": results}
