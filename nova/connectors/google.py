"""Google Workspace adapters: Drive and Gmail (OAuth bearer tokens)."""

import base64
from typing import Any

import httpx

from nova.connectors.base import BaseConnector, action, truncate
from nova.core.exceptions import ValidationError
from nova.core.logging import get_logger
from nova.models.connectors import ConnectorType, Credentials

logger = get_logger("google_connector")

DRIVE_FILES_URL = "https://www.googleapis.com/drive/v3/files"
DRIVE_FILE_FIELDS = "files(id,name,mimeType,description,webViewLink,modifiedTime,size)"
GMAIL_URL = "https://gmail.googleapis.com/gmail/v1/users/me"

FILE_CONTENT_LIMIT = 50000
EMAIL_BODY_LIMIT = 5000

# Google Apps documents cannot be downloaded directly and must be exported
EXPORT_MIME_TYPES = {
    "application/vnd.google-apps.spreadsheet": "text/csv",
    "application/vnd.google-apps.document": "text/plain",
    "application/vnd.google-apps.presentation": "text/plain",
}


def escape_drive_query(value: str) -> str:
    return value.replace("\\", "\\\\").replace("'", "\\'")


class GoogleConnector(BaseConnector):
    """Bearer-token handling and Google error interpretation."""

    def _headers(self, credentials: Credentials) -> dict[str, str]:
        return {"Authorization": f"Bearer {credentials.get('accessToken')}"}

    def _describe_error(self, response: httpx.Response) -> str | None:
        try:
            error = response.json().get("error", {})
        except ValueError:
            return None
        if not isinstance(error, dict):
            return None

        reasons = {e.get("reason") for e in error.get("errors", []) if isinstance(e, dict)}
        for detail in error.get("details", []):
            if isinstance(detail, dict) and detail.get("reason"):
                reasons.add(detail["reason"])

        if reasons & {"accessNotConfigured", "SERVICE_DISABLED"}:
            return (
                f"The {self.display_name} API is disabled for this Google Cloud project. "
                "Enable it in the Google Cloud console and try again."
            )
        if reasons & {"insufficientPermissions", "ACCESS_TOKEN_SCOPE_INSUFFICIENT"}:
            return (
                f"The {self.display_name} connection is missing required permissions. "
                "Reconnect it and grant the requested scopes."
            )
        if response.status_code == 401:
            return f"The {self.display_name} access token is invalid or expired"
        return error.get("message")


class GoogleDriveConnector(GoogleConnector):
    """Google Drive v3 file listing, search and content export."""

    connector_type = ConnectorType.GOOGLE_DRIVE

    async def _list(self, credentials: Credentials, query: str | None, page_size: int = 20) -> list[dict[str, Any]]:
        params: dict[str, Any] = {
            "pageSize": page_size,
            "fields": DRIVE_FILE_FIELDS,
            "orderBy": "modifiedTime desc",
        }
        clauses = ["trashed = false"]
        if query:
            clauses.append(query)
        params["q"] = " and ".join(clauses)
        response = await self._request(
            "GET", DRIVE_FILES_URL, headers=self._headers(credentials), params=params
        )
        return [self._format_file(f) for f in response.json().get("files", [])]

    def _format_file(self, item: dict[str, Any]) -> dict[str, Any]:
        return {
            "id": item.get("id"),
            "name": item.get("name"),
            "mime_type": item.get("mimeType"),
            "description": item.get("description"),
            "modified_time": item.get("modifiedTime"),
            "url": item.get("webViewLink"),
        }

    async def test_connection(
        self, params: dict[str, Any], credentials: Credentials
    ) -> dict[str, Any]:
        await self._list(credentials, None, page_size=1)
        return {"connected": True, "message": "Successfully connected to Google Drive"}

    @action(aliases=("listFiles", "getFiles"))
    async def list_files(
        self, params: dict[str, Any], credentials: Credentials
    ) -> dict[str, Any]:
        query = params.get("query")
        clause = f"name contains '{escape_drive_query(str(query))}'" if query else None
        files = await self._list(credentials, clause)
        return {"total": len(files), "files": files}

    @action(required=("query",), aliases=("searchFiles",))
    async def search_files(
        self, params: dict[str, Any], credentials: Credentials
    ) -> dict[str, Any]:
        """Full-text search first, then name match; duplicates removed."""
        query = escape_drive_query(str(params["query"]).strip())
        files = await self._list(credentials, f"fullText contains '{query}'")
        seen = {f["id"] for f in files}
        for item in await self._list(credentials, f"name contains '{query}'"):
            if item["id"] not in seen:
                files.append(item)
                seen.add(item["id"])
        return {"query": params["query"], "total": len(files), "files": files}

    @action(required=("file_id",), aliases=("readFile", "getFileContent"))
    async def read_file(
        self, params: dict[str, Any], credentials: Credentials
    ) -> dict[str, Any]:
        file_id = str(params["file_id"])
        headers = self._headers(credentials)

        meta = await self._request(
            "GET",
            f"{DRIVE_FILES_URL}/{file_id}",
            headers=headers,
            params={"fields": "id,name,mimeType,webViewLink,modifiedTime"},
        )
        info = meta.json()
        mime_type = info.get("mimeType", "")

        if mime_type.startswith("application/vnd.google-apps."):
            export_type = EXPORT_MIME_TYPES.get(mime_type)
            if export_type is None:
                raise ValidationError(f"Files of type {mime_type} cannot be read as text")
            response = await self._request(
                "GET",
                f"{DRIVE_FILES_URL}/{file_id}/export",
                headers=headers,
                params={"mimeType": export_type},
                content_call=True,
            )
        else:
            response = await self._request(
                "GET",
                f"{DRIVE_FILES_URL}/{file_id}",
                headers=headers,
                params={"alt": "media"},
                content_call=True,
            )

        content, truncated = truncate(response.text, FILE_CONTENT_LIMIT)
        return {
            "file": self._format_file(info),
            "content": content,
            "truncated": truncated,
        }


class GmailConnector(GoogleConnector):
    """Gmail message listing, search and retrieval."""

    connector_type = ConnectorType.EMAIL

    async def _message_summary(self, credentials: Credentials, message_id: str) -> dict[str, Any]:
        response = await self._request(
            "GET",
            f"{GMAIL_URL}/messages/{message_id}",
            headers=self._headers(credentials),
            params={"format": "metadata", "metadataHeaders": ["Subject", "From", "Date"]},
        )
        message = response.json()
        headers = _headers_by_name(message)
        return {
            "id": message.get("id"),
            "thread_id": message.get("threadId"),
            "subject": headers.get("subject", "(no subject)"),
            "from": headers.get("from", ""),
            "date": headers.get("date", ""),
            "snippet": message.get("snippet", ""),
        }

    async def _messages(self, credentials: Credentials, query: str | None, limit: int) -> list[dict[str, Any]]:
        params: dict[str, Any] = {"maxResults": limit}
        if query:
            params["q"] = query
        response = await self._request(
            "GET", f"{GMAIL_URL}/messages", headers=self._headers(credentials), params=params
        )
        ids = [m["id"] for m in response.json().get("messages", [])]
        return [await self._message_summary(credentials, message_id) for message_id in ids]

    async def test_connection(
        self, params: dict[str, Any], credentials: Credentials
    ) -> dict[str, Any]:
        response = await self._request(
            "GET", f"{GMAIL_URL}/profile", headers=self._headers(credentials)
        )
        return {
            "connected": True,
            "message": f"Connected to Gmail as {response.json().get('emailAddress', 'unknown')}",
        }

    @action(aliases=("listEmails", "getEmails"))
    async def list_emails(
        self, params: dict[str, Any], credentials: Credentials
    ) -> dict[str, Any]:
        limit = max(1, min(int(params.get("limit") or 10), 15))
        emails = await self._messages(credentials, None, limit)
        return {"total": len(emails), "emails": emails}

    @action(required=("query",), aliases=("searchEmails",))
    async def search_emails(
        self, params: dict[str, Any], credentials: Credentials
    ) -> dict[str, Any]:
        limit = max(1, min(int(params.get("limit") or 10), 15))
        emails = await self._messages(credentials, str(params["query"]), limit)
        return {"query": params["query"], "total": len(emails), "emails": emails}

    @action(required=("email_id",), aliases=("getEmail",))
    async def get_email(
        self, params: dict[str, Any], credentials: Credentials
    ) -> dict[str, Any]:
        response = await self._request(
            "GET",
            f"{GMAIL_URL}/messages/{params['email_id']}",
            headers=self._headers(credentials),
            params={"format": "full"},
        )
        message = response.json()
        headers = _headers_by_name(message)
        body, truncated = truncate(_plain_text_body(message.get("payload") or {}), EMAIL_BODY_LIMIT)
        return {
            "email": {
                "id": message.get("id"),
                "subject": headers.get("subject", "(no subject)"),
                "from": headers.get("from", ""),
                "to": headers.get("to", ""),
                "date": headers.get("date", ""),
                "body": body,
                "truncated": truncated,
            }
        }


def _headers_by_name(message: dict[str, Any]) -> dict[str, str]:
    headers = (message.get("payload") or {}).get("headers", [])
    return {h.get("name", "").lower(): h.get("value", "") for h in headers}


def _decode_base64url(data: str) -> str:
    padded = data + "=" * (-len(data) % 4)
    return base64.urlsafe_b64decode(padded).decode("utf-8", errors="replace")


def _plain_text_body(payload: dict[str, Any]) -> str:
    """Depth-first search for the first text/plain part."""
    if payload.get("mimeType") == "text/plain" and (payload.get("body") or {}).get("data"):
        return _decode_base64url(payload["body"]["data"])
    for part in payload.get("parts", []):
        text = _plain_text_body(part)
        if text:
            return text
    if not payload.get("parts") and (payload.get("body") or {}).get("data"):
        return _decode_base64url(payload["body"]["data"])
    return ""
