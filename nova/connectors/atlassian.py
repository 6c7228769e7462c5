"""Atlassian Cloud adapters: Jira and Confluence."""

from typing import Any

import httpx

from nova.connectors.base import BaseConnector, action
from nova.core.exceptions import ValidationError
from nova.core.logging import get_logger
from nova.models.connectors import ConnectorType, Credentials

logger = get_logger("atlassian_connector")

ISSUE_FIELDS = "key,summary,status,priority,assignee,created,updated,issuetype"


def text_to_adf(text: str) -> dict[str, Any]:
    """Convert plain text to an Atlassian Document Format document, one paragraph per line."""
    paragraphs = text.split("\n")
    return {
        "type": "doc",
        "version": 1,
        "content": [
            {
                "type": "paragraph",
                "content": [{"type": "text", "text": line}] if line else [],
            }
            for line in paragraphs
        ],
    }


def adf_to_text(node: Any) -> str:
    """Flatten an ADF document to plain text."""
    if not isinstance(node, dict):
        return ""
    if node.get("type") == "text":
        return node.get("text", "")
    parts = [adf_to_text(child) for child in node.get("content", [])]
    separator = "\n" if node.get("type") in ("doc", "bulletList", "orderedList") else ""
    return separator.join(p for p in parts if p)


def build_jql(query: str | None, project: str | None = None, status: str | None = None) -> str:
    """Build JQL from free text, or pass the query through when it already is JQL."""
    query = (query or "").strip()
    if query and ("=" in query or "~" in query):
        return query

    clauses = []
    if project:
        clauses.append(f'project = "{project}"')
    if status:
        clauses.append(f'status = "{status}"')
    if query:
        escaped = query.replace('"', '\\"')
        clauses.append(f'text ~ "{escaped}"')
    jql = " AND ".join(clauses)
    return f"{jql} ORDER BY created DESC" if jql else "ORDER BY created DESC"


class AtlassianConnector(BaseConnector):
    """Shared URL and basic-auth handling for Atlassian Cloud sites."""

    def _site(self, credentials: Credentials) -> str:
        return str(credentials.get("url")).strip().rstrip("/")

    def _auth(self, credentials: Credentials) -> httpx.BasicAuth:
        return httpx.BasicAuth(credentials.get("email"), credentials.get("apiToken"))

    async def _call(
        self,
        credentials: Credentials,
        method: str,
        path: str,
        params: dict[str, Any] | None = None,
        json: Any = None,
    ) -> httpx.Response:
        return await self._request(
            method,
            f"{self._site(credentials)}{path}",
            headers={"Accept": "application/json"},
            params=params,
            json=json,
            auth=self._auth(credentials),
        )


class JiraConnector(AtlassianConnector):
    """Jira Cloud REST API v3."""

    connector_type = ConnectorType.JIRA

    def _format_issue(self, credentials: Credentials, issue: dict[str, Any]) -> dict[str, Any]:
        fields = issue.get("fields") or {}
        return {
            "key": issue.get("key"),
            "id": issue.get("id"),
            "summary": fields.get("summary", ""),
            "status": (fields.get("status") or {}).get("name", "Unknown"),
            "priority": (fields.get("priority") or {}).get("name", "None"),
            "type": (fields.get("issuetype") or {}).get("name"),
            "assignee": (fields.get("assignee") or {}).get("displayName", "Unassigned"),
            "created": fields.get("created"),
            "updated": fields.get("updated"),
            "url": f"{self._site(credentials)}/browse/{issue.get('key')}",
        }

    async def test_connection(
        self, params: dict[str, Any], credentials: Credentials
    ) -> dict[str, Any]:
        response = await self._call(credentials, "GET", "/rest/api/3/myself")
        user = response.json()
        return {
            "connected": True,
            "message": f"Connected to Jira as {user.get('displayName', 'unknown user')}",
        }

    @action(aliases=("getProjects",))
    async def list_projects(
        self, params: dict[str, Any], credentials: Credentials
    ) -> dict[str, Any]:
        response = await self._call(
            credentials, "GET", "/rest/api/3/project", params={"maxResults": 50}
        )
        projects = [
            {
                "key": p.get("key"),
                "name": p.get("name"),
                "type": p.get("projectTypeKey"),
                "lead": (p.get("lead") or {}).get("displayName"),
                "url": f"{self._site(credentials)}/browse/{p.get('key')}",
            }
            for p in response.json()[:50]
        ]
        return {"total": len(projects), "projects": projects}

    @action(aliases=("searchIssues", "search"))
    async def search_issues(
        self, params: dict[str, Any], credentials: Credentials
    ) -> dict[str, Any]:
        jql = build_jql(params.get("query"), params.get("project"), params.get("status"))
        response = await self._call(
            credentials,
            "GET",
            "/rest/api/3/search/jql",
            params={
                "jql": jql,
                "maxResults": min(int(params.get("limit") or 20), 50),
                "fields": ISSUE_FIELDS,
            },
        )
        issues = [self._format_issue(credentials, i) for i in response.json().get("issues", [])]
        return {"jql": jql, "total": len(issues), "issues": issues}

    @action(required=("issue_key",), aliases=("getIssue",))
    async def get_issue(
        self, params: dict[str, Any], credentials: Credentials
    ) -> dict[str, Any]:
        key = str(params["issue_key"]).strip().upper()
        response = await self._call(credentials, "GET", f"/rest/api/3/issue/{key}")
        issue = response.json()
        formatted = self._format_issue(credentials, issue)
        formatted["description"] = adf_to_text((issue.get("fields") or {}).get("description"))
        return {"issue": formatted}

    @action(required=("project_key", "summary"), aliases=("createIssue",), echoes="key")
    async def create_issue(
        self, params: dict[str, Any], credentials: Credentials
    ) -> dict[str, Any]:
        fields: dict[str, Any] = {
            "project": {"key": params["project_key"]},
            "summary": params["summary"],
            "issuetype": {"name": params.get("issue_type") or "Task"},
        }
        if params.get("description"):
            fields["description"] = text_to_adf(str(params["description"]))
        if params.get("priority"):
            fields["priority"] = {"name": params["priority"]}
        if params.get("assignee_account_id"):
            fields["assignee"] = {"accountId": params["assignee_account_id"]}
        if params.get("labels"):
            fields["labels"] = list(params["labels"])

        response = await self._call(credentials, "POST", "/rest/api/3/issue", json={"fields": fields})
        created = response.json()
        logger.info("jira_issue_created", key=created.get("key"))
        return {
            "key": created.get("key"),
            "id": created.get("id"),
            "url": f"{self._site(credentials)}/browse/{created.get('key')}",
        }

    async def _transition(self, credentials: Credentials, key: str, target: str) -> str:
        response = await self._call(credentials, "GET", f"/rest/api/3/issue/{key}/transitions")
        wanted = target.strip().lower()
        for transition in response.json().get("transitions", []):
            names = {
                str(transition.get("name", "")).lower(),
                str((transition.get("to") or {}).get("name", "")).lower(),
            }
            if wanted in names:
                await self._call(
                    credentials,
                    "POST",
                    f"/rest/api/3/issue/{key}/transitions",
                    json={"transition": {"id": transition["id"]}},
                )
                return (transition.get("to") or {}).get("name") or transition.get("name")
        raise ValidationError(f"Issue {key} cannot move to status '{target}'")

    @action(required=("issue_key",), aliases=("updateIssue",), echoes="key")
    async def update_issue(
        self, params: dict[str, Any], credentials: Credentials
    ) -> dict[str, Any]:
        key = str(params["issue_key"]).strip().upper()
        changes: list[str] = []

        fields: dict[str, Any] = {}
        if params.get("summary"):
            fields["summary"] = params["summary"]
        if params.get("description"):
            fields["description"] = text_to_adf(str(params["description"]))
        if params.get("priority"):
            fields["priority"] = {"name": params["priority"]}
        if fields:
            await self._call(credentials, "PUT", f"/rest/api/3/issue/{key}", json={"fields": fields})
            changes.extend(sorted(fields))

        status = None
        if params.get("status"):
            status = await self._transition(credentials, key, str(params["status"]))
            changes.append("status")

        if params.get("comment"):
            await self._call(
                credentials,
                "POST",
                f"/rest/api/3/issue/{key}/comment",
                json={"body": text_to_adf(str(params["comment"]))},
            )
            changes.append("comment")

        result: dict[str, Any] = {
            "key": key,
            "updated_fields": changes,
            "url": f"{self._site(credentials)}/browse/{key}",
        }
        if status:
            result["status"] = status
        return result

    @action(required=("issue_key", "comment"), aliases=("addComment",), echoes="comment_id")
    async def add_comment(
        self, params: dict[str, Any], credentials: Credentials
    ) -> dict[str, Any]:
        key = str(params["issue_key"]).strip().upper()
        response = await self._call(
            credentials,
            "POST",
            f"/rest/api/3/issue/{key}/comment",
            json={"body": text_to_adf(str(params["comment"]))},
        )
        return {"issue_key": key, "comment_id": response.json().get("id")}


class ConfluenceConnector(AtlassianConnector):
    """Confluence Cloud content search."""

    connector_type = ConnectorType.CONFLUENCE

    async def test_connection(
        self, params: dict[str, Any], credentials: Credentials
    ) -> dict[str, Any]:
        await self._call(credentials, "GET", "/wiki/rest/api/space", params={"limit": 1})
        return {"connected": True, "message": "Successfully connected to Confluence"}

    @action(required=("query",), aliases=("searchContent", "search_content"))
    async def search(
        self, params: dict[str, Any], credentials: Credentials
    ) -> dict[str, Any]:
        query = str(params["query"]).strip().replace('"', '\\"')
        response = await self._call(
            credentials,
            "GET",
            "/wiki/rest/api/content/search",
            params={
                "cql": f'text ~ "{query}" OR title ~ "{query}"',
                "limit": min(int(params.get("limit") or 10), 25),
            },
        )
        body = response.json()
        base = (body.get("_links") or {}).get("base") or f"{self._site(credentials)}/wiki"
        pages = [
            {
                "id": r.get("id"),
                "title": r.get("title"),
                "type": r.get("type"),
                "space": (r.get("space") or {}).get("key"),
                "url": f"{base}{(r.get('_links') or {}).get('webui', '')}",
            }
            for r in body.get("results", [])
        ]
        return {"query": params["query"], "total": len(pages), "results": pages}

    @action(aliases=("getSpaces",))
    async def list_spaces(
        self, params: dict[str, Any], credentials: Credentials
    ) -> dict[str, Any]:
        response = await self._call(credentials, "GET", "/wiki/rest/api/space", params={"limit": 50})
        spaces = [
            {"key": s.get("key"), "name": s.get("name"), "type": s.get("type")}
            for s in response.json().get("results", [])
        ]
        return {"total": len(spaces), "spaces": spaces}
