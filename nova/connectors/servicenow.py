"""ServiceNow adapter: knowledge base, incidents and service catalog."""

from typing import Any

import httpx

from nova.connectors.base import BaseConnector, action, truncate
from nova.core.exceptions import NotFoundError, UpstreamAPIError
from nova.core.logging import get_logger
from nova.models.connectors import ConnectorType, Credentials

logger = get_logger("servicenow_connector")

INCIDENT_STATUS_CODES = {
    "new": "1",
    "in_progress": "2",
    "on_hold": "3",
    "resolved": "6",
    "closed": "7",
    "canceled": "8",
}

INCIDENT_STATE_NAMES = {
    "1": "New",
    "2": "In Progress",
    "3": "On Hold",
    "6": "Resolved",
    "7": "Closed",
    "8": "Canceled",
}

INCIDENT_FIELDS = (
    "sys_id,number,short_description,description,state,priority,urgency,"
    "impact,assignment_group,opened_at,caller_id"
)
ARTICLE_FIELDS = "sys_id,number,short_description,text,category,workflow_state"
UPDATABLE_INCIDENT_FIELDS = (
    "short_description",
    "description",
    "urgency",
    "impact",
    "work_notes",
    "comments",
    "close_notes",
)

ARTICLE_TEXT_LIMIT = 2000


def display(value: Any, default: str = "") -> str:
    """Unwrap ServiceNow reference fields (``{"display_value": ..., "value": ...}``)."""
    if isinstance(value, dict):
        return str(value.get("display_value") or value.get("value") or default)
    if value in (None, ""):
        return default
    return str(value)


class ServiceNowConnector(BaseConnector):
    """Talks to the ServiceNow Table and Aggregate APIs with basic auth."""

    connector_type = ConnectorType.SERVICENOW

    def _base_url(self, credentials: Credentials) -> str:
        instance = str(credentials.get("instanceUrl")).strip().rstrip("/")
        if not instance.startswith(("http://", "https://")):
            instance = f"https://{instance}"
        return instance

    def _auth(self, credentials: Credentials) -> httpx.BasicAuth:
        return httpx.BasicAuth(credentials.get("username"), credentials.get("password"))

    async def _get(
        self, credentials: Credentials, path: str, params: dict[str, Any] | None = None
    ) -> httpx.Response:
        return await self._request(
            "GET",
            f"{self._base_url(credentials)}{path}",
            headers={"Accept": "application/json"},
            params=params,
            auth=self._auth(credentials),
        )

    async def _table(
        self, credentials: Credentials, table: str, params: dict[str, Any]
    ) -> list[dict[str, Any]]:
        response = await self._get(credentials, f"/api/now/table/{table}", params)
        return response.json().get("result", [])

    async def _count(self, credentials: Credentials, table: str) -> int:
        """Count records via the stats API, falling back to X-Total-Count."""
        try:
            response = await self._get(
                credentials, f"/api/now/stats/{table}", {"sysparm_count": "true"}
            )
            count = response.json()["result"]["stats"]["count"]
            return int(count)
        except (UpstreamAPIError, NotFoundError, KeyError, TypeError, ValueError) as e:
            logger.info("servicenow_stats_unavailable", table=table, error=str(e))

        response = await self._get(
            credentials, f"/api/now/table/{table}", {"sysparm_limit": "1"}
        )
        total = response.headers.get("X-Total-Count")
        if total is None:
            raise UpstreamAPIError(
                f"ServiceNow did not report a record count for {table}"
            )
        return int(total)

    async def _find_incident(
        self, credentials: Credentials, number: str, fields: str = INCIDENT_FIELDS
    ) -> dict[str, Any]:
        records = await self._table(
            credentials,
            "incident",
            {
                "sysparm_query": f"number={number.strip().upper()}",
                "sysparm_fields": fields,
                "sysparm_limit": "1",
            },
        )
        if not records:
            raise NotFoundError(f"Incident {number} was not found in ServiceNow")
        return records[0]

    def _incident_url(self, credentials: Credentials, sys_id: str) -> str:
        return f"{self._base_url(credentials)}/nav_to.do?uri=incident.do?sys_id={sys_id}"

    def _format_incident(self, credentials: Credentials, record: dict[str, Any]) -> dict[str, Any]:
        state = display(record.get("state"))
        return {
            "number": display(record.get("number")),
            "sys_id": display(record.get("sys_id")),
            "short_description": display(record.get("short_description")),
            "description": display(record.get("description")),
            "state": INCIDENT_STATE_NAMES.get(state, state),
            "priority": display(record.get("priority")),
            "urgency": display(record.get("urgency")),
            "impact": display(record.get("impact")),
            "assignment_group": display(record.get("assignment_group"), "Unassigned"),
            "caller": display(record.get("caller_id")),
            "opened_at": display(record.get("opened_at")),
            "url": self._incident_url(credentials, display(record.get("sys_id"))),
        }

    def _format_article(self, record: dict[str, Any]) -> dict[str, Any]:
        text, truncated = truncate(display(record.get("text")), ARTICLE_TEXT_LIMIT)
        article = {
            "number": display(record.get("number")),
            "sys_id": display(record.get("sys_id")),
            "title": display(record.get("short_description")),
            "text": text,
            "category": display(record.get("category")),
            "workflow_state": display(record.get("workflow_state")),
        }
        if truncated:
            article["truncated"] = True
        return article

    async def test_connection(
        self, params: dict[str, Any], credentials: Credentials
    ) -> dict[str, Any]:
        await self._table(credentials, "incident", {"sysparm_limit": "1", "sysparm_fields": "sys_id"})
        return {"connected": True, "message": "Successfully connected to ServiceNow"}

    @action(aliases=("getArticleCount",))
    async def get_article_count(
        self, params: dict[str, Any], credentials: Credentials
    ) -> dict[str, Any]:
        return {"count": await self._count(credentials, "kb_knowledge"), "table": "kb_knowledge"}

    @action(aliases=("getIncidentCount",))
    async def get_incident_count(
        self, params: dict[str, Any], credentials: Credentials
    ) -> dict[str, Any]:
        return {"count": await self._count(credentials, "incident"), "table": "incident"}

    @action(aliases=("getCatalogItemCount",))
    async def get_catalog_item_count(
        self, params: dict[str, Any], credentials: Credentials
    ) -> dict[str, Any]:
        return {"count": await self._count(credentials, "sc_cat_item"), "table": "sc_cat_item"}

    @action(required=("query",), aliases=("searchArticles", "searchKnowledge"))
    async def search_articles(
        self, params: dict[str, Any], credentials: Credentials
    ) -> dict[str, Any]:
        query = str(params["query"]).strip()
        records = await self._table(
            credentials,
            "kb_knowledge",
            {
                "sysparm_query": f"short_descriptionLIKE{query}^ORtextLIKE{query}",
                "sysparm_fields": ARTICLE_FIELDS,
                "sysparm_limit": str(min(int(params.get("limit") or 20), 50)),
            },
        )
        articles = [self._format_article(r) for r in records]
        return {"query": query, "total": len(articles), "articles": articles}

    @action(required=("article_number",), aliases=("getArticle",))
    async def get_article_by_number(
        self, params: dict[str, Any], credentials: Credentials
    ) -> dict[str, Any]:
        number = str(params["article_number"]).strip().upper()
        records = await self._table(
            credentials,
            "kb_knowledge",
            {"sysparm_query": f"number={number}", "sysparm_fields": ARTICLE_FIELDS, "sysparm_limit": "1"},
        )
        if not records:
            raise NotFoundError(f"Knowledge article {number} was not found in ServiceNow")
        return {"article": self._format_article(records[0])}

    @action(required=("incident_number",), aliases=("getIncident",))
    async def get_incident(
        self, params: dict[str, Any], credentials: Credentials
    ) -> dict[str, Any]:
        record = await self._find_incident(credentials, str(params["incident_number"]))
        return {"incident": self._format_incident(credentials, record)}

    @action(aliases=("listIncidents", "getIncidents"))
    async def list_incidents(
        self, params: dict[str, Any], credentials: Credentials
    ) -> dict[str, Any]:
        clauses = []
        status = params.get("status")
        if status:
            code = INCIDENT_STATUS_CODES.get(str(status).lower().replace(" ", "_"))
            if code:
                clauses.append(f"state={code}")
        if params.get("priority"):
            clauses.append(f"priority={params['priority']}")
        clauses.append("ORDERBYDESCopened_at")

        limit = max(1, min(int(params.get("limit") or 10), 50))
        records = await self._table(
            credentials,
            "incident",
            {
                "sysparm_query": "^".join(clauses),
                "sysparm_fields": INCIDENT_FIELDS,
                "sysparm_limit": str(limit),
            },
        )
        incidents = [self._format_incident(credentials, r) for r in records]
        return {"total": len(incidents), "incidents": incidents}

    @action(required=("short_description",), aliases=("createIncident",), echoes="number")
    async def create_incident(
        self, params: dict[str, Any], credentials: Credentials
    ) -> dict[str, Any]:
        body = {
            "short_description": params["short_description"],
            "description": params.get("description", ""),
            "urgency": str(params.get("urgency") or "2"),
            "impact": str(params.get("impact") or "2"),
            "state": "1",
        }
        if params.get("category"):
            body["category"] = params["category"]

        response = await self._request(
            "POST",
            f"{self._base_url(credentials)}/api/now/table/incident",
            headers={"Accept": "application/json", "Content-Type": "application/json"},
            json=body,
            auth=self._auth(credentials),
        )
        record = response.json().get("result", {})
        sys_id = display(record.get("sys_id"))
        logger.info("servicenow_incident_created", number=display(record.get("number")))
        return {
            "number": display(record.get("number")),
            "sys_id": sys_id,
            "short_description": display(record.get("short_description")),
            "state": "New",
            "url": self._incident_url(credentials, sys_id),
        }

    @action(required=("incident_number",), aliases=("updateIncident",), echoes="number")
    async def update_incident(
        self, params: dict[str, Any], credentials: Credentials
    ) -> dict[str, Any]:
        current = await self._find_incident(
            credentials, str(params["incident_number"]), fields="sys_id,number"
        )
        sys_id = display(current.get("sys_id"))

        body = {f: params[f] for f in UPDATABLE_INCIDENT_FIELDS if params.get(f) not in (None, "")}
        if params.get("state"):
            state = str(params["state"])
            body["state"] = INCIDENT_STATUS_CODES.get(state.lower().replace(" ", "_"), state)
        if not body:
            return {
                "number": display(current.get("number")),
                "sys_id": sys_id,
                "updated_fields": [],
            }

        response = await self._request(
            "PATCH",
            f"{self._base_url(credentials)}/api/now/table/incident/{sys_id}",
            headers={"Accept": "application/json", "Content-Type": "application/json"},
            json=body,
            auth=self._auth(credentials),
        )
        record = response.json().get("result") or {}
        state = display(record.get("state"))
        return {
            "number": display(record.get("number")),
            "sys_id": display(record.get("sys_id")),
            "state": INCIDENT_STATE_NAMES.get(state, state),
            "updated_fields": sorted(body),
            "url": self._incident_url(credentials, sys_id),
        }

    @action(aliases=("getCatalogItems", "listCatalogItems"))
    async def list_catalog_items(
        self, params: dict[str, Any], credentials: Credentials
    ) -> dict[str, Any]:
        records = await self._table(
            credentials,
            "sc_cat_item",
            {
                "sysparm_fields": "sys_id,name,short_description,category,price",
                "sysparm_limit": "50",
            },
        )
        items = [
            {
                "sys_id": display(r.get("sys_id")),
                "name": display(r.get("name")),
                "description": display(r.get("short_description")),
                "category": display(r.get("category")),
                "price": display(r.get("price")),
            }
            for r in records
        ]
        return {"total": len(items), "items": items}
