"""Adapter over the local document index (uploaded files and synced pages)."""

from typing import Any

import httpx

from nova.config import Settings
from nova.connectors.base import BaseConnector, action
from nova.models.connectors import ConnectorType, Credentials
from nova.services.document_index import DocumentIndex


class DocumentStoreConnector(BaseConnector):
    """Searches documents indexed through the RAG service; no external calls."""

    connector_type = ConnectorType.FILE

    def __init__(
        self,
        client: httpx.AsyncClient,
        settings: Settings | None = None,
        index: DocumentIndex | None = None,
    ) -> None:
        super().__init__(client, settings)
        if index is None:
            raise ValueError("DocumentStoreConnector requires a DocumentIndex")
        self._index = index

    async def test_connection(
        self, params: dict[str, Any], credentials: Credentials
    ) -> dict[str, Any]:
        total = await self._index.count(ConnectorType.FILE.value)
        return {"connected": True, "message": f"{total} uploaded document(s) indexed"}

    @action(required=("query",), aliases=("searchDocuments",))
    async def search_documents(
        self, params: dict[str, Any], credentials: Credentials
    ) -> dict[str, Any]:
        response = await self._index.search(
            str(params["query"]),
            connector_id=ConnectorType.FILE.value,
            source_type=params.get("file_type"),
            limit=int(params.get("limit") or self._settings.search_result_limit),
        )
        return response.to_payload()

    @action(aliases=("listDocuments",))
    async def list_documents(
        self, params: dict[str, Any], credentials: Credentials
    ) -> dict[str, Any]:
        documents = await self._index.list_documents(
            ConnectorType.FILE.value, limit=int(params.get("limit") or 20)
        )
        return {
            "total": len(documents),
            "documents": [d.model_dump(mode="json") for d in documents],
        }

    @action(required=("query",), aliases=("searchAll",))
    async def search_all(
        self, params: dict[str, Any], credentials: Credentials
    ) -> dict[str, Any]:
        """Search every indexed source, optionally narrowed to one source type."""
        response = await self._index.search(
            str(params["query"]),
            source_type=params.get("source_type"),
            limit=int(params.get("limit") or self._settings.search_result_limit),
        )
        return response.to_payload()
