"""Handler for document indexing and search (``POST /rag-service``)."""

from typing import Any, Callable, Coroutine

from fastapi.responses import JSONResponse

from nova.config import Settings, get_settings
from nova.core.logging import get_logger
from nova.handlers.responses import error_response
from nova.models.api import RagRequest
from nova.models.connectors import UserContext
from nova.services.document_index import DocumentIndex

logger = get_logger("rag_handler")

ActionFunc = Callable[..., Coroutine[Any, Any, JSONResponse]]


class RagHandler:
    """Index, search, get and delete documents in the local document index."""

    def __init__(self, index: DocumentIndex, settings: Settings | None = None) -> None:
        self._index = index
        self._settings = settings or get_settings()
        self._actions: dict[str, ActionFunc] = {
            "index": self._index_documents,
            "search": self._search,
            "delete": self._delete,
            "get": self._get,
        }

    async def handle(self, request: RagRequest, user: UserContext | None = None) -> JSONResponse:
        action = self._actions.get(request.action)
        if action is None:
            return error_response(f"Unknown action: {request.action}")

        logger.info(
            "rag_action",
            action=request.action,
            connector_id=request.connector_id,
            source_type=request.source_type,
        )
        return await action(request=request, user=user)

    async def _index_documents(self, request: RagRequest, user: UserContext | None) -> JSONResponse:
        if not request.documents:
            return error_response("No documents provided for indexing")
        if not request.connector_id or not request.source_type:
            return error_response("connectorId and sourceType are required for indexing")

        report = await self._index.ingest(
            request.connector_id,
            request.source_type,
            request.documents,
            user_id=user.user_id if user else None,
        )
        return JSONResponse({"success": True, **report.to_payload()})

    async def _search(self, request: RagRequest, user: UserContext | None) -> JSONResponse:
        if not request.query or not request.query.strip():
            return error_response("No search query provided")

        limit = min(request.limit or self._settings.search_result_limit, 20)
        response = await self._index.search(
            request.query,
            connector_id=request.connector_id,
            source_type=request.source_type,
            limit=limit,
        )
        return JSONResponse({"success": True, **response.to_payload()})

    async def _delete(self, request: RagRequest, user: UserContext | None) -> JSONResponse:
        if not request.connector_id:
            return error_response("connectorId is required")

        deleted = await self._index.delete_connector(request.connector_id)
        return JSONResponse(
            {
                "success": True,
                "deleted": deleted,
                "message": f"Deleted all documents for {request.connector_id}",
            }
        )

    async def _get(self, request: RagRequest, user: UserContext | None) -> JSONResponse:
        if request.document_id:
            document = await self._index.get(request.document_id)
            if document is None:
                return error_response("Document not found", status_code=404)
            return JSONResponse({"success": True, "document": document.model_dump(mode="json")})

        if not request.connector_id:
            return error_response("documentId or connectorId is required")

        documents = await self._index.list_documents(request.connector_id, limit=request.limit or 20)
        return JSONResponse(
            {
                "success": True,
                "documents": [d.model_dump(mode="json") for d in documents],
                "total": len(documents),
            }
        )
