"""Hash-deduplicated document ingestion and keyword search.

Search ranks with PostgreSQL full-text functions when the database supports
them and falls back to a case-insensitive substring match otherwise (always on
SQLite).
"""

import hashlib
import json
from typing import Any

from sqlalchemy import delete, func, or_
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import Session, select
from starlette.concurrency import run_in_threadpool

from nova.core.logging import LogEvents, get_logger
from nova.db.tables import DocumentRow
from nova.models.documents import (
    DocumentHit,
    DocumentInput,
    DocumentSummary,
    IngestItemResult,
    IngestReport,
    IngestStatus,
    SearchResponse,
)

logger = get_logger("document_index")

SNIPPET_CHARS = 500
MAX_SEARCH_LIMIT = 20


def content_hash(source_type: str, source_id: str | None, title: str, content: str) -> str:
    """Stable identity of a document; independent of when it was ingested."""
    body_digest = hashlib.sha256(content.encode("utf-8")).hexdigest()
    marker = "\x1f".join([source_type, source_id or "", title.strip(), body_digest])
    return hashlib.sha256(marker.encode("utf-8")).hexdigest()


def make_snippet(content: str, limit: int = SNIPPET_CHARS) -> str:
    if len(content) <= limit:
        return content
    return content[:limit] + "..."


def _like_pattern(query: str) -> str:
    escaped = query.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


class DocumentIndex:
    """Document store backed by the ``documents`` table."""

    def __init__(self, engine: Engine, max_chars: int = 50000) -> None:
        self._engine = engine
        self._max_chars = max_chars

    @property
    def supports_ranking(self) -> bool:
        return self._engine.dialect.name == "postgresql"

    async def ingest(
        self,
        connector_id: str,
        source_type: str,
        documents: list[DocumentInput],
        user_id: str | None = None,
    ) -> IngestReport:
        return await run_in_threadpool(self._ingest, connector_id, source_type, documents, user_id)

    async def search(
        self,
        query: str,
        connector_id: str | None = None,
        source_type: str | None = None,
        limit: int = 10,
    ) -> SearchResponse:
        return await run_in_threadpool(self._search, query, connector_id, source_type, limit)

    async def list_documents(self, connector_id: str, limit: int = 20) -> list[DocumentSummary]:
        return await run_in_threadpool(self._list, connector_id, limit)

    async def get(self, document_id: str) -> DocumentHit | None:
        return await run_in_threadpool(self._get, document_id)

    async def delete_connector(self, connector_id: str) -> int:
        return await run_in_threadpool(self._delete, connector_id)

    async def count(self, connector_id: str | None = None) -> int:
        return await run_in_threadpool(self._count, connector_id)

    def _ingest(
        self,
        connector_id: str,
        source_type: str,
        documents: list[DocumentInput],
        user_id: str | None,
    ) -> IngestReport:
        report = IngestReport()

        for doc in documents:
            title = doc.title.strip()
            if not title or not doc.content:
                report.results.append(
                    IngestItemResult(
                        title=doc.title,
                        status=IngestStatus.ERROR,
                        reason="title and content are required",
                    )
                )
                continue

            content = doc.content[: self._max_chars]
            digest = content_hash(source_type, doc.source_id, title, content)

            try:
                with Session(self._engine) as session:
                    existing = session.exec(
                        select(DocumentRow.id).where(
                            DocumentRow.connector_id == connector_id,
                            DocumentRow.content_hash == digest,
                        )
                    ).first()
                    if existing:
                        logger.debug(LogEvents.DOCUMENT_SKIPPED, title=title, existing_id=existing)
                        report.results.append(
                            IngestItemResult(
                                title=title,
                                status=IngestStatus.SKIPPED,
                                id=existing,
                                reason="already indexed",
                            )
                        )
                        continue

                    row = DocumentRow(
                        connector_id=connector_id,
                        source_type=source_type,
                        source_id=doc.source_id,
                        user_id=user_id,
                        title=title,
                        content=content,
                        content_hash=digest,
                        doc_metadata=json.dumps(doc.metadata),
                    )
                    document_id = row.id
                    session.add(row)
                    session.commit()

                logger.info(LogEvents.DOCUMENT_INDEXED, title=title, document_id=document_id)
                report.results.append(
                    IngestItemResult(title=title, status=IngestStatus.INDEXED, id=document_id)
                )
            except IntegrityError:
                # A concurrent ingest stored the same document first
                report.results.append(
                    IngestItemResult(title=title, status=IngestStatus.SKIPPED, reason="already indexed")
                )
            except SQLAlchemyError as e:
                logger.error(LogEvents.DOCUMENT_INDEX_FAILED, title=title, error=str(e))
                report.results.append(
                    IngestItemResult(title=title, status=IngestStatus.ERROR, reason=str(e))
                )

        return report

    def _filters(self, connector_id: str | None, source_type: str | None) -> list[Any]:
        clauses = []
        if connector_id:
            clauses.append(DocumentRow.connector_id == connector_id)
        if source_type:
            clauses.append(DocumentRow.source_type == source_type)
        return clauses

    def _hit(self, row: DocumentRow, relevance: float | None = None) -> DocumentHit:
        return DocumentHit(
            id=row.id,
            title=row.title,
            snippet=make_snippet(row.content),
            content=row.content,
            source_type=row.source_type,
            source_id=row.source_id,
            connector_id=row.connector_id,
            metadata=row.get_metadata(),
            relevance=relevance,
            created_at=row.created_at,
        )

    def _search(
        self,
        query: str,
        connector_id: str | None,
        source_type: str | None,
        limit: int,
    ) -> SearchResponse:
        query = (query or "").strip()
        limit = max(1, min(int(limit or 10), MAX_SEARCH_LIMIT))
        if not query:
            return SearchResponse(query=query, search_type="substring")

        filters = self._filters(connector_id, source_type)

        if self.supports_ranking:
            try:
                hits = self._keyword_search(query, filters, limit)
                if hits:
                    logger.debug(LogEvents.DOCUMENT_SEARCH, search_type="keyword", results=len(hits))
                    return SearchResponse(query=query, search_type="keyword", results=hits)
            except SQLAlchemyError as e:
                logger.warning(LogEvents.DOCUMENT_SEARCH_FALLBACK, error=str(e))

        hits = self._substring_search(query, filters, limit)
        logger.debug(LogEvents.DOCUMENT_SEARCH, search_type="substring", results=len(hits))
        return SearchResponse(query=query, search_type="substring", results=hits)

    def _keyword_search(self, query: str, filters: list[Any], limit: int) -> list[DocumentHit]:
        document = func.to_tsvector(
            "english",
            func.coalesce(DocumentRow.title, "") + " " + func.coalesce(DocumentRow.content, ""),
        )
        ts_query = func.plainto_tsquery("english", query)
        rank = func.ts_rank(document, ts_query).label("rank")

        statement = (
            select(DocumentRow, rank)
            .where(document.op("@@")(ts_query), *filters)
            .order_by(rank.desc())
            .limit(limit)
        )
        with Session(self._engine) as session:
            return [self._hit(row, float(score)) for row, score in session.exec(statement).all()]

    def _substring_search(self, query: str, filters: list[Any], limit: int) -> list[DocumentHit]:
        pattern = _like_pattern(query)
        statement = (
            select(DocumentRow)
            .where(
                or_(
                    DocumentRow.title.ilike(pattern, escape="\\"),
                    DocumentRow.content.ilike(pattern, escape="\\"),
                ),
                *filters,
            )
            .order_by(DocumentRow.created_at.desc())
            .limit(limit)
        )
        with Session(self._engine) as session:
            return [self._hit(row) for row in session.exec(statement).all()]

    def _list(self, connector_id: str, limit: int) -> list[DocumentSummary]:
        limit = max(1, min(int(limit or 20), 100))
        statement = (
            select(DocumentRow)
            .where(DocumentRow.connector_id == connector_id)
            .order_by(DocumentRow.created_at.desc())
            .limit(limit)
        )
        with Session(self._engine) as session:
            return [
                DocumentSummary(
                    id=row.id,
                    title=row.title,
                    source_type=row.source_type,
                    source_id=row.source_id,
                    size=len(row.content),
                    created_at=row.created_at,
                )
                for row in session.exec(statement).all()
            ]

    def _get(self, document_id: str) -> DocumentHit | None:
        with Session(self._engine) as session:
            row = session.get(DocumentRow, document_id)
            return self._hit(row) if row else None

    def _delete(self, connector_id: str) -> int:
        with Session(self._engine) as session:
            result = session.execute(
                delete(DocumentRow).where(DocumentRow.connector_id == connector_id)
            )
            session.commit()
        logger.info(LogEvents.DOCUMENTS_DELETED, connector_id=connector_id, count=result.rowcount)
        return result.rowcount or 0

    def _count(self, connector_id: str | None) -> int:
        statement = select(func.count()).select_from(DocumentRow)
        if connector_id:
            statement = statement.where(DocumentRow.connector_id == connector_id)
        with Session(self._engine) as session:
            return int(session.exec(statement).one())
