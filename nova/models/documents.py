"""Document index request and result models."""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class IngestStatus(str, Enum):
    INDEXED = "indexed"
    SKIPPED = "skipped"
    ERROR = "error"


class DocumentInput(BaseModel):
    """A document submitted for indexing."""

    title: str
    content: str
    source_id: str | None = Field(default=None, alias="sourceId")
    metadata: dict[str, Any] = Field(default_factory=dict)

    model_config = {"populate_by_name": True}


class IngestItemResult(BaseModel):
    title: str
    status: IngestStatus
    id: str | None = None
    reason: str | None = None


class IngestReport(BaseModel):
    """Per-item outcome of an ingest batch."""

    results: list[IngestItemResult] = Field(default_factory=list)

    @property
    def indexed(self) -> int:
        return sum(1 for r in self.results if r.status == IngestStatus.INDEXED)

    @property
    def skipped(self) -> int:
        return sum(1 for r in self.results if r.status == IngestStatus.SKIPPED)

    @property
    def errors(self) -> int:
        return sum(1 for r in self.results if r.status == IngestStatus.ERROR)

    def to_payload(self) -> dict[str, Any]:
        return {
            "indexed": self.indexed,
            "skipped": self.skipped,
            "errors": self.errors,
            "results": [r.model_dump(exclude_none=True, mode="json") for r in self.results],
        }


class DocumentHit(BaseModel):
    """A search hit: snippet for display plus full content on demand."""

    id: str
    title: str
    snippet: str
    content: str
    source_type: str
    source_id: str | None = None
    connector_id: str
    metadata: dict[str, Any] = Field(default_factory=dict)
    relevance: float | None = None
    created_at: datetime | None = None


class SearchResponse(BaseModel):
    query: str
    search_type: str  # "keyword" or "substring"
    results: list[DocumentHit] = Field(default_factory=list)

    def to_payload(self) -> dict[str, Any]:
        return {
            "query": self.query,
            "search_type": self.search_type,
            "total": len(self.results),
            "results": [r.model_dump(mode="json", exclude_none=True) for r in self.results],
        }


class DocumentSummary(BaseModel):
    id: str
    title: str
    source_type: str
    source_id: str | None = None
    size: int
    created_at: datetime | None = None
