"""SQLModel table definitions for persisted state.

JSON columns are stored as TEXT with Python-side serialization so the same
tables work on SQLite and PostgreSQL.
"""

import json
from datetime import datetime, timezone
from typing import Any
from uuid import uuid4

from sqlalchemy import Column, Text, UniqueConstraint
from sqlmodel import Field, SQLModel


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return str(uuid4())


def _load_json(raw: str | None, default: Any) -> Any:
    if not raw:
        return default
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        return default


class UserConnectorRow(SQLModel, table=True):
    """A connector a user has configured; at most one per (user, connector)."""

    __tablename__ = "user_connectors"
    __table_args__ = (UniqueConstraint("user_id", "connector_id", name="uq_user_connector"),)

    id: str = Field(default_factory=_new_id, primary_key=True)
    user_id: str = Field(index=True)
    connector_id: str = Field(index=True)
    name: str = Field(default="")
    config: str = Field(default="{}", sa_column=Column(Text, nullable=False, server_default="{}"))
    oauth_tokens: str | None = Field(default=None, sa_column=Column(Text, nullable=True))
    status: str = Field(default="connected")
    last_synced_at: datetime | None = Field(default=None)
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    def get_config(self) -> dict[str, Any]:
        return _load_json(self.config, {})

    def set_config(self, value: dict[str, Any]) -> None:
        self.config = json.dumps(value)

    def get_tokens(self) -> dict[str, Any] | None:
        return _load_json(self.oauth_tokens, None)

    def set_tokens(self, value: dict[str, Any] | None) -> None:
        self.oauth_tokens = json.dumps(value) if value is not None else None


class DocumentRow(SQLModel, table=True):
    """An indexed document; ``content_hash`` is unique within a connector."""

    __tablename__ = "documents"
    __table_args__ = (
        UniqueConstraint("connector_id", "content_hash", name="uq_document_hash"),
    )

    id: str = Field(default_factory=_new_id, primary_key=True)
    connector_id: str = Field(index=True)
    source_type: str = Field(index=True)
    source_id: str | None = Field(default=None)
    user_id: str | None = Field(default=None, index=True)
    title: str = Field(sa_column=Column(Text, nullable=False))
    content: str = Field(sa_column=Column(Text, nullable=False))
    content_hash: str = Field(index=True)
    doc_metadata: str = Field(
        default="{}", sa_column=Column("metadata", Text, nullable=False, server_default="{}")
    )
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    def get_metadata(self) -> dict[str, Any]:
        return _load_json(self.doc_metadata, {})
