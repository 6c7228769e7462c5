"""Request bodies accepted by the HTTP endpoints."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from nova.models.connectors import ConnectedSource
from nova.models.documents import DocumentInput


class ConnectorApiRequest(BaseModel):
    connector: str
    action: str
    config: dict[str, Any] = Field(default_factory=dict)
    params: dict[str, Any] = Field(default_factory=dict)


class OAuthConnectorRequest(BaseModel):
    action: str
    connector_id: str = Field(alias="connectorId")
    access_token: str | None = Field(default=None, alias="accessToken")
    refresh_token: str | None = Field(default=None, alias="refreshToken")
    expires_at: datetime | None = Field(default=None, alias="expiresAt")
    email: str | None = None

    model_config = {"populate_by_name": True}


class IncomingMessage(BaseModel):
    role: str
    content: str = ""


class ChatRequest(BaseModel):
    messages: list[IncomingMessage]
    connected_sources: list[ConnectedSource] = Field(
        default_factory=list, alias="connectedSources"
    )
    conversation_id: str | None = Field(default=None, alias="conversationId")

    model_config = {"populate_by_name": True}


class RagRequest(BaseModel):
    action: str
    connector_id: str | None = Field(default=None, alias="connectorId")
    source_type: str | None = Field(default=None, alias="sourceType")
    documents: list[DocumentInput] = Field(default_factory=list)
    query: str | None = None
    limit: int | None = None
    document_id: str | None = Field(default=None, alias="documentId")

    model_config = {"populate_by_name": True}


class FeedbackRequest(BaseModel):
    action: str
    feedback: dict[str, Any] | None = None


class LearningRequest(BaseModel):
    action: str
    data: dict[str, Any] = Field(default_factory=dict)
