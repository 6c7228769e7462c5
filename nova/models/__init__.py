"""Data models for the application."""

from nova.models.connectors import (
    ConnectedSource,
    ConnectorStatus,
    ConnectorType,
    CredentialSource,
    Credentials,
    OAuthTokenSet,
    StoredConnector,
    UserContext,
)
from nova.models.conversation import ConversationContext, ConversationMessage
from nova.models.llm import ChatMessage, LLMResponse, MessageRole, StreamChunk, TokenUsage, ToolCall, ToolResult
from nova.models.results import ErrorKind, NormalizedResult
from nova.models.tools import ToolDescriptor, ToolSpec

__all__ = [
    # Connector models
    "ConnectedSource",
    "ConnectorStatus",
    "ConnectorType",
    "CredentialSource",
    "Credentials",
    "OAuthTokenSet",
    "StoredConnector",
    "UserContext",
    # Conversation models
    "ConversationContext",
    "ConversationMessage",
    # LLM models
    "ChatMessage",
    "LLMResponse",
    "MessageRole",
    "StreamChunk",
    "TokenUsage",
    "ToolCall",
    "ToolResult",
    # Results
    "ErrorKind",
    "NormalizedResult",
    # Tool models
    "ToolDescriptor",
    "ToolSpec",
]
