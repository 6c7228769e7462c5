"""Request handlers."""

from nova.handlers.chat_handler import ChatHandler
from nova.handlers.connector_handler import ConnectorHandler
from nova.handlers.feedback_handler import FeedbackHandler, LearningHandler
from nova.handlers.oauth_handler import OAuthHandler
from nova.handlers.rag_handler import RagHandler

__all__ = [
    "ChatHandler",
    "ConnectorHandler",
    "FeedbackHandler",
    "LearningHandler",
    "OAuthHandler",
    "RagHandler",
]
