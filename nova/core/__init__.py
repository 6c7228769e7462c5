"""Core utilities and configuration."""

from nova.core.logging import get_logger, setup_logging
from nova.core.exceptions import (
    AuthError,
    ConfigurationError,
    LLMError,
    LLMProviderError,
    NotFoundError,
    NovaException,
    UpstreamAPIError,
    ValidationError,
)

__all__ = [
    "get_logger",
    "setup_logging",
    "AuthError",
    "ConfigurationError",
    "LLMError",
    "LLMProviderError",
    "NotFoundError",
    "NovaException",
    "UpstreamAPIError",
    "ValidationError",
]
