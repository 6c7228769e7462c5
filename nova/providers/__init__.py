"""Model gateway providers."""

from nova.providers.base import BaseLLMProvider
from nova.providers.registry import ProviderRegistry, get_provider

__all__ = ["BaseLLMProvider", "ProviderRegistry", "get_provider"]
