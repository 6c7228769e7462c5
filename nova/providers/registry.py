"""Provider registry and factory for model gateways."""

from typing import Any

from nova.config import LLMProvider, ProviderConfig, Settings, get_settings
from nova.core.exceptions import ConfigurationError
from nova.core.logging import get_logger
from nova.providers.anthropic import AnthropicProvider
from nova.providers.base import BaseLLMProvider
from nova.providers.openai import OpenAIProvider

logger = get_logger("provider_registry")


class ProviderRegistry:
    """Registry and factory for model gateways."""

    _providers: dict[LLMProvider, type[BaseLLMProvider]] = {
        LLMProvider.OPENAI: OpenAIProvider,
        LLMProvider.ANTHROPIC: AnthropicProvider,
    }

    _instances: dict[str, BaseLLMProvider] = {}

    @classmethod
    def get_provider_class(cls, provider: LLMProvider) -> type[BaseLLMProvider]:
        """Get the provider class for a given provider type."""
        if provider not in cls._providers:
            raise ConfigurationError(f"Unknown provider: {provider}")
        return cls._providers[provider]

    @classmethod
    def create_provider(
        cls,
        provider: str | LLMProvider,
        config: ProviderConfig | None = None,
        settings: Settings | None = None,
        **kwargs: Any,
    ) -> BaseLLMProvider:
        """Create a new provider instance.

        Args:
            provider: Provider name or enum
            config: Optional provider configuration
            settings: Settings used when ``config`` is omitted
            **kwargs: Override configuration values

        Returns:
            Configured provider instance
        """
        if isinstance(provider, str):
            provider = LLMProvider(provider)

        if config is None:
            config = (settings or get_settings()).get_provider_config(provider)

        if not config.api_key and "api_key" not in kwargs:
            raise ConfigurationError(
                f"No API key configured for the {provider.value} gateway",
                details={"provider": provider.value},
            )

        provider_kwargs: dict[str, Any] = {"api_key": config.api_key}
        if config.model:
            provider_kwargs["model"] = config.model
        if config.max_tokens:
            provider_kwargs["max_tokens"] = config.max_tokens
        if config.base_url:
            provider_kwargs["base_url"] = config.base_url
        if config.timeout:
            provider_kwargs["timeout"] = config.timeout
        provider_kwargs.update(kwargs)

        instance = cls.get_provider_class(provider)(**provider_kwargs)

        logger.debug(
            "provider_created",
            provider=provider.value,
            model=instance.model,
            gateway=config.base_url,
        )
        return instance

    @classmethod
    def get_or_create_provider(
        cls,
        provider: str | LLMProvider,
        cache_key: str | None = None,
        **kwargs: Any,
    ) -> BaseLLMProvider:
        """Get a cached provider instance or create a new one."""
        if isinstance(provider, str):
            provider = LLMProvider(provider)

        key = cache_key or provider.value
        if key not in cls._instances:
            cls._instances[key] = cls.create_provider(provider, **kwargs)
        return cls._instances[key]

    @classmethod
    def clear_cache(cls) -> None:
        """Clear all cached provider instances."""
        cls._instances.clear()


def get_provider(
    provider: str | LLMProvider | None = None,
    settings: Settings | None = None,
    **kwargs: Any,
) -> BaseLLMProvider:
    """Get the configured default gateway, or a named one."""
    settings = settings or get_settings()
    if provider is None:
        provider = settings.default_llm_provider
    return ProviderRegistry.get_or_create_provider(provider, settings=settings, **kwargs)
