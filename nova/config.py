"""Application configuration using Pydantic Settings."""

from enum import Enum
from functools import lru_cache
from typing import Any

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from nova.models.connectors import ConnectorType


class LLMProvider(str, Enum):
    """Supported model gateways."""

    OPENAI = "openai"
    ANTHROPIC = "anthropic"


class LogFormat(str, Enum):
    """Log output formats."""

    JSON = "json"
    CONSOLE = "console"


class Environment(str, Enum):
    """Application environments."""

    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"


class ProviderConfig:
    """Configuration for a specific model gateway."""

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        max_tokens: int = 4096,
        base_url: str | None = None,
        timeout: int = 120,
    ) -> None:
        self.api_key = api_key
        self.model = model
        self.max_tokens = max_tokens
        self.base_url = base_url
        self.timeout = timeout


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Model gateway
    default_llm_provider: LLMProvider = Field(
        default=LLMProvider.OPENAI, description="Gateway used for chat completions"
    )
    llm_timeout: int = Field(default=120)

    # OpenAI-compatible gateway (OpenAI itself or any proxy exposing the same API)
    openai_api_key: str | None = Field(default=None)
    openai_base_url: str | None = Field(
        default=None, description="Base URL of an OpenAI-compatible gateway"
    )
    openai_model: str = Field(default="gpt-4o-mini")
    openai_max_tokens: int = Field(default=4096)

    # Anthropic
    anthropic_api_key: str | None = Field(default=None)
    anthropic_model: str = Field(default="claude-sonnet-4-20250514")
    anthropic_max_tokens: int = Field(default=8192)

    # Conversation loop
    max_tool_rounds: int = Field(default=1, ge=1, le=5)
    parallel_tool_execution: bool = Field(default=False)
    history_max_messages: int = Field(default=50)

    # Connector HTTP timeouts (seconds)
    connector_metadata_timeout: float = Field(default=10.0)
    connector_content_timeout: float = Field(default=60.0)

    # Server-wide fallback credentials
    servicenow_instance: str | None = Field(default=None)
    servicenow_username: str | None = Field(default=None)
    servicenow_password: str | None = Field(default=None)
    jira_url: str | None = Field(default=None)
    jira_email: str | None = Field(default=None)
    jira_api_token: str | None = Field(default=None)
    confluence_url: str | None = Field(default=None)
    confluence_email: str | None = Field(default=None)
    confluence_api_token: str | None = Field(default=None)
    google_drive_access_token: str | None = Field(default=None)
    gmail_access_token: str | None = Field(default=None)
    github_access_token: str | None = Field(default=None)
    github_organization: str | None = Field(default=None)
    slack_bot_token: str | None = Field(default=None)
    webex_bot_token: str | None = Field(default=None)
    notion_token: str | None = Field(default=None)

    # OAuth refresh
    google_client_id: str | None = Field(default=None)
    google_client_secret: str | None = Field(default=None)
    google_token_url: str = Field(default="https://oauth2.googleapis.com/token")
    oauth_refresh_margin_seconds: int = Field(default=300)
    token_cache_buffer_seconds: int = Field(default=60)

    # Caller authentication
    auth_userinfo_url: str | None = Field(
        default=None, description="Endpoint that resolves a bearer token to a user"
    )
    auth_api_key: str | None = Field(default=None)

    # Storage
    database_url: str = Field(default="sqlite:///./data/nova.db")
    document_max_chars: int = Field(default=50000)
    search_result_limit: int = Field(default=10, ge=1, le=20)

    # Feedback and learning stores
    feedback_capacity: int = Field(default=100)
    learning_capacity: int = Field(default=50)

    # Application Settings
    app_host: str = Field(default="0.0.0.0")
    app_port: int = Field(default=8000)
    app_env: Environment = Field(default=Environment.DEVELOPMENT)
    debug: bool = Field(default=True)

    # Logging Configuration
    log_level: str = Field(default="INFO")
    log_format: LogFormat = Field(default=LogFormat.JSON)
    log_file_path: str = Field(default="./logs/nova.log")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is valid."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(f"Invalid log level: {v}. Must be one of {valid_levels}")
        return v_upper

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.app_env == Environment.DEVELOPMENT

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.app_env == Environment.PRODUCTION

    def get_provider_config(self, provider: str | LLMProvider) -> ProviderConfig:
        """Get configuration for a specific provider."""
        if isinstance(provider, str):
            provider = LLMProvider(provider)

        configs = {
            LLMProvider.OPENAI: ProviderConfig(
                api_key=self.openai_api_key,
                model=self.openai_model,
                max_tokens=self.openai_max_tokens,
                base_url=self.openai_base_url,
                timeout=self.llm_timeout,
            ),
            LLMProvider.ANTHROPIC: ProviderConfig(
                api_key=self.anthropic_api_key,
                model=self.anthropic_model,
                max_tokens=self.anthropic_max_tokens,
                timeout=self.llm_timeout,
            ),
        }
        return configs[provider]

    def get_available_providers(self) -> list[LLMProvider]:
        """Get list of providers with valid configuration."""
        providers = []
        if self.openai_api_key:
            providers.append(LLMProvider.OPENAI)
        if self.anthropic_api_key:
            providers.append(LLMProvider.ANTHROPIC)
        return providers

    def fallback_credentials(self, connector: ConnectorType) -> dict[str, Any]:
        """Server-wide credentials for a connector, with empty values dropped.

        Keys use the same names as per-user connector config so the two can be
        merged field by field.
        """
        values: dict[ConnectorType, dict[str, Any]] = {
            ConnectorType.SERVICENOW: {
                "instanceUrl": self.servicenow_instance,
                "username": self.servicenow_username,
                "password": self.servicenow_password,
            },
            ConnectorType.JIRA: {
                "url": self.jira_url,
                "email": self.jira_email,
                "apiToken": self.jira_api_token,
            },
            ConnectorType.CONFLUENCE: {
                "url": self.confluence_url,
                "email": self.confluence_email,
                "apiToken": self.confluence_api_token,
            },
            ConnectorType.GOOGLE_DRIVE: {"accessToken": self.google_drive_access_token},
            ConnectorType.EMAIL: {"accessToken": self.gmail_access_token},
            ConnectorType.GITHUB: {
                "accessToken": self.github_access_token,
                "organization": self.github_organization,
            },
            ConnectorType.SLACK: {"botToken": self.slack_bot_token},
            ConnectorType.WEBEX: {"accessToken": self.webex_bot_token},
            ConnectorType.NOTION: {"integrationToken": self.notion_token},
        }
        return {k: v for k, v in values.get(connector, {}).items() if v}

    def has_fallback(self, connector: ConnectorType) -> bool:
        """Check whether server fallback credentials cover every required field."""
        required = connector.required_fields
        if not required:
            return False
        available = self.fallback_credentials(connector)
        return all(field in available for field in required)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
