"""Connector, credential and user models."""

from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class ConnectorType(str, Enum):
    """External systems a user can connect."""

    SERVICENOW = "servicenow"
    JIRA = "jira"
    CONFLUENCE = "confluence"
    GOOGLE_DRIVE = "google-drive"
    EMAIL = "email"
    GITHUB = "github"
    SLACK = "slack"
    WEBEX = "webex"
    NOTION = "notion"
    FILE = "file"

    @property
    def display_name(self) -> str:
        return CONNECTOR_DISPLAY_NAMES[self]

    @property
    def required_fields(self) -> tuple[str, ...]:
        """Config keys that must be present before the connector can be called."""
        return CONNECTOR_REQUIRED_FIELDS[self]

    @property
    def is_google(self) -> bool:
        """Whether tokens for this connector are refreshed against Google OAuth."""
        return self in GOOGLE_OAUTH_CONNECTORS

    @classmethod
    def parse(cls, value: "str | ConnectorType") -> "ConnectorType | None":
        """Parse a connector id, accepting underscores for hyphens."""
        if isinstance(value, ConnectorType):
            return value
        normalized = value.strip().lower().replace("_", "-")
        if normalized == "gmail":
            normalized = cls.EMAIL.value
        try:
            return cls(normalized)
        except ValueError:
            return None


CONNECTOR_DISPLAY_NAMES: dict[ConnectorType, str] = {
    ConnectorType.SERVICENOW: "ServiceNow",
    ConnectorType.JIRA: "Jira",
    ConnectorType.CONFLUENCE: "Confluence",
    ConnectorType.GOOGLE_DRIVE: "Google Drive",
    ConnectorType.EMAIL: "Gmail",
    ConnectorType.GITHUB: "GitHub",
    ConnectorType.SLACK: "Slack",
    ConnectorType.WEBEX: "Webex",
    ConnectorType.NOTION: "Notion",
    ConnectorType.FILE: "Uploaded Files",
}

CONNECTOR_REQUIRED_FIELDS: dict[ConnectorType, tuple[str, ...]] = {
    ConnectorType.SERVICENOW: ("instanceUrl", "username", "password"),
    ConnectorType.JIRA: ("url", "email", "apiToken"),
    ConnectorType.CONFLUENCE: ("url", "email", "apiToken"),
    ConnectorType.GOOGLE_DRIVE: ("accessToken",),
    ConnectorType.EMAIL: ("accessToken",),
    ConnectorType.GITHUB: ("accessToken",),
    ConnectorType.SLACK: ("botToken",),
    ConnectorType.WEBEX: ("accessToken",),
    ConnectorType.NOTION: ("integrationToken",),
    ConnectorType.FILE: (),
}

GOOGLE_OAUTH_CONNECTORS = frozenset({ConnectorType.GOOGLE_DRIVE, ConnectorType.EMAIL})


class ConnectorStatus(str, Enum):
    """Lifecycle status of a stored user connector."""

    CONNECTED = "connected"
    DISCONNECTED = "disconnected"
    ERROR = "error"
    PENDING = "pending"


class CredentialSource(str, Enum):
    """Where resolved credentials came from."""

    REQUEST = "request"
    STORED = "stored"
    ENVIRONMENT = "environment"
    NONE = "none"


class ConnectedSource(BaseModel):
    """A source the caller reports as connected for this request."""

    id: str = ""
    name: str = ""
    type: str
    config: dict[str, Any] = Field(default_factory=dict)

    @property
    def connector_type(self) -> ConnectorType | None:
        return ConnectorType.parse(self.type)


class OAuthTokenSet(BaseModel):
    """OAuth tokens stored for a user connector."""

    access_token: str
    refresh_token: str | None = None
    expires_at: datetime | None = None

    def expires_within(self, seconds: float, now: datetime | None = None) -> bool:
        """Check whether the access token expires inside the given window."""
        if self.expires_at is None:
            return False
        now = now or datetime.now(timezone.utc)
        expires_at = self.expires_at
        if expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=timezone.utc)
        return expires_at - now <= timedelta(seconds=seconds)


class StoredConnector(BaseModel):
    """A persisted per-user connector row."""

    user_id: str
    connector_id: str
    name: str
    config: dict[str, Any] = Field(default_factory=dict)
    tokens: OAuthTokenSet | None = None
    status: ConnectorStatus = ConnectorStatus.CONNECTED
    last_synced_at: datetime | None = None

    @property
    def is_connected(self) -> bool:
        return self.status == ConnectorStatus.CONNECTED


class Credentials(BaseModel):
    """Resolved credentials handed to a connector adapter."""

    connector_type: ConnectorType
    values: dict[str, Any] = Field(default_factory=dict)
    source: CredentialSource = CredentialSource.NONE

    def get(self, key: str, default: Any = None) -> Any:
        value = self.values.get(key)
        return default if value in (None, "") else value

    def missing(self) -> list[str]:
        """Required fields that are still empty."""
        return [f for f in self.connector_type.required_fields if self.get(f) is None]


class UserContext(BaseModel):
    """The authenticated caller."""

    user_id: str
    email: str | None = None
    access_token: str | None = None
