"""Registry of connector adapters keyed by connector type."""

import httpx

from nova.config import Settings, get_settings
from nova.connectors.atlassian import ConfluenceConnector, JiraConnector
from nova.connectors.base import BaseConnector
from nova.connectors.documents import DocumentStoreConnector
from nova.connectors.github import GitHubConnector
from nova.connectors.google import GmailConnector, GoogleDriveConnector
from nova.connectors.servicenow import ServiceNowConnector
from nova.connectors.webex import WebexConnector
from nova.connectors.workspace import NotionConnector, SlackConnector
from nova.core.logging import get_logger
from nova.models.connectors import ConnectorType
from nova.services.document_index import DocumentIndex

logger = get_logger("connector_registry")

HTTP_CONNECTORS: dict[ConnectorType, type[BaseConnector]] = {
    ConnectorType.SERVICENOW: ServiceNowConnector,
    ConnectorType.JIRA: JiraConnector,
    ConnectorType.CONFLUENCE: ConfluenceConnector,
    ConnectorType.GOOGLE_DRIVE: GoogleDriveConnector,
    ConnectorType.EMAIL: GmailConnector,
    ConnectorType.GITHUB: GitHubConnector,
    ConnectorType.SLACK: SlackConnector,
    ConnectorType.NOTION: NotionConnector,
    ConnectorType.WEBEX: WebexConnector,
}


class ConnectorRegistry:
    """Holds one adapter instance per connector type, sharing one HTTP client."""

    def __init__(self, adapters: dict[ConnectorType, BaseConnector]) -> None:
        self._adapters = adapters

    @classmethod
    def create(
        cls,
        client: httpx.AsyncClient,
        document_index: DocumentIndex,
        settings: Settings | None = None,
    ) -> "ConnectorRegistry":
        settings = settings or get_settings()
        adapters: dict[ConnectorType, BaseConnector] = {
            connector: adapter_class(client, settings)
            for connector, adapter_class in HTTP_CONNECTORS.items()
        }
        adapters[ConnectorType.FILE] = DocumentStoreConnector(
            client, settings, index=document_index
        )
        logger.debug("connector_registry_created", connectors=sorted(c.value for c in adapters))
        return cls(adapters)

    def get(self, connector: ConnectorType) -> BaseConnector | None:
        return self._adapters.get(connector)

    def connectors(self) -> list[ConnectorType]:
        return list(self._adapters)

    def close(self) -> None:
        for adapter in self._adapters.values():
            close = getattr(adapter, "close", None)
            if close is not None:
                close()
