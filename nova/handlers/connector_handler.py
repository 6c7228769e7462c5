"""Handler for direct connector calls (``POST /connector-api``)."""

from fastapi.responses import JSONResponse

from nova.connectors.registry import ConnectorRegistry
from nova.core.logging import LogEvents, get_logger
from nova.handlers.responses import result_response
from nova.models.api import ConnectorApiRequest
from nova.models.connectors import ConnectedSource, ConnectorType, UserContext
from nova.models.results import ErrorKind, NormalizedResult
from nova.services.credential_resolver import CredentialResolver

logger = get_logger("connector_handler")


class ConnectorHandler:
    """Runs one adapter action with credentials from the request, store or environment."""

    def __init__(self, registry: ConnectorRegistry, resolver: CredentialResolver) -> None:
        self._registry = registry
        self._resolver = resolver

    async def handle(
        self,
        request: ConnectorApiRequest,
        user: UserContext | None = None,
    ) -> JSONResponse:
        return result_response(await self.execute(request, user))

    async def execute(
        self,
        request: ConnectorApiRequest,
        user: UserContext | None = None,
    ) -> NormalizedResult:
        connector = ConnectorType.parse(request.connector)
        adapter = self._registry.get(connector) if connector else None
        if connector is None or adapter is None:
            logger.info(LogEvents.REQUEST_REJECTED, reason="unknown_connector", connector=request.connector)
            return NormalizedResult.failure(
                ErrorKind.CONFIGURATION, f"Unknown connector: {request.connector}"
            )

        if adapter.resolve_action(request.action) is None:
            return NormalizedResult.failure(
                ErrorKind.UNKNOWN_ACTION,
                f"Unknown action '{request.action}' for {connector.display_name}",
            )

        sources = []
        if request.config:
            sources.append(
                ConnectedSource(
                    id=connector.value,
                    name=connector.display_name,
                    type=connector.value,
                    config=request.config,
                )
            )

        resolved = await self._resolver.resolve(connector, user, sources)
        if not resolved.ok:
            return resolved

        return await adapter.execute(request.action, request.params, resolved.data)
