"""Tool visibility filtering and dispatch to connector adapters."""

from collections.abc import Sequence
from typing import Any

from nova.config import Settings, get_settings
from nova.connectors.registry import ConnectorRegistry
from nova.core.logging import LogEvents, get_logger
from nova.models.connectors import ConnectedSource, ConnectorType, UserContext
from nova.models.results import ErrorKind, NormalizedResult
from nova.models.tools import ToolDescriptor, ToolSpec
from nova.services.credential_resolver import CredentialResolver
from nova.tools.catalog import ToolCatalog
from nova.tools.validation import dropped_arguments, validate_tool_arguments

logger = get_logger("tool_router")


class ToolRouter:
    """Routes a named tool call to the adapter action bound to it in the catalog.

    ``dispatch`` never raises for unknown tools, bad arguments or missing
    credentials. Each of those comes back as a failed result before any
    network call is made.
    """

    def __init__(
        self,
        catalog: ToolCatalog,
        registry: ConnectorRegistry,
        resolver: CredentialResolver,
        settings: Settings | None = None,
    ) -> None:
        self._catalog = catalog
        self._registry = registry
        self._resolver = resolver
        self._settings = settings or get_settings()

    def active_connectors(self, sources: Sequence[ConnectedSource]) -> set[ConnectorType]:
        """Connector types present in the request or backed by fallback credentials."""
        active = {s.connector_type for s in sources if s.connector_type is not None}
        active.update(c for c in ConnectorType if self._settings.has_fallback(c))
        return active

    def visible_specs(self, sources: Sequence[ConnectedSource]) -> list[ToolSpec]:
        active = self.active_connectors(sources)
        return [spec for spec in self._catalog if spec.visibility & active]

    def available_tools(self, sources: Sequence[ConnectedSource]) -> list[ToolDescriptor]:
        """Descriptors the model may call for this request."""
        return [spec.descriptor for spec in self.visible_specs(sources)]

    async def dispatch(
        self,
        name: str,
        arguments: dict[str, Any] | None,
        sources: Sequence[ConnectedSource] = (),
        user: UserContext | None = None,
    ) -> NormalizedResult:
        """Validate, resolve credentials for, and execute one tool call."""
        spec = self._catalog.get(name)
        if spec is None:
            logger.warning(LogEvents.TOOL_UNKNOWN, tool=name)
            return NormalizedResult.failure(ErrorKind.UNKNOWN_TOOL, f"Unknown tool: {name}")

        arguments = arguments or {}
        accepted, errors = validate_tool_arguments(spec.descriptor, arguments)
        if errors:
            logger.info(LogEvents.TOOL_INVALID_ARGUMENTS, tool=name, errors=errors)
            return NormalizedResult.failure(ErrorKind.VALIDATION, "; ".join(errors))

        dropped = dropped_arguments(spec.descriptor, arguments)
        if dropped:
            logger.debug(LogEvents.TOOL_INVALID_ARGUMENTS, tool=name, dropped=dropped)

        adapter = self._registry.get(spec.connector)
        if adapter is None:
            return NormalizedResult.failure(
                ErrorKind.CONFIGURATION,
                f"No adapter registered for {spec.connector.display_name}",
            )

        resolved = await self._resolver.resolve(spec.connector, user, sources)
        if not resolved.ok:
            return resolved

        logger.info(
            LogEvents.TOOL_DISPATCHED,
            tool=name,
            connector=spec.connector.value,
            action=spec.action,
        )
        result = await adapter.execute(spec.action, accepted, resolved.data)
        logger.info(
            LogEvents.TOOL_RESULT,
            tool=name,
            success=result.ok,
            error_type=result.kind.value if result.kind else None,
        )
        return result
