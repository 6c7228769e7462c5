"""Base class for connector adapters.

An adapter wraps one external system. It declares a fixed set of actions with
the ``@action`` decorator and exposes a single entry point,
:meth:`BaseConnector.execute`, which always returns a
:class:`~nova.models.results.NormalizedResult`. Adapter methods raise
``NovaException`` subclasses; they are converted to results here and nowhere
else.
"""

import re
from collections.abc import Awaitable, Callable
from typing import Any, ClassVar

import httpx
from pydantic import BaseModel, ConfigDict

from nova.config import Settings, get_settings
from nova.core.exceptions import (
    AuthError,
    NotFoundError,
    NovaException,
    UpstreamAPIError,
    UpstreamQuotaExceeded,
    UpstreamRateLimit,
)
from nova.core.logging import LogEvents, get_logger
from nova.models.connectors import ConnectorType, Credentials
from nova.models.results import ErrorKind, NormalizedResult

logger = get_logger("connector")

ERROR_BODY_LIMIT = 200

ActionHandler = Callable[[Any, dict[str, Any], Credentials], Awaitable[dict[str, Any]]]


class ActionSpec(BaseModel):
    """Declaration of one adapter action."""

    model_config = ConfigDict(frozen=True)

    name: str
    handler: str
    required: tuple[str, ...] = ()
    aliases: tuple[str, ...] = ()
    # Identifier a mutating action must get back from the external system
    echoes: str | None = None


def normalize_action_name(name: str) -> str:
    """``getIncidentCount`` / ``get-incident-count`` -> ``get_incident_count``."""
    snake = re.sub(r"(?<=[a-z0-9])(?=[A-Z])", "_", name.strip())
    return snake.replace("-", "_").lower()


def action(
    name: str | None = None,
    *,
    required: tuple[str, ...] | list[str] = (),
    aliases: tuple[str, ...] | list[str] = (),
    echoes: str | None = None,
) -> Callable[[ActionHandler], ActionHandler]:
    """Register an adapter method as an action."""

    def decorator(func: ActionHandler) -> ActionHandler:
        func.__connector_action__ = ActionSpec(  # type: ignore[attr-defined]
            name=name or func.__name__,
            handler=func.__name__,
            required=tuple(required),
            aliases=tuple(aliases),
            echoes=echoes,
        )
        return func

    return decorator


def truncate(text: str | None, limit: int) -> tuple[str, bool]:
    """Cut ``text`` to ``limit`` characters, reporting whether it was cut."""
    text = text or ""
    if len(text) <= limit:
        return text, False
    return text[:limit], True


class BaseConnector:
    """Common request handling, error mapping and action dispatch."""

    connector_type: ClassVar[ConnectorType]
    _actions: ClassVar[dict[str, ActionSpec]] = {}
    _lookup: ClassVar[dict[str, str]] = {}

    def __init_subclass__(cls, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)
        actions: dict[str, ActionSpec] = {}
        for klass in reversed(cls.__mro__):
            for attr in vars(klass).values():
                spec = getattr(attr, "__connector_action__", None)
                if spec is not None:
                    actions[spec.name] = spec
        cls._actions = actions
        cls._lookup = {}
        for spec in actions.values():
            for alias in (spec.name, *spec.aliases):
                cls._lookup[normalize_action_name(alias)] = spec.name

    def __init__(self, client: httpx.AsyncClient, settings: Settings | None = None) -> None:
        self._client = client
        self._settings = settings or get_settings()

    @property
    def display_name(self) -> str:
        return self.connector_type.display_name

    @classmethod
    def actions(cls) -> list[str]:
        return sorted(cls._actions)

    @classmethod
    def resolve_action(cls, name: str) -> ActionSpec | None:
        canonical = cls._lookup.get(normalize_action_name(name))
        return cls._actions.get(canonical) if canonical else None

    async def execute(
        self,
        action_name: str,
        params: dict[str, Any] | None,
        credentials: Credentials,
    ) -> NormalizedResult:
        """Run an action and normalize its outcome."""
        spec = self.resolve_action(action_name)
        if spec is None:
            logger.warning(
                LogEvents.CONNECTOR_ERROR,
                connector=self.connector_type.value,
                action=action_name,
                error_type=ErrorKind.UNKNOWN_ACTION.value,
            )
            return NormalizedResult.failure(
                ErrorKind.UNKNOWN_ACTION,
                f"Unknown action '{action_name}' for {self.display_name}",
            )

        params = params or {}
        missing = [p for p in spec.required if params.get(p) in (None, "")]
        if missing:
            return NormalizedResult.failure(
                ErrorKind.VALIDATION,
                f"Missing required parameter(s) for {spec.name}: {', '.join(missing)}",
            )

        missing_credentials = credentials.missing()
        if missing_credentials:
            return NormalizedResult.failure(
                ErrorKind.CONFIGURATION,
                f"{self.display_name} credentials are incomplete "
                f"(missing {', '.join(missing_credentials)})",
                hint=f"Connect {self.display_name} in Settings.",
            )

        logger.debug(
            LogEvents.CONNECTOR_REQUEST,
            connector=self.connector_type.value,
            action=spec.name,
            credential_source=credentials.source.value,
        )

        handler = getattr(self, spec.handler)
        try:
            data = await handler(params, credentials)
        except NovaException as e:
            logger.warning(
                LogEvents.CONNECTOR_ERROR,
                connector=self.connector_type.value,
                action=spec.name,
                error_type=e.kind.value,
                error=e.message,
            )
            return e.to_result()
        except httpx.TimeoutException:
            logger.warning(
                LogEvents.CONNECTOR_ERROR,
                connector=self.connector_type.value,
                action=spec.name,
                error="timeout",
            )
            return NormalizedResult.failure(
                ErrorKind.UPSTREAM, f"{self.display_name} did not respond in time"
            )
        except httpx.HTTPError as e:
            logger.warning(
                LogEvents.CONNECTOR_ERROR,
                connector=self.connector_type.value,
                action=spec.name,
                error=str(e),
            )
            return NormalizedResult.failure(
                ErrorKind.UPSTREAM, f"Could not reach {self.display_name}: {e}"
            )
        except (ValueError, KeyError, TypeError) as e:
            logger.error(
                LogEvents.CONNECTOR_ERROR,
                connector=self.connector_type.value,
                action=spec.name,
                error=str(e),
                exc_info=True,
            )
            return NormalizedResult.failure(
                ErrorKind.UPSTREAM,
                f"Unexpected response from {self.display_name}: {e}",
            )

        if spec.echoes and not data.get(spec.echoes):
            return NormalizedResult.failure(
                ErrorKind.UPSTREAM,
                f"{self.display_name} did not return a {spec.echoes} for {spec.name}",
            )

        logger.debug(
            LogEvents.CONNECTOR_RESPONSE,
            connector=self.connector_type.value,
            action=spec.name,
        )
        return NormalizedResult.success(data)

    async def _request(
        self,
        method: str,
        url: str,
        *,
        headers: dict[str, str] | None = None,
        params: dict[str, Any] | None = None,
        json: Any = None,
        auth: httpx.Auth | None = None,
        content_call: bool = False,
    ) -> httpx.Response:
        """Send a request and raise a mapped exception on non-2xx responses.

        ``content_call`` selects the longer timeout used for exports and downloads.
        """
        timeout = (
            self._settings.connector_content_timeout
            if content_call
            else self._settings.connector_metadata_timeout
        )
        response = await self._client.request(
            method,
            url,
            headers=headers,
            params=params,
            json=json,
            auth=auth,
            timeout=timeout,
        )
        if response.is_success:
            return response
        raise self._error_for(response)

    def _describe_error(self, response: httpx.Response) -> str | None:
        """Hook for adapters that can explain vendor error bodies."""
        return None

    def _error_for(self, response: httpx.Response) -> NovaException:
        status = response.status_code
        body, _ = truncate(response.text, ERROR_BODY_LIMIT)
        described = self._describe_error(response)

        logger.warning(
            LogEvents.CONNECTOR_ERROR,
            connector=self.connector_type.value,
            status_code=status,
            body=body,
        )

        if status in (401, 403):
            return AuthError(
                described or f"{self.display_name} rejected the credentials ({status})",
                hint=f"Reconnect {self.display_name} in Settings or check its permissions.",
                status_code=status,
            )
        if status == 404:
            return NotFoundError(
                described or f"{self.display_name} could not find the requested record",
                status_code=status,
            )
        if status == 429:
            return UpstreamRateLimit(
                described or f"{self.display_name} rate limit reached, try again shortly",
                status_code=status,
            )
        if status == 402:
            return UpstreamQuotaExceeded(
                described or f"{self.display_name} quota exhausted",
                status_code=status,
            )
        return UpstreamAPIError(
            described or f"{self.display_name} API error: {status} - {body}",
            status_code=status,
        )

    @action(aliases=("testConnection", "test"))
    async def test_connection(
        self, params: dict[str, Any], credentials: Credentials
    ) -> dict[str, Any]:
        """Cheapest authenticated read; never mutates."""
        raise NotImplementedError
