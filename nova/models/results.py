"""Uniform result contract shared by the resolver, the router and the adapters."""

from enum import Enum
from typing import Any

from pydantic import BaseModel


class ErrorKind(str, Enum):
    """Categories of failure a tool or connector call can end in."""

    CONFIGURATION = "configuration_error"
    AUTH = "auth_error"
    NOT_FOUND = "not_found"
    RATE_LIMIT = "upstream_rate_limit"
    QUOTA = "upstream_quota_exceeded"
    UPSTREAM = "upstream_api_error"
    UNKNOWN_TOOL = "unknown_tool"
    UNKNOWN_ACTION = "unknown_action"
    VALIDATION = "validation_error"

    @property
    def http_status(self) -> int:
        return ERROR_HTTP_STATUS[self]


ERROR_HTTP_STATUS: dict[ErrorKind, int] = {
    ErrorKind.CONFIGURATION: 400,
    ErrorKind.AUTH: 401,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.RATE_LIMIT: 429,
    ErrorKind.QUOTA: 402,
    ErrorKind.UPSTREAM: 500,
    ErrorKind.UNKNOWN_TOOL: 400,
    ErrorKind.UNKNOWN_ACTION: 400,
    ErrorKind.VALIDATION: 400,
}


class NormalizedResult(BaseModel):
    """Either a success payload or a categorized error.

    A result is successful exactly when ``error`` is ``None``.
    """

    data: Any = None
    error: str | None = None
    kind: ErrorKind | None = None
    status_code: int | None = None
    hint: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, data: Any = None) -> "NormalizedResult":
        return cls(data=data)

    @classmethod
    def failure(
        cls,
        kind: ErrorKind,
        message: str,
        status_code: int | None = None,
        hint: str | None = None,
    ) -> "NormalizedResult":
        return cls(error=message, kind=kind, status_code=status_code, hint=hint)

    @property
    def http_status(self) -> int:
        if self.ok:
            return 200
        return self.kind.http_status if self.kind else 500

    def to_payload(self) -> dict[str, Any]:
        """Render the JSON object sent back to the model as a tool message.

        Successful data that carries its own ``error`` key is wrapped under
        ``result`` so it never reads as a failure.
        """
        if self.ok:
            if isinstance(self.data, dict) and "error" not in self.data:
                return self.data
            return {"result": self.data}

        payload: dict[str, Any] = {"error": self.error}
        if self.kind:
            payload["error_type"] = self.kind.value
        if self.hint:
            payload["hint"] = self.hint
        return payload
