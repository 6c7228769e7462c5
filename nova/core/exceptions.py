"""Custom exception classes for the application."""

from typing import Any

from nova.models.results import ErrorKind, NormalizedResult


class NovaException(Exception):
    """Base exception for all application errors."""

    kind: ErrorKind = ErrorKind.UPSTREAM

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
        hint: str | None = None,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.hint = hint
        self.status_code = status_code

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} - {self.details}"
        return self.message

    def to_result(self) -> NormalizedResult:
        """Convert to the uniform result returned across the adapter boundary."""
        return NormalizedResult.failure(
            self.kind,
            self.message,
            status_code=self.status_code,
            hint=self.hint,
        )


class ConfigurationError(NovaException):
    """Raised when a connector is not configured or not connected."""

    kind = ErrorKind.CONFIGURATION


class AuthError(NovaException):
    """Raised when an external system rejects the credentials."""

    kind = ErrorKind.AUTH


class NotFoundError(NovaException):
    """Raised when the requested record does not exist upstream."""

    kind = ErrorKind.NOT_FOUND


class UpstreamAPIError(NovaException):
    """Raised when an external API call fails."""

    kind = ErrorKind.UPSTREAM


class UpstreamRateLimit(UpstreamAPIError):
    """Raised when an external API rate limits the caller."""

    kind = ErrorKind.RATE_LIMIT


class UpstreamQuotaExceeded(UpstreamAPIError):
    """Raised when an external API reports exhausted quota or credits."""

    kind = ErrorKind.QUOTA


class UnknownToolError(NovaException):
    """Raised when the model requests a tool that is not in the catalog."""

    kind = ErrorKind.UNKNOWN_TOOL


class UnknownActionError(NovaException):
    """Raised when a connector is asked for an action it does not declare."""

    kind = ErrorKind.UNKNOWN_ACTION


class ValidationError(NovaException):
    """Raised when tool arguments or action parameters are invalid."""

    kind = ErrorKind.VALIDATION


class LLMError(NovaException):
    """Base exception for model gateway errors."""

    pass


class LLMProviderError(LLMError):
    """Raised when the model gateway returns an error."""

    def __init__(
        self,
        message: str,
        provider: str,
        model: str | None = None,
        status_code: int | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, details, status_code=status_code)
        self.provider = provider
        self.model = model

    def __str__(self) -> str:
        base = f"[{self.provider}] {self.message}"
        if self.model:
            base = f"[{self.provider}/{self.model}] {self.message}"
        if self.details:
            base = f"{base} - {self.details}"
        return base


class LLMRateLimitError(LLMProviderError):
    """Raised when rate limited by the model gateway."""

    kind = ErrorKind.RATE_LIMIT

    def __init__(
        self,
        message: str,
        provider: str,
        retry_after: float | None = None,
        **kwargs: Any,
    ) -> None:
        kwargs.setdefault("status_code", 429)
        super().__init__(message, provider, **kwargs)
        self.retry_after = retry_after


class LLMQuotaError(LLMProviderError):
    """Raised when the model gateway reports exhausted credits."""

    kind = ErrorKind.QUOTA

    def __init__(self, message: str, provider: str, **kwargs: Any) -> None:
        kwargs.setdefault("status_code", 402)
        super().__init__(message, provider, **kwargs)


class LLMAuthenticationError(LLMProviderError):
    """Raised when authentication with the model gateway fails."""

    pass
