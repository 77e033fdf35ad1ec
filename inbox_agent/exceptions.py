"""
Unified exception hierarchy for inbox-agent.

Every failure that crosses a component boundary is expressed as one of the
classes below. Provider adapters never leak vendor-specific error shapes:
the resilient call wrapper (``inbox_agent.providers.resilience``) translates
them into ``ProviderError`` with a ``ProviderErrorType``.

Usage:
    from inbox_agent.exceptions import ProviderError, ProviderErrorType

    try:
        messages = await provider.get_recent_emails(20)
    except ProviderError as e:
        if e.error_type is ProviderErrorType.TOKEN_EXPIRED:
            await auth.refresh_token()
"""

from enum import Enum
from typing import Any


class AssistantError(Exception):
    """Base exception for all inbox-agent errors.

    Attributes:
        message: Human-readable error description.
        details: Optional dict with additional error context.
        status_code: HTTP status code if applicable.
        service: Name of the service that raised the error.
    """

    def __init__(
        self,
        message: str,
        *,
        details: dict[str, Any] | None = None,
        status_code: int | None = None,
        service: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.status_code = status_code
        self.service = service

    def __str__(self) -> str:
        parts = [self.message]
        if self.service:
            parts.insert(0, f"[{self.service}]")
        if self.status_code:
            parts.append(f"(HTTP {self.status_code})")
        return " ".join(parts)


class ProviderErrorType(str, Enum):
    """Provider-agnostic failure categories."""

    AUTHENTICATION_FAILED = "AUTHENTICATION_FAILED"
    TOKEN_EXPIRED = "TOKEN_EXPIRED"
    RATE_LIMIT_EXCEEDED = "RATE_LIMIT_EXCEEDED"
    QUOTA_EXCEEDED = "QUOTA_EXCEEDED"
    NETWORK_ERROR = "NETWORK_ERROR"
    PERMISSION_DENIED = "PERMISSION_DENIED"
    RESOURCE_NOT_FOUND = "RESOURCE_NOT_FOUND"
    INVALID_REQUEST = "INVALID_REQUEST"
    SERVICE_UNAVAILABLE = "SERVICE_UNAVAILABLE"
    UNKNOWN_ERROR = "UNKNOWN_ERROR"


RETRYABLE_ERROR_TYPES = frozenset(
    {
        ProviderErrorType.RATE_LIMIT_EXCEEDED,
        ProviderErrorType.NETWORK_ERROR,
        ProviderErrorType.SERVICE_UNAVAILABLE,
    }
)


class ProviderError(AssistantError):
    """A classified failure raised by an auth, email, calendar or notes provider.

    Attributes:
        error_type: Category from ``ProviderErrorType``.
        provider_type: Vendor that raised it ("microsoft" or "google").
        original_error: The unmodified underlying exception, if any.
    """

    def __init__(
        self,
        error_type: ProviderErrorType,
        message: str,
        *,
        provider_type: str,
        original_error: BaseException | None = None,
        **kwargs: Any,
    ) -> None:
        kwargs.setdefault("service", provider_type)
        super().__init__(message, **kwargs)
        self.error_type = error_type
        self.provider_type = provider_type
        self.original_error = original_error

    @property
    def is_retryable(self) -> bool:
        """True for transient categories the call wrapper may retry."""
        return self.error_type in RETRYABLE_ERROR_TYPES


class LLMError(AssistantError):
    """A chat model call failed."""

    def __init__(self, message: str, **kwargs: Any) -> None:
        kwargs.setdefault("service", "llm")
        super().__init__(message, **kwargs)


class LLMRateLimitError(LLMError):
    """The model provider rejected the call with HTTP 429."""

    def __init__(self, message: str = "Rate limit exceeded. Please try again later.", **kwargs: Any) -> None:
        kwargs.setdefault("status_code", 429)
        super().__init__(message, **kwargs)


class LLMAuthenticationError(LLMError):
    """The model provider rejected the API key (HTTP 401)."""

    def __init__(self, message: str = "Invalid API key. Please check your configuration.", **kwargs: Any) -> None:
        kwargs.setdefault("status_code", 401)
        super().__init__(message, **kwargs)


class LLMServiceUnavailableError(LLMError):
    """The model provider had a transient server-side failure (HTTP 5xx)."""

    def __init__(
        self, message: str = "LLM service temporarily unavailable. Please try again later.", **kwargs: Any
    ) -> None:
        super().__init__(message, **kwargs)


class ConfigurationError(AssistantError):
    """Configuration is invalid or missing.

    Raised when:
    - Required environment variables are missing
    - Configuration file is malformed
    - A provider name is not known
    """
    pass


class UnsupportedProviderError(ConfigurationError):
    """The configured chat provider is unknown or not implemented."""

    def __init__(self, provider: str, message: str | None = None, **kwargs: Any) -> None:
        super().__init__(message or f"Unsupported LLM provider: {provider}", **kwargs)
        self.provider = provider


class NotInitializedError(AssistantError):
    """An operation was called before its component finished initializing."""
    pass
