"""
Retry and error classification for remote provider calls.

``call_with_retry`` is the single place where vendor error shapes (httpx
status errors, transport failures) become ``ProviderError``. Only transient
categories are retried; authentication and permission failures propagate on
the first attempt.

Retry strategy (base delay 1s, 3 attempts):
- Attempt 1: immediate
- Attempt 2: wait 1s
- Attempt 3: wait 2s
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

import httpx
from tenacity import (
    AsyncRetrying,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from inbox_agent.exceptions import ProviderError, ProviderErrorType

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_BASE_DELAY = 1.0

_STATUS_ERROR_TYPES = {
    400: ProviderErrorType.INVALID_REQUEST,
    401: ProviderErrorType.AUTHENTICATION_FAILED,
    403: ProviderErrorType.PERMISSION_DENIED,
    404: ProviderErrorType.RESOURCE_NOT_FOUND,
    429: ProviderErrorType.RATE_LIMIT_EXCEEDED,
}

_RATE_LIMIT_HINTS = ("ratelimit", "rate limit", "ratelimitexceeded", "userratelimitexceeded")
_QUOTA_HINTS = ("quotaexceeded", "quota exceeded", "dailylimitexceeded")


def _response_text(response: httpx.Response) -> str:
    try:
        return response.text.lower()
    except (httpx.ResponseNotRead, UnicodeDecodeError):
        return ""


def classify_error(error: BaseException, provider_type: str) -> ProviderError:
    """Translate any exception raised by a remote call into a ``ProviderError``.

    Args:
        error: Exception raised by the remote operation
        provider_type: Vendor name stamped on the result

    Returns:
        ProviderError carrying the category and the original exception
    """
    if isinstance(error, ProviderError):
        return error

    if isinstance(error, httpx.HTTPStatusError):
        status = error.response.status_code
        text = _response_text(error.response)
        if status == 403 and any(hint in text for hint in _RATE_LIMIT_HINTS):
            error_type = ProviderErrorType.RATE_LIMIT_EXCEEDED
        elif status == 403 and any(hint in text for hint in _QUOTA_HINTS):
            error_type = ProviderErrorType.QUOTA_EXCEEDED
        elif status in _STATUS_ERROR_TYPES:
            error_type = _STATUS_ERROR_TYPES[status]
        elif status >= 500:
            error_type = ProviderErrorType.SERVICE_UNAVAILABLE
        else:
            error_type = ProviderErrorType.UNKNOWN_ERROR
        return ProviderError(
            error_type,
            f"{error.request.method} {error.request.url.path} failed",
            provider_type=provider_type,
            status_code=status,
            original_error=error,
        )

    if isinstance(error, httpx.TransportError):
        return ProviderError(
            ProviderErrorType.NETWORK_ERROR,
            f"Network error: {type(error).__name__}",
            provider_type=provider_type,
            original_error=error,
        )

    message = str(error).lower()
    if "rate limit" in message:
        error_type = ProviderErrorType.RATE_LIMIT_EXCEEDED
    elif "unavailable" in message:
        error_type = ProviderErrorType.SERVICE_UNAVAILABLE
    else:
        error_type = ProviderErrorType.UNKNOWN_ERROR
    return ProviderError(
        error_type,
        str(error) or type(error).__name__,
        provider_type=provider_type,
        original_error=error,
    )


def _is_retryable(error: BaseException) -> bool:
    return isinstance(error, ProviderError) and error.is_retryable


async def call_with_retry(
    operation: Callable[[], Awaitable[T]],
    provider_type: str,
    *,
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    base_delay: float = DEFAULT_BASE_DELAY,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """Run ``operation`` with classified errors and exponential backoff.

    Args:
        operation: Zero-argument coroutine factory, called once per attempt
        provider_type: Vendor name used for error classification
        max_attempts: Total attempts including the first
        base_delay: Delay before the second attempt; doubles each retry
        sleep: Awaitable sleep, injectable for tests

    Returns:
        The operation's result

    Raises:
        ProviderError: Non-retryable failure, or the last retryable failure
            once attempts are exhausted
    """

    async def attempt() -> T:
        try:
            return await operation()
        except ProviderError:
            raise
        except Exception as e:
            raise classify_error(e, provider_type) from e

    def log_retry(retry_state) -> None:
        error = retry_state.outcome.exception()
        logger.warning(
            f"Retrying {provider_type} call after {error.error_type.value} "
            f"(attempt {retry_state.attempt_number}/{max_attempts})",
            extra={"provider_type": provider_type},
        )

    retrying = AsyncRetrying(
        stop=stop_after_attempt(max_attempts),
        wait=wait_exponential(multiplier=base_delay, exp_base=2, min=base_delay),
        retry=retry_if_exception(_is_retryable),
        before_sleep=log_retry,
        sleep=sleep,
        reraise=True,
    )
    return await retrying(attempt)
