"""
Authenticated REST client used by the vendor adapters.

Every request fetches a bearer token from the account's ``AuthProvider`` and
runs through ``call_with_retry``, so adapters only ever see parsed JSON or a
classified ``ProviderError``.
"""

import asyncio
import logging
import re
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime
from typing import Any

import httpx

from inbox_agent.providers.base import AuthProvider
from inbox_agent.providers.resilience import DEFAULT_MAX_ATTEMPTS, call_with_retry

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0

_FRACTION = re.compile(r"(\.\d{6})\d+")


def parse_timestamp(value: str) -> datetime:
    """Parse vendor ISO-8601 timestamps, assuming UTC when no offset is given.

    Graph returns seven fractional digits; they are truncated to microseconds.
    """
    parsed = datetime.fromisoformat(_FRACTION.sub(r"\1", value))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def format_timestamp(value: datetime) -> str:
    """RFC 3339 UTC timestamp with a trailing Z."""
    return value.astimezone(UTC).strftime("%Y-%m-%dT%H:%M:%SZ")


class RestClient:
    """Thin authenticated JSON client bound to one account.

    Args:
        auth: Auth provider supplying bearer tokens
        base_url: Prefix for relative paths; absolute URLs are used as-is
        scopes: Scopes passed to ``get_access_token``
        http_client: Optional shared httpx client
        default_headers: Headers added to every request
        max_attempts: Retry budget per request
        sleep: Backoff sleep, injectable for tests
    """

    def __init__(
        self,
        auth: AuthProvider,
        base_url: str,
        *,
        scopes: list[str] | None = None,
        http_client: httpx.AsyncClient | None = None,
        default_headers: dict[str, str] | None = None,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.auth = auth
        self.base_url = base_url.rstrip("/")
        self.scopes = scopes or []
        self._owns_http = http_client is None
        self._http = http_client or httpx.AsyncClient(timeout=DEFAULT_TIMEOUT)
        self._default_headers = default_headers or {}
        self._max_attempts = max_attempts
        self._sleep = sleep

    @property
    def provider_type(self) -> str:
        return self.auth.provider_type.value

    def _url(self, path: str) -> str:
        if path.startswith("http://") or path.startswith("https://"):
            return path
        return f"{self.base_url}/{path.lstrip('/')}"

    async def _send(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        url = self._url(path)

        async def send() -> httpx.Response:
            token = await self.auth.get_access_token(self.scopes)
            request_headers = {
                "Authorization": f"Bearer {token}",
                **self._default_headers,
                **(headers or {}),
            }
            response = await self._http.request(
                method, url, params=params, json=json, headers=request_headers
            )
            response.raise_for_status()
            return response

        return await call_with_retry(
            send, self.provider_type, max_attempts=self._max_attempts, sleep=self._sleep
        )

    async def get(self, path: str, params: dict[str, Any] | None = None, **kwargs: Any) -> dict[str, Any]:
        response = await self._send("GET", path, params=params, **kwargs)
        return response.json()

    async def get_text(self, path: str, params: dict[str, Any] | None = None) -> str:
        response = await self._send("GET", path, params=params)
        return response.text

    async def post(self, path: str, json: dict[str, Any]) -> dict[str, Any]:
        response = await self._send("POST", path, json=json)
        return response.json()

    async def aclose(self) -> None:
        if self._owns_http:
            await self._http.aclose()
