"""
Shared OAuth token handling for the vendor auth providers.

Subclasses implement the interactive login, the refresh request and remote
revocation. This base owns the cached token, the refresh safety margin and
persistence through a ``CredentialStore``.
"""

import json
import logging
from abc import abstractmethod
from datetime import UTC, datetime, timedelta
from typing import Any

import httpx

from inbox_agent.exceptions import ProviderError, ProviderErrorType
from inbox_agent.models import AccountInfo
from inbox_agent.providers.base import AuthProvider
from inbox_agent.providers.credentials import CredentialStore
from inbox_agent.providers.resilience import call_with_retry

logger = logging.getLogger(__name__)

# Refresh tokens this long before they actually expire
REFRESH_MARGIN = timedelta(minutes=5)

OAUTH_REQUEST_TIMEOUT = 30.0


class OAuthAuthProvider(AuthProvider):
    """Token cache, refresh and persistence common to OAuth vendors.

    Args:
        account_id: Local identifier for the account
        credential_store: Where the opaque token blob is persisted
        http_client: Optional shared client; a short-lived one is used otherwise
    """

    def __init__(
        self,
        account_id: str,
        credential_store: CredentialStore,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._account_id = account_id
        self._store = credential_store
        self._http = http_client
        self._access_token: str | None = None
        self._refresh_token: str | None = None
        self._token_expiry: datetime | None = None
        self._account: AccountInfo | None = None

    @property
    def account_id(self) -> str:
        return self._account_id

    @property
    def credential_key(self) -> str:
        return f"{self.provider_type.value}-{self._account_id}"

    async def initialize(self) -> None:
        blob = self._store.get(self.credential_key)
        if blob is None:
            logger.info(
                f"No stored credentials for {self._account_id}",
                extra={"account_id": self._account_id},
            )
            return
        try:
            self._load_blob(blob)
        except (ValueError, KeyError, TypeError) as e:
            logger.warning(
                f"Discarding unreadable credentials for {self._account_id}: {e}",
                extra={"account_id": self._account_id},
            )
            self._store.delete(self.credential_key)
            self._clear()
            return
        logger.info(
            f"Restored credentials for {self._account_id}",
            extra={"account_id": self._account_id, "provider_type": self.provider_type.value},
        )

    def is_authenticated(self) -> bool:
        return self._account is not None and self._access_token is not None

    async def get_account_info(self) -> AccountInfo:
        if self._account is None:
            raise ProviderError(
                ProviderErrorType.AUTHENTICATION_FAILED,
                "Not authenticated",
                provider_type=self.provider_type.value,
            )
        return self._account

    async def get_access_token(self, scopes: list[str] | None = None) -> str:
        """Return a valid access token.

        ``scopes`` is accepted for interface compatibility; the cached token
        already carries every scope granted at login.

        Raises:
            ProviderError: AUTHENTICATION_FAILED without credentials,
                TOKEN_EXPIRED when a refresh is needed but impossible
        """
        if self._access_token is None:
            raise ProviderError(
                ProviderErrorType.AUTHENTICATION_FAILED,
                "No credentials available, login required",
                provider_type=self.provider_type.value,
            )
        if not self._is_token_valid():
            await self.refresh_token()
        return self._access_token

    def _is_token_valid(self) -> bool:
        if not self._access_token or not self._token_expiry:
            return False
        return datetime.now(UTC) < (self._token_expiry - REFRESH_MARGIN)

    async def refresh_token(self) -> None:
        if not self._refresh_token:
            raise ProviderError(
                ProviderErrorType.TOKEN_EXPIRED,
                "No refresh token available, login required",
                provider_type=self.provider_type.value,
            )
        try:
            data = await self._request_refresh(self._refresh_token)
        except ProviderError as e:
            if e.error_type in (
                ProviderErrorType.INVALID_REQUEST,
                ProviderErrorType.AUTHENTICATION_FAILED,
            ):
                raise ProviderError(
                    ProviderErrorType.TOKEN_EXPIRED,
                    "Refresh token rejected, login required",
                    provider_type=self.provider_type.value,
                    original_error=e,
                ) from e
            raise
        self._apply_token_response(data)
        self._persist()
        logger.info(
            f"Refreshed access token for {self._account_id}",
            extra={"account_id": self._account_id},
        )

    async def logout(self) -> None:
        try:
            await self._revoke()
        except ProviderError as e:
            logger.warning(
                f"Remote token revocation failed for {self._account_id}: {e}",
                extra={"account_id": self._account_id},
            )
        self._store.delete(self.credential_key)
        self._clear()
        logger.info(f"Logged out {self._account_id}", extra={"account_id": self._account_id})

    @abstractmethod
    async def _request_refresh(self, refresh_token: str) -> dict[str, Any]:
        """POST a refresh grant and return the token response JSON."""
        pass

    @abstractmethod
    async def _revoke(self) -> None:
        pass

    def _apply_token_response(self, data: dict[str, Any]) -> None:
        self._access_token = data["access_token"]
        expires_in = int(data.get("expires_in", 3600))
        self._token_expiry = datetime.now(UTC) + timedelta(seconds=expires_in)
        if data.get("refresh_token"):
            self._refresh_token = data["refresh_token"]

    def _set_account(self, account: AccountInfo) -> None:
        self._account = account
        self._persist()

    def _persist(self) -> None:
        self._store.set(self.credential_key, self._dump_blob())

    def _dump_blob(self) -> bytes:
        payload = {
            "access_token": self._access_token,
            "refresh_token": self._refresh_token,
            "token_expiry": self._token_expiry.isoformat() if self._token_expiry else None,
            "account": self._account.to_dict() if self._account else None,
        }
        return json.dumps(payload).encode("utf-8")

    def _load_blob(self, blob: bytes) -> None:
        payload = json.loads(blob.decode("utf-8"))
        self._access_token = payload["access_token"]
        self._refresh_token = payload.get("refresh_token")
        expiry = payload.get("token_expiry")
        self._token_expiry = datetime.fromisoformat(expiry) if expiry else None
        account = payload.get("account")
        self._account = AccountInfo.from_dict(account) if account else None

    def _clear(self) -> None:
        self._access_token = None
        self._refresh_token = None
        self._token_expiry = None
        self._account = None

    async def _post_form(self, url: str, data: dict[str, str]) -> httpx.Response:
        """POST a form body, returning the raw response without raising."""
        if self._http is not None:
            return await self._http.post(url, data=data)
        async with httpx.AsyncClient(timeout=OAUTH_REQUEST_TIMEOUT) as client:
            return await client.post(url, data=data)

    async def _get_json(self, url: str, access_token: str) -> dict[str, Any]:
        async def fetch() -> dict[str, Any]:
            headers = {"Authorization": f"Bearer {access_token}"}
            if self._http is not None:
                response = await self._http.get(url, headers=headers)
            else:
                async with httpx.AsyncClient(timeout=OAUTH_REQUEST_TIMEOUT) as client:
                    response = await client.get(url, headers=headers)
            response.raise_for_status()
            return response.json()

        return await call_with_retry(fetch, self.provider_type.value)

    async def _token_request(self, url: str, data: dict[str, str]) -> dict[str, Any]:
        """POST to a token endpoint with retry and classified errors."""

        async def post() -> dict[str, Any]:
            response = await self._post_form(url, data)
            response.raise_for_status()
            return response.json()

        return await call_with_retry(post, self.provider_type.value)
