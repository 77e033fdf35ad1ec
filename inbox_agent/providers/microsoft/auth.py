"""
Microsoft identity platform device code login.

The user is shown a short code and a verification URL; this provider polls the
token endpoint until the user completes sign-in, the code expires, or the
user declines.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any

import httpx

from inbox_agent.config import MicrosoftAuthConfig
from inbox_agent.exceptions import ProviderError, ProviderErrorType
from inbox_agent.models import AccountInfo, AuthResult, ProviderType
from inbox_agent.providers.credentials import CredentialStore
from inbox_agent.providers.oauth import OAuthAuthProvider

logger = logging.getLogger(__name__)

AUTHORITY_URL = "https://login.microsoftonline.com"
GRAPH_ME_URL = "https://graph.microsoft.com/v1.0/me"
DEVICE_CODE_GRANT = "urn:ietf:params:oauth:grant-type:device_code"

DEFAULT_ACCOUNT_ID = "microsoft-default"


def _log_device_code(flow: dict[str, Any]) -> None:
    logger.info(flow.get("message") or f"Visit {flow['verification_uri']} and enter {flow['user_code']}")


class MicrosoftAuthProvider(OAuthAuthProvider):
    """Device code flow against Azure AD.

    Args:
        config: Client id, tenant and scopes
        credential_store: Token blob persistence
        account_id: Local account identifier
        on_device_code: Called with the device code response so the caller
            can show ``user_code`` and ``verification_uri``
        http_client: Optional shared httpx client
        sleep: Poll interval sleep, injectable for tests
    """

    def __init__(
        self,
        config: MicrosoftAuthConfig,
        credential_store: CredentialStore,
        account_id: str = DEFAULT_ACCOUNT_ID,
        *,
        on_device_code: Callable[[dict[str, Any]], None] = _log_device_code,
        http_client: httpx.AsyncClient | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        super().__init__(account_id, credential_store, http_client)
        self.config = config
        self._on_device_code = on_device_code
        self._sleep = sleep

    @property
    def provider_type(self) -> ProviderType:
        return ProviderType.MICROSOFT

    @property
    def _token_url(self) -> str:
        return f"{AUTHORITY_URL}/{self.config.tenant_id}/oauth2/v2.0/token"

    @property
    def _scope(self) -> str:
        return " ".join(self.config.scopes)

    async def login(self) -> AuthResult:
        if not self.config.configured:
            return AuthResult(success=False, error="Microsoft client id is not configured")
        try:
            flow = await self._token_request(
                f"{AUTHORITY_URL}/{self.config.tenant_id}/oauth2/v2.0/devicecode",
                {"client_id": self.config.client_id, "scope": self._scope},
            )
            self._on_device_code(flow)
            tokens = await self._poll_for_token(flow)
            self._apply_token_response(tokens)
            account = await self._fetch_account(tokens["access_token"])
            self._set_account(account)
        except ProviderError as e:
            logger.error(f"Microsoft login failed: {e}", extra={"account_id": self.account_id})
            return AuthResult(success=False, error=e.message)

        logger.info(f"Microsoft login succeeded for {account.email}", extra={"account_id": self.account_id})
        return AuthResult(success=True, account_info=account)

    async def _poll_for_token(self, flow: dict[str, Any]) -> dict[str, Any]:
        interval = float(flow.get("interval", 5))
        remaining = float(flow.get("expires_in", 900))
        data = {
            "grant_type": DEVICE_CODE_GRANT,
            "client_id": self.config.client_id,
            "device_code": flow["device_code"],
        }
        while remaining > 0:
            await self._sleep(interval)
            remaining -= interval
            try:
                response = await self._post_form(self._token_url, data)
            except httpx.TransportError as e:
                logger.warning(f"Device code poll failed, retrying: {type(e).__name__}")
                continue
            if response.status_code >= 500:
                logger.warning(f"Device code poll got HTTP {response.status_code}, retrying")
                continue
            try:
                body = response.json() if response.content else {}
            except ValueError:
                body = {}
            if not isinstance(body, dict):
                body = {}
            if response.status_code == 200 and "access_token" in body:
                return body

            error = body.get("error", "")
            if error == "authorization_pending":
                continue
            if error == "slow_down":
                interval += 5
                continue
            if error == "authorization_declined":
                raise ProviderError(
                    ProviderErrorType.AUTHENTICATION_FAILED,
                    "User declined the sign-in request",
                    provider_type=self.provider_type.value,
                )
            raise ProviderError(
                ProviderErrorType.AUTHENTICATION_FAILED,
                f"Device code login failed: {error or response.status_code}",
                provider_type=self.provider_type.value,
                status_code=response.status_code,
            )

        raise ProviderError(
            ProviderErrorType.TOKEN_EXPIRED,
            "Device code expired before sign-in completed",
            provider_type=self.provider_type.value,
        )

    async def _fetch_account(self, access_token: str) -> AccountInfo:
        me = await self._get_json(GRAPH_ME_URL, access_token)
        return AccountInfo(
            id=self.account_id,
            email=me.get("mail") or me.get("userPrincipalName", ""),
            name=me.get("displayName", ""),
            provider_type=ProviderType.MICROSOFT,
        )

    async def _request_refresh(self, refresh_token: str) -> dict[str, Any]:
        return await self._token_request(
            self._token_url,
            {
                "grant_type": "refresh_token",
                "client_id": self.config.client_id,
                "refresh_token": refresh_token,
                "scope": self._scope,
            },
        )

    async def _revoke(self) -> None:
        # The v2.0 endpoint has no per-token revocation; tokens age out
        logger.info(
            f"Microsoft tokens for {self.account_id} are cleared locally only",
            extra={"account_id": self.account_id},
        )
