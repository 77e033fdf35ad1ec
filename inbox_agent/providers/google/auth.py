"""
Google OAuth authorization code login.

Login is two-phase: ``login()`` returns the consent URL with ``pending=True``;
the redirect handler later passes the received code to ``handle_auth_code()``.
"""

import logging
from typing import Any
from urllib.parse import urlencode

import httpx

from inbox_agent.config import GoogleAuthConfig
from inbox_agent.exceptions import ProviderError, ProviderErrorType
from inbox_agent.models import AccountInfo, AuthResult, ProviderType
from inbox_agent.providers.credentials import CredentialStore
from inbox_agent.providers.oauth import OAuthAuthProvider

logger = logging.getLogger(__name__)

AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
TOKEN_URL = "https://oauth2.googleapis.com/token"
REVOKE_URL = "https://oauth2.googleapis.com/revoke"
USERINFO_URL = "https://www.googleapis.com/oauth2/v2/userinfo"

DEFAULT_ACCOUNT_ID = "google-default"


class GoogleAuthProvider(OAuthAuthProvider):
    """Authorization code flow with offline access."""

    def __init__(
        self,
        config: GoogleAuthConfig,
        credential_store: CredentialStore,
        account_id: str = DEFAULT_ACCOUNT_ID,
        *,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        super().__init__(account_id, credential_store, http_client)
        self.config = config

    @property
    def provider_type(self) -> ProviderType:
        return ProviderType.GOOGLE

    def authorization_url(self) -> str:
        params = {
            "client_id": self.config.client_id,
            "redirect_uri": self.config.redirect_uri,
            "response_type": "code",
            "scope": " ".join(self.config.scopes),
            "access_type": "offline",
            "prompt": "consent",
            "state": self.account_id,
        }
        return f"{AUTH_URL}?{urlencode(params)}"

    async def login(self) -> AuthResult:
        if not self.config.configured:
            return AuthResult(success=False, error="Google OAuth client is not configured")
        url = self.authorization_url()
        logger.info(f"Google login pending for {self.account_id}", extra={"account_id": self.account_id})
        return AuthResult(success=False, pending=True, auth_url=url)

    async def handle_auth_code(self, code: str) -> AuthResult:
        try:
            tokens = await self._token_request(
                TOKEN_URL,
                {
                    "grant_type": "authorization_code",
                    "code": code,
                    "client_id": self.config.client_id,
                    "client_secret": self.config.client_secret,
                    "redirect_uri": self.config.redirect_uri,
                },
            )
            self._apply_token_response(tokens)
            info = await self._get_json(USERINFO_URL, tokens["access_token"])
        except ProviderError as e:
            logger.error(f"Google code exchange failed: {e}", extra={"account_id": self.account_id})
            return AuthResult(success=False, error=e.message)

        account = AccountInfo(
            id=self.account_id,
            email=info.get("email", ""),
            name=info.get("name", ""),
            provider_type=ProviderType.GOOGLE,
            avatar_url=info.get("picture"),
        )
        self._set_account(account)
        logger.info(f"Google login succeeded for {account.email}", extra={"account_id": self.account_id})
        return AuthResult(success=True, account_info=account)

    async def _request_refresh(self, refresh_token: str) -> dict[str, Any]:
        return await self._token_request(
            TOKEN_URL,
            {
                "grant_type": "refresh_token",
                "refresh_token": refresh_token,
                "client_id": self.config.client_id,
                "client_secret": self.config.client_secret,
            },
        )

    async def _revoke(self) -> None:
        token = self._refresh_token or self._access_token
        if not token:
            return
        try:
            response = await self._post_form(REVOKE_URL, {"token": token})
        except httpx.TransportError as e:
            raise ProviderError(
                ProviderErrorType.NETWORK_ERROR,
                "Token revocation request failed",
                provider_type=self.provider_type.value,
                original_error=e,
            ) from e
        if response.status_code != 200:
            raise ProviderError(
                ProviderErrorType.UNKNOWN_ERROR,
                "Token revocation was rejected",
                provider_type=self.provider_type.value,
                status_code=response.status_code,
            )
