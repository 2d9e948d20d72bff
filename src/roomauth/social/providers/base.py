# Social OAuth client base — shared httpx plumbing for provider adapters.
# Created: 2026-03-02
#
# Each provider is its own subclass. Capability differences (PKCE, refresh
# support) are fixed per class rather than switched on a provider name.

from __future__ import annotations

import logging
import urllib.parse
from abc import ABC, abstractmethod
from typing import Any, ClassVar

import httpx

from roomauth.oauth2.pkce import generate_code_verifier, s256_challenge
from roomauth.social.errors import CodeVerifierRequiredError, ProviderError
from roomauth.social.models import AuthorizationUrl, ProviderTokens, SocialProfile, SocialProvider

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 15.0


class SocialOAuthClient(ABC):
    """Client for one external OAuth 2.0 identity provider."""

    provider: ClassVar[SocialProvider]
    display_name: ClassVar[str]
    supports_pkce: ClassVar[bool]
    supports_refresh: ClassVar[bool]
    default_scopes: ClassVar[list[str]]

    authorize_url: str
    token_url: str

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        redirect_uri: str,
        *,
        scopes: list[str] | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.client_id = client_id
        self.client_secret = client_secret
        self.redirect_uri = redirect_uri
        self.scopes = scopes or list(self.default_scopes)
        self._timeout = timeout
        self._transport = transport

    def get_authorization_url(
        self, scope: str | None = None, state: str = "", **extra: Any
    ) -> AuthorizationUrl:
        """Build the provider's authorization URL.

        Args:
            scope: Space-delimited scopes; defaults to the client's scopes.
            state: Opaque CSRF value echoed back on the callback.
            **extra: Additional query parameters (e.g. ``prompt``,
                ``access_type``). ``None`` values are skipped.

        Returns:
            The URL, plus the PKCE verifier when the provider uses PKCE.
        """
        params: dict[str, str] = {
            "client_id": self.client_id,
            "redirect_uri": self.redirect_uri,
            "response_type": "code",
            "scope": scope if scope is not None else " ".join(self.scopes),
        }
        if state:
            params["state"] = state

        code_verifier = None
        if self.supports_pkce:
            code_verifier = generate_code_verifier()
            params["code_challenge"] = s256_challenge(code_verifier)
            params["code_challenge_method"] = "S256"

        params.update(self._extra_authorize_params())
        params.update({k: str(v) for k, v in extra.items() if v is not None})
        url = f"{self.authorize_url}?{urllib.parse.urlencode(params)}"
        return AuthorizationUrl(url=url, code_verifier=code_verifier, state=state)

    def _extra_authorize_params(self) -> dict[str, str]:
        return {}

    @abstractmethod
    async def exchange_code_for_token(
        self, code: str, code_verifier: str | None = None
    ) -> ProviderTokens: ...

    @abstractmethod
    async def get_user_profile(self, access_token: str) -> SocialProfile: ...

    @abstractmethod
    async def refresh_token(self, refresh_token: str) -> ProviderTokens: ...

    @abstractmethod
    async def revoke_token(self, access_token: str) -> bool: ...

    # ------------------------------------------------------------------

    def _http(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self._timeout, transport=self._transport)

    def _raise_for_error(self, resp: httpx.Response, action: str) -> None:
        """Raise ProviderError carrying the provider's own error text."""
        if resp.is_success:
            return
        error = None
        message = None
        try:
            data = resp.json()
        except ValueError:
            data = None
        if isinstance(data, dict):
            error = data.get("error")
            if isinstance(error, dict):  # Microsoft Graph nests its errors
                message = error.get("message")
                error = error.get("code")
            message = data.get("error_description") or data.get("message") or message or error
        if not message:
            message = resp.text or f"HTTP {resp.status_code}"
        logger.warning(
            "%s %s failed (HTTP %d): %s", self.display_name, action, resp.status_code, message
        )
        raise ProviderError(
            self.provider.value, message, status_code=resp.status_code, error=error
        )

    async def _post_token_form(self, data: dict[str, str], action: str) -> ProviderTokens:
        async with self._http() as client:
            resp = await client.post(
                self.token_url,
                data=data,
                headers={"Accept": "application/json"},
            )
        self._raise_for_error(resp, action)
        return ProviderTokens.from_response(resp.json())

    def _require_verifier(self, code_verifier: str | None) -> str:
        if not code_verifier:
            raise CodeVerifierRequiredError(
                f"{self.display_name} token exchange requires a code_verifier"
            )
        return code_verifier


class RefreshableOAuthClient(SocialOAuthClient):
    """Provider whose token endpoint implements PKCE exchange and refresh."""

    supports_pkce = True
    supports_refresh = True

    async def exchange_code_for_token(
        self, code: str, code_verifier: str | None = None
    ) -> ProviderTokens:
        tokens = await self._post_token_form(
            {
                "client_id": self.client_id,
                "client_secret": self.client_secret,
                "code": code,
                "code_verifier": self._require_verifier(code_verifier),
                "grant_type": "authorization_code",
                "redirect_uri": self.redirect_uri,
            },
            "token exchange",
        )
        logger.info("Exchanged %s authorization code", self.display_name)
        return tokens

    async def refresh_token(self, refresh_token: str) -> ProviderTokens:
        data = {
            "client_id": self.client_id,
            "client_secret": self.client_secret,
            "refresh_token": refresh_token,
            "grant_type": "refresh_token",
        }
        data.update(self._extra_refresh_params())
        tokens = await self._post_token_form(data, "token refresh")
        logger.info("Refreshed %s access token", self.display_name)
        return tokens

    def _extra_refresh_params(self) -> dict[str, str]:
        return {}
