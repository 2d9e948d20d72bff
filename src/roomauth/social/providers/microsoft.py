# Microsoft identity platform (v2.0) client.
# Created: 2026-03-02

from __future__ import annotations

import logging
from typing import Any

import httpx

from roomauth.social.models import SocialProfile, SocialProvider
from roomauth.social.providers.base import DEFAULT_TIMEOUT, RefreshableOAuthClient

logger = logging.getLogger(__name__)

MICROSOFT_LOGIN = "https://login.microsoftonline.com"
GRAPH_API = "https://graph.microsoft.com/v1.0"


class MicrosoftOAuthClient(RefreshableOAuthClient):
    """Microsoft sign-in: PKCE, rotating refresh tokens, Graph ``/me`` profile.

    ``tenant`` selects the authority: ``common``, ``organizations``,
    ``consumers`` or a specific directory (id or domain).
    """

    provider = SocialProvider.MICROSOFT
    display_name = "Microsoft"
    default_scopes = ["openid", "profile", "email", "User.Read"]

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        redirect_uri: str,
        *,
        tenant: str = "common",
        scopes: list[str] | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        super().__init__(
            client_id,
            client_secret,
            redirect_uri,
            scopes=scopes,
            timeout=timeout,
            transport=transport,
        )
        self.tenant = tenant or "common"
        self.authorize_url = f"{MICROSOFT_LOGIN}/{self.tenant}/oauth2/v2.0/authorize"
        self.token_url = f"{MICROSOFT_LOGIN}/{self.tenant}/oauth2/v2.0/token"

    def _extra_authorize_params(self) -> dict[str, str]:
        return {"response_mode": "query"}

    def _extra_refresh_params(self) -> dict[str, str]:
        # v2.0 refresh must restate the scopes
        return {"scope": " ".join(self.scopes)}

    async def get_user_profile(self, access_token: str) -> SocialProfile:
        async with self._http() as client:
            resp = await client.get(
                f"{GRAPH_API}/me",
                headers={"Authorization": f"Bearer {access_token}"},
            )
        self._raise_for_error(resp, "profile fetch")
        data: dict[str, Any] = resp.json()

        return SocialProfile(
            provider=self.provider,
            provider_id=data["id"],
            email=data.get("mail") or data.get("userPrincipalName") or "",
            # Work/school and personal accounts are verified by the directory
            email_verified=True,
            name=data.get("displayName") or "",
            first_name=data.get("givenName"),
            last_name=data.get("surname"),
            locale=data.get("preferredLanguage"),
            raw=data,
        )

    async def revoke_token(self, access_token: str) -> bool:
        """Invalidate the user's refresh tokens and sessions via Graph."""
        async with self._http() as client:
            resp = await client.post(
                f"{GRAPH_API}/me/revokeSignInSessions",
                headers={"Authorization": f"Bearer {access_token}"},
            )
        if not resp.is_success:
            logger.warning("Microsoft session revoke failed (HTTP %d)", resp.status_code)
        return resp.is_success
