# Google OAuth 2.0 / OpenID Connect client.
# Created: 2026-03-02

from __future__ import annotations

import logging

from roomauth.social.models import SocialProfile, SocialProvider
from roomauth.social.providers.base import RefreshableOAuthClient

logger = logging.getLogger(__name__)

GOOGLE_AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
GOOGLE_USERINFO_URL = "https://openidconnect.googleapis.com/v1/userinfo"
GOOGLE_REVOKE_URL = "https://oauth2.googleapis.com/revoke"


class GoogleOAuthClient(RefreshableOAuthClient):
    """Google sign-in: PKCE, refresh tokens, OIDC userinfo."""

    provider = SocialProvider.GOOGLE
    display_name = "Google"
    default_scopes = ["openid", "profile", "email"]

    authorize_url = GOOGLE_AUTH_URL
    token_url = GOOGLE_TOKEN_URL

    async def get_user_profile(self, access_token: str) -> SocialProfile:
        async with self._http() as client:
            resp = await client.get(
                GOOGLE_USERINFO_URL,
                headers={"Authorization": f"Bearer {access_token}"},
            )
        self._raise_for_error(resp, "profile fetch")
        data = resp.json()

        return SocialProfile(
            provider=self.provider,
            provider_id=data["sub"],
            email=data.get("email", ""),
            email_verified=bool(data.get("email_verified", False)),
            name=data.get("name", ""),
            first_name=data.get("given_name"),
            last_name=data.get("family_name"),
            picture=data.get("picture"),
            locale=data.get("locale"),
            raw=data,
        )

    async def revoke_token(self, access_token: str) -> bool:
        async with self._http() as client:
            resp = await client.post(GOOGLE_REVOKE_URL, data={"token": access_token})
        if not resp.is_success:
            logger.warning("Google token revoke failed (HTTP %d)", resp.status_code)
        return resp.is_success
