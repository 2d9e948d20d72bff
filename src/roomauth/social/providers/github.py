# GitHub OAuth client.
# Created: 2026-03-02
#
# GitHub OAuth apps use neither PKCE nor refresh tokens; access tokens
# live until revoked.

from __future__ import annotations

import logging
from typing import Any

from roomauth.social.errors import ProviderError, UnsupportedCapabilityError
from roomauth.social.models import ProviderTokens, SocialProfile, SocialProvider
from roomauth.social.providers.base import SocialOAuthClient

logger = logging.getLogger(__name__)

GITHUB_AUTH_URL = "https://github.com/login/oauth/authorize"
GITHUB_TOKEN_URL = "https://github.com/login/oauth/access_token"
GITHUB_API = "https://api.github.com"


class GitHubOAuthClient(SocialOAuthClient):
    """GitHub sign-in: no PKCE, no refresh, two-call profile."""

    provider = SocialProvider.GITHUB
    display_name = "GitHub"
    supports_pkce = False
    supports_refresh = False
    default_scopes = ["read:user", "user:email"]

    authorize_url = GITHUB_AUTH_URL
    token_url = GITHUB_TOKEN_URL

    def _api_headers(self, access_token: str) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {access_token}",
            "Accept": "application/vnd.github+json",
        }

    async def exchange_code_for_token(
        self, code: str, code_verifier: str | None = None
    ) -> ProviderTokens:
        async with self._http() as client:
            resp = await client.post(
                GITHUB_TOKEN_URL,
                json={
                    "client_id": self.client_id,
                    "client_secret": self.client_secret,
                    "code": code,
                    "redirect_uri": self.redirect_uri,
                },
                headers={"Accept": "application/json"},
            )
        self._raise_for_error(resp, "token exchange")
        data = resp.json()

        # GitHub reports bad codes with HTTP 200 and an error body
        if "error" in data:
            message = data.get("error_description") or data["error"]
            logger.warning("GitHub token exchange failed: %s", message)
            raise ProviderError(
                self.provider.value, message, status_code=resp.status_code, error=data["error"]
            )

        logger.info("Exchanged GitHub authorization code")
        return ProviderTokens(
            access_token=data["access_token"],
            token_type=data.get("token_type", "bearer"),
            scope=data.get("scope"),
        )

    async def get_user_profile(self, access_token: str) -> SocialProfile:
        headers = self._api_headers(access_token)
        async with self._http() as client:
            user_resp = await client.get(f"{GITHUB_API}/user", headers=headers)
            self._raise_for_error(user_resp, "profile fetch")
            emails_resp = await client.get(f"{GITHUB_API}/user/emails", headers=headers)
        user = user_resp.json()

        # Without user:email scope the emails call fails; fall back to the public email
        emails: list[dict[str, Any]] = []
        if emails_resp.is_success:
            emails = emails_resp.json()
        else:
            logger.warning(
                "GitHub email fetch failed (HTTP %d); using public profile email",
                emails_resp.status_code,
            )

        email, verified = self._pick_email(user, emails)
        return SocialProfile(
            provider=self.provider,
            provider_id=str(user["id"]),
            email=email,
            email_verified=verified,
            name=user.get("name") or user.get("login", ""),
            username=user.get("login"),
            picture=user.get("avatar_url"),
            raw=user,
        )

    @staticmethod
    def _pick_email(user: dict[str, Any], emails: list[dict[str, Any]]) -> tuple[str, bool]:
        """Primary verified address wins; then any verified one; then the public email."""
        for entry in emails:
            if entry.get("primary") and entry.get("verified"):
                return entry["email"], True
        for entry in emails:
            if entry.get("verified"):
                return entry["email"], True
        return user.get("email") or "", False

    async def refresh_token(self, refresh_token: str) -> ProviderTokens:
        raise UnsupportedCapabilityError(
            self.provider.value, "refresh", "GitHub does not support token refresh"
        )

    async def revoke_token(self, access_token: str) -> bool:
        """Delete the app's grant, which revokes every token it issued to the user."""
        async with self._http() as client:
            resp = await client.request(
                "DELETE",
                f"{GITHUB_API}/applications/{self.client_id}/grant",
                json={"access_token": access_token},
                auth=(self.client_id, self.client_secret),
                headers={"Accept": "application/vnd.github+json"},
            )
        # 404: grant already gone
        ok = resp.is_success or resp.status_code == 404
        if not ok:
            logger.warning("GitHub grant deletion failed (HTTP %d)", resp.status_code)
        return ok
