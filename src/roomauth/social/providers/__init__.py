# Provider adapters.
# Created: 2026-03-02

from __future__ import annotations

import httpx

from roomauth.social.models import SocialProvider
from roomauth.social.providers.base import DEFAULT_TIMEOUT, SocialOAuthClient
from roomauth.social.providers.github import GitHubOAuthClient
from roomauth.social.providers.google import GoogleOAuthClient
from roomauth.social.providers.microsoft import MicrosoftOAuthClient

__all__ = [
    "GitHubOAuthClient",
    "GoogleOAuthClient",
    "MicrosoftOAuthClient",
    "SocialOAuthClient",
    "create_provider_client",
]


def create_provider_client(
    provider: SocialProvider | str,
    client_id: str,
    client_secret: str,
    redirect_uri: str,
    *,
    tenant: str = "common",
    timeout: float = DEFAULT_TIMEOUT,
    transport: httpx.AsyncBaseTransport | None = None,
) -> SocialOAuthClient:
    """Construct the adapter for *provider*."""
    provider = SocialProvider(provider)
    if provider is SocialProvider.GOOGLE:
        return GoogleOAuthClient(
            client_id, client_secret, redirect_uri, timeout=timeout, transport=transport
        )
    if provider is SocialProvider.GITHUB:
        return GitHubOAuthClient(
            client_id, client_secret, redirect_uri, timeout=timeout, transport=transport
        )
    return MicrosoftOAuthClient(
        client_id,
        client_secret,
        redirect_uri,
        tenant=tenant,
        timeout=timeout,
        transport=transport,
    )
