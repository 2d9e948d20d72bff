# Social Login Service — account linking, profile sync, token lifecycle.
# Created: 2026-03-02
#
# Sits above the provider adapters. Turns a completed provider login into a
# durable LinkedAccount and keeps that link's access token usable.

from __future__ import annotations

import asyncio
import logging
import secrets
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any, Literal

from roomauth import lifecycle
from roomauth.social.errors import (
    AccountNotLinkedError,
    InvalidStateError,
    ProviderNotConfiguredError,
    TokenExpiredError,
)
from roomauth.social.models import (
    AuthorizationUrl,
    LinkedAccount,
    ProviderTokens,
    SocialProfile,
    SocialProvider,
)
from roomauth.social.providers import SocialOAuthClient, create_provider_client
from roomauth.social.store import LinkedAccountStore, MemoryLinkedAccountStore

logger = logging.getLogger(__name__)

LinkingStrategy = Literal["single", "multiple"]

STATE_TTL = 600  # seconds
PROFILE_SYNC_INTERVAL = 24 * 3600


@dataclass
class _PendingLogin:
    provider: SocialProvider
    code_verifier: str | None
    expires_at: float


class SocialLoginService:
    """Links external identities to local users.

    Linking strategies:
      - ``single``: one linked account per provider per user.
      - ``multiple``: a user may link several accounts at the same provider.

    Under both, an external identity belongs to at most one user.
    """

    def __init__(
        self,
        providers: Mapping[SocialProvider | str, SocialOAuthClient] | None = None,
        *,
        account_linking_strategy: LinkingStrategy = "single",
        store: LinkedAccountStore | None = None,
        profile_sync_interval: float | None = PROFILE_SYNC_INTERVAL,
        clock: Callable[[], float] = time.time,
    ):
        if account_linking_strategy not in ("single", "multiple"):
            raise ValueError(f"Unknown account linking strategy: {account_linking_strategy}")
        self.account_linking_strategy = account_linking_strategy
        self.store = store or MemoryLinkedAccountStore()
        self.profile_sync_interval = profile_sync_interval
        self._clock = clock
        self._providers: dict[SocialProvider, SocialOAuthClient] = {}
        self._pending: dict[str, _PendingLogin] = {}
        self._refresh_locks: dict[tuple[SocialProvider, str], asyncio.Lock] = {}
        for client in (providers or {}).values():
            self.register_provider(client)

    # ------------------------------------------------------------------
    # Providers
    # ------------------------------------------------------------------

    def register_provider(self, client: SocialOAuthClient) -> None:
        self._providers[client.provider] = client

    def get_provider(self, provider: SocialProvider | str) -> SocialOAuthClient:
        client = self._providers.get(SocialProvider(provider))
        if client is None:
            raise ProviderNotConfiguredError(
                f"OAuth client not registered for provider: {provider}"
            )
        return client

    @property
    def providers(self) -> list[SocialProvider]:
        return list(self._providers)

    # ------------------------------------------------------------------
    # Login round trip
    # ------------------------------------------------------------------

    def begin_login(
        self, provider: SocialProvider | str, scope: str | None = None, **extra: Any
    ) -> AuthorizationUrl:
        """Start a provider login with a fresh CSRF ``state``.

        The PKCE verifier (if any) is remembered server-side until
        complete_login() or expiry.
        """
        client = self.get_provider(provider)
        self._sweep_pending()
        state = secrets.token_urlsafe(32)
        auth = client.get_authorization_url(scope=scope, state=state, **extra)
        self._pending[state] = _PendingLogin(
            provider=client.provider,
            code_verifier=auth.code_verifier,
            expires_at=self._clock() + STATE_TTL,
        )
        return auth

    async def complete_login(
        self, code: str, state: str
    ) -> tuple[SocialProfile, ProviderTokens]:
        """Finish a login started by begin_login(). Each state works once."""
        pending = self._pending.pop(state, None)
        if pending is None:
            raise InvalidStateError("Invalid or expired state")
        if self._clock() >= pending.expires_at:
            raise InvalidStateError("State expired")

        client = self.get_provider(pending.provider)
        tokens = await client.exchange_code_for_token(code, pending.code_verifier)
        profile = await client.get_user_profile(tokens.access_token)
        return profile, tokens

    def _sweep_pending(self) -> None:
        now = self._clock()
        for state in [s for s, p in self._pending.items() if now >= p.expires_at]:
            del self._pending[state]

    # ------------------------------------------------------------------
    # Linking
    # ------------------------------------------------------------------

    async def link_account(
        self, user_id: str, profile: SocialProfile, tokens: ProviderTokens
    ) -> LinkedAccount:
        """Link *profile* to *user_id*, storing the token bundle.

        Linking an identity the user already holds updates it in place.

        Raises:
            AccountLinkingError: identity linked to another user, or (single
                strategy) the user already holds another account at this provider.
        """
        now = self._clock()
        expires_at = now + tokens.expires_in if tokens.expires_in else None

        def _update(existing: LinkedAccount) -> None:
            existing.email = profile.email
            existing.name = profile.name
            existing.picture = profile.picture
            existing.access_token = tokens.access_token
            existing.refresh_token = tokens.refresh_token or existing.refresh_token
            existing.expires_at = expires_at
            existing.last_synced_at = now

        account = LinkedAccount(
            user_id=user_id,
            provider=SocialProvider(profile.provider),
            provider_id=profile.provider_id,
            email=profile.email,
            name=profile.name,
            picture=profile.picture,
            access_token=tokens.access_token,
            refresh_token=tokens.refresh_token,
            expires_at=expires_at,
            linked_at=now,
            last_synced_at=now,
        )
        linked = self.store.link(
            account,
            single_per_provider=self.account_linking_strategy == "single",
            update=_update,
        )
        self.store.save(linked)
        logger.info("Linked %s account to user %s", linked.provider.value, user_id)
        return linked

    async def unlink_account(
        self, user_id: str, provider: SocialProvider | str, *, revoke_tokens: bool = False
    ) -> bool:
        """Remove every link *user_id* holds at *provider*.

        With *revoke_tokens*, also asks the provider to revoke each removed
        link's token; a failed revoke is logged and does not undo the unlink.
        """
        provider = SocialProvider(provider)
        removed = self.store.unlink(user_id, provider)
        if not removed:
            return False

        if revoke_tokens and provider in self._providers:
            client = self._providers[provider]
            for link in removed:
                try:
                    await client.revoke_token(link.access_token)
                except Exception as exc:
                    logger.warning("Failed to revoke %s token: %s", provider.value, exc)

        for link in removed:
            self._refresh_locks.pop((link.provider, link.provider_id), None)
        logger.info(
            "Unlinked %d %s account(s) from user %s", len(removed), provider.value, user_id
        )
        return True

    def get_linked_accounts(self, user_id: str) -> list[LinkedAccount]:
        """Links of *user_id* in the order they were created."""
        return self.store.list_for_user(user_id)

    def get_linked_account(
        self, user_id: str, provider: SocialProvider | str
    ) -> LinkedAccount | None:
        provider = SocialProvider(provider)
        for link in self.store.list_for_user(user_id):
            if link.provider == provider:
                return link
        return None

    def find_user_by_provider(
        self, provider: SocialProvider | str, provider_id: str
    ) -> str | None:
        link = self.store.find(SocialProvider(provider), provider_id)
        return link.user_id if link else None

    def find_user_by_email(self, email: str) -> str | None:
        """Case-insensitive lookup over linked account emails."""
        wanted = email.lower()
        for link in self.store.all():
            if link.email and link.email.lower() == wanted:
                return link.user_id
        return None

    # ------------------------------------------------------------------
    # Tokens and profile sync
    # ------------------------------------------------------------------

    def _require_link(self, user_id: str, provider: SocialProvider | str) -> LinkedAccount:
        link = self.get_linked_account(user_id, provider)
        if link is None:
            raise AccountNotLinkedError(f"No linked {SocialProvider(provider).value} account")
        return link

    async def get_access_token(self, user_id: str, provider: SocialProvider | str) -> str:
        """Return a usable access token, refreshing it first if it has expired.

        Raises:
            TokenExpiredError: expired, and there is no refresh token or the
                provider cannot refresh.
        """
        link = self._require_link(user_id, provider)
        if not link.is_expired(self._clock()):
            return link.access_token

        key = (link.provider, link.provider_id)
        lock = self._refresh_locks.setdefault(key, asyncio.Lock())
        async with lock:
            # Another task may have refreshed while we waited
            if not link.is_expired(self._clock()):
                return link.access_token
            if not link.refresh_token:
                raise TokenExpiredError("Token expired and no refresh token available")

            client = self.get_provider(link.provider)
            if not client.supports_refresh:
                raise TokenExpiredError(
                    f"Token expired and {client.display_name} does not support token refresh"
                )
            tokens = await client.refresh_token(link.refresh_token)
            link.access_token = tokens.access_token
            if tokens.refresh_token:
                link.refresh_token = tokens.refresh_token
            link.expires_at = self._clock() + tokens.expires_in if tokens.expires_in else None
            self.store.save(link)
            logger.info("Refreshed %s token for user %s", link.provider.value, user_id)
            return link.access_token

    async def sync_profile(self, user_id: str, provider: SocialProvider | str) -> SocialProfile:
        """Fetch a fresh profile and copy email, name and picture onto the link."""
        access_token = await self.get_access_token(user_id, provider)
        link = self._require_link(user_id, provider)
        profile = await self.get_provider(link.provider).get_user_profile(access_token)

        link.email = profile.email
        link.name = profile.name
        link.picture = profile.picture
        link.last_synced_at = self._clock()
        self.store.save(link)
        logger.debug("Synced %s profile for user %s", link.provider.value, user_id)
        return profile

    def needs_profile_sync(self, user_id: str, provider: SocialProvider | str) -> bool:
        link = self.get_linked_account(user_id, provider)
        if link is None or not self.profile_sync_interval:
            return False
        return self._clock() - link.last_synced_at > self.profile_sync_interval


# Singleton
_service: SocialLoginService | None = None


def get_social_login_service() -> SocialLoginService:
    """Shared service with every provider that has credentials configured."""
    global _service
    if _service is None:
        from roomauth.config import get_settings

        settings = get_settings()
        configured = {
            SocialProvider.GOOGLE: (
                settings.google_client_id,
                settings.google_client_secret,
                settings.google_redirect_uri,
            ),
            SocialProvider.GITHUB: (
                settings.github_client_id,
                settings.github_client_secret,
                settings.github_redirect_uri,
            ),
            SocialProvider.MICROSOFT: (
                settings.microsoft_client_id,
                settings.microsoft_client_secret,
                settings.microsoft_redirect_uri,
            ),
        }
        providers = {
            provider: create_provider_client(
                provider,
                client_id,
                secret.get_secret_value(),
                redirect_uri,
                tenant=settings.microsoft_tenant,
                timeout=settings.http_timeout,
            )
            for provider, (client_id, secret, redirect_uri) in configured.items()
            if client_id
        }
        _service = SocialLoginService(
            providers,
            account_linking_strategy=settings.account_linking_strategy,
            profile_sync_interval=settings.profile_sync_interval,
        )
        lifecycle.register("social_login_service", reset=reset_social_login_service)
    return _service


def reset_social_login_service() -> None:
    global _service
    _service = None
