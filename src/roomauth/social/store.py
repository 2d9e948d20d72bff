# Linked account storage.
# Created: 2026-03-02
#
# The uniqueness rules for linking are enforced inside link() under the
# store's lock, so two concurrent attempts on the same external identity
# cannot both pass the check.

from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from collections.abc import Callable

from roomauth.social.errors import AccountLinkingError
from roomauth.social.models import LinkedAccount, SocialProvider

logger = logging.getLogger(__name__)


class LinkedAccountStore(ABC):
    """Persistence for LinkedAccount records."""

    @abstractmethod
    def link(
        self,
        account: LinkedAccount,
        *,
        single_per_provider: bool,
        update: Callable[[LinkedAccount], None],
    ) -> LinkedAccount:
        """Insert *account*, or apply *update* to the existing identical link.

        Raises AccountLinkingError if the external identity belongs to another
        user, or, with *single_per_provider*, if the user already holds a
        different identity at the same provider.
        """

    @abstractmethod
    def save(self, account: LinkedAccount) -> None:
        """Persist in-place changes to an existing link (tokens, profile fields)."""

    @abstractmethod
    def unlink(self, user_id: str, provider: SocialProvider) -> list[LinkedAccount]:
        """Remove and return every link of *user_id* at *provider*."""

    @abstractmethod
    def list_for_user(self, user_id: str) -> list[LinkedAccount]: ...

    @abstractmethod
    def find(self, provider: SocialProvider, provider_id: str) -> LinkedAccount | None: ...

    @abstractmethod
    def all(self) -> list[LinkedAccount]: ...


class MemoryLinkedAccountStore(LinkedAccountStore):
    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._by_user: dict[str, list[LinkedAccount]] = {}
        self._by_identity: dict[tuple[SocialProvider, str], LinkedAccount] = {}

    def link(
        self,
        account: LinkedAccount,
        *,
        single_per_provider: bool,
        update: Callable[[LinkedAccount], None],
    ) -> LinkedAccount:
        key = (account.provider, account.provider_id)
        with self._lock:
            existing = self._by_identity.get(key)
            if existing is not None:
                if existing.user_id != account.user_id:
                    raise AccountLinkingError("Social account already linked to another user")
                update(existing)
                return existing

            links = self._by_user.setdefault(account.user_id, [])
            if single_per_provider and any(link.provider == account.provider for link in links):
                raise AccountLinkingError(
                    f"User already has a linked {account.provider.value} account"
                )

            links.append(account)
            self._by_identity[key] = account
            return account

    def save(self, account: LinkedAccount) -> None:
        with self._lock:
            key = (account.provider, account.provider_id)
            current = self._by_identity.get(key)
            if current is None or current is account:
                return
            links = self._by_user.get(account.user_id, [])
            self._by_user[account.user_id] = [
                account if link is current else link for link in links
            ]
            self._by_identity[key] = account

    def unlink(self, user_id: str, provider: SocialProvider) -> list[LinkedAccount]:
        with self._lock:
            links = self._by_user.get(user_id, [])
            removed = [link for link in links if link.provider == provider]
            if not removed:
                return []
            remaining = [link for link in links if link.provider != provider]
            if remaining:
                self._by_user[user_id] = remaining
            else:
                del self._by_user[user_id]
            for link in removed:
                self._by_identity.pop((link.provider, link.provider_id), None)
            return removed

    def list_for_user(self, user_id: str) -> list[LinkedAccount]:
        return list(self._by_user.get(user_id, []))

    def find(self, provider: SocialProvider, provider_id: str) -> LinkedAccount | None:
        return self._by_identity.get((provider, provider_id))

    def all(self) -> list[LinkedAccount]:
        with self._lock:
            return [link for links in self._by_user.values() for link in links]
