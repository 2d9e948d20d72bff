# Social login data models.
# Created: 2026-03-02

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class SocialProvider(str, Enum):
    GOOGLE = "google"
    GITHUB = "github"
    MICROSOFT = "microsoft"


@dataclass
class SocialProfile:
    """Identity as reported by an external provider, normalized."""

    provider: SocialProvider
    provider_id: str
    email: str
    name: str
    email_verified: bool = False
    first_name: str | None = None
    last_name: str | None = None
    username: str | None = None
    picture: str | None = None
    locale: str | None = None
    raw: dict[str, Any] = field(default_factory=dict, repr=False)


@dataclass
class ProviderTokens:
    """Token bundle returned by a provider's token endpoint."""

    access_token: str
    refresh_token: str | None = None
    expires_in: int | None = None  # seconds
    token_type: str = "Bearer"
    scope: str | None = None
    id_token: str | None = None

    @classmethod
    def from_response(cls, data: dict[str, Any]) -> ProviderTokens:
        return cls(
            access_token=data["access_token"],
            refresh_token=data.get("refresh_token"),
            expires_in=data.get("expires_in"),
            token_type=data.get("token_type", "Bearer"),
            scope=data.get("scope"),
            id_token=data.get("id_token"),
        )


@dataclass
class AuthorizationUrl:
    """Provider authorization URL and the PKCE verifier to keep for the exchange."""

    url: str
    code_verifier: str | None = None
    state: str = ""


@dataclass
class LinkedAccount:
    """A local user's link to one external identity."""

    user_id: str
    provider: SocialProvider
    provider_id: str
    email: str
    access_token: str
    name: str = ""
    picture: str | None = None
    refresh_token: str | None = None
    expires_at: float | None = None  # Unix timestamp; None = no known expiry
    linked_at: float = 0.0
    last_synced_at: float = 0.0

    def is_expired(self, now: float) -> bool:
        return self.expires_at is not None and now >= self.expires_at
