# OAuth2 data models.
# Created: 2026-03-02

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum


class GrantType(str, Enum):
    AUTHORIZATION_CODE = "authorization_code"
    CLIENT_CREDENTIALS = "client_credentials"
    REFRESH_TOKEN = "refresh_token"


def parse_scope(scope: str | None) -> list[str]:
    """Split a space-delimited scope string, dropping duplicates but keeping order."""
    seen: list[str] = []
    for item in (scope or "").split():
        if item not in seen:
            seen.append(item)
    return seen


def format_scope(scopes: list[str]) -> str:
    return " ".join(scopes)


@dataclass
class OAuthClient:
    """Registered OAuth2 client. Immutable once registered."""

    client_id: str
    client_secret: str
    client_name: str = ""
    redirect_uris: list[str] = field(default_factory=list)
    grant_types: list[GrantType] = field(default_factory=list)
    allowed_scopes: list[str] = field(default_factory=list)
    require_pkce: bool = False
    require_consent: bool = False
    trusted: bool = False  # first-party; never asked for consent
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @property
    def needs_consent(self) -> bool:
        return self.require_consent and not self.trusted

    def allows_grant(self, grant_type: GrantType) -> bool:
        return grant_type in self.grant_types

    def allows_scopes(self, scopes: list[str]) -> bool:
        return set(scopes).issubset(self.allowed_scopes)


@dataclass
class AuthorizationCode:
    """Short-lived, single-use authorization code."""

    code: str
    client_id: str
    user_id: str
    redirect_uri: str
    scope: str
    expires_at: datetime
    code_challenge: str | None = None
    code_challenge_method: str | None = None  # "S256" or "plain"
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    used: bool = False

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at


@dataclass
class OAuthToken:
    """Access token, plus the refresh token issued alongside it (if any).

    ``user_id`` is None for client-credentials tokens. Revoking either
    half of the pair revokes both.
    """

    access_token: str
    client_id: str
    scope: str
    expires_at: datetime
    user_id: str | None = None
    refresh_token: str | None = None
    refresh_expires_at: datetime | None = None
    token_type: str = "Bearer"
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    revoked: bool = False

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at

    def refresh_is_expired(self, now: datetime) -> bool:
        return self.refresh_expires_at is not None and now >= self.refresh_expires_at


@dataclass
class ConsentDecision:
    """A user's answer to a client's consent screen."""

    user_id: str
    client_id: str
    scope: list[str]
    approved: bool
    expires_at: datetime
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    def covers(self, scopes: list[str], now: datetime) -> bool:
        return self.approved and now < self.expires_at and set(scopes).issubset(self.scope)
