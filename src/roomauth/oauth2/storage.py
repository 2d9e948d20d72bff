# OAuth2 client, code and token storage.
# Created: 2026-03-02
#
# OAuthStorage is the seam between the authorization server and whatever
# keeps its state. Every mutation that decides a race (code consumption,
# refresh-token rotation, revocation) is a single compare-and-set call so
# a durable backend can implement it with a transaction or a conditional
# update.

from __future__ import annotations

import json
import logging
import threading
from abc import ABC, abstractmethod
from datetime import UTC, datetime
from pathlib import Path

from roomauth.oauth2.models import (
    AuthorizationCode,
    ConsentDecision,
    GrantType,
    OAuthClient,
    OAuthToken,
)

logger = logging.getLogger(__name__)


class OAuthStorage(ABC):
    """Client registry, authorization code store and token store."""

    # -- clients --

    @abstractmethod
    def save_client(self, client: OAuthClient) -> None: ...

    @abstractmethod
    def get_client(self, client_id: str) -> OAuthClient | None: ...

    # -- authorization codes --

    @abstractmethod
    def store_code(self, code: AuthorizationCode) -> None: ...

    @abstractmethod
    def get_code(self, code: str) -> AuthorizationCode | None: ...

    @abstractmethod
    def consume_code(self, code: str) -> bool:
        """Mark *code* used. Returns False if it was unknown or already used."""

    # -- tokens --

    @abstractmethod
    def store_token(self, token: OAuthToken) -> None: ...

    @abstractmethod
    def get_token(self, access_token: str) -> OAuthToken | None: ...

    @abstractmethod
    def get_token_by_refresh(self, refresh_token: str) -> OAuthToken | None: ...

    @abstractmethod
    def revoke_token(self, token: str) -> bool:
        """Revoke the pair that *token* (access or refresh value) belongs to."""

    @abstractmethod
    def rotate_refresh_token(self, refresh_token: str, replacement: OAuthToken) -> bool:
        """Revoke the pair holding *refresh_token* and store *replacement*.

        Returns False, storing nothing, if the pair is unknown or already revoked.
        """

    @abstractmethod
    def revoke_user_tokens(self, user_id: str, client_id: str | None = None) -> int:
        """Revoke every live token of *user_id*, optionally limited to one client."""

    # -- consent --

    @abstractmethod
    def save_consent(self, consent: ConsentDecision) -> None:
        """Store *consent*, replacing any earlier decision for the same user and client."""

    @abstractmethod
    def get_consent(self, user_id: str, client_id: str) -> ConsentDecision | None: ...

    @abstractmethod
    def delete_consent(self, user_id: str, client_id: str) -> bool: ...

    @abstractmethod
    def cleanup_expired(self, now: datetime | None = None) -> None: ...


class MemoryOAuthStorage(OAuthStorage):
    """In-process storage guarded by a single re-entrant lock."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._clients: dict[str, OAuthClient] = {}
        self._codes: dict[str, AuthorizationCode] = {}
        self._tokens: dict[str, OAuthToken] = {}  # keyed by access_token
        self._refresh_index: dict[str, str] = {}  # refresh_token → access_token
        self._consents: dict[tuple[str, str], ConsentDecision] = {}  # (user_id, client_id)

    def _persist(self) -> None:
        """Hook called after every durable mutation."""

    def save_client(self, client: OAuthClient) -> None:
        with self._lock:
            self._clients[client.client_id] = client
            self._persist()

    def get_client(self, client_id: str) -> OAuthClient | None:
        return self._clients.get(client_id)

    def store_code(self, code: AuthorizationCode) -> None:
        with self._lock:
            self._codes[code.code] = code

    def get_code(self, code: str) -> AuthorizationCode | None:
        return self._codes.get(code)

    def consume_code(self, code: str) -> bool:
        with self._lock:
            auth_code = self._codes.get(code)
            if auth_code is None or auth_code.used:
                return False
            auth_code.used = True
            return True

    def store_token(self, token: OAuthToken) -> None:
        with self._lock:
            self._index(token)
            self._persist()

    def _index(self, token: OAuthToken) -> None:
        self._tokens[token.access_token] = token
        if token.refresh_token:
            self._refresh_index[token.refresh_token] = token.access_token

    def get_token(self, access_token: str) -> OAuthToken | None:
        return self._tokens.get(access_token)

    def get_token_by_refresh(self, refresh_token: str) -> OAuthToken | None:
        access_token = self._refresh_index.get(refresh_token)
        if access_token:
            return self._tokens.get(access_token)
        return None

    def revoke_token(self, token: str) -> bool:
        with self._lock:
            record = self._tokens.get(token) or self.get_token_by_refresh(token)
            if record is None or record.revoked:
                return False
            record.revoked = True
            self._persist()
            return True

    def rotate_refresh_token(self, refresh_token: str, replacement: OAuthToken) -> bool:
        with self._lock:
            old = self.get_token_by_refresh(refresh_token)
            if old is None or old.revoked:
                return False
            old.revoked = True
            self._index(replacement)
            self._persist()
            return True

    def revoke_user_tokens(self, user_id: str, client_id: str | None = None) -> int:
        with self._lock:
            count = 0
            for token in self._tokens.values():
                if token.revoked or token.user_id != user_id:
                    continue
                if client_id is not None and token.client_id != client_id:
                    continue
                token.revoked = True
                count += 1
            if count:
                self._persist()
            return count

    def save_consent(self, consent: ConsentDecision) -> None:
        with self._lock:
            self._consents[(consent.user_id, consent.client_id)] = consent
            self._persist()

    def get_consent(self, user_id: str, client_id: str) -> ConsentDecision | None:
        return self._consents.get((user_id, client_id))

    def delete_consent(self, user_id: str, client_id: str) -> bool:
        with self._lock:
            removed = self._consents.pop((user_id, client_id), None)
            if removed is not None:
                self._persist()
            return removed is not None

    def cleanup_expired(self, now: datetime | None = None) -> None:
        """Drop used/expired codes, expired consents and tokens whose every half has expired."""
        now = now or datetime.now(UTC)
        with self._lock:
            expired_codes = [k for k, v in self._codes.items() if v.used or v.is_expired(now)]
            for k in expired_codes:
                del self._codes[k]

            expired_tokens = [
                k
                for k, v in self._tokens.items()
                if v.is_expired(now) and (v.refresh_token is None or v.refresh_is_expired(now))
            ]
            for k in expired_tokens:
                token = self._tokens.pop(k)
                if token.refresh_token:
                    self._refresh_index.pop(token.refresh_token, None)

            expired_consents = [k for k, v in self._consents.items() if now >= v.expires_at]
            for k in expired_consents:
                del self._consents[k]

            if expired_tokens or expired_consents:
                self._persist()
            logger.debug(
                "Swept %d codes and %d tokens", len(expired_codes), len(expired_tokens)
            )


def _dt(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


class FileOAuthStorage(MemoryOAuthStorage):
    """Memory storage mirrored to a JSON file after every durable mutation.

    Clients, tokens and consents are written out; authorization codes never
    leave memory. A failed write is logged and the in-memory state stays
    authoritative, so a grant that already changed state still returns.
    """

    def __init__(self, persist_path: Path):
        super().__init__()
        self._persist_path = persist_path
        self._load()

    def _load(self) -> None:
        path = self._persist_path
        if not path.exists():
            return
        try:
            data = json.loads(path.read_text())
            for entry in data.get("clients", []):
                client = OAuthClient(
                    client_id=entry["client_id"],
                    client_secret=entry["client_secret"],
                    client_name=entry.get("client_name", ""),
                    redirect_uris=entry.get("redirect_uris", []),
                    grant_types=[GrantType(g) for g in entry.get("grant_types", [])],
                    allowed_scopes=entry.get("allowed_scopes", []),
                    require_pkce=entry.get("require_pkce", False),
                    require_consent=entry.get("require_consent", False),
                    trusted=entry.get("trusted", False),
                    created_at=_dt(entry.get("created_at")) or datetime.now(UTC),
                )
                self._clients[client.client_id] = client
            for entry in data.get("tokens", []):
                token = OAuthToken(
                    access_token=entry["access_token"],
                    client_id=entry["client_id"],
                    scope=entry["scope"],
                    expires_at=datetime.fromisoformat(entry["expires_at"]),
                    user_id=entry.get("user_id"),
                    refresh_token=entry.get("refresh_token"),
                    refresh_expires_at=_dt(entry.get("refresh_expires_at")),
                    token_type=entry.get("token_type", "Bearer"),
                    created_at=_dt(entry.get("created_at")) or datetime.now(UTC),
                    revoked=entry.get("revoked", False),
                )
                self._index(token)
            for entry in data.get("consents", []):
                consent = ConsentDecision(
                    user_id=entry["user_id"],
                    client_id=entry["client_id"],
                    scope=entry.get("scope", []),
                    approved=entry.get("approved", False),
                    expires_at=datetime.fromisoformat(entry["expires_at"]),
                    created_at=_dt(entry.get("created_at")) or datetime.now(UTC),
                )
                self._consents[(consent.user_id, consent.client_id)] = consent
            logger.debug(
                "Loaded %d OAuth clients, %d tokens and %d consents from %s",
                len(self._clients),
                len(self._tokens),
                len(self._consents),
                path,
            )
        except (json.JSONDecodeError, OSError, KeyError, ValueError) as exc:
            logger.warning("Failed to load OAuth state from %s: %s", path, exc)

    def _persist(self) -> None:
        path = self._persist_path
        data = {
            "clients": [
                {
                    "client_id": c.client_id,
                    "client_secret": c.client_secret,
                    "client_name": c.client_name,
                    "redirect_uris": c.redirect_uris,
                    "grant_types": [g.value for g in c.grant_types],
                    "allowed_scopes": c.allowed_scopes,
                    "require_pkce": c.require_pkce,
                    "require_consent": c.require_consent,
                    "trusted": c.trusted,
                    "created_at": c.created_at.isoformat(),
                }
                for c in self._clients.values()
            ],
            "tokens": [
                {
                    "access_token": t.access_token,
                    "client_id": t.client_id,
                    "scope": t.scope,
                    "expires_at": t.expires_at.isoformat(),
                    "user_id": t.user_id,
                    "refresh_token": t.refresh_token,
                    "refresh_expires_at": t.refresh_expires_at.isoformat()
                    if t.refresh_expires_at
                    else None,
                    "token_type": t.token_type,
                    "created_at": t.created_at.isoformat(),
                    "revoked": t.revoked,
                }
                for t in self._tokens.values()
            ],
            "consents": [
                {
                    "user_id": c.user_id,
                    "client_id": c.client_id,
                    "scope": c.scope,
                    "approved": c.approved,
                    "expires_at": c.expires_at.isoformat(),
                    "created_at": c.created_at.isoformat(),
                }
                for c in self._consents.values()
            ],
        }
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(json.dumps(data, indent=2))
        except OSError as exc:
            logger.warning("Failed to persist OAuth state to %s: %s", path, exc)
            return
        try:
            path.chmod(0o600)
        except OSError:
            pass
