# OAuth2 Authorization Server.
# Created: 2026-03-02
#
# Authorization code flow (RFC 6749 §4.1) with optional PKCE (RFC 7636),
# client credentials (§4.4) and refresh token rotation (§6). All state
# lives in the injected OAuthStorage; the server itself only orchestrates.
#
# Grant handlers never raise for validation failures. They return
# (result, error) where exactly one of the two is None.

from __future__ import annotations

import hmac
import logging
import secrets
from collections.abc import Callable
from datetime import UTC, datetime, timedelta

from roomauth import lifecycle
from roomauth.oauth2 import errors
from roomauth.oauth2.errors import OAuthError
from roomauth.oauth2.models import (
    AuthorizationCode,
    ConsentDecision,
    GrantType,
    OAuthClient,
    OAuthToken,
    format_scope,
    parse_scope,
)
from roomauth.oauth2.pkce import SUPPORTED_METHODS, verify_code_verifier
from roomauth.oauth2.schemas import (
    AuthorizationRequest,
    AuthorizationResponse,
    ClientRegistration,
    TokenRequest,
    TokenResponse,
    TokenValidation,
)
from roomauth.oauth2.storage import FileOAuthStorage, MemoryOAuthStorage, OAuthStorage

logger = logging.getLogger(__name__)

# Token lifetimes
ACCESS_TOKEN_TTL = timedelta(hours=1)
REFRESH_TOKEN_TTL = timedelta(days=30)
CODE_TTL = timedelta(minutes=10)
CONSENT_TTL = timedelta(days=90)

SCOPE_DESCRIPTIONS = {
    "openid": "Authenticate your identity",
    "profile": "Access your profile information (name, picture)",
    "email": "Access your email address",
    "read": "Read your data",
    "write": "Modify your data",
    "admin": "Full administrative access",
}

TokenResult = tuple[TokenResponse | None, OAuthError | None]


def _secret_matches(expected: str, supplied: str | None) -> bool:
    if supplied is None:
        return False
    return hmac.compare_digest(expected.encode(), supplied.encode())


class AuthorizationServer:
    """OAuth2 authorization server."""

    def __init__(
        self,
        storage: OAuthStorage | None = None,
        *,
        access_token_ttl: timedelta = ACCESS_TOKEN_TTL,
        refresh_token_ttl: timedelta = REFRESH_TOKEN_TTL,
        code_ttl: timedelta = CODE_TTL,
        consent_ttl: timedelta = CONSENT_TTL,
        clock: Callable[[], datetime] | None = None,
    ):
        self.storage = storage or MemoryOAuthStorage()
        self.access_token_ttl = access_token_ttl
        self.refresh_token_ttl = refresh_token_ttl
        self.code_ttl = code_ttl
        self.consent_ttl = consent_ttl
        self._clock = clock or (lambda: datetime.now(UTC))

    # ------------------------------------------------------------------
    # Client registry
    # ------------------------------------------------------------------

    def register_client(
        self, registration: ClientRegistration | None = None, **fields
    ) -> OAuthClient:
        """Register a client, generating its id and secret.

        Accepts a ClientRegistration or the same fields as keyword arguments.
        """
        if registration is None:
            registration = ClientRegistration(**fields)
        if not registration.grant_types:
            raise ValueError("At least one grant type is required")
        if (
            GrantType.AUTHORIZATION_CODE in registration.grant_types
            and not registration.redirect_uris
        ):
            raise ValueError("At least one redirect URI is required for authorization_code")

        client = OAuthClient(
            client_id=f"client_{secrets.token_hex(12)}",
            client_secret=secrets.token_urlsafe(32),
            client_name=registration.client_name,
            redirect_uris=list(registration.redirect_uris),
            grant_types=list(registration.grant_types),
            allowed_scopes=list(registration.allowed_scopes),
            require_pkce=registration.require_pkce,
            require_consent=registration.require_consent,
            trusted=registration.trusted,
            created_at=self._clock(),
        )
        self.storage.save_client(client)
        logger.info(
            "Registered OAuth client %s (%s)", client.client_id, client.client_name or "unnamed"
        )
        return client

    def get_client(self, client_id: str) -> OAuthClient | None:
        return self.storage.get_client(client_id)

    # ------------------------------------------------------------------
    # Authorization endpoint
    # ------------------------------------------------------------------

    def authorize(
        self, request: AuthorizationRequest, user_id: str
    ) -> tuple[AuthorizationResponse | None, OAuthError | None]:
        """Issue an authorization code for *user_id*.

        The ``state`` value is passed back untouched. Clients that require
        consent (and are not trusted) get ``consent_required`` until
        store_consent() records an approval covering the requested scopes.
        """
        client = self.storage.get_client(request.client_id)
        if client is None:
            return None, errors.INVALID_CLIENT

        if request.redirect_uri not in client.redirect_uris:
            return None, errors.INVALID_REDIRECT_URI

        if request.response_type != "code":
            return None, errors.UNSUPPORTED_RESPONSE_TYPE

        requested = parse_scope(request.scope)
        if not requested or not client.allows_scopes(requested):
            return None, errors.INVALID_SCOPE

        if client.require_pkce and not request.code_challenge:
            return None, errors.PKCE_REQUIRED

        method = None
        if request.code_challenge:
            method = request.code_challenge_method or "S256"
            if method not in SUPPORTED_METHODS:
                return None, errors.INVALID_CHALLENGE_METHOD

        if client.needs_consent and not self.has_consent(user_id, client.client_id, requested):
            return None, errors.CONSENT_REQUIRED

        now = self._clock()
        auth_code = AuthorizationCode(
            code=secrets.token_urlsafe(32),
            client_id=client.client_id,
            user_id=user_id,
            redirect_uri=request.redirect_uri,
            scope=format_scope(requested),
            expires_at=now + self.code_ttl,
            code_challenge=request.code_challenge or None,
            code_challenge_method=method,
            created_at=now,
        )
        self.storage.store_code(auth_code)
        return AuthorizationResponse(code=auth_code.code, state=request.state), None

    # ------------------------------------------------------------------
    # Token endpoint
    # ------------------------------------------------------------------

    def token(self, request: TokenRequest) -> TokenResult:
        """Dispatch a token request to the handler for its grant type."""
        if request.grant_type == GrantType.AUTHORIZATION_CODE.value:
            return self.exchange_code_for_token(request)
        if request.grant_type == GrantType.CLIENT_CREDENTIALS.value:
            return self.client_credentials_grant(
                request.client_id, request.client_secret, request.scope or ""
            )
        if request.grant_type == GrantType.REFRESH_TOKEN.value:
            return self.refresh_token_grant(
                request.refresh_token or "",
                request.client_id,
                request.client_secret,
                request.scope,
            )
        return None, errors.UNSUPPORTED_GRANT_TYPE

    def exchange_code_for_token(self, request: TokenRequest) -> TokenResult:
        """Exchange an authorization code (plus verifier or secret) for tokens.

        Nothing is consumed unless every check passes.
        """
        if request.grant_type != GrantType.AUTHORIZATION_CODE.value:
            return None, errors.UNSUPPORTED_GRANT_TYPE

        auth_code = self.storage.get_code(request.code or "")
        now = self._clock()
        if auth_code is None or auth_code.used or auth_code.is_expired(now):
            if auth_code is not None and auth_code.used:
                logger.warning("Replay of authorization code for client %s", auth_code.client_id)
            return None, errors.INVALID_CODE

        if auth_code.client_id != request.client_id:
            return None, errors.INVALID_CODE

        if auth_code.redirect_uri != request.redirect_uri:
            return None, errors.INVALID_REDIRECT_URI

        client = self.storage.get_client(auth_code.client_id)
        if client is None:
            return None, errors.INVALID_CLIENT

        if auth_code.code_challenge:
            if not verify_code_verifier(
                request.code_verifier or "",
                auth_code.code_challenge,
                auth_code.code_challenge_method or "S256",
            ):
                return None, errors.INVALID_CODE_VERIFIER
            if request.client_secret is not None and not _secret_matches(
                client.client_secret, request.client_secret
            ):
                return None, errors.INVALID_CLIENT_CREDENTIALS
        elif not _secret_matches(client.client_secret, request.client_secret):
            return None, errors.INVALID_CLIENT_CREDENTIALS

        # Compare-and-set: only one concurrent exchange can win the code
        if not self.storage.consume_code(auth_code.code):
            logger.warning("Lost race for authorization code (client %s)", client.client_id)
            return None, errors.INVALID_CODE

        token = self._new_token(
            client,
            user_id=auth_code.user_id,
            scope=auth_code.scope,
            with_refresh=client.allows_grant(GrantType.REFRESH_TOKEN),
        )
        self.storage.store_token(token)
        logger.info("Issued tokens for user %s via client %s", auth_code.user_id, client.client_id)
        return self._response(token), None

    def client_credentials_grant(
        self, client_id: str, client_secret: str | None, scope: str = ""
    ) -> TokenResult:
        """Machine-to-machine grant. Issues an access token only."""
        client = self.storage.get_client(client_id)
        if client is None:
            return None, errors.INVALID_CLIENT

        if not client.allows_grant(GrantType.CLIENT_CREDENTIALS):
            return None, errors.UNAUTHORIZED_GRANT_TYPE

        if not _secret_matches(client.client_secret, client_secret):
            return None, errors.INVALID_CLIENT_CREDENTIALS

        # An empty request is allowed here and yields a token with no scope
        requested = parse_scope(scope)
        if not client.allows_scopes(requested):
            return None, errors.INVALID_SCOPE

        token = self._new_token(client, user_id=None, scope=format_scope(requested))
        self.storage.store_token(token)
        logger.info("Issued client credentials token for %s", client.client_id)
        return self._response(token), None

    def refresh_token_grant(
        self,
        refresh_token: str,
        client_id: str,
        client_secret: str | None = None,
        scope: str | None = None,
    ) -> TokenResult:
        """Rotate *refresh_token* into a new access + refresh token pair.

        The presented refresh token is permanently invalidated on success.
        """
        client = self.storage.get_client(client_id)
        if client is None:
            return None, errors.INVALID_CLIENT

        if not client.allows_grant(GrantType.REFRESH_TOKEN):
            return None, errors.UNAUTHORIZED_GRANT_TYPE

        if client_secret is not None or not client.require_pkce:
            if not _secret_matches(client.client_secret, client_secret):
                return None, errors.INVALID_CLIENT_CREDENTIALS

        old = self.storage.get_token_by_refresh(refresh_token)
        now = self._clock()
        if (
            old is None
            or old.revoked
            or old.client_id != client.client_id
            or old.refresh_is_expired(now)
        ):
            if old is not None and old.revoked:
                logger.warning("Reuse of revoked refresh token for client %s", client.client_id)
            return None, errors.INVALID_REFRESH_TOKEN

        granted = parse_scope(old.scope)
        if scope:
            requested = parse_scope(scope)
            if not set(requested).issubset(granted):
                return None, errors.SCOPE_EXPANSION
            granted = requested

        token = self._new_token(
            client, user_id=old.user_id, scope=format_scope(granted), with_refresh=True
        )
        # Compare-and-set: exactly one concurrent refresh can rotate the token
        if not self.storage.rotate_refresh_token(refresh_token, token):
            return None, errors.INVALID_REFRESH_TOKEN

        logger.info("Rotated refresh token for client %s", client.client_id)
        return self._response(token), None

    # ------------------------------------------------------------------
    # Validation and revocation
    # ------------------------------------------------------------------

    def validate_access_token(self, access_token: str) -> TokenValidation:
        token = self.storage.get_token(access_token)
        if token is None:
            return TokenValidation(valid=False, error="Invalid access token")
        if token.revoked:
            return TokenValidation(valid=False, error="Token has been revoked")
        if token.is_expired(self._clock()):
            return TokenValidation(valid=False, error="Token has expired")
        return TokenValidation(
            valid=True,
            user_id=token.user_id,
            client_id=token.client_id,
            scope=token.scope,
            expires_at=token.expires_at,
        )

    def revoke_token(self, token: str) -> bool:
        """Revoke an access or refresh token (and its paired token)."""
        revoked = self.storage.revoke_token(token)
        if revoked:
            logger.info("Revoked token")
        return revoked

    def revoke_all_user_tokens(self, user_id: str) -> int:
        count = self.storage.revoke_user_tokens(user_id)
        logger.info("Revoked %d tokens for user %s", count, user_id)
        return count

    def revoke_user_client_tokens(self, user_id: str, client_id: str) -> int:
        """Revoke every token *user_id* granted *client_id*, and forget the consent."""
        count = self.storage.revoke_user_tokens(user_id, client_id=client_id)
        self.storage.delete_consent(user_id, client_id)
        logger.info("Revoked %d tokens for user %s on client %s", count, user_id, client_id)
        return count

    def cleanup_expired(self) -> None:
        self.storage.cleanup_expired(self._clock())

    # ------------------------------------------------------------------
    # Consent
    # ------------------------------------------------------------------

    def store_consent(
        self, user_id: str, client_id: str, scopes: list[str] | str, approved: bool = True
    ) -> ConsentDecision:
        """Record the user's consent-screen answer, replacing any earlier one."""
        now = self._clock()
        scope = parse_scope(scopes) if isinstance(scopes, str) else list(scopes)
        consent = ConsentDecision(
            user_id=user_id,
            client_id=client_id,
            scope=scope,
            approved=approved,
            expires_at=now + self.consent_ttl,
            created_at=now,
        )
        self.storage.save_consent(consent)
        logger.info(
            "Stored %s consent for user %s on client %s",
            "approved" if approved else "denied",
            user_id,
            client_id,
        )
        return consent

    def has_consent(self, user_id: str, client_id: str, scopes: list[str] | str) -> bool:
        """True if an approved, unexpired consent covers every scope in *scopes*."""
        consent = self.storage.get_consent(user_id, client_id)
        if consent is None:
            return False
        requested = parse_scope(scopes) if isinstance(scopes, str) else list(scopes)
        return consent.covers(requested, self._clock())

    @staticmethod
    def scope_descriptions(scopes: list[str]) -> dict[str, str]:
        """Human-readable text for a consent screen."""
        return {s: SCOPE_DESCRIPTIONS.get(s, f"Access: {s}") for s in scopes}

    # ------------------------------------------------------------------

    def _new_token(
        self,
        client: OAuthClient,
        *,
        user_id: str | None,
        scope: str,
        with_refresh: bool = False,
    ) -> OAuthToken:
        now = self._clock()
        return OAuthToken(
            access_token=f"rkat_{secrets.token_urlsafe(32)}",
            client_id=client.client_id,
            scope=scope,
            expires_at=now + self.access_token_ttl,
            user_id=user_id,
            refresh_token=f"rkrt_{secrets.token_urlsafe(32)}" if with_refresh else None,
            refresh_expires_at=now + self.refresh_token_ttl if with_refresh else None,
            created_at=now,
        )

    def _response(self, token: OAuthToken) -> TokenResponse:
        return TokenResponse(
            access_token=token.access_token,
            refresh_token=token.refresh_token,
            token_type=token.token_type,
            expires_in=int(self.access_token_ttl.total_seconds()),
            scope=token.scope,
        )


# Singleton
_server: AuthorizationServer | None = None


def get_oauth_server() -> AuthorizationServer:
    """Shared server built from settings. Prefer constructing one explicitly."""
    global _server
    if _server is None:
        from roomauth.config import get_config_dir, get_settings

        settings = get_settings()
        storage: OAuthStorage
        if settings.persist_tokens:
            storage = FileOAuthStorage(get_config_dir() / "oauth_tokens.json")
        else:
            storage = MemoryOAuthStorage()
        _server = AuthorizationServer(
            storage,
            access_token_ttl=timedelta(seconds=settings.access_token_ttl),
            refresh_token_ttl=timedelta(seconds=settings.refresh_token_ttl),
            code_ttl=timedelta(seconds=settings.authorization_code_ttl),
            consent_ttl=timedelta(seconds=settings.consent_ttl),
        )
        lifecycle.register("oauth_server", reset=reset_oauth_server)
    return _server


def reset_oauth_server() -> None:
    global _server
    _server = None
