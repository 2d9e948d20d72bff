# OAuth2 error values.
# Created: 2026-03-02
#
# Grant handlers return these instead of raising; the HTTP layer maps
# them to a status code and an RFC 6749 error body.

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class OAuthErrorCode(str, Enum):
    INVALID_REQUEST = "invalid_request"
    INVALID_CLIENT = "invalid_client"
    INVALID_GRANT = "invalid_grant"
    UNAUTHORIZED_CLIENT = "unauthorized_client"
    UNSUPPORTED_GRANT_TYPE = "unsupported_grant_type"
    UNSUPPORTED_RESPONSE_TYPE = "unsupported_response_type"
    INVALID_SCOPE = "invalid_scope"
    INVALID_TOKEN = "invalid_token"
    CONSENT_REQUIRED = "consent_required"
    SERVER_ERROR = "server_error"


_STATUS_CODES = {
    OAuthErrorCode.INVALID_CLIENT: 401,
    OAuthErrorCode.INVALID_TOKEN: 401,
    OAuthErrorCode.SERVER_ERROR: 500,
}


@dataclass(frozen=True)
class OAuthError:
    """A failed authorization or token request."""

    error: OAuthErrorCode
    description: str

    @property
    def status_code(self) -> int:
        return _STATUS_CODES.get(self.error, 400)

    def to_dict(self) -> dict[str, str]:
        return {"error": self.error.value, "error_description": self.description}

    def __str__(self) -> str:
        return self.description


# Shared instances for the stable failure messages
INVALID_CLIENT = OAuthError(OAuthErrorCode.INVALID_CLIENT, "Invalid client")
INVALID_CLIENT_CREDENTIALS = OAuthError(OAuthErrorCode.INVALID_CLIENT, "Invalid client credentials")
INVALID_REDIRECT_URI = OAuthError(OAuthErrorCode.INVALID_REQUEST, "Invalid redirect_uri")
UNSUPPORTED_RESPONSE_TYPE = OAuthError(
    OAuthErrorCode.UNSUPPORTED_RESPONSE_TYPE, "Unsupported response_type"
)
INVALID_SCOPE = OAuthError(OAuthErrorCode.INVALID_SCOPE, "Invalid scope requested")
PKCE_REQUIRED = OAuthError(OAuthErrorCode.INVALID_REQUEST, "PKCE is required")
INVALID_CHALLENGE_METHOD = OAuthError(
    OAuthErrorCode.INVALID_REQUEST, "Invalid code_challenge_method"
)
UNSUPPORTED_GRANT_TYPE = OAuthError(OAuthErrorCode.UNSUPPORTED_GRANT_TYPE, "Unsupported grant type")
UNAUTHORIZED_GRANT_TYPE = OAuthError(OAuthErrorCode.UNAUTHORIZED_CLIENT, "Unsupported grant type")
INVALID_CODE = OAuthError(OAuthErrorCode.INVALID_GRANT, "Invalid or expired authorization code")
INVALID_CODE_VERIFIER = OAuthError(OAuthErrorCode.INVALID_GRANT, "Invalid code_verifier")
INVALID_REFRESH_TOKEN = OAuthError(OAuthErrorCode.INVALID_GRANT, "Invalid refresh token")
SCOPE_EXPANSION = OAuthError(
    OAuthErrorCode.INVALID_SCOPE, "Cannot expand scope during token refresh"
)
CONSENT_REQUIRED = OAuthError(OAuthErrorCode.CONSENT_REQUIRED, "User consent required")
