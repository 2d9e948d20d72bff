# OAuth 2.0 authorization server.
# Created: 2026-03-02
#
# Authorization Code (with optional PKCE), Client Credentials and Refresh
# Token grants over a pluggable client/code/token store.

from roomauth.oauth2.errors import OAuthError, OAuthErrorCode
from roomauth.oauth2.models import (
    AuthorizationCode,
    ConsentDecision,
    GrantType,
    OAuthClient,
    OAuthToken,
)
from roomauth.oauth2.server import AuthorizationServer, get_oauth_server, reset_oauth_server
from roomauth.oauth2.storage import FileOAuthStorage, MemoryOAuthStorage, OAuthStorage

__all__ = [
    "AuthorizationCode",
    "AuthorizationServer",
    "ConsentDecision",
    "FileOAuthStorage",
    "GrantType",
    "MemoryOAuthStorage",
    "OAuthClient",
    "OAuthError",
    "OAuthErrorCode",
    "OAuthStorage",
    "OAuthToken",
    "get_oauth_server",
    "reset_oauth_server",
]
