# OAuth2 request/response schemas.
# Created: 2026-03-02
#
# These mirror the JSON bodies the HTTP layer marshals.

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from roomauth.oauth2.models import GrantType


class ClientRegistration(BaseModel):
    """Client definition submitted at registration time."""

    client_name: str = ""
    redirect_uris: list[str] = Field(default_factory=list)
    grant_types: list[GrantType] = Field(default_factory=lambda: [GrantType.AUTHORIZATION_CODE])
    allowed_scopes: list[str] = Field(default_factory=list)
    require_pkce: bool = False
    require_consent: bool = False
    trusted: bool = False


class AuthorizationRequest(BaseModel):
    client_id: str
    redirect_uri: str
    scope: str = ""
    state: str = ""
    response_type: str = "code"
    code_challenge: str | None = None
    code_challenge_method: str | None = None


class AuthorizationResponse(BaseModel):
    code: str
    state: str = ""


class TokenRequest(BaseModel):
    """Token endpoint request; fields not used by a grant are left unset."""

    grant_type: str
    client_id: str
    client_secret: str | None = None
    code: str | None = None
    redirect_uri: str | None = None
    code_verifier: str | None = None
    refresh_token: str | None = None
    scope: str | None = None


class TokenResponse(BaseModel):
    access_token: str
    refresh_token: str | None = None
    token_type: str = "Bearer"
    expires_in: int
    scope: str

    def to_dict(self) -> dict:
        return self.model_dump(exclude_none=True)


class TokenValidation(BaseModel):
    valid: bool
    user_id: str | None = None
    client_id: str | None = None
    scope: str | None = None
    expires_at: datetime | None = None
    error: str | None = None
