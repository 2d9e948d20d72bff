# Tests for social login provider adapters.
# Created: 2026-03-02

import json
from unittest.mock import patch
from urllib.parse import parse_qs, urlparse

import httpx
import pytest

from roomauth.oauth2.pkce import s256_challenge
from roomauth.social.errors import (
    CodeVerifierRequiredError,
    ProviderError,
    SocialLoginError,
    UnsupportedCapabilityError,
)
from roomauth.social.models import SocialProvider
from roomauth.social.providers import (
    GitHubOAuthClient,
    GoogleOAuthClient,
    MicrosoftOAuthClient,
    create_provider_client,
)


class Recorder:
    """MockTransport handler that answers from a route table and keeps every request."""

    def __init__(self, routes):
        self.routes = routes
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        key = (request.method, str(request.url).split("?")[0])
        status, body = self.routes[key]
        return httpx.Response(status, json=body)

    @property
    def transport(self):
        return httpx.MockTransport(self)


def _query(url):
    return {k: v[0] for k, v in parse_qs(urlparse(url).query).items()}


def _form(request):
    return {k: v[0] for k, v in parse_qs(request.content.decode()).items()}


# ===================== Authorization URLs =====================


class TestAuthorizationUrls:
    def test_google_url_with_pkce(self):
        client = GoogleOAuthClient("gid", "gsecret", "https://app.example/cb/google")
        auth = client.get_authorization_url(state="xyz", access_type="offline", prompt="consent")

        assert auth.url.startswith("https://accounts.google.com/o/oauth2/v2/auth?")
        params = _query(auth.url)
        assert params["client_id"] == "gid"
        assert params["redirect_uri"] == "https://app.example/cb/google"
        assert params["response_type"] == "code"
        assert params["scope"] == "openid profile email"
        assert params["state"] == "xyz"
        assert params["access_type"] == "offline"
        assert params["prompt"] == "consent"
        assert params["code_challenge_method"] == "S256"
        assert params["code_challenge"] == s256_challenge(auth.code_verifier)
        assert 43 <= len(auth.code_verifier) <= 128

    def test_github_url_without_pkce(self):
        client = GitHubOAuthClient("ghid", "ghsecret", "https://app.example/cb/github")
        auth = client.get_authorization_url(state="abc")

        assert auth.url.startswith("https://github.com/login/oauth/authorize?")
        params = _query(auth.url)
        assert params["scope"] == "read:user user:email"
        assert "code_challenge" not in params
        assert auth.code_verifier is None

    def test_microsoft_url_uses_tenant(self):
        client = MicrosoftOAuthClient(
            "msid", "mssecret", "https://app.example/cb", tenant="contoso"
        )
        auth = client.get_authorization_url(state="s", scope="openid User.Read")

        assert auth.url.startswith(
            "https://login.microsoftonline.com/contoso/oauth2/v2.0/authorize?"
        )
        params = _query(auth.url)
        assert params["response_mode"] == "query"
        assert params["scope"] == "openid User.Read"
        assert auth.code_verifier

    def test_none_extras_are_skipped(self):
        client = GoogleOAuthClient("gid", "gsecret", "https://app.example/cb")
        auth = client.get_authorization_url(login_hint=None)
        assert "login_hint" not in _query(auth.url)

    def test_factory(self):
        client = create_provider_client("microsoft", "id", "secret", "https://cb", tenant="t1")
        assert isinstance(client, MicrosoftOAuthClient)
        assert client.token_url == "https://login.microsoftonline.com/t1/oauth2/v2.0/token"
        github = create_provider_client("github", "id", "s", "https://cb")
        assert isinstance(github, GitHubOAuthClient)
        assert create_provider_client("google", "id", "s", "https://cb").provider is (
            SocialProvider.GOOGLE
        )

    def test_factory_unknown_provider(self):
        with pytest.raises(ValueError):
            create_provider_client("myspace", "id", "s", "https://cb")


# ===================== Google =====================


class TestGoogle:
    async def test_exchange_code(self):
        recorder = Recorder(
            {
                ("POST", "https://oauth2.googleapis.com/token"): (
                    200,
                    {
                        "access_token": "ya29.token",
                        "refresh_token": "1//refresh",
                        "expires_in": 3599,
                        "token_type": "Bearer",
                        "scope": "openid email profile",
                        "id_token": "eyJ...",
                    },
                )
            }
        )
        client = GoogleOAuthClient("gid", "gsecret", "https://cb", transport=recorder.transport)
        tokens = await client.exchange_code_for_token("auth-code", "the-verifier")

        assert tokens.access_token == "ya29.token"
        assert tokens.refresh_token == "1//refresh"
        assert tokens.expires_in == 3599
        assert tokens.id_token == "eyJ..."
        form = _form(recorder.requests[0])
        assert form["grant_type"] == "authorization_code"
        assert form["code"] == "auth-code"
        assert form["code_verifier"] == "the-verifier"
        assert form["client_secret"] == "gsecret"

    async def test_exchange_requires_verifier(self):
        client = GoogleOAuthClient("gid", "gsecret", "https://cb")
        with pytest.raises(CodeVerifierRequiredError, match="code_verifier"):
            await client.exchange_code_for_token("auth-code")

    async def test_exchange_error_surfaces_provider_message(self):
        recorder = Recorder(
            {
                ("POST", "https://oauth2.googleapis.com/token"): (
                    400,
                    {"error": "invalid_grant", "error_description": "Bad Request"},
                )
            }
        )
        client = GoogleOAuthClient("gid", "gsecret", "https://cb", transport=recorder.transport)
        with pytest.raises(ProviderError, match="Bad Request") as exc_info:
            await client.exchange_code_for_token("auth-code", "verifier")
        assert exc_info.value.provider == "google"
        assert exc_info.value.status_code == 400
        assert exc_info.value.error == "invalid_grant"

    async def test_profile(self):
        recorder = Recorder(
            {
                ("GET", "https://openidconnect.googleapis.com/v1/userinfo"): (
                    200,
                    {
                        "sub": "1234567890",
                        "email": "jane@example.com",
                        "email_verified": True,
                        "name": "Jane Doe",
                        "given_name": "Jane",
                        "family_name": "Doe",
                        "picture": "https://lh3.googleusercontent.com/a/photo",
                        "locale": "en",
                    },
                )
            }
        )
        client = GoogleOAuthClient("gid", "gsecret", "https://cb", transport=recorder.transport)
        profile = await client.get_user_profile("ya29.token")

        assert profile.provider is SocialProvider.GOOGLE
        assert profile.provider_id == "1234567890"
        assert profile.email == "jane@example.com"
        assert profile.email_verified is True
        assert profile.first_name == "Jane"
        assert profile.last_name == "Doe"
        assert profile.locale == "en"
        assert recorder.requests[0].headers["Authorization"] == "Bearer ya29.token"

    async def test_refresh(self):
        recorder = Recorder(
            {
                ("POST", "https://oauth2.googleapis.com/token"): (
                    200,
                    {"access_token": "ya29.new", "expires_in": 3599},
                )
            }
        )
        client = GoogleOAuthClient("gid", "gsecret", "https://cb", transport=recorder.transport)
        tokens = await client.refresh_token("1//refresh")

        assert tokens.access_token == "ya29.new"
        assert tokens.refresh_token is None
        form = _form(recorder.requests[0])
        assert form["grant_type"] == "refresh_token"
        assert form["refresh_token"] == "1//refresh"

    async def test_revoke(self):
        recorder = Recorder({("POST", "https://oauth2.googleapis.com/revoke"): (200, {})})
        client = GoogleOAuthClient("gid", "gsecret", "https://cb", transport=recorder.transport)
        assert await client.revoke_token("ya29.token") is True
        assert _form(recorder.requests[0]) == {"token": "ya29.token"}

    async def test_revoke_failure(self):
        recorder = Recorder(
            {("POST", "https://oauth2.googleapis.com/revoke"): (400, {"error": "invalid_token"})}
        )
        client = GoogleOAuthClient("gid", "gsecret", "https://cb", transport=recorder.transport)
        assert await client.revoke_token("ya29.token") is False


# ===================== GitHub =====================


class TestGitHub:
    async def test_exchange_code(self):
        recorder = Recorder(
            {
                ("POST", "https://github.com/login/oauth/access_token"): (
                    200,
                    {"access_token": "gho_abc", "token_type": "bearer", "scope": "read:user"},
                )
            }
        )
        client = GitHubOAuthClient("ghid", "ghsecret", "https://cb", transport=recorder.transport)
        tokens = await client.exchange_code_for_token("auth-code")

        assert tokens.access_token == "gho_abc"
        assert tokens.refresh_token is None
        assert tokens.expires_in is None
        request = recorder.requests[0]
        assert request.headers["Accept"] == "application/json"
        assert json.loads(request.content)["code"] == "auth-code"

    async def test_exchange_error_in_200_body(self):
        recorder = Recorder(
            {
                ("POST", "https://github.com/login/oauth/access_token"): (
                    200,
                    {
                        "error": "bad_verification_code",
                        "error_description": "The code passed is incorrect or expired.",
                    },
                )
            }
        )
        client = GitHubOAuthClient("ghid", "ghsecret", "https://cb", transport=recorder.transport)
        with pytest.raises(ProviderError, match="incorrect or expired") as exc_info:
            await client.exchange_code_for_token("bad-code")
        assert exc_info.value.error == "bad_verification_code"

    async def test_profile_prefers_primary_verified_email(self):
        recorder = Recorder(
            {
                ("GET", "https://api.github.com/user"): (
                    200,
                    {
                        "id": 583231,
                        "login": "octocat",
                        "name": None,
                        "email": "public@example.com",
                        "avatar_url": "https://avatars.githubusercontent.com/u/583231",
                    },
                ),
                ("GET", "https://api.github.com/user/emails"): (
                    200,
                    [
                        {"email": "old@example.com", "primary": False, "verified": True},
                        {"email": "octo@example.com", "primary": True, "verified": True},
                    ],
                ),
            }
        )
        client = GitHubOAuthClient("ghid", "ghsecret", "https://cb", transport=recorder.transport)
        profile = await client.get_user_profile("gho_abc")

        assert profile.provider_id == "583231"
        assert profile.email == "octo@example.com"
        assert profile.email_verified is True
        assert profile.name == "octocat"
        assert profile.username == "octocat"
        assert profile.picture == "https://avatars.githubusercontent.com/u/583231"
        assert len(recorder.requests) == 2

    async def test_profile_survives_failed_email_call(self):
        recorder = Recorder(
            {
                ("GET", "https://api.github.com/user"): (
                    200,
                    {"id": 1, "login": "octocat", "email": "pub@example.com"},
                ),
                ("GET", "https://api.github.com/user/emails"): (
                    403,
                    {"message": "Resource not accessible by integration"},
                ),
            }
        )
        client = GitHubOAuthClient("ghid", "ghsecret", "https://cb", transport=recorder.transport)
        profile = await client.get_user_profile("gho_abc")

        assert profile.email == "pub@example.com"
        assert profile.email_verified is False
        assert profile.provider_id == "1"

    def test_email_fallbacks(self):
        user = {"email": "public@example.com"}
        unverified_primary = [{"email": "a@example.com", "primary": True, "verified": False}]
        assert GitHubOAuthClient._pick_email(user, unverified_primary) == (
            "public@example.com",
            False,
        )
        verified = unverified_primary + [{"email": "b@example.com", "verified": True}]
        assert GitHubOAuthClient._pick_email(user, verified) == ("b@example.com", True)
        assert GitHubOAuthClient._pick_email({}, []) == ("", False)

    async def test_refresh_unsupported_without_network(self):
        client = GitHubOAuthClient("ghid", "ghsecret", "https://cb")
        with patch("httpx.AsyncClient") as mock_client:
            with pytest.raises(UnsupportedCapabilityError, match="does not support") as exc_info:
                await client.refresh_token("anything")
        mock_client.assert_not_called()
        assert exc_info.value.capability == "refresh"

    async def test_revoke_deletes_grant(self):
        recorder = Recorder(
            {("DELETE", "https://api.github.com/applications/ghid/grant"): (204, None)}
        )
        client = GitHubOAuthClient("ghid", "ghsecret", "https://cb", transport=recorder.transport)
        assert await client.revoke_token("gho_abc") is True

        request = recorder.requests[0]
        assert json.loads(request.content) == {"access_token": "gho_abc"}
        assert request.headers["Authorization"].startswith("Basic ")

    async def test_revoke_missing_grant_counts_as_success(self):
        recorder = Recorder(
            {("DELETE", "https://api.github.com/applications/ghid/grant"): (404, {})}
        )
        client = GitHubOAuthClient("ghid", "ghsecret", "https://cb", transport=recorder.transport)
        assert await client.revoke_token("gho_abc") is True


# ===================== Microsoft =====================


class TestMicrosoft:
    TOKEN_URL = "https://login.microsoftonline.com/common/oauth2/v2.0/token"

    def _client(self, recorder):
        return MicrosoftOAuthClient(
            "msid", "mssecret", "https://cb", transport=recorder.transport
        )

    async def test_refresh_restates_scope(self):
        recorder = Recorder(
            {
                ("POST", self.TOKEN_URL): (
                    200,
                    {"access_token": "new-at", "refresh_token": "new-rt", "expires_in": 3600},
                )
            }
        )
        client = self._client(recorder)
        tokens = await client.refresh_token("old-rt")

        assert tokens.refresh_token == "new-rt"
        form = _form(recorder.requests[0])
        assert form["scope"] == "openid profile email User.Read"
        assert form["refresh_token"] == "old-rt"

    async def test_profile_falls_back_to_upn(self):
        recorder = Recorder(
            {
                ("GET", "https://graph.microsoft.com/v1.0/me"): (
                    200,
                    {
                        "id": "87d349ed-44d7-43e1-9a83-5f2406dee5bd",
                        "displayName": "Adele Vance",
                        "givenName": "Adele",
                        "surname": "Vance",
                        "mail": None,
                        "userPrincipalName": "AdeleV@contoso.com",
                        "preferredLanguage": "en-US",
                    },
                )
            }
        )
        client = self._client(recorder)
        profile = await client.get_user_profile("at")

        assert profile.provider is SocialProvider.MICROSOFT
        assert profile.email == "AdeleV@contoso.com"
        assert profile.name == "Adele Vance"
        assert profile.email_verified is True
        assert profile.locale == "en-US"

    async def test_graph_error_message(self):
        recorder = Recorder(
            {
                ("GET", "https://graph.microsoft.com/v1.0/me"): (
                    401,
                    {
                        "error": {
                            "code": "InvalidAuthenticationToken",
                            "message": "Access token has expired or is not yet valid.",
                        }
                    },
                )
            }
        )
        client = self._client(recorder)
        with pytest.raises(ProviderError, match="Access token has expired") as exc_info:
            await client.get_user_profile("at")
        assert exc_info.value.error == "InvalidAuthenticationToken"
        assert exc_info.value.status_code == 401

    async def test_revoke_sign_in_sessions(self):
        recorder = Recorder(
            {
                ("POST", "https://graph.microsoft.com/v1.0/me/revokeSignInSessions"): (
                    200,
                    {"value": True},
                )
            }
        )
        client = self._client(recorder)
        assert await client.revoke_token("at") is True
        assert recorder.requests[0].headers["Authorization"] == "Bearer at"

    async def test_missing_verifier_is_a_social_login_error(self):
        client = MicrosoftOAuthClient("msid", "mssecret", "https://cb")
        with pytest.raises(SocialLoginError, match="requires a code_verifier"):
            await client.exchange_code_for_token("auth-code", None)
