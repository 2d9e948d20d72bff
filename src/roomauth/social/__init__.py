# Social login — external identity providers and account linking.
# Created: 2026-03-02

from roomauth.social.errors import (
    AccountLinkingError,
    AccountNotLinkedError,
    CodeVerifierRequiredError,
    InvalidStateError,
    ProviderError,
    ProviderNotConfiguredError,
    SocialLoginError,
    TokenExpiredError,
    UnsupportedCapabilityError,
)
from roomauth.social.models import LinkedAccount, ProviderTokens, SocialProfile, SocialProvider
from roomauth.social.providers import (
    GitHubOAuthClient,
    GoogleOAuthClient,
    MicrosoftOAuthClient,
    SocialOAuthClient,
    create_provider_client,
)
from roomauth.social.service import (
    SocialLoginService,
    get_social_login_service,
    reset_social_login_service,
)

__all__ = [
    "AccountLinkingError",
    "AccountNotLinkedError",
    "CodeVerifierRequiredError",
    "GitHubOAuthClient",
    "GoogleOAuthClient",
    "InvalidStateError",
    "LinkedAccount",
    "MicrosoftOAuthClient",
    "ProviderError",
    "ProviderNotConfiguredError",
    "ProviderTokens",
    "SocialLoginError",
    "SocialLoginService",
    "SocialOAuthClient",
    "SocialProfile",
    "SocialProvider",
    "TokenExpiredError",
    "UnsupportedCapabilityError",
    "create_provider_client",
    "get_social_login_service",
    "reset_social_login_service",
]
