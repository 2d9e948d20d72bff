# Social login exceptions.
# Created: 2026-03-02

from __future__ import annotations


class SocialLoginError(Exception):
    """Base class for social login failures."""


class ProviderError(SocialLoginError):
    """An identity provider answered with an error.

    The message is the provider's own ``error_description`` (or ``error``)
    when it sent one.
    """

    def __init__(
        self,
        provider: str,
        message: str,
        *,
        status_code: int | None = None,
        error: str | None = None,
    ):
        super().__init__(message)
        self.provider = provider
        self.status_code = status_code
        self.error = error


class UnsupportedCapabilityError(SocialLoginError):
    """The provider does not offer the requested operation at all."""

    def __init__(self, provider: str, capability: str, message: str):
        super().__init__(message)
        self.provider = provider
        self.capability = capability


class ProviderNotConfiguredError(SocialLoginError):
    pass


class AccountLinkingError(SocialLoginError):
    pass


class AccountNotLinkedError(SocialLoginError):
    pass


class TokenExpiredError(SocialLoginError):
    pass


class CodeVerifierRequiredError(SocialLoginError):
    """A PKCE provider was asked to exchange a code without its verifier."""


class InvalidStateError(SocialLoginError):
    """Unknown, reused or expired login ``state``."""
