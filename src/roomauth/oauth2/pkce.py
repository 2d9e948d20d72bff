# PKCE helpers (RFC 7636).
# Created: 2026-03-02

from __future__ import annotations

import base64
import hashlib
import hmac
import secrets

SUPPORTED_METHODS = ("S256", "plain")


def generate_code_verifier(nbytes: int = 48) -> str:
    """Random verifier; 48 bytes encodes to 64 URL-safe characters."""
    return secrets.token_urlsafe(nbytes)


def s256_challenge(code_verifier: str) -> str:
    """BASE64URL(SHA256(code_verifier)) without padding."""
    return (
        base64.urlsafe_b64encode(hashlib.sha256(code_verifier.encode()).digest())
        .rstrip(b"=")
        .decode()
    )


def derive_challenge(code_verifier: str, method: str) -> str:
    if method == "S256":
        return s256_challenge(code_verifier)
    if method == "plain":
        return code_verifier
    raise ValueError(f"Unsupported code_challenge_method: {method}")


def verify_code_verifier(code_verifier: str, code_challenge: str, method: str) -> bool:
    """Constant-time check that *code_verifier* produces *code_challenge*."""
    if not code_verifier:
        return False
    expected = derive_challenge(code_verifier, method)
    return hmac.compare_digest(expected.encode(), code_challenge.encode())
