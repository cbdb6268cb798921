"""PKCE (Proof Key for Code Exchange) helpers.

RFC 7636 binds an authorization code to a secret held by the client: the
*code verifier* stays in memory for the lifetime of one authorization
session and only its S256 *code challenge* travels through the browser.

Verifiers are drawn from :func:`secrets.token_urlsafe`, so the output is
already base64url without padding and never needs escaping in a query
string.

This module intentionally performs **no logging** of verifiers or challenges.
"""

from __future__ import annotations

import base64
import secrets
from hashlib import sha256
from typing import Final

# 32 random bytes encode to 43 base64url characters, the RFC-7636 minimum.
_VERIFIER_BYTES: Final[int] = 32


def generate_code_verifier(nbytes: int = _VERIFIER_BYTES) -> str:
    """Return a fresh, URL-safe code verifier built from *nbytes* of entropy.

    Raises
    ------
    ValueError
        If *nbytes* is below 32 or would exceed the 128 character limit.
    """
    if not 32 <= nbytes <= 96:
        raise ValueError("code verifier entropy must be 32-96 bytes")
    return secrets.token_urlsafe(nbytes)


def code_challenge_s256(verifier: str) -> str:
    """Return ``base64url(SHA256(verifier))`` without ``=`` padding."""
    digest = sha256(verifier.encode("ascii")).digest()
    return base64.urlsafe_b64encode(digest).rstrip(b"=").decode("ascii")


def generate_pkce_pair() -> tuple[str, str]:
    """Return ``(code_verifier, code_challenge)`` for a new session."""
    verifier = generate_code_verifier()
    return verifier, code_challenge_s256(verifier)
