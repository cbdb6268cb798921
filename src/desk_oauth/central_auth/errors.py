"""Exception types raised by the OAuth core and the credential ciphers.

Only lightweight, **data-carrying** exceptions live here so that the bridge
and CLI layers can transform them into HTTP responses or user-friendly
messages.  ``to_payload()`` never includes secrets.

Two propagation policies coexist on purpose:

* :class:`AuthFlowError` subclasses are *strict*: they reject the
  ``authenticate()`` call exactly once.
* :class:`VaultIOError` is *lenient*: the vault catches and logs it and the
  caller simply sees "not authenticated".
"""

from __future__ import annotations

from typing import Any


class AuthFlowError(RuntimeError):
    """Base class for every error that rejects an authorization flow."""

    code: str = "auth_flow_error"

    def to_payload(self) -> dict[str, Any]:
        """Return a JSON-serialisable payload **without secrets**."""
        return {"error": self.code, "message": str(self)}


class MissingCredentialsError(AuthFlowError):
    """Raised when a client id / client secret (or refresh token) is absent."""

    code = "missing_credentials"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or "clientId and clientSecret are required")


class StateMismatchError(AuthFlowError):
    """Raised when the redirect's ``state`` differs from the session nonce."""

    code = "state_mismatch"

    def __init__(self) -> None:
        super().__init__("State parameter mismatch")


class ProviderError(AuthFlowError):
    """The provider redirected back with ``error=...`` instead of a code."""

    code = "provider_error"

    def __init__(self, provider_code: str, description: str | None = None) -> None:
        message = f"OAuth error: {provider_code}"
        if description:
            message = f"{message} ({description})"
        super().__init__(message)
        self.provider_code: str = provider_code
        self.description: str | None = description

    def to_payload(self) -> dict[str, Any]:
        payload = super().to_payload()
        payload["provider_code"] = self.provider_code
        return payload


class ExchangeHTTPError(AuthFlowError):
    """The token endpoint answered with a non-200 status."""

    code = "exchange_http_error"

    def __init__(self, status: int, body: str) -> None:
        super().__init__(f"Token exchange failed with status {status}: {body}")
        self.status: int = status
        self.body: str = body

    def to_payload(self) -> dict[str, Any]:
        payload = super().to_payload()
        payload["status"] = self.status
        return payload


class ExchangeParseError(AuthFlowError):
    """The token endpoint answered 200 but the body is not a usable token JSON."""

    code = "exchange_parse_error"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or "Failed to parse token response")


class ExchangeTransportError(AuthFlowError):
    """The token endpoint could not be reached at all."""

    code = "exchange_transport_error"


class WindowClosedBeforeResolutionError(AuthFlowError):
    """The user closed the authorization window before the flow finished."""

    code = "window_closed"

    def __init__(self) -> None:
        super().__init__("Authentication window was closed")


class UnknownProviderError(ValueError):
    """Raised when no provider profile is registered under a name."""

    def __init__(self, provider: str) -> None:
        super().__init__(f"Unknown OAuth provider: {provider}")
        self.provider: str = provider


class CryptoError(ValueError):
    """Base class for encryption/decryption failures."""

    code: str = "crypto_error"

    def to_payload(self) -> dict[str, Any]:
        return {"error": self.code, "message": str(self)}


class InvalidEncryptedFormat(CryptoError):
    """The blob does not have the shape its scheme requires."""

    code = "invalid_encrypted_format"


class DecryptionFailure(CryptoError):
    """Decryption ran but failed (wrong key, bad padding, tag mismatch)."""

    code = "decryption_failure"


class InvalidKeyError(CryptoError):
    """A raw key does not have the required length."""

    code = "invalid_key"


class VaultIOError(OSError):
    """Raised by the vault's file layer; always caught inside the vault."""

    def __init__(self, path: object, reason: str) -> None:
        super().__init__(f"{reason}: {path}")
        self.path = path
        self.reason: str = reason
