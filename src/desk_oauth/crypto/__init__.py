"""Symmetric encryption for secrets kept by the desktop shell.

Two independent contracts live here and are **not** interchangeable:

token_cipher
    Passphrase-derived AES-256-CBC used for stored server tokens.  No
    integrity check: a tampered blob may decrypt to garbage silently.
aes_gcm
    Raw 32-byte key AES-256-GCM with fixed AAD, used for exported client
    credentials.  Any tampering fails decryption.
reconnect
    Batch recovery of stored tokens with a single passphrase.
cli
    ``desk-aes-gcm`` command-line wrapper around :mod:`aes_gcm`.
"""

from __future__ import annotations

from .token_cipher import derive_key, encrypt_token, decrypt_token  # noqa: F401
from .aes_gcm import GcmPayload, encrypt, decrypt  # noqa: F401
from .reconnect import ReconnectOrchestrator, RecoveredToken, StoredTokenEntry  # noqa: F401

__all__ = [
    "derive_key",
    "encrypt_token",
    "decrypt_token",
    "GcmPayload",
    "encrypt",
    "decrypt",
    "ReconnectOrchestrator",
    "RecoveredToken",
    "StoredTokenEntry",
]
