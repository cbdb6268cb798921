"""Raw-key AES-256-GCM with fixed additional authenticated data.

Payload format (JSON, each field standard base64)::

    {"iv": "...", "tag": "...", "ciphertext": "..."}

The key is the UTF-8 encoding of a caller-supplied string and must be
exactly 32 bytes; no derivation happens.  The IV is 12 random bytes and
the 16-byte tag is carried separately from the ciphertext.  Any change
to key, IV, AAD, tag or ciphertext makes :func:`decrypt` raise
:class:`DecryptionFailure`.
"""

from __future__ import annotations

import base64
import binascii
import json
import os
from dataclasses import asdict, dataclass
from typing import Any, Final

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from desk_oauth.central_auth.errors import DecryptionFailure, InvalidEncryptedFormat, InvalidKeyError

# Shared with the console that produces these payloads; must not change.
AAD: Final[bytes] = b"Peta Consol"
IV_LENGTH: Final[int] = 12
TAG_LENGTH: Final[int] = 16
KEY_LENGTH: Final[int] = 32


@dataclass(frozen=True, slots=True)
class GcmPayload:
    """Base64-encoded ``iv`` / ``tag`` / ``ciphertext`` triple."""

    iv: str
    tag: str
    ciphertext: str

    def to_json(self) -> str:
        return json.dumps(asdict(self), separators=(",", ":"))

    @classmethod
    def from_mapping(cls, data: Any) -> "GcmPayload":
        if not isinstance(data, dict):
            raise InvalidEncryptedFormat("Payload must be a JSON object")
        fields = {k: data.get(k) for k in ("iv", "tag", "ciphertext")}
        if not all(isinstance(v, str) and v for v in fields.values()):
            raise InvalidEncryptedFormat("JSON must contain iv, tag, ciphertext fields.")
        return cls(**fields)

    @classmethod
    def from_json(cls, text: str) -> "GcmPayload":
        try:
            data = json.loads(text)
        except json.JSONDecodeError:
            raise InvalidEncryptedFormat("Payload must be valid JSON produced by encrypt.") from None
        return cls.from_mapping(data)


def _key_bytes(key: str | bytes) -> bytes:
    raw = key.encode("utf-8") if isinstance(key, str) else bytes(key)
    if len(raw) != KEY_LENGTH:
        raise InvalidKeyError("Key must be exactly 32 bytes (AES-256).")
    return raw


def _b64(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def _unb64(value: str, name: str) -> bytes:
    try:
        return base64.b64decode(value, validate=True)
    except (binascii.Error, ValueError):
        raise InvalidEncryptedFormat(f"Field {name!r} is not valid base64") from None


def encrypt(plaintext: str, key: str | bytes, *, aad: bytes = AAD) -> GcmPayload:
    """Encrypt *plaintext* under the raw 32-byte *key*."""
    aesgcm = AESGCM(_key_bytes(key))
    iv = os.urandom(IV_LENGTH)
    sealed = aesgcm.encrypt(iv, plaintext.encode("utf-8"), aad)
    ciphertext, tag = sealed[:-TAG_LENGTH], sealed[-TAG_LENGTH:]
    return GcmPayload(iv=_b64(iv), tag=_b64(tag), ciphertext=_b64(ciphertext))


def decrypt(payload: GcmPayload, key: str | bytes, *, aad: bytes = AAD) -> str:
    """Authenticate and decrypt *payload*.

    Raises
    ------
    InvalidKeyError
        If *key* is not 32 bytes.
    InvalidEncryptedFormat
        If a field is not base64 or the tag has the wrong size.
    DecryptionFailure
        If authentication fails.
    """
    aesgcm = AESGCM(_key_bytes(key))
    iv = _unb64(payload.iv, "iv")
    tag = _unb64(payload.tag, "tag")
    ciphertext = _unb64(payload.ciphertext, "ciphertext")
    if len(tag) != TAG_LENGTH:
        raise InvalidEncryptedFormat("Authentication tag must be 16 bytes")
    if not iv:
        raise InvalidEncryptedFormat("IV must not be empty")
    try:
        plaintext = aesgcm.decrypt(iv, ciphertext + tag, aad)
    except InvalidTag:
        raise DecryptionFailure("Decryption failed (bad key/iv/tag/ciphertext).") from None
    try:
        return plaintext.decode("utf-8")
    except UnicodeDecodeError:
        raise DecryptionFailure("Decrypted payload is not UTF-8 text") from None
