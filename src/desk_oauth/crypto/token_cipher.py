"""Passphrase-based token encryption (AES-256-CBC, hex blob).

Blob format::

    <hex(iv)>:<hex(ciphertext)>

The key is PBKDF2-HMAC-SHA256 over the master passphrase with a fixed salt
and 100 000 iterations, so identical passphrases always derive the same key
and blobs written by earlier releases stay readable.

This scheme is **unauthenticated**.  Flipping ciphertext or IV bits yields
altered plaintext rather than an error; only a padding failure (typically
a wrong passphrase) is reported as :class:`DecryptionFailure`.  Invalid
UTF-8 in the result is replaced rather than rejected.

The passphrase is never logged or persisted.
"""

from __future__ import annotations

import logging
import os
from typing import Final

from cryptography.hazmat.primitives import hashes, padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from desk_oauth.central_auth.errors import DecryptionFailure, InvalidEncryptedFormat

_LOG = logging.getLogger("desk-oauth.crypto.token_cipher")

TOKEN_SALT: Final[bytes] = b"peta-desk-token-encryption-salt"
KDF_ITERATIONS: Final[int] = 100_000
KEY_LENGTH: Final[int] = 32
IV_LENGTH: Final[int] = 16


def derive_key(passphrase: str) -> bytes:
    """Derive the 32-byte AES key for *passphrase*."""
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=KEY_LENGTH,
        salt=TOKEN_SALT,
        iterations=KDF_ITERATIONS,
    )
    return kdf.derive(passphrase.encode("utf-8"))


def encrypt_token(plaintext: str, passphrase: str) -> str:
    """Encrypt *plaintext* under *passphrase* with a fresh random IV."""
    key = derive_key(passphrase)
    iv = os.urandom(IV_LENGTH)

    padder = padding.PKCS7(algorithms.AES.block_size).padder()
    padded = padder.update(plaintext.encode("utf-8")) + padder.finalize()
    encryptor = Cipher(algorithms.AES(key), modes.CBC(iv)).encryptor()
    ciphertext = encryptor.update(padded) + encryptor.finalize()

    return f"{iv.hex()}:{ciphertext.hex()}"


def _split_blob(blob: str) -> tuple[bytes, bytes]:
    parts = blob.split(":")
    if len(parts) != 2:
        raise InvalidEncryptedFormat("Invalid encrypted token format")
    try:
        iv = bytes.fromhex(parts[0])
        ciphertext = bytes.fromhex(parts[1])
    except ValueError:
        raise InvalidEncryptedFormat("Encrypted token is not hex encoded") from None
    if len(iv) != IV_LENGTH:
        raise InvalidEncryptedFormat("Encrypted token has an invalid IV length")
    if not ciphertext or len(ciphertext) % IV_LENGTH:
        raise InvalidEncryptedFormat("Encrypted token has an invalid ciphertext length")
    return iv, ciphertext


def decrypt_token(blob: str, passphrase: str) -> str:
    """Decrypt a ``hex(iv):hex(ciphertext)`` blob with *passphrase*.

    Raises
    ------
    InvalidEncryptedFormat
        If the blob is not exactly two hex parts of plausible length.
    DecryptionFailure
        If the padding is invalid after decryption.
    """
    iv, ciphertext = _split_blob(blob)
    key = derive_key(passphrase)

    decryptor = Cipher(algorithms.AES(key), modes.CBC(iv)).decryptor()
    padded = decryptor.update(ciphertext) + decryptor.finalize()
    unpadder = padding.PKCS7(algorithms.AES.block_size).unpadder()
    try:
        raw = unpadder.update(padded) + unpadder.finalize()
    except ValueError:
        _LOG.debug("Token decryption failed: bad padding")
        raise DecryptionFailure("Failed to decrypt token") from None
    return raw.decode("utf-8", errors="replace")
