"""desk-aes-gcm – encrypt/decrypt client credentials from the shell.

Usage
-----
    desk-aes-gcm enc <32-byte-key> "<plaintext>"
    desk-aes-gcm dec <32-byte-key> '<json-from-enc>'

``enc`` prints ``{"iv":...,"tag":...,"ciphertext":...}``; ``dec`` prints
the plaintext.  Any validation or cryptographic failure prints
``Error: <message>`` to stderr and exits with status 1.
"""

from __future__ import annotations

import argparse
import sys
from typing import Sequence

from desk_oauth.central_auth.errors import CryptoError
from desk_oauth.crypto.aes_gcm import GcmPayload, decrypt, encrypt


class _Parser(argparse.ArgumentParser):
    """Report usage problems like every other failure: stderr, status 1."""

    def error(self, message: str):  # type: ignore[override]
        self.print_usage(sys.stderr)
        self.exit(1, f"Error: {message}\n")


def build_parser() -> argparse.ArgumentParser:
    parser = _Parser(
        prog="desk-aes-gcm",
        description="AES-256-GCM helper for exported client credentials.",
    )
    parser.add_argument("mode", help='"enc" or "dec"')
    parser.add_argument("key", help="key string that encodes to exactly 32 bytes")
    parser.add_argument("data", help="plaintext (enc) or JSON payload (dec)")
    return parser


def _fail(message: str) -> int:
    print(f"Error: {message}", file=sys.stderr)
    return 1


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        if args.mode == "enc":
            print(encrypt(args.data, args.key).to_json())
        elif args.mode == "dec":
            print(decrypt(GcmPayload.from_json(args.data), args.key))
        else:
            return _fail('First argument must be "enc" or "dec".')
    except CryptoError as exc:
        return _fail(str(exc))
    return 0


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
