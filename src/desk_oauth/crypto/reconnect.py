"""Recover several stored tokens with one master passphrase.

Used when the shell reconnects to its servers after an unlock: every
stored entry is decrypted independently and in order.  An entry that
fails (stale blob, different passphrase, corrupted JSON) is logged and
skipped; it never blocks recovery of the others.

Key derivation costs 100 000 PBKDF2 rounds per entry; async callers run
:meth:`recover` in a worker thread.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Iterable

from desk_oauth.central_auth.models import TokenRecord
from desk_oauth.crypto.token_cipher import decrypt_token

_LOG = logging.getLogger("desk-oauth.crypto.reconnect")


@dataclass(frozen=True, slots=True)
class StoredTokenEntry:
    """One encrypted :class:`TokenRecord` as kept by the shell."""

    entry_id: str
    encrypted_token: str = field(repr=False)
    label: str = ""


@dataclass(frozen=True, slots=True)
class RecoveredToken:
    entry_id: str
    label: str
    token: TokenRecord


@dataclass(slots=True)
class RecoveryReport:
    """Outcome of one :meth:`ReconnectOrchestrator.recover` call."""

    recovered: list[RecoveredToken] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)


class ReconnectOrchestrator:
    """Sequential, partial-failure-tolerant batch decryption."""

    def recover(self, passphrase: str, entries: Iterable[StoredTokenEntry]) -> RecoveryReport:
        report = RecoveryReport()
        for entry in entries:
            try:
                report.recovered.append(self._decrypt_entry(entry, passphrase))
            except Exception as exc:
                _LOG.warning(
                    "Skipping stored token %s (%s): %s",
                    entry.entry_id,
                    entry.label or "-",
                    type(exc).__name__,
                )
                report.failed.append(entry.entry_id)
        _LOG.info(
            "Recovered %d of %d stored tokens",
            len(report.recovered),
            len(report.recovered) + len(report.failed),
        )
        return report

    @staticmethod
    def _decrypt_entry(entry: StoredTokenEntry, passphrase: str) -> RecoveredToken:
        plaintext = decrypt_token(entry.encrypted_token, passphrase)
        data = json.loads(plaintext)
        if not isinstance(data, dict):
            raise ValueError("decrypted token is not a JSON object")
        return RecoveredToken(
            entry_id=entry.entry_id,
            label=entry.label,
            token=TokenRecord.from_response(data),
        )
