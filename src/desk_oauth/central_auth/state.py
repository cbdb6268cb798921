"""State nonce helpers for the browser authorization flow.

The ``state`` parameter is a random value round-tripped through the
provider's redirect. A redirect carrying anything other than the nonce of
the session that opened the window is treated as a CSRF attempt and the
session fails before any token exchange happens.

Logging
-------
Only a masked prefix of the nonce is ever logged.
"""

from __future__ import annotations

import hmac
import logging
import secrets
from typing import Final

from desk_oauth.utils.logging import mask_sensitive

_LOG = logging.getLogger("desk-oauth.central_auth.state")

_NONCE_BYTES: Final[int] = 16


def create_state_nonce(nbytes: int = _NONCE_BYTES) -> str:
    """Return an unguessable hex nonce (``2 * nbytes`` characters)."""
    if nbytes < 16:
        raise ValueError("state nonce needs at least 16 bytes of entropy")
    nonce = secrets.token_hex(nbytes)
    _LOG.debug("Created state nonce %s", mask_sensitive(nonce, 4))
    return nonce


def state_matches(received: str | None, expected: str) -> bool:
    """Compare a redirect's ``state`` against the session nonce in constant time.

    A missing or empty *received* value never matches.
    """
    if not received:
        return False
    return hmac.compare_digest(received.encode("utf-8"), expected.encode("utf-8"))
