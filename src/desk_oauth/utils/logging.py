"""Logging utilities: secret masking and process-level setup."""

from __future__ import annotations

import logging
import sys

from desk_oauth.utils.environment import debug_logging_enabled

_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


def mask_sensitive(value: str | None, keep_chars: int = 4) -> str:
    """Return *value* with everything but the first *keep_chars* replaced.

    >>> mask_sensitive("abcdef123456", 4)
    'abcd****'
    """
    if not value:
        return ""
    if len(value) <= keep_chars:
        return "*" * len(value)
    return f"{value[:keep_chars]}****"


def configure_logging(level: int | None = None, stream=None) -> logging.Logger:  # noqa: ANN001
    """Attach a single stream handler to the ``desk-oauth`` logger tree.

    The level defaults to DEBUG when ``DESK_OAUTH_DEBUG`` is truthy and
    WARNING otherwise.  Calling this twice does not duplicate handlers.
    """
    root = logging.getLogger("desk-oauth")
    if level is None:
        level = logging.DEBUG if debug_logging_enabled() else logging.WARNING
    root.setLevel(level)
    if not any(getattr(h, "_desk_oauth", False) for h in root.handlers):
        handler = logging.StreamHandler(stream or sys.stderr)
        handler.setFormatter(logging.Formatter(_FORMAT))
        handler._desk_oauth = True  # type: ignore[attr-defined]
        root.addHandler(handler)
    return root
