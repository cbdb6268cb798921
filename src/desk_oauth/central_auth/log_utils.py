"""Structured logging helpers for authorization sessions.

The adapter restricts **which** contextual attributes are attached to log
records so that nothing secret leaks through ``extra``.  Only these fields
are injected:

- ``session_id``     – authorization session identifier (first 6 chars kept)
- ``provider``       – provider profile name (``figma``, ``notion``…)
- ``correlation_id`` – set by the bridge when a flow was started over HTTP

Usage
-----
>>> from desk_oauth.central_auth.log_utils import get_auth_logger
>>> log = get_auth_logger(
...     base_logger_name="desk-oauth.central_auth.window",
...     session_id="5f0c2d8e9a714cbb",
...     provider="figma",
... )
>>> log.info("Opening authorization window")
"""

from __future__ import annotations

import logging
from typing import Any, Mapping, MutableMapping


class _AuthLoggerAdapter(logging.LoggerAdapter):
    """Inject whitelisted session context into log records."""

    extra_keys = ("session_id", "provider", "correlation_id")

    def __init__(self, logger: logging.Logger, extra: Mapping[str, Any] | None = None):
        extra_clean: MutableMapping[str, Any] = {}
        for k in self.extra_keys:
            if not extra or extra.get(k) is None:
                continue
            if k == "session_id":
                extra_clean[k] = str(extra[k])[:6]
            else:
                extra_clean[k] = extra[k]
        super().__init__(logger, extra_clean)

    def process(self, msg: str, kwargs: MutableMapping[str, Any]):
        if kwargs.get("extra") is None:
            kwargs["extra"] = {}
        for k, v in self.extra.items():
            kwargs["extra"].setdefault(k, v)
        prefix = " ".join(f"{k}={v}" for k, v in self.extra.items())
        return (f"[{prefix}] {msg}" if prefix else msg), kwargs


def get_auth_logger(
    *,
    base_logger_name: str = "desk-oauth.central_auth",
    session_id: str | None = None,
    provider: str | None = None,
    correlation_id: str | None = None,
) -> logging.LoggerAdapter:
    """Return a LoggerAdapter pre-filled with session context."""
    logger = logging.getLogger(base_logger_name)
    return _AuthLoggerAdapter(
        logger,
        {
            "session_id": session_id,
            "provider": provider,
            "correlation_id": correlation_id,
        },
    )
