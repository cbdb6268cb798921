"""Environment-variable configuration for the OAuth core and bridge."""

import logging
import os
from pathlib import Path
from typing import Final, Tuple

logger = logging.getLogger("desk-oauth.utils.environment")

_TRUTHY: Final[Tuple[str, ...]] = ("true", "1", "yes", "y", "on")
_DEFAULT_TIMEOUT: Final[float] = 15.0


def _truthy(value: str | None) -> bool:
    return (value or "").strip().lower() in _TRUTHY


def storage_dir() -> Path:
    """Return the directory holding the per-provider vault files.

    ``DESK_OAUTH_STORAGE_DIR`` wins; otherwise ``~/.config/mcp-desktop``.
    Platform-specific resolution belongs to the embedding shell, which can
    pass an explicit directory instead.
    """
    raw = os.getenv("DESK_OAUTH_STORAGE_DIR")
    if raw:
        return Path(raw).expanduser()
    return Path.home() / ".config" / "mcp-desktop"


def provider_credentials(provider: str) -> tuple[str, str]:
    """Return ``(client_id, client_secret)`` from ``{PROVIDER}_OAUTH_*``.

    Missing values come back as empty strings; the caller decides whether
    that is an error.
    """
    prefix = f"{provider.upper()}_OAUTH_"
    return (
        os.getenv(prefix + "CLIENT_ID", "").strip(),
        os.getenv(prefix + "CLIENT_SECRET", "").strip(),
    )


def debug_logging_enabled() -> bool:
    """Return True if ``DESK_OAUTH_DEBUG`` is set to a truthy value."""
    return _truthy(os.getenv("DESK_OAUTH_DEBUG"))


def http_timeout() -> float:
    """Return the token-endpoint timeout in seconds."""
    raw = os.getenv("DESK_OAUTH_HTTP_TIMEOUT")
    if not raw:
        return _DEFAULT_TIMEOUT
    try:
        value = float(raw)
    except ValueError:
        logger.warning(
            "Ignoring non-numeric DESK_OAUTH_HTTP_TIMEOUT=%r; using %ss",
            raw,
            _DEFAULT_TIMEOUT,
        )
        return _DEFAULT_TIMEOUT
    return value if value > 0 else _DEFAULT_TIMEOUT
