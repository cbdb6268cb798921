"""On-disk credential vault: one JSON document per provider.

Every ``set``/``delete`` reads the whole document, mutates it and rewrites
it (temp file + ``os.replace``).  There is **no locking** between
concurrent flows: two sessions for *different* providers never collide
(separate files), but two writers on the same provider file can lose one
update.  Known gap, kept as-is.

Failure policy is **lenient** on purpose: I/O and parse problems are
logged and turned into ``None`` / no-op so that a broken file degrades the
caller to "not authenticated" instead of crashing the desktop app.

Environment variables
---------------------
DESK_OAUTH_STORAGE_DIR
    Base directory for vault files; see
    :func:`desk_oauth.utils.environment.storage_dir`.
"""

from __future__ import annotations

import json
import logging
import os
import re
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

from desk_oauth.central_auth.errors import VaultIOError
from desk_oauth.utils.environment import storage_dir

_LOG = logging.getLogger("desk-oauth.central_auth.store")

TOKENS_KEY = "tokens"


def _slug(text: str, max_len: int = 48) -> str:
    text = (text or "").strip().lower()
    text = re.sub(r"[^a-z0-9._]+", "-", text)
    text = re.sub(r"-{2,}", "-", text).strip("-.")
    return text[:max_len] or "unknown"


def _read_document(path: Path) -> dict[str, Any]:
    """Return the JSON object at *path*; a missing file is an empty document."""
    try:
        if not path.exists():
            return {}
        with path.open(encoding="utf-8") as fh:
            data = json.load(fh)
    except json.JSONDecodeError as exc:
        raise VaultIOError(path, "vault file is not valid JSON") from exc
    except RecursionError as exc:
        raise VaultIOError(path, "vault file is nested too deeply") from exc
    except (OSError, UnicodeDecodeError) as exc:
        raise VaultIOError(path, f"cannot read vault file ({exc})") from exc
    if not isinstance(data, dict):
        raise VaultIOError(path, "vault file is not a JSON object")
    return data


def _atomic_write(path: Path, data: dict[str, Any]) -> None:
    tmp = path.with_suffix(path.suffix + ".tmp")
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with tmp.open("w", encoding="utf-8") as fh:
            json.dump(data, fh, indent=2)
        os.replace(tmp, path)
    except OSError as exc:
        tmp.unlink(missing_ok=True)
        raise VaultIOError(path, f"cannot write vault file ({exc})") from exc


@runtime_checkable
class CredentialVault(Protocol):
    """Provider-keyed key/value persistence used by the OAuth client."""

    def get(self, provider: str, key: str) -> Any | None: ...

    def set(self, provider: str, key: str, value: Any) -> None: ...

    def delete(self, provider: str, key: str) -> None: ...

    def path_for(self, provider: str) -> Path: ...


class DiskCredentialVault(CredentialVault):
    """JSON-file implementation of :class:`CredentialVault`."""

    def __init__(self, base_dir: str | os.PathLike | None = None) -> None:
        self.base_dir = Path(base_dir or storage_dir()).expanduser()

    def path_for(self, provider: str) -> Path:
        return self.base_dir / f"{_slug(provider)}-tokens.json"

    def get(self, provider: str, key: str) -> Any | None:
        try:
            return _read_document(self.path_for(provider)).get(key)
        except VaultIOError as exc:
            _LOG.error("Failed to read %s tokens: %s", provider, exc)
            return None

    def set(self, provider: str, key: str, value: Any) -> None:
        path = self.path_for(provider)
        try:
            data = _read_document(path)
            data[key] = value
            _atomic_write(path, data)
        except VaultIOError as exc:
            _LOG.error("Failed to write %s tokens: %s", provider, exc)
            return
        _LOG.debug("Stored %s/%s in %s", provider, key, path.name)

    def delete(self, provider: str, key: str) -> None:
        path = self.path_for(provider)
        try:
            data = _read_document(path)
            if key not in data:
                return
            del data[key]
            _atomic_write(path, data)
        except VaultIOError as exc:
            _LOG.error("Failed to delete %s tokens: %s", provider, exc)
            return
        _LOG.debug("Deleted %s/%s from %s", provider, key, path.name)
