"""Redirect URI matching and query extraction.

A navigation is a redirect only if its scheme, network location and path
equal those of the configured redirect URI; the query string is ignored
for matching and used only to pull out ``code``, ``state`` and ``error``.
Prefix or substring matches are deliberately not enough:
``http://localhost.attacker.example`` and ``http://localhost:8080`` are
both ordinary navigations.
"""

from __future__ import annotations

from dataclasses import dataclass
from urllib.parse import parse_qs, urlsplit


@dataclass(frozen=True, slots=True)
class RedirectParams:
    """Values extracted from an intercepted redirect."""

    code: str | None = None
    state: str | None = None
    error: str | None = None
    error_description: str | None = None


def _key(url: str) -> tuple[str, str, str] | None:
    try:
        parts = urlsplit(url)
    except ValueError:
        return None
    return parts.scheme.lower(), parts.netloc.lower(), parts.path or "/"


def match_redirect(url: str, redirect_uri: str) -> RedirectParams | None:
    """Return the parsed redirect parameters, or None if *url* is not a redirect."""
    expected = _key(redirect_uri)
    if expected is None or _key(url) != expected:
        return None

    query = parse_qs(urlsplit(url).query)

    def first(name: str) -> str | None:
        values = query.get(name)
        return values[0] if values else None

    return RedirectParams(
        code=first("code"),
        state=first("state"),
        error=first("error"),
        error_description=first("error_description"),
    )
