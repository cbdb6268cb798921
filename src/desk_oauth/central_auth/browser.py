"""Hosted browser surface contract and the deduplicated redirect watch.

The desktop shell owns the actual browser window.  This module only states
what the OAuth core needs from it: load a URL, close, and report
``will-redirect`` / ``will-navigate`` / ``closed`` events.  Hosting
surfaces differ in which of the two navigation signals they fire for a
server-side redirect, so :class:`RedirectWatch` subscribes to both and
collapses them into a single ``on_redirect`` call.
"""

from __future__ import annotations

import logging
from typing import Callable, Protocol, runtime_checkable

from desk_oauth.central_auth.redirect import RedirectParams, match_redirect

_LOG = logging.getLogger("desk-oauth.central_auth.browser")


@runtime_checkable
class NavigationEvent(Protocol):
    """A pending navigation that can still be cancelled."""

    url: str

    def prevent_default(self) -> None: ...


NavigationHandler = Callable[[NavigationEvent], None]


@runtime_checkable
class BrowserSurface(Protocol):
    """Minimal window contract implemented by the embedding shell."""

    def load_url(self, url: str) -> None: ...

    def close(self) -> None: ...

    def on_will_redirect(self, handler: NavigationHandler) -> None: ...

    def on_will_navigate(self, handler: NavigationHandler) -> None: ...

    def on_closed(self, handler: Callable[[], None]) -> None: ...


BrowserSurfaceFactory = Callable[[], BrowserSurface]


class RedirectWatch:
    """Turn both navigation hooks into exactly one redirect notification.

    Every navigation that matches the redirect URI is suppressed, including
    duplicates arriving after the first, so the surface never loads the
    redirect target.  Only the first match reaches *on_redirect*.
    """

    def __init__(
        self,
        surface: BrowserSurface,
        redirect_uri: str,
        on_redirect: Callable[[RedirectParams], None],
    ) -> None:
        self._surface = surface
        self._redirect_uri = redirect_uri
        self._on_redirect = on_redirect
        self._fired = False

    @property
    def fired(self) -> bool:
        return self._fired

    def attach(self) -> None:
        self._surface.on_will_redirect(self._handle)
        self._surface.on_will_navigate(self._handle)

    def _handle(self, event: NavigationEvent) -> None:
        params = match_redirect(event.url, self._redirect_uri)
        if params is None:
            return
        event.prevent_default()
        if self._fired:
            _LOG.debug("Ignoring duplicate redirect notification")
            return
        self._fired = True
        self._on_redirect(params)
