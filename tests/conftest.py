"""Shared fixtures: scripted browser surface, mocked token endpoint, vault."""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Any, Callable
from urllib.parse import parse_qs, urlsplit

import httpx
import pytest

from desk_oauth.central_auth.exchange import TokenExchangeClient
from desk_oauth.central_auth.store import DiskCredentialVault


def fake_clock_factory(now: float) -> Callable[[], float]:
    """Return a callable clock that always returns *now*."""
    return lambda now=now: now


FROZEN_NOW = 1_700_000_000.0


# --------------------------------------------------------------------------- #
# Browser surface double                                                      #
# --------------------------------------------------------------------------- #
class FakeNavigationEvent:
    def __init__(self, url: str) -> None:
        self.url = url
        self.prevented = False

    def prevent_default(self) -> None:
        self.prevented = True


class FakeBrowserSurface:
    """In-memory window whose events are fired by the test."""

    def __init__(self) -> None:
        self.loaded_urls: list[str] = []
        self.closed = False
        self.close_calls = 0
        self._on_redirect: list[Callable[[Any], None]] = []
        self._on_navigate: list[Callable[[Any], None]] = []
        self._on_closed: list[Callable[[], None]] = []

    # BrowserSurface protocol
    def load_url(self, url: str) -> None:
        self.loaded_urls.append(url)

    def close(self) -> None:
        self.close_calls += 1
        if self.closed:
            return
        self.closed = True
        for handler in list(self._on_closed):
            handler()

    def on_will_redirect(self, handler: Callable[[Any], None]) -> None:
        self._on_redirect.append(handler)

    def on_will_navigate(self, handler: Callable[[Any], None]) -> None:
        self._on_navigate.append(handler)

    def on_closed(self, handler: Callable[[], None]) -> None:
        self._on_closed.append(handler)

    # test drivers
    def fire_will_redirect(self, url: str) -> FakeNavigationEvent:
        event = FakeNavigationEvent(url)
        for handler in list(self._on_redirect):
            handler(event)
        return event

    def fire_will_navigate(self, url: str) -> FakeNavigationEvent:
        event = FakeNavigationEvent(url)
        for handler in list(self._on_navigate):
            handler(event)
        return event

    @property
    def authorize_params(self) -> dict[str, str]:
        query = parse_qs(urlsplit(self.loaded_urls[-1]).query)
        return {k: v[0] for k, v in query.items()}

    @property
    def state(self) -> str:
        return self.authorize_params["state"]


class SurfaceFactory:
    """Callable handed to OAuth2Client; remembers every surface it built."""

    def __init__(self) -> None:
        self.surfaces: list[FakeBrowserSurface] = []

    def __call__(self) -> FakeBrowserSurface:
        surface = FakeBrowserSurface()
        self.surfaces.append(surface)
        return surface

    @property
    def last(self) -> FakeBrowserSurface:
        return self.surfaces[-1]

    async def wait_until_loaded(self, count: int = 1) -> FakeBrowserSurface:
        for _ in range(200):
            if len(self.surfaces) >= count and self.surfaces[count - 1].loaded_urls:
                return self.surfaces[count - 1]
            await asyncio.sleep(0)
        raise AssertionError("authorization window was never opened")


# --------------------------------------------------------------------------- #
# Token endpoint double                                                       #
# --------------------------------------------------------------------------- #
class TokenEndpoint:
    """Scripted token endpoint recording every request it receives."""

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.status = 200
        self.body: str = json.dumps({"access_token": "tok1", "token_type": "bearer"})
        self.gate: asyncio.Event | None = None

    async def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.gate is not None:
            await self.gate.wait()
        return httpx.Response(self.status, text=self.body)

    def respond(self, status: int, body: Any) -> None:
        self.status = status
        self.body = body if isinstance(body, str) else json.dumps(body)

    @property
    def calls(self) -> int:
        return len(self.requests)


# --------------------------------------------------------------------------- #
# Fixtures                                                                    #
# --------------------------------------------------------------------------- #
@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
def surface_factory() -> SurfaceFactory:
    return SurfaceFactory()


@pytest.fixture
def token_endpoint() -> TokenEndpoint:
    return TokenEndpoint()


@pytest.fixture
async def exchange_client(token_endpoint: TokenEndpoint):
    async with httpx.AsyncClient(transport=httpx.MockTransport(token_endpoint)) as http:
        yield TokenExchangeClient(http, clock=fake_clock_factory(FROZEN_NOW))


@pytest.fixture
def vault(tmp_path: Path) -> DiskCredentialVault:
    return DiskCredentialVault(base_dir=tmp_path / "vault")


@pytest.fixture
def browser_surface() -> FakeBrowserSurface:
    return FakeBrowserSurface()
