"""End-to-end authorization flows driven through a scripted browser surface.

Covers:
* success with persistence (form + PKCE and JSON without PKCE)
* state mismatch never reaching the token endpoint
* provider error / missing code redirects
* token endpoint rejection
* window closed while awaiting the redirect or during the exchange
* duplicate redirect hooks
* authorize URL parameters per provider
* refresh and logout against the vault
"""

from __future__ import annotations

import asyncio
import json
from urllib.parse import parse_qs

import pytest

from desk_oauth.central_auth.errors import (
    ExchangeHTTPError,
    ExchangeParseError,
    MissingCredentialsError,
    ProviderError,
    StateMismatchError,
    WindowClosedBeforeResolutionError,
)
from desk_oauth.central_auth.models import ProviderCredentials, TokenRecord
from desk_oauth.central_auth.pkce import code_challenge_s256
from desk_oauth.central_auth.providers import FIGMA, GOOGLE_DRIVE, NOTION
from desk_oauth.central_auth.service import OAuth2Client
from desk_oauth.central_auth.store import TOKENS_KEY

CREDS = ProviderCredentials(client_id="abc", client_secret="xyz")


@pytest.fixture
def make_client(vault, surface_factory, exchange_client):
    def _make(profile=FIGMA) -> OAuth2Client:
        return OAuth2Client(
            profile,
            vault=vault,
            surface_factory=surface_factory,
            exchange_client=exchange_client,
        )

    return _make


async def _start(client: OAuth2Client, surface_factory, count: int = 1):
    task = asyncio.create_task(client.authenticate(CREDS))
    surface = await surface_factory.wait_until_loaded(count)
    return task, surface


def _form(request) -> dict[str, str]:
    return {k: v[0] for k, v in parse_qs(request.content.decode()).items()}


# --------------------------------------------------------------------------- #
# Success                                                                     #
# --------------------------------------------------------------------------- #
@pytest.mark.anyio
async def test_success_persists_tokens(make_client, surface_factory, token_endpoint, vault):
    client = make_client(FIGMA)
    task, surface = await _start(client, surface_factory)

    event = surface.fire_will_redirect(f"http://localhost?code=XYZ123&state={surface.state}")
    result = await task

    assert event.prevented
    assert result.token == TokenRecord(
        access_token="tok1", token_type="bearer", obtained_at=1_700_000_000
    )
    assert vault.get("figma", TOKENS_KEY) == {
        "access_token": "tok1",
        "token_type": "bearer",
        "obtained_at": 1_700_000_000,
    }
    assert result.storage_path == str(vault.path_for("figma"))
    assert surface.closed
    assert client.is_authenticated()

    body = _form(token_endpoint.requests[0])
    assert body["code"] == "XYZ123"
    assert code_challenge_s256(body["code_verifier"]) == surface.authorize_params["code_challenge"]


@pytest.mark.anyio
async def test_notion_success_without_pkce(make_client, surface_factory, token_endpoint, vault):
    token_endpoint.respond(
        200, {"access_token": "tok1", "token_type": "bearer", "workspace_name": "Acme"}
    )
    client = make_client(NOTION)
    task, surface = await _start(client, surface_factory)

    surface.fire_will_navigate(f"http://localhost/?code=c1&state={surface.state}")
    result = await task

    assert "code_verifier" not in json.loads(token_endpoint.requests[0].content)
    assert result.to_payload()["token_info"]["workspace_name"] == "Acme"
    assert vault.get("notion", TOKENS_KEY)["workspace_name"] == "Acme"


@pytest.mark.anyio
async def test_concurrent_providers_do_not_interfere(
    make_client, surface_factory, token_endpoint, vault
):
    figma_task, figma_surface = await _start(make_client(FIGMA), surface_factory)
    notion_task, notion_surface = await _start(make_client(NOTION), surface_factory, count=2)

    notion_surface.fire_will_redirect(f"http://localhost/?code=n&state={notion_surface.state}")
    figma_surface.fire_will_redirect(f"http://localhost/?code=f&state={figma_surface.state}")
    await asyncio.gather(figma_task, notion_task)

    assert vault.get("figma", TOKENS_KEY)["access_token"] == "tok1"
    assert vault.get("notion", TOKENS_KEY)["access_token"] == "tok1"
    assert token_endpoint.calls == 2


# --------------------------------------------------------------------------- #
# Failures                                                                    #
# --------------------------------------------------------------------------- #
@pytest.mark.anyio
async def test_state_mismatch_never_calls_token_endpoint(
    make_client, surface_factory, token_endpoint, vault
):
    task, surface = await _start(make_client(), surface_factory)

    surface.fire_will_redirect("http://localhost?code=XYZ123&state=forged")

    with pytest.raises(StateMismatchError):
        await task
    assert token_endpoint.calls == 0
    assert surface.closed
    assert vault.get("figma", TOKENS_KEY) is None


@pytest.mark.anyio
async def test_provider_error_redirect(make_client, surface_factory, token_endpoint):
    task, surface = await _start(make_client(), surface_factory)

    surface.fire_will_redirect(
        f"http://localhost/?error=access_denied&error_description=denied&state={surface.state}"
    )

    with pytest.raises(ProviderError) as exc_info:
        await task
    assert exc_info.value.provider_code == "access_denied"
    assert str(exc_info.value) == "OAuth error: access_denied (denied)"
    assert token_endpoint.calls == 0


@pytest.mark.anyio
async def test_redirect_without_code(make_client, surface_factory, token_endpoint):
    task, surface = await _start(make_client(), surface_factory)

    surface.fire_will_redirect(f"http://localhost/?state={surface.state}")

    with pytest.raises(ProviderError) as exc_info:
        await task
    assert exc_info.value.provider_code == "missing_code"
    assert token_endpoint.calls == 0


@pytest.mark.anyio
async def test_token_endpoint_rejection(make_client, surface_factory, token_endpoint, vault):
    token_endpoint.respond(400, '{"error":"invalid_grant"}')
    task, surface = await _start(make_client(), surface_factory)

    surface.fire_will_redirect(f"http://localhost?code=XYZ123&state={surface.state}")

    with pytest.raises(ExchangeHTTPError) as exc_info:
        await task
    assert exc_info.value.status == 400
    assert exc_info.value.body == '{"error":"invalid_grant"}'
    assert surface.closed
    assert vault.get("figma", TOKENS_KEY) is None


@pytest.mark.anyio
async def test_missing_credentials_opens_no_window(make_client, surface_factory):
    client = make_client()
    with pytest.raises(MissingCredentialsError):
        await client.authenticate(ProviderCredentials("abc", ""))
    assert surface_factory.surfaces == []


# --------------------------------------------------------------------------- #
# Window lifecycle                                                            #
# --------------------------------------------------------------------------- #
@pytest.mark.anyio
async def test_window_closed_before_redirect(make_client, surface_factory, token_endpoint, vault):
    task, surface = await _start(make_client(), surface_factory)

    surface.close()
    with pytest.raises(WindowClosedBeforeResolutionError):
        await task

    # A late redirect for the same session changes nothing.
    late = surface.fire_will_redirect(f"http://localhost?code=late&state={surface.state}")
    await asyncio.sleep(0)
    assert late.prevented
    assert token_endpoint.calls == 0
    assert vault.get("figma", TOKENS_KEY) is None


@pytest.mark.anyio
async def test_window_closed_during_exchange(make_client, surface_factory, token_endpoint, vault):
    token_endpoint.gate = asyncio.Event()
    task, surface = await _start(make_client(), surface_factory)

    surface.fire_will_redirect(f"http://localhost?code=XYZ123&state={surface.state}")
    for _ in range(200):
        if token_endpoint.calls:
            break
        await asyncio.sleep(0)
    assert token_endpoint.calls == 1

    surface.close()
    token_endpoint.gate.set()

    with pytest.raises(WindowClosedBeforeResolutionError):
        await task
    await asyncio.sleep(0)
    assert vault.get("figma", TOKENS_KEY) is None


@pytest.mark.anyio
async def test_both_navigation_hooks_trigger_one_exchange(
    make_client, surface_factory, token_endpoint
):
    task, surface = await _start(make_client(), surface_factory)
    url = f"http://localhost?code=XYZ123&state={surface.state}"

    first = surface.fire_will_redirect(url)
    second = surface.fire_will_navigate(url)
    await task

    assert first.prevented and second.prevented
    assert token_endpoint.calls == 1


# --------------------------------------------------------------------------- #
# Authorize URL                                                               #
# --------------------------------------------------------------------------- #
@pytest.mark.anyio
async def test_authorize_url_parameters(make_client, surface_factory):
    figma_task, figma = await _start(make_client(FIGMA), surface_factory)
    notion_task, notion = await _start(make_client(NOTION), surface_factory, count=2)
    google_task, google = await _start(make_client(GOOGLE_DRIVE), surface_factory, count=3)

    params = figma.authorize_params
    assert figma.loaded_urls[0].startswith(FIGMA.authorize_url + "?")
    assert params["client_id"] == "abc"
    assert params["redirect_uri"] == "http://localhost"
    assert params["response_type"] == "code"
    assert params["scope"] == ",".join(FIGMA.scopes)
    assert params["code_challenge_method"] == "S256"
    assert len(params["state"]) == 32

    params = notion.authorize_params
    assert params["owner"] == "user"
    assert "code_challenge" not in params
    assert "scope" not in params

    params = google.authorize_params
    assert params["access_type"] == "offline"
    assert params["prompt"] == "consent"
    assert params["scope"] == " ".join(GOOGLE_DRIVE.scopes)
    assert "code_challenge" in params

    assert len({figma.state, notion.state, google.state}) == 3

    for surface in (figma, notion, google):
        surface.close()
    for task in (figma_task, notion_task, google_task):
        with pytest.raises(WindowClosedBeforeResolutionError):
            await task


# --------------------------------------------------------------------------- #
# Refresh / logout                                                            #
# --------------------------------------------------------------------------- #
@pytest.mark.anyio
async def test_refresh_merges_and_persists(make_client, token_endpoint, vault):
    vault.set("figma", TOKENS_KEY, {"access_token": "old", "refresh_token": "r1"})
    token_endpoint.respond(200, {"access_token": "tok2", "expires_in": 3600})

    record = await make_client().refresh(CREDS)

    assert record.access_token == "tok2"
    assert record.refresh_token == "r1"
    assert record.expires_at == 1_700_000_000 + 3600
    assert vault.get("figma", TOKENS_KEY)["access_token"] == "tok2"
    assert _form(token_endpoint.requests[0])["refresh_token"] == "r1"


@pytest.mark.anyio
async def test_refresh_failure_clears_tokens(make_client, token_endpoint, vault):
    vault.set("figma", TOKENS_KEY, {"access_token": "old", "refresh_token": "r1"})
    token_endpoint.respond(400, '{"error":"invalid_grant"}')
    client = make_client()

    with pytest.raises(ExchangeHTTPError):
        await client.refresh(CREDS)
    assert not client.is_authenticated()


@pytest.mark.anyio
async def test_refresh_without_refresh_token(make_client, token_endpoint, vault):
    vault.set("figma", TOKENS_KEY, {"access_token": "old"})
    with pytest.raises(MissingCredentialsError):
        await make_client().refresh(CREDS)
    assert token_endpoint.calls == 0


@pytest.mark.anyio
async def test_logout_clears_tokens(make_client, token_endpoint, vault):
    client = make_client(FIGMA)
    vault.set("figma", TOKENS_KEY, {"access_token": "tok1"})
    assert client.is_authenticated()

    assert await client.logout() == {"success": True, "message": "Logged out successfully"}
    assert not client.is_authenticated()
    assert client.load_tokens() is None
    # Figma has no revocation endpoint.
    assert token_endpoint.calls == 0


@pytest.mark.anyio
async def test_logout_revokes_google_token(make_client, token_endpoint, vault):
    vault.set("google_drive", TOKENS_KEY, {"access_token": "tok1", "refresh_token": "r1"})
    token_endpoint.respond(200, "")

    await make_client(GOOGLE_DRIVE).logout()

    request = token_endpoint.requests[0]
    assert str(request.url) == GOOGLE_DRIVE.revoke_url
    assert _form(request) == {"token": "tok1"}
    assert vault.get("google_drive", TOKENS_KEY) is None


@pytest.mark.anyio
async def test_logout_clears_tokens_when_revocation_fails(make_client, token_endpoint, vault):
    vault.set("google_drive", TOKENS_KEY, {"access_token": "tok1"})
    token_endpoint.respond(400, '{"error":"invalid_token"}')

    result = await make_client(GOOGLE_DRIVE).logout()

    assert result["success"] is True
    assert token_endpoint.calls == 1
    assert vault.get("google_drive", TOKENS_KEY) is None


@pytest.mark.anyio
async def test_google_user_info(make_client, token_endpoint, vault):
    vault.set("google_drive", TOKENS_KEY, {"access_token": "tok1"})
    token_endpoint.respond(
        200, {"email": "me@example.com", "name": "Me", "picture": "https://p", "id": "42"}
    )

    info = await make_client(GOOGLE_DRIVE).get_user_info()

    assert info == {"email": "me@example.com", "name": "Me", "picture": "https://p"}
    request = token_endpoint.requests[0]
    assert str(request.url) == GOOGLE_DRIVE.user_info_url
    assert request.headers["authorization"] == "Bearer tok1"


@pytest.mark.anyio
async def test_user_info_requires_tokens(make_client, token_endpoint):
    with pytest.raises(MissingCredentialsError):
        await make_client(GOOGLE_DRIVE).get_user_info()
    assert token_endpoint.calls == 0


@pytest.mark.anyio
async def test_refresh_without_lifetime_drops_stale_expiry(make_client, token_endpoint, vault):
    vault.set(
        "figma",
        TOKENS_KEY,
        {"access_token": "old", "refresh_token": "r1", "expires_in": 3600, "obtained_at": 1},
    )
    token_endpoint.respond(200, {"access_token": "tok2"})

    record = await make_client().refresh(CREDS)

    assert record.expires_in is None
    assert record.expires_at is None
    assert "expires_in" not in vault.get("figma", TOKENS_KEY)


# --------------------------------------------------------------------------- #
# Settling on odd token responses / caller cancellation                       #
# --------------------------------------------------------------------------- #
@pytest.mark.anyio
@pytest.mark.parametrize("lifetime", ["NaN", "1e400", "Infinity", '"soon"'])
async def test_unusable_lifetime_still_settles(
    make_client, surface_factory, token_endpoint, vault, lifetime
):
    token_endpoint.respond(200, f'{{"access_token":"tok","expires_in":{lifetime}}}')
    task, surface = await _start(make_client(), surface_factory)

    surface.fire_will_redirect(f"http://localhost?code=XYZ123&state={surface.state}")
    result = await asyncio.wait_for(task, 1.0)

    assert result.token.access_token == "tok"
    assert result.token.expires_in is None
    assert surface.closed
    assert vault.get("figma", TOKENS_KEY)["access_token"] == "tok"


@pytest.mark.anyio
async def test_unexpected_exchange_failure_rejects(
    make_client, surface_factory, exchange_client, monkeypatch, vault
):
    async def _explode(*args, **kwargs):
        raise OverflowError("cannot convert float infinity to integer")

    monkeypatch.setattr(exchange_client, "exchange", _explode)
    task, surface = await _start(make_client(), surface_factory)

    surface.fire_will_redirect(f"http://localhost?code=XYZ123&state={surface.state}")

    with pytest.raises(ExchangeParseError):
        await asyncio.wait_for(task, 1.0)
    assert surface.closed
    assert vault.get("figma", TOKENS_KEY) is None


@pytest.mark.anyio
async def test_caller_timeout_closes_window(make_client, surface_factory, token_endpoint, vault):
    client = make_client()
    task = asyncio.create_task(asyncio.wait_for(client.authenticate(CREDS), 0.05))
    surface = await surface_factory.wait_until_loaded()

    with pytest.raises(asyncio.TimeoutError):
        await task
    assert surface.closed

    late = surface.fire_will_redirect(f"http://localhost?code=late&state={surface.state}")
    await asyncio.sleep(0)
    assert late.prevented
    assert token_endpoint.calls == 0
    assert vault.get("figma", TOKENS_KEY) is None
