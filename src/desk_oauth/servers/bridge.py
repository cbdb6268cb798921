"""Local HTTP bridge between the desktop UI and the OAuth/crypto core.

Handlers are intentionally thin:

1. Parse and validate the JSON body / path parameters.
2. Delegate to :class:`OAuth2Client`, the token cipher or the reconnect
   orchestrator.
3. Map results and errors onto ``{"success": ...}`` JSON responses.

SECURITY NOTE
-------------
• The app is meant to be served on the loopback interface only.
• No raw secrets (codes, tokens, passphrases, client secrets) are logged.
• PBKDF2 work runs in the thread pool so in-flight flows keep their loop.
• A correlation id from ``X-Correlation-ID`` (or a fresh one) is attached to
  flow logs and echoed back in the response headers.
"""

from __future__ import annotations

import json
import logging
import uuid
from typing import Any, Mapping

from starlette.applications import Starlette
from starlette.concurrency import run_in_threadpool
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from starlette.routing import Route

from desk_oauth.central_auth.errors import AuthFlowError, CryptoError
from desk_oauth.central_auth.models import ProviderCredentials
from desk_oauth.central_auth.service import OAuth2Client
from desk_oauth.crypto.reconnect import ReconnectOrchestrator, StoredTokenEntry
from desk_oauth.crypto.token_cipher import decrypt_token, encrypt_token
from desk_oauth.utils.environment import provider_credentials

_LOG = logging.getLogger("desk-oauth.servers.bridge")

_HEADER_NAME = "X-Correlation-ID"


def _correlation_id(request: Request) -> str:
    return request.headers.get(_HEADER_NAME) or uuid.uuid4().hex


async def _json_body(request: Request) -> dict[str, Any]:
    try:
        payload = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        return {}
    return payload if isinstance(payload, dict) else {}


def _error(message: str, status: int = 400, **extra: Any) -> JSONResponse:
    return JSONResponse({"success": False, "error": message, **extra}, status_code=status)


def _require_str(body: Mapping[str, Any], *names: str) -> tuple[str, ...] | None:
    values = tuple(body.get(n) for n in names)
    if not all(isinstance(v, str) and v for v in values):
        return None
    return values  # type: ignore[return-value]


# --------------------------------------------------------------------------- #
# Public API                                                                  #
# --------------------------------------------------------------------------- #
def build_bridge_app(
    clients: Mapping[str, OAuth2Client],
    *,
    reconnect: ReconnectOrchestrator | None = None,
) -> Starlette:
    """Return a Starlette app serving *clients* keyed by provider name."""
    orchestrator = reconnect or ReconnectOrchestrator()

    def _client_for(request: Request) -> OAuth2Client | None:
        return clients.get(request.path_params["provider"])

    # ----- POST /auth/{provider}/authenticate ----------------------------- #
    async def _authenticate(request: Request) -> Response:
        client = _client_for(request)
        if client is None:
            return _error("unknown provider", 404)
        body = await _json_body(request)
        env_id, env_secret = provider_credentials(client.provider)
        credentials = ProviderCredentials(
            client_id=str(body.get("client_id") or env_id),
            client_secret=str(body.get("client_secret") or env_secret),
        )
        correlation_id = _correlation_id(request)
        try:
            result = await client.authenticate(credentials, correlation_id=correlation_id)
        except AuthFlowError as exc:
            _LOG.warning(
                "Authentication failed provider=%s error=%s correlation_id=%s",
                client.provider,
                exc.code,
                correlation_id,
            )
            payload = {"success": False, **exc.to_payload()}
            return JSONResponse(payload, status_code=400, headers={_HEADER_NAME: correlation_id})

        _LOG.info(
            "Authentication succeeded provider=%s correlation_id=%s",
            client.provider,
            correlation_id,
        )
        return JSONResponse(result.to_payload(), headers={_HEADER_NAME: correlation_id})

    # ----- GET /auth/{provider}/status ------------------------------------ #
    async def _status(request: Request) -> Response:
        client = _client_for(request)
        if client is None:
            return _error("unknown provider", 404)
        return JSONResponse(
            {"provider": client.provider, "authenticated": client.is_authenticated()}
        )

    # ----- GET /auth/{provider}/user-info --------------------------------- #
    async def _user_info(request: Request) -> Response:
        client = _client_for(request)
        if client is None:
            return _error("unknown provider", 404)
        if not client.profile.user_info_url:
            return _error("user info not supported", 404)
        try:
            user = await client.get_user_info()
        except AuthFlowError as exc:
            return JSONResponse({"success": False, **exc.to_payload()}, status_code=400)
        return JSONResponse({"success": True, "user": user})

    # ----- POST /auth/{provider}/logout ----------------------------------- #
    async def _logout(request: Request) -> Response:
        client = _client_for(request)
        if client is None:
            return _error("unknown provider", 404)
        return JSONResponse(await client.logout())

    # ----- POST /crypto/encrypt ------------------------------------------- #
    async def _encrypt(request: Request) -> Response:
        values = _require_str(await _json_body(request), "token", "master_password")
        if values is None:
            return _error("token and master_password are required")
        token, master_password = values
        encrypted_token = await run_in_threadpool(encrypt_token, token, master_password)
        return JSONResponse({"success": True, "encrypted_token": encrypted_token})

    # ----- POST /crypto/decrypt ------------------------------------------- #
    async def _decrypt(request: Request) -> Response:
        values = _require_str(await _json_body(request), "encrypted_token", "master_password")
        if values is None:
            return _error("encrypted_token and master_password are required")
        encrypted_token, master_password = values
        try:
            token = await run_in_threadpool(decrypt_token, encrypted_token, master_password)
        except CryptoError as exc:
            _LOG.warning("Failed to decrypt token: %s", exc.code)
            return _error(str(exc))
        return JSONResponse({"success": True, "token": token})

    # ----- POST /crypto/reconnect ----------------------------------------- #
    async def _reconnect(request: Request) -> Response:
        body = await _json_body(request)
        master_password = body.get("master_password")
        raw_entries = body.get("entries")
        if not isinstance(master_password, str) or not isinstance(raw_entries, list):
            return _error("master_password and entries are required")

        entries: list[StoredTokenEntry] = []
        for raw in raw_entries:
            if not isinstance(raw, dict) or not _require_str(raw, "entry_id", "encrypted_token"):
                return _error("each entry needs entry_id and encrypted_token")
            entries.append(
                StoredTokenEntry(
                    entry_id=raw["entry_id"],
                    encrypted_token=raw["encrypted_token"],
                    label=str(raw.get("label") or ""),
                )
            )

        report = await run_in_threadpool(orchestrator.recover, master_password, entries)
        return JSONResponse(
            {
                "success": True,
                "recovered": [
                    {"entry_id": r.entry_id, "label": r.label, "token": r.token.to_dict()}
                    for r in report.recovered
                ],
                "failed": report.failed,
            }
        )

    routes = [
        Route("/auth/{provider}/authenticate", _authenticate, methods=["POST"]),
        Route("/auth/{provider}/status", _status, methods=["GET"]),
        Route("/auth/{provider}/user-info", _user_info, methods=["GET"]),
        Route("/auth/{provider}/logout", _logout, methods=["POST"]),
        Route("/crypto/encrypt", _encrypt, methods=["POST"]),
        Route("/crypto/decrypt", _decrypt, methods=["POST"]),
        Route("/crypto/reconnect", _reconnect, methods=["POST"]),
    ]
    return Starlette(routes=routes)
