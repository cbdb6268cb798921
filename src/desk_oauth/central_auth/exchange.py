"""Authorization-code → token exchange over HTTPS.

One POST per call, no retries: a failed exchange fails the whole flow.
Client authentication is always HTTP Basic; the body format comes from the
provider profile because providers genuinely disagree on it (Figma and
Google expect ``application/x-www-form-urlencoded``, Notion expects JSON).

The same client also performs the provider calls around the token: revoke
on logout and the user-info lookup, for profiles that declare those URLs.
"""

from __future__ import annotations

import base64
import json
import logging
from typing import Any

import httpx

from desk_oauth.central_auth.clock import Clock, default_clock
from desk_oauth.central_auth.errors import (
    ExchangeHTTPError,
    ExchangeParseError,
    ExchangeTransportError,
)
from desk_oauth.central_auth.models import AuthorizationSession, ProviderCredentials, TokenRecord
from desk_oauth.central_auth.providers import BodyEncoding, OAuthProviderProfile
from desk_oauth.utils.environment import http_timeout

_LOG = logging.getLogger("desk-oauth.central_auth.exchange")


def basic_auth_header(client_id: str, client_secret: str) -> str:
    """Return the ``Authorization`` header value for client credentials."""
    raw = f"{client_id}:{client_secret}".encode("utf-8")
    return "Basic " + base64.b64encode(raw).decode("ascii")


class TokenExchangeClient:
    """POSTs token requests to a provider's token endpoint.

    Parameters
    ----------
    http_client:
        Optional shared :class:`httpx.AsyncClient`.  When omitted a client is
        created (and closed) per request.  Tests inject one built on
        :class:`httpx.MockTransport`.
    clock:
        Used to stamp ``obtained_at`` on the returned :class:`TokenRecord`.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient | None = None,
        *,
        timeout: float | None = None,
        clock: Clock = default_clock,
    ) -> None:
        self._http = http_client
        self._timeout = timeout if timeout is not None else http_timeout()
        self._clock = clock

    async def exchange(
        self,
        code: str,
        session: AuthorizationSession,
        profile: OAuthProviderProfile,
    ) -> TokenRecord:
        """Exchange *code* for tokens using the session's client credentials."""
        body: dict[str, str]
        if profile.body_encoding is BodyEncoding.JSON:
            body = {
                "grant_type": "authorization_code",
                "code": code,
                "redirect_uri": session.redirect_uri,
            }
        else:
            body = {
                "redirect_uri": session.redirect_uri,
                "code": code,
                "grant_type": "authorization_code",
            }
            if session.code_verifier:
                body["code_verifier"] = session.code_verifier
        _LOG.debug("Exchanging authorization code with %s", profile.name)
        return await self._post(
            profile,
            ProviderCredentials(session.client_id, session.client_secret),
            body,
        )

    async def refresh(
        self,
        refresh_token: str,
        credentials: ProviderCredentials,
        profile: OAuthProviderProfile,
    ) -> TokenRecord:
        """Trade *refresh_token* for a new access token."""
        body = {"grant_type": "refresh_token", "refresh_token": refresh_token}
        _LOG.debug("Refreshing access token with %s", profile.name)
        return await self._post(profile, credentials, body)

    async def revoke(self, token: str, profile: OAuthProviderProfile) -> bool:
        """Best-effort revocation of *token*; never raises on provider failure.

        Returns True only when the provider acknowledged the revocation.
        """
        if not profile.revoke_url:
            return False
        try:
            resp = await self._send("POST", profile.revoke_url, data={"token": token})
        except httpx.HTTPError as exc:
            _LOG.warning("Token revocation for %s failed: %s", profile.name, type(exc).__name__)
            return False
        if not resp.is_success:
            _LOG.warning("Revocation endpoint for %s returned %s", profile.name, resp.status_code)
            return False
        _LOG.info("Revoked %s access token", profile.name)
        return True

    async def fetch_user_info(
        self, access_token: str, profile: OAuthProviderProfile
    ) -> dict[str, Any]:
        """Return ``email`` / ``name`` / ``picture`` for the token's owner.

        Raises
        ------
        ValueError
            If *profile* has no user-info endpoint.
        ExchangeTransportError, ExchangeHTTPError, ExchangeParseError
            As for token requests.
        """
        if not profile.user_info_url:
            raise ValueError(f"{profile.name} has no user info endpoint")
        headers = {"Authorization": f"Bearer {access_token}", "Accept": "application/json"}
        try:
            resp = await self._send("GET", profile.user_info_url, headers=headers)
        except httpx.HTTPError as exc:
            raise ExchangeTransportError(f"User info request failed: {exc}") from exc
        if resp.status_code != 200:
            raise ExchangeHTTPError(resp.status_code, resp.text)
        try:
            data = resp.json()
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise ExchangeParseError("Failed to parse user info response") from exc
        if not isinstance(data, dict):
            raise ExchangeParseError("User info response is not a JSON object")
        return {key: data.get(key) for key in ("email", "name", "picture")}

    # ---------------- internal helpers --------------------------------- #
    async def _send(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        if self._http is not None:
            return await self._http.request(method, url, **kwargs)
        async with httpx.AsyncClient(timeout=self._timeout) as client:
            return await client.request(method, url, **kwargs)

    async def _post(
        self,
        profile: OAuthProviderProfile,
        credentials: ProviderCredentials,
        body: dict[str, str],
    ) -> TokenRecord:
        headers = {
            "Authorization": basic_auth_header(credentials.client_id, credentials.client_secret),
            "Accept": "application/json",
        }
        kwargs: dict[str, Any] = {"headers": headers}
        if profile.body_encoding is BodyEncoding.JSON:
            kwargs["json"] = body
        else:
            kwargs["data"] = body

        try:
            resp = await self._send("POST", profile.token_url, **kwargs)
        except httpx.HTTPError as exc:
            _LOG.error("Token request to %s failed: %s", profile.name, type(exc).__name__)
            raise ExchangeTransportError(f"Token request failed: {exc}") from exc

        if resp.status_code != 200:
            _LOG.error("Token endpoint for %s returned %s", profile.name, resp.status_code)
            raise ExchangeHTTPError(resp.status_code, resp.text)

        try:
            payload = resp.json()
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise ExchangeParseError() from exc
        if not isinstance(payload, dict):
            raise ExchangeParseError("Token response is not a JSON object")
        try:
            record = TokenRecord.from_response(payload, obtained_at=int(self._clock()))
        except KeyError:
            raise ExchangeParseError("Token response missing access_token") from None
        except (ValueError, TypeError, OverflowError) as exc:
            raise ExchangeParseError(f"Unusable token response ({type(exc).__name__})") from exc

        _LOG.info(
            "Token request to %s succeeded (refresh token: %s)",
            profile.name,
            "yes" if record.refresh_token else "no",
        )
        return record
