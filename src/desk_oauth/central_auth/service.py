"""OAuth2Client – the small surface external collaborators call into.

One parametrized client per :class:`OAuthProviderProfile` replaces the
per-provider copies the desktop shell used to carry.  Callers only see
``authenticate``, ``is_authenticated``, ``load_tokens``, ``refresh``,
``get_user_info`` and ``logout``; window handling, PKCE, state and persistence stay inside.

Secrets are never logged: results are summarised through
:meth:`TokenRecord.safe_summary`.
"""

from __future__ import annotations

import logging
from typing import Any

from desk_oauth.central_auth.browser import BrowserSurfaceFactory
from desk_oauth.central_auth.clock import Clock, default_clock
from desk_oauth.central_auth.errors import AuthFlowError, MissingCredentialsError
from desk_oauth.central_auth.exchange import TokenExchangeClient
from desk_oauth.central_auth.models import AuthResult, ProviderCredentials, TokenRecord
from desk_oauth.central_auth.providers import OAuthProviderProfile
from desk_oauth.central_auth.store import TOKENS_KEY, CredentialVault
from desk_oauth.central_auth.window import AuthorizationWindowController, new_session

_LOG = logging.getLogger("desk-oauth.central_auth.service")


class OAuth2Client:
    """Application service orchestrating browser OAuth flows for one provider."""

    def __init__(
        self,
        profile: OAuthProviderProfile,
        *,
        vault: CredentialVault,
        surface_factory: BrowserSurfaceFactory,
        exchange_client: TokenExchangeClient | None = None,
        clock: Clock = default_clock,
    ) -> None:
        self.profile = profile
        self.vault = vault
        self._surface_factory = surface_factory
        self._exchange_client = exchange_client or TokenExchangeClient(clock=clock)

    @property
    def provider(self) -> str:
        return self.profile.name

    async def authenticate(
        self, credentials: ProviderCredentials, *, correlation_id: str | None = None
    ) -> AuthResult:
        """Run the browser flow and persist the resulting tokens.

        Raises
        ------
        AuthFlowError
            Any strict flow error; the window is closed before raising.
        """
        if not credentials.is_complete():
            raise MissingCredentialsError()

        session = new_session(self.profile, credentials)
        controller = AuthorizationWindowController(
            self.profile,
            session,
            self._surface_factory(),
            exchange_client=self._exchange_client,
            vault=self.vault,
            correlation_id=correlation_id,
        )
        _LOG.info("Starting %s OAuth authentication", self.provider)
        return await controller.run()

    def load_tokens(self) -> TokenRecord | None:
        """Return the stored token record, or None if absent/unreadable."""
        raw = self.vault.get(self.provider, TOKENS_KEY)
        if not isinstance(raw, dict):
            return None
        try:
            return TokenRecord.from_response(raw)
        except KeyError:
            return None

    def is_authenticated(self) -> bool:
        return self.load_tokens() is not None

    async def refresh(self, credentials: ProviderCredentials) -> TokenRecord:
        """Refresh the stored access token.

        Any failure clears the stored tokens so the caller re-authenticates.
        """
        current = self.load_tokens()
        if current is None or not current.refresh_token:
            raise MissingCredentialsError("No refresh token stored")
        if not credentials.is_complete():
            raise MissingCredentialsError()

        try:
            fresh = await self._exchange_client.refresh(
                current.refresh_token, credentials, self.profile
            )
        except AuthFlowError:
            self.vault.delete(self.provider, TOKENS_KEY)
            _LOG.warning("Refresh failed for %s; stored tokens cleared", self.provider)
            raise

        data = {**current.to_dict(), **fresh.to_dict()}
        if fresh.expires_in is None:
            # The stored lifetime belongs to the previous obtained_at.
            data.pop("expires_in", None)
        merged = TokenRecord.from_response(data, obtained_at=fresh.obtained_at)
        self.vault.set(self.provider, TOKENS_KEY, merged.to_dict())
        _LOG.info("Refreshed %s access token", self.provider)
        return merged

    async def get_user_info(self) -> dict[str, Any]:
        """Return the signed-in user's ``email`` / ``name`` / ``picture``."""
        current = self.load_tokens()
        if current is None:
            raise MissingCredentialsError("Not authenticated")
        return await self._exchange_client.fetch_user_info(current.access_token, self.profile)

    async def logout(self) -> dict[str, Any]:
        """Revoke the access token where supported, then forget local tokens.

        Revocation is best effort; the local delete always happens.
        """
        current = self.load_tokens()
        if current is not None and self.profile.revoke_url:
            await self._exchange_client.revoke(current.access_token, self.profile)
        self.vault.delete(self.provider, TOKENS_KEY)
        _LOG.info("%s tokens cleared", self.provider)
        return {"success": True, "message": "Logged out successfully"}
