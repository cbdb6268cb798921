"""Authorization window controller: one browser window, one session.

The controller opens the provider's authorize page in a hosted browser
surface and waits for one of three things to happen first:

1. a navigation to the redirect URI (reported once by :class:`RedirectWatch`),
2. the user closing the window,
3. the token exchange finishing after (1).

Each of these tries to resolve the session through
:meth:`AuthorizationSession.resolve`; only the first caller wins, so the
``authenticate()`` future settles exactly once and late events are no-ops.

There is no timeout on the redirect wait: a window the user neither
completes nor closes keeps the flow pending.  Cancelling the waiting
caller (e.g. through ``asyncio.wait_for``) resolves the session as
cancelled and closes the window.
"""

from __future__ import annotations

import asyncio
import uuid

from desk_oauth.central_auth.browser import BrowserSurface, RedirectWatch
from desk_oauth.central_auth.errors import (
    AuthFlowError,
    ExchangeParseError,
    ProviderError,
    StateMismatchError,
    WindowClosedBeforeResolutionError,
)
from desk_oauth.central_auth.exchange import TokenExchangeClient
from desk_oauth.central_auth.log_utils import get_auth_logger
from desk_oauth.central_auth.models import (
    AuthorizationSession,
    AuthResult,
    Outcome,
    ProviderCredentials,
    SessionState,
    TokenRecord,
)
from desk_oauth.central_auth.pkce import generate_pkce_pair
from desk_oauth.central_auth.providers import OAuthProviderProfile, build_authorize_url
from desk_oauth.central_auth.redirect import RedirectParams
from desk_oauth.central_auth.state import create_state_nonce, state_matches
from desk_oauth.central_auth.store import TOKENS_KEY, CredentialVault


def new_session(
    profile: OAuthProviderProfile, credentials: ProviderCredentials
) -> AuthorizationSession:
    """Create a session with a fresh state nonce (and PKCE pair if used)."""
    verifier = challenge = None
    if profile.uses_pkce:
        verifier, challenge = generate_pkce_pair()
    return AuthorizationSession(
        session_id=uuid.uuid4().hex,
        provider=profile.name,
        client_id=credentials.client_id,
        client_secret=credentials.client_secret,
        redirect_uri=profile.redirect_uri,
        state_nonce=create_state_nonce(),
        code_verifier=verifier,
        code_challenge=challenge,
    )


class AuthorizationWindowController:
    """Drive one :class:`AuthorizationSession` to resolution."""

    def __init__(
        self,
        profile: OAuthProviderProfile,
        session: AuthorizationSession,
        surface: BrowserSurface,
        *,
        exchange_client: TokenExchangeClient,
        vault: CredentialVault,
        correlation_id: str | None = None,
    ) -> None:
        self.profile = profile
        self.session = session
        self.surface = surface
        self._exchange_client = exchange_client
        self._vault = vault
        self._future: asyncio.Future[AuthResult] | None = None
        self._exchange_task: asyncio.Task[None] | None = None
        self._log = get_auth_logger(
            base_logger_name="desk-oauth.central_auth.window",
            session_id=session.session_id,
            provider=profile.name,
            correlation_id=correlation_id,
        )

    async def run(self) -> AuthResult:
        """Open the window and wait until the session resolves."""
        loop = asyncio.get_running_loop()
        self._future = loop.create_future()

        RedirectWatch(self.surface, self.session.redirect_uri, self._on_redirect).attach()
        self.surface.on_closed(self._on_closed)

        try:
            self.surface.load_url(build_authorize_url(self.profile, self.session))
        except Exception:
            self.session.resolve(Outcome.ERROR)
            self.surface.close()
            raise
        self._log.info("Authorization window opened")
        try:
            return await self._future
        except asyncio.CancelledError:
            self._abandon()
            raise

    # ---------------- event handlers ----------------------------------- #
    def _on_redirect(self, params: RedirectParams) -> None:
        if self.session.state is not SessionState.AWAITING_REDIRECT:
            self._log.debug("Redirect after session left awaiting state; ignored")
            return

        if params.error:
            self._log.warning("Provider returned error=%s", params.error)
            self._fail(ProviderError(params.error, params.error_description))
            return
        if not state_matches(params.state, self.session.state_nonce):
            self._log.error("State mismatch on redirect, possible CSRF")
            self._fail(StateMismatchError())
            return
        if not params.code:
            self._fail(ProviderError("missing_code", "redirect carried no authorization code"))
            return

        self.session.advance(SessionState.EXCHANGING_CODE)
        self._log.info("Redirect captured, exchanging authorization code")
        self._exchange_task = asyncio.get_running_loop().create_task(
            self._exchange(params.code)
        )

    def _on_closed(self) -> None:
        if not self.session.resolve(Outcome.CANCELLED):
            return
        self._log.info("Authorization window closed by user")
        if self._exchange_task is not None and not self._exchange_task.done():
            self._exchange_task.cancel()
        self._settle(error=WindowClosedBeforeResolutionError())

    async def _exchange(self, code: str) -> None:
        try:
            token = await self._exchange_client.exchange(code, self.session, self.profile)
        except AuthFlowError as exc:
            self._fail(exc)
            return
        except Exception as exc:
            self._log.error("Unexpected failure during token exchange: %s", type(exc).__name__)
            self._fail(ExchangeParseError(f"Unusable token response ({type(exc).__name__})"))
            return
        self._succeed(token)

    # ---------------- resolution --------------------------------------- #
    def _succeed(self, token: TokenRecord) -> None:
        if not self.session.resolve(Outcome.SUCCESS):
            self._log.debug("Token arrived after resolution; discarded")
            return
        self._vault.set(self.profile.name, TOKENS_KEY, token.to_dict())
        self._log.info("Authorization successful")
        self.surface.close()
        self._settle(
            result=AuthResult(
                provider=self.profile.name,
                token=token,
                storage_path=str(self._vault.path_for(self.profile.name)),
            )
        )

    def _abandon(self) -> None:
        """Caller gave up waiting: close the window and drop any exchange."""
        if not self.session.resolve(Outcome.CANCELLED):
            return
        self._log.info("Authorization abandoned by caller")
        if self._exchange_task is not None and not self._exchange_task.done():
            self._exchange_task.cancel()
        self.surface.close()

    def _fail(self, exc: AuthFlowError) -> None:
        if not self.session.resolve(Outcome.ERROR):
            return
        self._log.warning("Authorization failed: %s", exc.code)
        self.surface.close()
        self._settle(error=exc)

    def _settle(
        self, *, result: AuthResult | None = None, error: BaseException | None = None
    ) -> None:
        future = self._future
        if future is None or future.done():
            return
        if error is not None:
            future.set_exception(error)
        else:
            future.set_result(result)  # type: ignore[arg-type]
