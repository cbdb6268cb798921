"""Browser OAuth 2.0 core for the desktop shell.

This namespace hosts the **UI-agnostic** building blocks of the
authorization-code flow the desktop app runs inside its own browser window.

Sub-modules
-----------
clock
    Test-friendly time abstraction.
pkce
    Proof-Key for Code Exchange helpers.
state
    CSRF state nonce creation and comparison.
models
    Session state machine, token record and result types.
providers
    Provider profiles and authorize-URL construction.
redirect / browser
    Redirect matching and the deduplicated navigation watch.
window
    Per-session controller with exactly-once resolution.
exchange
    HTTPS code/refresh-token exchange.
store
    Lenient per-provider JSON credential vault.
service
    :class:`OAuth2Client` facade.
errors
    Exception types used by the core.
log_utils
    Structured logging helpers (thin wrapper around :pymod:`logging`).

All public objects are re-exported here for convenience.
"""

from __future__ import annotations

from .clock import Clock, default_clock  # noqa: F401
from .pkce import generate_code_verifier, code_challenge_s256, generate_pkce_pair  # noqa: F401
from .state import create_state_nonce, state_matches  # noqa: F401
from .models import (  # noqa: F401
    AuthorizationSession,
    AuthResult,
    Outcome,
    ProviderCredentials,
    SessionState,
    TokenRecord,
)
from .providers import (  # noqa: F401
    PROVIDERS,
    REDIRECT_URI,
    BodyEncoding,
    OAuthProviderProfile,
    build_authorize_url,
    get_profile,
)
from .redirect import RedirectParams, match_redirect  # noqa: F401
from .browser import BrowserSurface, NavigationEvent, RedirectWatch  # noqa: F401
from .exchange import TokenExchangeClient  # noqa: F401
from .store import TOKENS_KEY, CredentialVault, DiskCredentialVault  # noqa: F401
from .window import AuthorizationWindowController, new_session  # noqa: F401
from .service import OAuth2Client  # noqa: F401
from .errors import (  # noqa: F401
    AuthFlowError,
    ExchangeHTTPError,
    ExchangeParseError,
    ExchangeTransportError,
    MissingCredentialsError,
    ProviderError,
    StateMismatchError,
    WindowClosedBeforeResolutionError,
)
from .log_utils import get_auth_logger  # noqa: F401

__all__ = [
    # clock
    "Clock",
    "default_clock",
    # pkce / state
    "generate_code_verifier",
    "code_challenge_s256",
    "generate_pkce_pair",
    "create_state_nonce",
    "state_matches",
    # models
    "AuthorizationSession",
    "AuthResult",
    "Outcome",
    "ProviderCredentials",
    "SessionState",
    "TokenRecord",
    # providers
    "PROVIDERS",
    "REDIRECT_URI",
    "BodyEncoding",
    "OAuthProviderProfile",
    "build_authorize_url",
    "get_profile",
    # redirect handling
    "RedirectParams",
    "match_redirect",
    "BrowserSurface",
    "NavigationEvent",
    "RedirectWatch",
    # flow
    "TokenExchangeClient",
    "AuthorizationWindowController",
    "new_session",
    "OAuth2Client",
    # persistence
    "TOKENS_KEY",
    "CredentialVault",
    "DiskCredentialVault",
    # errors
    "AuthFlowError",
    "ExchangeHTTPError",
    "ExchangeParseError",
    "ExchangeTransportError",
    "MissingCredentialsError",
    "ProviderError",
    "StateMismatchError",
    "WindowClosedBeforeResolutionError",
    # logging helpers
    "get_auth_logger",
]
