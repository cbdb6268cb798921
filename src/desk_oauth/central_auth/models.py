"""Typed records used by the authorization flow and the credential vault."""

from __future__ import annotations

import enum
import math
from dataclasses import dataclass, field
from typing import Any, Final, Mapping

from desk_oauth.central_auth.clock import Clock, default_clock

# Provider fields that are safe to hand back to the UI layer.
_SAFE_EXTRA_FIELDS: Final[tuple[str, ...]] = (
    "workspace_id",
    "workspace_name",
    "bot_id",
    "user_id_string",
    "scope",
)


def _whole_seconds(value: Any) -> int | None:
    """Coerce a provider-supplied duration or timestamp; None if unusable."""
    if isinstance(value, bool):
        return None
    if isinstance(value, str):
        try:
            value = float(value.strip())
        except ValueError:
            return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and math.isfinite(value):
        return int(value)
    return None


class SessionState(enum.Enum):
    """Lifecycle of one :class:`AuthorizationSession`."""

    AWAITING_REDIRECT = "awaiting_redirect"
    EXCHANGING_CODE = "exchanging_code"
    RESOLVED = "resolved"


class Outcome(enum.Enum):
    """How a resolved session ended."""

    SUCCESS = "success"
    ERROR = "error"
    CANCELLED = "cancelled"


# Forward-only; RESOLVED is terminal.
_TRANSITIONS: Final[Mapping[SessionState, frozenset[SessionState]]] = {
    SessionState.AWAITING_REDIRECT: frozenset(
        {SessionState.EXCHANGING_CODE, SessionState.RESOLVED}
    ),
    SessionState.EXCHANGING_CODE: frozenset({SessionState.RESOLVED}),
    SessionState.RESOLVED: frozenset(),
}


@dataclass(frozen=True, slots=True)
class ProviderCredentials:
    """OAuth client credentials supplied by the caller for one flow."""

    client_id: str
    client_secret: str

    def is_complete(self) -> bool:
        return bool(self.client_id) and bool(self.client_secret)

    def __repr__(self) -> str:  # keep the secret out of tracebacks
        return f"ProviderCredentials(client_id={self.client_id!r}, client_secret='****')"


@dataclass(slots=True)
class AuthorizationSession:
    """Ephemeral state for one ``authenticate()`` call.

    ``state`` only moves forward through :meth:`advance`; every caller that
    wants to resolve the session has to win that transition first, which is
    what guarantees exactly-once resolution.
    """

    session_id: str
    provider: str
    client_id: str
    client_secret: str = field(repr=False)
    redirect_uri: str
    state_nonce: str = field(repr=False)
    code_verifier: str | None = field(default=None, repr=False)
    code_challenge: str | None = None
    state: SessionState = SessionState.AWAITING_REDIRECT
    outcome: Outcome | None = None

    def advance(self, target: SessionState) -> bool:
        """Move to *target* if that transition is legal; return whether it was."""
        if target not in _TRANSITIONS[self.state]:
            return False
        self.state = target
        return True

    def resolve(self, outcome: Outcome) -> bool:
        """Move to RESOLVED with *outcome*; False if already resolved."""
        if not self.advance(SessionState.RESOLVED):
            return False
        self.outcome = outcome
        return True

    @property
    def handled(self) -> bool:
        """True once a redirect or a close event has claimed the session."""
        return self.state is not SessionState.AWAITING_REDIRECT

    @property
    def uses_pkce(self) -> bool:
        return self.code_verifier is not None


@dataclass(frozen=True, slots=True)
class TokenRecord:
    """Token response persisted under the vault's ``tokens`` key.

    Provider-specific fields (``workspace_id``, ``bot_id``, ``user_id_string``…)
    are carried opaquely in :attr:`extra`.
    """

    access_token: str
    token_type: str = "bearer"
    refresh_token: str | None = field(default=None, repr=False)
    expires_in: int | None = None
    obtained_at: int | None = None
    extra: Mapping[str, Any] = field(default_factory=dict)

    @classmethod
    def from_response(
        cls, payload: Mapping[str, Any], *, obtained_at: int | None = None
    ) -> "TokenRecord":
        """Build a record from a token-endpoint JSON object.

        Raises
        ------
        KeyError
            If ``access_token`` is absent or empty.
        """
        access_token = payload.get("access_token")
        if not access_token:
            raise KeyError("access_token")
        known = {"access_token", "token_type", "refresh_token", "expires_in", "obtained_at"}
        return cls(
            access_token=str(access_token),
            token_type=str(payload.get("token_type") or "bearer"),
            refresh_token=payload.get("refresh_token"),
            expires_in=_whole_seconds(payload.get("expires_in")),
            obtained_at=(
                obtained_at
                if obtained_at is not None
                else _whole_seconds(payload.get("obtained_at"))
            ),
            extra={k: v for k, v in payload.items() if k not in known},
        )

    def to_dict(self) -> dict[str, Any]:
        """Flatten back to the provider's shape (plus ``obtained_at``)."""
        data: dict[str, Any] = dict(self.extra)
        data["access_token"] = self.access_token
        data["token_type"] = self.token_type
        if self.refresh_token is not None:
            data["refresh_token"] = self.refresh_token
        if self.expires_in is not None:
            data["expires_in"] = self.expires_in
        if self.obtained_at is not None:
            data["obtained_at"] = self.obtained_at
        return data

    @property
    def expires_at(self) -> int | None:
        if self.expires_in is None or self.obtained_at is None:
            return None
        return self.obtained_at + self.expires_in

    def is_expired(self, *, clock: Clock = default_clock, grace_seconds: int = 60) -> bool:
        """Return True if the token expires within *grace_seconds*.

        Tokens without a known expiry are never considered expired.
        """
        expires_at = self.expires_at
        if expires_at is None:
            return False
        return (expires_at - clock()) <= grace_seconds

    def safe_summary(self) -> dict[str, Any]:
        """Fields that may be shown to the user; no token values."""
        summary: dict[str, Any] = {
            "token_type": self.token_type,
            "has_access_token": bool(self.access_token),
            "has_refresh_token": bool(self.refresh_token),
            "expires_at": self.expires_at,
        }
        for key in _SAFE_EXTRA_FIELDS:
            if key in self.extra:
                summary[key] = self.extra[key]
        return summary


@dataclass(frozen=True, slots=True)
class AuthResult:
    """Value an ``authenticate()`` call resolves with on success."""

    provider: str
    token: TokenRecord
    storage_path: str

    def to_payload(self) -> dict[str, Any]:
        return {
            "success": True,
            "message": "Authorization successful",
            "token_info": self.token.safe_summary(),
            "storage_path": self.storage_path,
        }
