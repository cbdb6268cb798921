"""Provider profiles driving the single parametrized OAuth client.

A profile captures everything that differs between providers: endpoints,
scopes, whether PKCE is used and how the token request body is encoded.
Adding a provider means adding a profile, never a new client class.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Final, Mapping
from urllib.parse import urlencode

from desk_oauth.central_auth.errors import UnknownProviderError
from desk_oauth.central_auth.models import AuthorizationSession

# Desktop redirect target; navigation to it is intercepted and never loaded.
REDIRECT_URI: Final[str] = "http://localhost"


class BodyEncoding(enum.Enum):
    """Token request body format expected by a provider."""

    FORM = "form"
    JSON = "json"


@dataclass(frozen=True, slots=True)
class OAuthProviderProfile:
    """Static description of one OAuth provider."""

    name: str
    authorize_url: str
    token_url: str
    scopes: tuple[str, ...] = ()
    uses_pkce: bool = True
    body_encoding: BodyEncoding = BodyEncoding.FORM
    scope_separator: str = " "
    redirect_uri: str = REDIRECT_URI
    revoke_url: str | None = None
    user_info_url: str | None = None
    extra_authorize_params: Mapping[str, str] = field(default_factory=dict)

    @property
    def scope(self) -> str:
        return self.scope_separator.join(self.scopes)


FIGMA: Final = OAuthProviderProfile(
    name="figma",
    authorize_url="https://www.figma.com/oauth",
    token_url="https://api.figma.com/v1/oauth/token",
    scopes=(
        "current_user:read",
        "file_content:read",
        "file_metadata:read",
        "file_versions:read",
        "file_comments:read",
        "file_comments:write",
        "library_content:read",
        "file_variables:read",
        "library_analytics:read",
    ),
    uses_pkce=True,
    body_encoding=BodyEncoding.FORM,
    scope_separator=",",
)

NOTION: Final = OAuthProviderProfile(
    name="notion",
    authorize_url="https://api.notion.com/v1/oauth/authorize",
    token_url="https://api.notion.com/v1/oauth/token",
    uses_pkce=False,
    body_encoding=BodyEncoding.JSON,
    extra_authorize_params={"owner": "user"},
)

GOOGLE_DRIVE: Final = OAuthProviderProfile(
    name="google_drive",
    authorize_url="https://accounts.google.com/o/oauth2/v2/auth",
    token_url="https://oauth2.googleapis.com/token",
    revoke_url="https://oauth2.googleapis.com/revoke",
    user_info_url="https://www.googleapis.com/oauth2/v2/userinfo",
    scopes=(
        "https://www.googleapis.com/auth/drive.file",
        "https://www.googleapis.com/auth/drive.appdata",
    ),
    uses_pkce=True,
    body_encoding=BodyEncoding.FORM,
    extra_authorize_params={"access_type": "offline", "prompt": "consent"},
)

PROVIDERS: Final[dict[str, OAuthProviderProfile]] = {
    p.name: p for p in (FIGMA, NOTION, GOOGLE_DRIVE)
}


def get_profile(name: str) -> OAuthProviderProfile:
    """Return the registered profile called *name*."""
    try:
        return PROVIDERS[name]
    except KeyError:
        raise UnknownProviderError(name) from None


def build_authorize_url(profile: OAuthProviderProfile, session: AuthorizationSession) -> str:
    """Return the authorize URL the browser surface is pointed at."""
    params: dict[str, str] = {
        "client_id": session.client_id,
        "redirect_uri": session.redirect_uri,
    }
    if profile.scopes:
        params["scope"] = profile.scope
    params["state"] = session.state_nonce
    params["response_type"] = "code"
    if session.code_challenge:
        params["code_challenge"] = session.code_challenge
        params["code_challenge_method"] = "S256"
    params.update(profile.extra_authorize_params)
    return f"{profile.authorize_url}?{urlencode(params)}"
