"""
auth/oauth.py -- Authlib OAuth2 provider configuration and profile decoding.

build_oauth_registry() registers one authlib client per configured provider.
It is called once from the app lifespan with the Settings instance, so no
provider configuration is read at import time.

Supported providers:
  google   -- email + profile scopes; v2 userinfo endpoint.
  youtube  -- the Google client again, plus the YouTube upload scope and
              offline access so a refresh token is issued.
  linkedin -- OpenID Connect scopes; /v2/userinfo endpoint.

Security notes:
  OAuth state (CSRF protection) is a per-request random value generated by
  authlib and kept in the Starlette session between the authorization
  redirect and the callback. A callback whose state does not match raises
  MismatchingStateError before any token request is made.

  [H1] Email verification is mandatory. fetch_profile() raises
       UpstreamFailure if the provider does not confirm the email.

  Provider payloads are decoded through pydantic models. A missing or
  mistyped field is an UpstreamFailure, never a KeyError deep in a handler.

  Every provider HTTP call is bounded by OAUTH_TIMEOUT_SECONDS (httpx
  timeout passed through client_kwargs).

Layer rule: no imports from api/ or web/. Import from core/ is allowed.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone

import httpx
from authlib.integrations.starlette_client import OAuth
from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from core.config import Settings
from core.errors import UpstreamFailure

logger = logging.getLogger("hiredvalley.auth.oauth")

GOOGLE_AUTHORIZE_URL = "https://accounts.google.com/o/oauth2/auth"
GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"  # noqa: S105 -- URL, not a password
GOOGLE_USERINFO_URL = "https://www.googleapis.com/oauth2/v2/userinfo"
GOOGLE_SCOPES = "https://www.googleapis.com/auth/userinfo.email https://www.googleapis.com/auth/userinfo.profile"
YOUTUBE_SCOPES = f"{GOOGLE_SCOPES} https://www.googleapis.com/auth/youtube.upload"

LINKEDIN_AUTHORIZE_URL = "https://www.linkedin.com/oauth/v2/authorization"
LINKEDIN_TOKEN_URL = "https://www.linkedin.com/oauth/v2/accessToken"  # noqa: S105 -- URL, not a password
LINKEDIN_USERINFO_URL = "https://api.linkedin.com/v2/userinfo"
LINKEDIN_JWKS_URL = "https://www.linkedin.com/oauth/openid/jwks"


# ---------------------------------------------------------------------------
# Provider payload schemas
# ---------------------------------------------------------------------------


class _GoogleUserInfo(BaseModel):
    """Google /oauth2/v2/userinfo response. Used for both google and youtube."""

    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True)

    id: str = Field(min_length=1)
    email: str = Field(min_length=3)
    verified_email: bool = False
    given_name: str = ""
    family_name: str = ""

    @property
    def subject(self) -> str:
        return self.id

    @property
    def email_verified(self) -> bool:
        return self.verified_email


class _LinkedInUserInfo(BaseModel):
    """LinkedIn OpenID /v2/userinfo response."""

    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True)

    sub: str = Field(min_length=1)
    email: str = Field(min_length=3)
    email_verified: bool = False
    given_name: str = ""
    family_name: str = ""

    @property
    def subject(self) -> str:
        return self.sub


@dataclass(frozen=True)
class ExternalProfile:
    """Provider-neutral profile handed to the linker."""

    provider: str
    subject: str
    email: str
    first_name: str = ""
    last_name: str = ""

    @property
    def display_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


@dataclass(frozen=True)
class ProviderSpec:
    name: str
    label: str
    userinfo_url: str
    payload_model: type[BaseModel]


PROVIDERS: dict[str, ProviderSpec] = {
    "google": ProviderSpec("google", "Google", GOOGLE_USERINFO_URL, _GoogleUserInfo),
    "linkedin": ProviderSpec("linkedin", "LinkedIn", LINKEDIN_USERINFO_URL, _LinkedInUserInfo),
    "youtube": ProviderSpec("youtube", "YouTube", GOOGLE_USERINFO_URL, _GoogleUserInfo),
}


# ---------------------------------------------------------------------------
# Authlib OAuth registry
# ---------------------------------------------------------------------------


def build_oauth_registry(settings: Settings) -> OAuth:
    """Register an authlib client for every fully configured provider."""
    oauth = OAuth()
    timeout = settings.oauth_timeout_seconds

    if settings.provider_enabled("google"):
        oauth.register(
            name="google",
            client_id=settings.google_client_id,
            client_secret=settings.google_client_secret,
            authorize_url=GOOGLE_AUTHORIZE_URL,
            access_token_url=GOOGLE_TOKEN_URL,
            client_kwargs={"scope": GOOGLE_SCOPES, "timeout": timeout},
        )
        logger.info("Google OAuth provider registered")

    if settings.provider_enabled("youtube"):
        oauth.register(
            name="youtube",
            client_id=settings.google_client_id,
            client_secret=settings.google_client_secret,
            authorize_url=GOOGLE_AUTHORIZE_URL,
            access_token_url=GOOGLE_TOKEN_URL,
            authorize_params={"access_type": "offline", "prompt": "consent"},
            client_kwargs={"scope": YOUTUBE_SCOPES, "timeout": timeout},
        )
        logger.info("YouTube OAuth provider registered")

    if settings.provider_enabled("linkedin"):
        oauth.register(
            name="linkedin",
            client_id=settings.linkedin_client_id,
            client_secret=settings.linkedin_client_secret,
            authorize_url=LINKEDIN_AUTHORIZE_URL,
            access_token_url=LINKEDIN_TOKEN_URL,
            jwks_uri=LINKEDIN_JWKS_URL,
            client_kwargs={
                "scope": "openid profile email",
                "token_endpoint_auth_method": "client_secret_post",
                "timeout": timeout,
            },
        )
        logger.info("LinkedIn OAuth provider registered")

    return oauth


def get_enabled_providers(settings: Settings) -> list[dict]:
    """Return {"name", "label"} for every configured provider."""
    return [
        {"name": spec.name, "label": spec.label}
        for spec in PROVIDERS.values()
        if settings.provider_enabled(spec.name)
    ]


def redirect_url_for(settings: Settings, provider: str) -> str:
    """Return the configured callback URL registered with the provider."""
    if provider == "google":
        return settings.google_redirect_url
    if provider == "linkedin":
        return settings.linkedin_redirect_url
    if provider == "youtube":
        return settings.youtube_redirect_url
    raise ValueError(f"Unknown OAuth provider: {provider!r}")


# ---------------------------------------------------------------------------
# Profile fetch
# ---------------------------------------------------------------------------


async def fetch_profile(client, provider: str, token: dict) -> ExternalProfile:
    """Call the provider's userinfo endpoint and decode it into an ExternalProfile.

    Args:
        client:   The authlib OAuth client for this provider.
        provider: "google", "linkedin", or "youtube".
        token:    The token dict returned by authlib after code exchange.

    Raises:
        UpstreamFailure: HTTP error, timeout, non-JSON body, schema mismatch,
                         or unverified email [H1].
    """
    spec = PROVIDERS.get(provider)
    if spec is None:
        raise ValueError(f"Unknown OAuth provider: {provider!r}")

    try:
        resp = await client.get(spec.userinfo_url, token=token)
        resp.raise_for_status()
        payload = resp.json()
    except httpx.HTTPError as exc:
        raise UpstreamFailure(f"{provider} userinfo request failed.", provider=provider) from exc
    except ValueError as exc:
        raise UpstreamFailure(f"{provider} userinfo response is not JSON.", provider=provider) from exc

    try:
        info = spec.payload_model.model_validate(payload)
    except PydanticValidationError as exc:
        raise UpstreamFailure(
            f"{provider} userinfo payload is malformed.",
            provider=provider,
            details={"fields": [".".join(str(p) for p in err["loc"]) for err in exc.errors()]},
        ) from exc

    if not info.email_verified:
        raise UpstreamFailure(f"{provider} did not confirm the email is verified.", provider=provider)

    return ExternalProfile(
        provider=provider,
        subject=info.subject,
        email=info.email.lower(),
        first_name=info.given_name,
        last_name=info.family_name,
    )


def token_expiry_iso(token: dict) -> str | None:
    """Return the token's absolute expiry as ISO 8601, if the provider sent one."""
    expires_at = token.get("expires_at")
    if expires_at is None:
        return None
    try:
        return datetime.fromtimestamp(int(expires_at), tz=timezone.utc).isoformat()
    except (TypeError, ValueError, OverflowError):
        return None
