"""
api/routes/profile.py -- Endpoints for the authenticated caller's own account.

Routes:
  GET   /api/profile                          -- current user
  PATCH /api/profile                          -- update profile fields
  POST  /api/logout                           -- clear auth cookie and legacy session
  POST  /api/password                         -- change local password
  GET   /api/identities                       -- linked external accounts
  POST  /api/identities/{provider}/refresh    -- refresh an expired provider token
  GET   /api/providers                        -- configured OAuth providers (public)
  GET   /api/token                            -- claims of the presented bearer token

Logout does not revoke bearer tokens. There is no server-side blacklist, so a
token stays valid until its exp claim passes; clients discard it themselves.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from api.models import (
    IdentityResponse,
    MessageResponse,
    OAuthProviderInfo,
    PasswordChange,
    ProfileUpdate,
    TokenInfoResponse,
    UserResponse,
)
from auth import session
from auth.credentials import change_password
from auth.dependencies import get_current_user, get_token_claims
from auth.linker import refresh_identity_token
from auth.models import TokenClaims, User
from auth.oauth import get_enabled_providers
from auth.store import UserStore
from auth.tokens import AUTH_COOKIE
from core.config import Settings
from core.errors import InternalFailure, NotFound, ValidationError

logger = logging.getLogger("hiredvalley.api.profile")

# Fields that may be cleared with an explicit null. The rest are NOT NULL
# columns, where null in the body means "leave unchanged".
_NULLABLE_PROFILE_FIELDS = frozenset({"position", "city", "income"})

# Auth policy:
# - GET /api/providers: public -- the login page renders buttons from it
# - GET /api/token:     requires a bearer token (get_token_claims), no session
# - everything else:    requires auth (get_current_user)
router = APIRouter()


# ---------------------------------------------------------------------------
# Public endpoints
# ---------------------------------------------------------------------------


@router.get("/providers", response_model=list[OAuthProviderInfo])
async def list_providers(request: Request) -> list[OAuthProviderInfo]:
    """Return the configured OAuth providers and their login URLs.

    Returns an empty list if no provider env vars are set.
    """
    settings: Settings = request.app.state.settings
    return [OAuthProviderInfo(**p, login_url=f"/login/{p['name']}") for p in get_enabled_providers(settings)]


# ---------------------------------------------------------------------------
# Authenticated endpoints
# ---------------------------------------------------------------------------


@router.get("/profile", response_model=UserResponse)
def read_profile(current_user: User = Depends(get_current_user)) -> UserResponse:
    return UserResponse.from_user(current_user)


@router.get("/token", response_model=TokenInfoResponse)
def read_token(claims: TokenClaims = Depends(get_token_claims)) -> TokenInfoResponse:
    """Report who the presented token identifies and when it expires.

    Reads the token only. The legacy session does not satisfy this route, and
    the store is not consulted, so clients can check expiry without a lookup.
    """
    return TokenInfoResponse.from_claims(claims)


@router.patch("/profile", response_model=UserResponse)
def update_profile(
    request: Request,
    body: ProfileUpdate,
    current_user: User = Depends(get_current_user),
) -> UserResponse:
    """Update the caller's profile. Role, email and provider are not editable here."""
    user_store: UserStore = request.app.state.user_store

    updates = {
        key: value
        for key, value in body.model_dump(exclude_unset=True, mode="json").items()
        if value is not None or key in _NULLABLE_PROFILE_FIELDS
    }
    if not updates:
        raise ValidationError("No fields to update.")

    user_store.update_user(current_user.id, **updates)
    updated = user_store.get_by_id(current_user.id)
    if updated is None:
        raise InternalFailure("User not found after write.")
    return UserResponse.from_user(updated)


@router.post("/logout", response_model=MessageResponse)
def logout(request: Request, current_user: User = Depends(get_current_user)) -> JSONResponse:
    """Clear the JWT cookie and the legacy session."""
    session.clear(request)
    resp = JSONResponse(content=MessageResponse(message="Logged out.").model_dump())
    resp.delete_cookie(AUTH_COOKIE)
    logger.info("User id=%d logged out", current_user.id)
    return resp


@router.post("/password", response_model=MessageResponse)
def update_password(
    request: Request,
    body: PasswordChange,
    current_user: User = Depends(get_current_user),
) -> MessageResponse:
    """Change the caller's local password. 401 bad_credentials if old_password is wrong."""
    user_store: UserStore = request.app.state.user_store
    change_password(user_store, current_user, body.old_password, body.new_password)
    return MessageResponse(message="Password updated.")


@router.get("/identities", response_model=list[IdentityResponse])
def list_identities(request: Request, current_user: User = Depends(get_current_user)) -> list[IdentityResponse]:
    user_store: UserStore = request.app.state.user_store
    return [IdentityResponse.from_identity(i) for i in user_store.list_identities(current_user.id)]


@router.post("/identities/{provider}/refresh", response_model=IdentityResponse)
async def refresh_identity(
    request: Request,
    provider: str,
    current_user: User = Depends(get_current_user),
) -> IdentityResponse:
    """Refresh the caller's provider access token if it has expired.

    404 if the provider is not configured or the caller has no linked
    account there. 500 upstream_failure if the provider rejects the refresh.
    """
    settings: Settings = request.app.state.settings
    user_store: UserStore = request.app.state.user_store

    if not settings.provider_enabled(provider):
        raise NotFound(f"OAuth provider {provider!r} is not configured.")
    identity = user_store.get_identity_for_user(current_user.id, provider)
    if identity is None:
        raise NotFound(f"No linked {provider} account.")

    client = request.app.state.oauth.create_client(provider)
    refreshed = await refresh_identity_token(user_store, client, identity)
    return IdentityResponse.from_identity(refreshed)
