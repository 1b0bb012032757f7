"""
web/routes.py -- Browser-facing OAuth login routes.

These routes are driven by full-page browser navigation, not by API clients,
so every failure ends in a redirect to OAUTH_FAILURE_URL instead of a JSON
error body. The reason is logged server-side; the browser only sees a
location change.

Routes:
  GET /login/{provider}      -- redirect to the provider's authorization page
  GET /callback/{provider}   -- code exchange, profile fetch, link, sign in
  GET /welcome               -- landing page after a successful login

Providers that are not configured answer 404 on both OAuth routes.

Callback flow:
  1. authlib checks the returned state against the one it stored in the
     session at redirect time, then exchanges the code for a token. A state
     mismatch fails here, before any network call or write.
  2. fetch_profile() calls the userinfo endpoint and validates the payload.
  3. link_external_identity() upserts the User and the ExternalIdentity.
  4. Issue a JWT, set it as an httpOnly cookie, record the user id in the
     legacy session, redirect to OAUTH_SUCCESS_URL.
"""

from __future__ import annotations

import html
import logging

import httpx
from authlib.integrations.starlette_client import OAuthError
from fastapi import APIRouter, Request
from fastapi.responses import HTMLResponse, RedirectResponse

from auth import session
from auth.dependencies import try_get_current_user
from auth.linker import link_external_identity
from auth.oauth import fetch_profile, redirect_url_for
from auth.store import UserStore
from auth.tokens import TokenIssuer, set_auth_cookie
from core.config import Settings
from core.errors import HiredValleyError, NotFound

logger = logging.getLogger("hiredvalley.web")

router = APIRouter()


def _check_provider(settings: Settings, provider: str) -> None:
    """Reject unknown or unconfigured providers before touching the registry."""
    if not settings.provider_enabled(provider):
        raise NotFound(f"OAuth provider {provider!r} is not configured.")


def _failure_redirect(settings: Settings) -> RedirectResponse:
    resp = RedirectResponse(settings.oauth_failure_url, status_code=302)
    resp.headers["Cache-Control"] = "no-store"
    return resp


@router.get("/login/{provider}", name="oauth_login")
async def oauth_login(request: Request, provider: str) -> RedirectResponse:
    """Redirect the browser to the provider's authorization page.

    authlib generates a fresh random state, stores it in the session and puts
    it on the authorization URL.
    """
    settings: Settings = request.app.state.settings
    _check_provider(settings, provider)

    client = request.app.state.oauth.create_client(provider)
    return await client.authorize_redirect(request, redirect_url_for(settings, provider))


@router.get("/callback/{provider}", name="oauth_callback")
async def oauth_callback(request: Request, provider: str) -> RedirectResponse:
    """Finish the authorization-code flow and sign the user in."""
    settings: Settings = request.app.state.settings
    _check_provider(settings, provider)

    user_store: UserStore = request.app.state.user_store
    issuer: TokenIssuer = request.app.state.token_issuer
    client = request.app.state.oauth.create_client(provider)

    # Step 1: state check + code exchange
    try:
        token = await client.authorize_access_token(request)
    except OAuthError as exc:
        logger.warning("OAuth callback rejected for %s: %s", provider, exc.error)
        return _failure_redirect(settings)
    except httpx.HTTPError as exc:
        logger.warning("OAuth code exchange failed for %s: %s", provider, type(exc).__name__)
        return _failure_redirect(settings)

    # Steps 2-3: profile fetch and account linking
    try:
        profile = await fetch_profile(client, provider, token)
        user = link_external_identity(user_store, profile, token)
    except HiredValleyError as exc:
        logger.warning("OAuth login failed for %s: %s (%s)", provider, exc.message, exc.code)
        return _failure_redirect(settings)

    # Step 4: establish identity
    jwt_token = issuer.issue(user.id, user.email, user.role)
    resp = RedirectResponse(settings.oauth_success_url, status_code=302)
    set_auth_cookie(resp, jwt_token, max_age=issuer.expire_seconds, secure=settings.secure_cookies)
    session.establish(request, user)
    resp.headers["Cache-Control"] = "no-store"  # [M5]
    logger.info("User id=%d signed in with %s", user.id, provider)
    return resp


@router.get("/welcome", response_class=HTMLResponse)
def welcome(request: Request) -> HTMLResponse:
    """Minimal landing page. Anonymous visitors are sent back to the failure URL."""
    settings: Settings = request.app.state.settings
    user = try_get_current_user(request)
    if user is None:
        return _failure_redirect(settings)
    name = user.name or user.email
    return HTMLResponse(f"<!doctype html><title>Welcome</title><h1>Welcome, {html.escape(name)}</h1>")