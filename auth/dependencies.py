"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

Credential sources are checked in priority order:
  1. Authorization: Bearer <token> header -- API clients.
  2. JWT cookie ("access_token") -- set by the OAuth browser flow.
  3. Legacy session cookie -- deprecated, see auth/session.py.

A present-but-bad credential is never skipped in favour of a later source:
an invalid Authorization header is a 401 even if a valid cookie exists.

get_token_claims() verifies a token only (no session fallback, no store read).
try_get_current_user() is the soft variant (returns None on failure).
get_current_user() raises MissingAuthorization / InvalidToken / ExpiredToken.
require_role() wraps get_current_user() and raises PermissionDenied.

On success request.state.user_id and request.state.role are set for
downstream handlers, and request.state.identity holds the verified TokenClaims
(None on the legacy session path).

Layer rule: no imports from api/ or web/.
  auth/dependencies.py may import from fastapi because this module is part of
  the FastAPI dependency injection system.
"""

from __future__ import annotations

import logging
from typing import Callable

from fastapi import Request

from auth import session
from auth.models import TokenClaims, User
from auth.store import UserStore
from auth.tokens import AUTH_COOKIE, TokenIssuer, parse_bearer
from core.errors import HiredValleyError, InvalidToken, MissingAuthorization, PermissionDenied, Unauthenticated

logger = logging.getLogger("hiredvalley.auth")


def _resolve_claims(request: Request) -> TokenClaims | None:
    """Verify the bearer header or the JWT cookie. None if neither is present."""
    issuer: TokenIssuer = request.app.state.token_issuer

    header = request.headers.get("Authorization")
    if header is not None:
        return issuer.verify(parse_bearer(header))

    cookie_token = request.cookies.get(AUTH_COOKIE)
    if cookie_token:
        return issuer.verify(cookie_token)
    return None


def get_token_claims(request: Request) -> TokenClaims:
    """Require a valid bearer token (header or cookie) and return its claims.

    Unlike get_current_user() this does not consult the store, so a token
    for a since-deleted user still passes. Use it only where the claims
    themselves are all the handler needs.
    """
    claims = _resolve_claims(request)
    if claims is None:
        raise MissingAuthorization()
    request.state.identity = claims
    return claims


def get_current_user(request: Request) -> User:
    """Require authentication. Raises a 401-class error if the request is not authenticated.

    Use as a FastAPI dependency:
        @router.get("/protected")
        def route(user: User = Depends(get_current_user)): ...
    """
    user_store: UserStore = request.app.state.user_store
    claims = _resolve_claims(request)

    if claims is not None:
        user = user_store.get_by_id(claims.user_id)
        if user is None:
            # Soft-deleted (or never existed) -- the signature alone is not enough.
            raise InvalidToken("Token subject no longer exists.")
    else:
        user_id = session.current_user_id(request)
        if user_id is None:
            raise MissingAuthorization()
        user = user_store.get_by_id(user_id)
        if user is None:
            session.clear(request)
            raise Unauthenticated("Session is no longer valid.")
        logger.debug("Request authenticated via legacy session (user id=%d)", user_id)

    request.state.user_id = user.id
    request.state.role = user.role
    request.state.identity = claims
    return user


def try_get_current_user(request: Request) -> User | None:
    """Return the authenticated User, or None on any auth failure. Never raises."""
    try:
        return get_current_user(request)
    except HiredValleyError:
        return None


def require_role(*roles: str) -> Callable[[Request], User]:
    """Build a dependency that admits only users holding one of `roles`.

    401 if unauthenticated, 403 PermissionDenied if authenticated with the
    wrong role. The role checked is the stored one, so a demotion applies to
    tokens issued before it.

    Use as a FastAPI dependency:
        @router.post("/mentor-only")
        def route(user: User = Depends(require_role("mentor"))): ...
    """
    allowed = frozenset(roles)

    def dependency(request: Request) -> User:
        user = get_current_user(request)
        if user.role not in allowed:
            raise PermissionDenied(details={"required_roles": sorted(allowed), "role": user.role})
        return user

    return dependency


require_admin = require_role("admin")
