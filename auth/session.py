"""
auth/session.py -- Legacy cookie session (deprecated adapter).

Older clients authenticate with a server-signed session cookie instead of a
bearer token. The cookie is Starlette's SessionMiddleware cookie (signed with
SECRET_KEY via itsdangerous); this module only reads and writes the single
key it owns. Bearer tokens are the primary mechanism. This path exists so
those clients keep working and will be removed once they move to tokens.

The session holds only the user id. The User itself is reloaded from the
store on every request, so role changes and soft deletes take effect at once.

authlib also keeps its per-request OAuth state in the same session; clear()
leaves those keys alone.
"""

from __future__ import annotations

from starlette.requests import Request

from auth.models import User

_SESSION_USER_KEY = "user_id"


def establish(request: Request, user: User) -> None:
    """Store the authenticated user id in the session cookie."""
    request.session[_SESSION_USER_KEY] = user.id


def current_user_id(request: Request) -> int | None:
    """Return the session's user id, or None without a (valid) session."""
    if "session" not in request.scope:
        return None
    value = request.session.get(_SESSION_USER_KEY)
    return value if isinstance(value, int) else None


def clear(request: Request) -> None:
    if "session" in request.scope:
        request.session.pop(_SESSION_USER_KEY, None)
