"""
auth/tokens.py -- JWT issue/verify and the auth cookie helper.

Security design decisions:
  JWT: python-jose with HS256. Tokens are signed with SECRET_KEY and carry
       user_id, email, role, and expiry. There is no revocation list: a token
       stays valid until its exp claim passes.

  Injection: TokenIssuer is built once in the app lifespan from Settings and
       stored on app.state. Nothing in this module reads configuration at
       import time, so tests can build issuers with their own secret.

  Clock: issue() and verify() accept an optional `now` so expiry can be
       checked at an exact instant. Expiry is therefore enforced here rather
       than inside jose.jwt.decode(), which only knows the wall clock.

Layer rule: no imports from api/ or web/. Import from core/ is allowed.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt

from auth.models import TokenClaims
from core.errors import ExpiredToken, InvalidToken, MissingAuthorization

logger = logging.getLogger("hiredvalley.auth.tokens")

ALGORITHM = "HS256"
DEFAULT_EXPIRE_SECONDS = 24 * 3600
AUTH_COOKIE = "access_token"

_REQUIRED_CLAIMS = ("user_id", "email", "role", "exp")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TokenIssuer:
    """Signs and verifies bearer tokens with a single shared secret.

    Usage:
        issuer = TokenIssuer(settings.secret_key, settings.token_expire_seconds)
        token = issuer.issue(user.id, user.email, user.role)
        claims = issuer.verify(token)
    """

    def __init__(self, secret_key: str, expire_seconds: int = DEFAULT_EXPIRE_SECONDS) -> None:
        if not secret_key:
            raise ValueError("TokenIssuer requires a non-empty secret key.")
        self._secret_key = secret_key
        self.expire_seconds = expire_seconds

    def issue(self, user_id: int, email: str, role: str, now: datetime | None = None) -> str:
        """Encode a signed JWT valid for expire_seconds from `now`."""
        issued_at = now or _utcnow()
        expire = issued_at + timedelta(seconds=self.expire_seconds)
        payload = {
            "email": email,
            "role": role,
            "user_id": user_id,
            # Fractional seconds are kept (NumericDate allows them) so the
            # window ends exactly expire_seconds after `now`.
            "exp": expire.timestamp(),
        }
        return jwt.encode(payload, self._secret_key, algorithm=ALGORITHM)

    def verify(self, token: str, now: datetime | None = None) -> TokenClaims:
        """Check signature, shape and expiry. Returns the claims.

        Raises:
            InvalidToken: signature mismatch, malformed token, missing claims.
            ExpiredToken: `now` is at or past the exp claim.
        """
        try:
            payload = jwt.decode(
                token,
                self._secret_key,
                algorithms=[ALGORITHM],
                options={"verify_exp": False},
            )
        except JWTError as exc:
            raise InvalidToken() from exc

        if any(claim not in payload for claim in _REQUIRED_CLAIMS):
            raise InvalidToken("Token is missing required claims.")
        try:
            user_id = int(payload["user_id"])
            expires_at = datetime.fromtimestamp(float(payload["exp"]), tz=timezone.utc)
        except (TypeError, ValueError, OverflowError, OSError) as exc:
            raise InvalidToken("Token claims are malformed.") from exc

        if (now or _utcnow()) >= expires_at:
            raise ExpiredToken()

        return TokenClaims(
            user_id=user_id,
            email=str(payload["email"]),
            role=str(payload["role"]),
            expires_at=expires_at,
        )


def parse_bearer(header_value: str | None) -> str:
    """Extract the token from an Authorization header value.

    An absent or empty header is MissingAuthorization. A header using any
    other scheme, or "Bearer" with no token, is InvalidToken.
    """
    if not header_value:
        raise MissingAuthorization()
    scheme, _, token = header_value.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise InvalidToken("Authorization header must use the Bearer scheme.")
    return token.strip()


# ---------------------------------------------------------------------------
# Cookie helper
# ---------------------------------------------------------------------------


def set_auth_cookie(response, token: str, max_age: int, secure: bool = False) -> None:
    """Write the JWT as an httpOnly cookie on the response.

    httponly=True: JS cannot read the cookie (XSS mitigation).
    samesite="lax": not sent on cross-site POST -- CSRF mitigation.
    secure: only sent over HTTPS when SECURE_COOKIES=true.
    max_age: matches the JWT lifetime so both expire together.
    """
    response.set_cookie(
        AUTH_COOKIE,
        value=token,
        httponly=True,
        samesite="lax",
        secure=secure,
        max_age=max_age,
    )
