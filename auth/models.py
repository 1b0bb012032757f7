"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). Dataclasses own domain
shape; the store and the credential/linker functions do the work.

Layer rule: no imports from api/ or web/.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

# Every role a User may hold. Only SELF_SERVICE_ROLES may be chosen at
# registration; instructor and admin are granted by an admin.
ROLES: frozenset[str] = frozenset({"user", "mentor", "instructor", "admin"})
SELF_SERVICE_ROLES: frozenset[str] = frozenset({"user", "mentor"})

LOCAL_PROVIDER = "local"
OAUTH_PROVIDERS: tuple[str, ...] = ("google", "linkedin", "youtube")


@dataclass
class User:
    """An identity record.

    hashed_password is None for accounts created by an external login. The
    store guarantees it is only set while provider == "local".

    access_token is the provider access token from the most recent OAuth
    login, not one of our JWTs.

    deleted_at marks a soft-deleted account. Soft-deleted users are invisible
    to every store lookup except get_by_id(include_deleted=True).
    """

    email: str
    role: str = "user"
    name: str = ""
    provider: str = LOCAL_PROVIDER
    id: int | None = None
    hashed_password: str | None = None
    position: str | None = None
    city: str | None = None
    income: int | None = None
    skills: list[str] = field(default_factory=list)
    interests: list[str] = field(default_factory=list)
    visibility: str = "public"
    access_token: str | None = None
    created_at: str | None = None
    updated_at: str | None = None
    deleted_at: str | None = None

    @property
    def is_active(self) -> bool:
        return self.deleted_at is None


@dataclass
class ExternalIdentity:
    """Link between a User and a third-party account (one row per provider)."""

    user_id: int
    provider: str  # "google", "linkedin", "youtube"
    subject: str  # provider's stable user ID
    email: str
    first_name: str = ""
    last_name: str = ""
    access_token: str | None = None
    refresh_token: str | None = None
    expires_at: str | None = None  # ISO 8601, UTC
    id: int | None = None
    created_at: str | None = None
    updated_at: str | None = None


@dataclass(frozen=True)
class TokenClaims:
    """Verified content of a bearer token. Never persisted."""

    user_id: int
    email: str
    role: str
    expires_at: datetime
