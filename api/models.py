"""
API request and response models for Hired Valley REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py, which
own the internal domain representation. Route handlers map between the two.

Separation of concerns: auth/ models = domain truth; api/ models = API contract.
Secrets (password hashes, provider tokens) exist only on the domain side and
have no field here, so they cannot leak through a response.
"""

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from auth.models import ExternalIdentity, TokenClaims, User
from auth.passwords import MAX_PASSWORD_BYTES

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

# Deliberately loose: one "@", no whitespace, a dot in the domain. Deliverability
# is the provider's problem, not ours.
EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"
MIN_PASSWORD_LENGTH = 8


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class RoleEnum(str, Enum):
    user = "user"
    mentor = "mentor"
    instructor = "instructor"
    admin = "admin"


class VisibilityEnum(str, Enum):
    public = "public"
    private = "private"


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


def _check_password_bytes(value: str) -> str:
    if len(value.encode("utf-8")) > MAX_PASSWORD_BYTES:
        raise ValueError(f"Password must be at most {MAX_PASSWORD_BYTES} bytes.")
    return value


class RegisterRequest(BaseModel):
    """Request body for POST /register.

    role stays a plain string: the self-service check lives in
    register_local() so that "admin" is rejected with invalid_role rather
    than a generic schema error.
    """

    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(default="", max_length=255)
    email: str = Field(pattern=EMAIL_PATTERN, max_length=255)
    password: str = Field(min_length=MIN_PASSWORD_LENGTH)
    role: str = "user"

    @field_validator("email")
    @classmethod
    def normalize_email(cls, value: str) -> str:
        return value.lower()

    @field_validator("password")
    @classmethod
    def password_fits_bcrypt(cls, value: str) -> str:
        return _check_password_bytes(value)


class LoginRequest(BaseModel):
    """Request body for POST /login."""

    email: str = Field(min_length=1, max_length=255)
    password: str = Field(min_length=1)


class ProfileUpdate(BaseModel):
    """Request body for PATCH /api/profile. Omitted fields are left unchanged."""

    model_config = ConfigDict(str_strip_whitespace=True, extra="forbid")

    name: Optional[str] = Field(default=None, max_length=255)
    position: Optional[str] = Field(default=None, max_length=255)
    city: Optional[str] = Field(default=None, max_length=255)
    income: Optional[int] = Field(default=None, ge=0)
    skills: Optional[list[str]] = Field(default=None, max_length=50)
    interests: Optional[list[str]] = Field(default=None, max_length=50)
    visibility: Optional[VisibilityEnum] = None

    @field_validator("skills", "interests")
    @classmethod
    def dedupe_tags(cls, values: Optional[list[str]]) -> Optional[list[str]]:
        """Strip, drop empties, and deduplicate while preserving order."""
        if values is None:
            return None
        seen: set[str] = set()
        result: list[str] = []
        for v in values:
            tag = v.strip()
            if tag and tag not in seen:
                seen.add(tag)
                result.append(tag)
        return result


class PasswordChange(BaseModel):
    """Request body for POST /api/password."""

    old_password: str = Field(min_length=1)
    new_password: str = Field(min_length=MIN_PASSWORD_LENGTH)

    @field_validator("new_password")
    @classmethod
    def password_fits_bcrypt(cls, value: str) -> str:
        return _check_password_bytes(value)


class RoleUpdate(BaseModel):
    """Request body for PATCH /api/users/{id}/role (admin only)."""

    role: RoleEnum


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class LoginResponse(BaseModel):
    """Response for POST /login."""

    model_config = ConfigDict(frozen=True)

    token: str
    token_type: str = "bearer"  # noqa: S105 -- OAuth token type, not a password
    expires_in: int


class UserResponse(BaseModel):
    """Public view of a User. Never includes the password hash or provider token."""

    model_config = ConfigDict(frozen=True)

    id: int
    email: str
    name: str
    role: str
    provider: str
    position: Optional[str] = None
    city: Optional[str] = None
    income: Optional[int] = None
    skills: list[str] = Field(default_factory=list)
    interests: list[str] = Field(default_factory=list)
    visibility: str = "public"
    created_at: str = ""

    @classmethod
    def from_user(cls, user: User) -> "UserResponse":
        """Build a UserResponse from a domain User (Factory Method)."""
        return cls(
            id=user.id,
            email=user.email,
            name=user.name,
            role=user.role,
            provider=user.provider,
            position=user.position,
            city=user.city,
            income=user.income,
            skills=list(user.skills),
            interests=list(user.interests),
            visibility=user.visibility,
            created_at=user.created_at or "",
        )


class IdentityResponse(BaseModel):
    """A linked external account. Tokens are reported by presence only."""

    model_config = ConfigDict(frozen=True)

    provider: str
    subject: str
    email: str
    first_name: str = ""
    last_name: str = ""
    expires_at: Optional[str] = None
    has_refresh_token: bool = False
    updated_at: str = ""

    @classmethod
    def from_identity(cls, identity: ExternalIdentity) -> "IdentityResponse":
        return cls(
            provider=identity.provider,
            subject=identity.subject,
            email=identity.email,
            first_name=identity.first_name,
            last_name=identity.last_name,
            expires_at=identity.expires_at,
            has_refresh_token=bool(identity.refresh_token),
            updated_at=identity.updated_at or "",
        )


class TokenInfoResponse(BaseModel):
    """Claims carried by the presented bearer token."""

    model_config = ConfigDict(frozen=True)

    user_id: int
    email: str
    role: str
    expires_at: str

    @classmethod
    def from_claims(cls, claims: TokenClaims) -> "TokenInfoResponse":
        return cls(
            user_id=claims.user_id,
            email=claims.email,
            role=claims.role,
            expires_at=claims.expires_at.isoformat(),
        )


class OAuthProviderInfo(BaseModel):
    """One entry in GET /api/providers."""

    model_config = ConfigDict(frozen=True)

    name: str
    label: str
    login_url: str


class MessageResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Any = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /api/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "ok"
    version: str
    database: str = "ok"
