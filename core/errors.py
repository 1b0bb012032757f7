"""
core/errors.py -- Domain exception taxonomy for Hired Valley.

Every failure the auth subsystem can report is one of these classes. Each
class carries the HTTP status it maps to and a stable machine-readable code,
so api/main.py renders all of them with a single exception handler and route
handlers never build error bodies by hand.

    ValidationError   400  malformed or missing input
    Unauthenticated   401  missing/invalid/expired token, bad credentials
    PermissionDenied  403  valid identity, insufficient role
    NotFound          404  referenced entity absent
    Conflict          409  uniqueness violation
    UpstreamFailure   500  external provider call failed
    InternalFailure   500  store or serialization failure

UnknownAccount and InvalidCredentials share the "bad_credentials" code and
message on purpose: the response must not reveal whether an email exists.

Layer rule: core/ is the kernel. No imports from api/, web/, or auth/.
"""

from __future__ import annotations

from typing import Any, Optional


class HiredValleyError(Exception):
    """Base class for all domain errors."""

    status_code: int = 500
    code: str = "internal_error"
    message: str = "An unexpected error occurred."

    def __init__(self, message: Optional[str] = None, *, details: Optional[dict[str, Any]] = None) -> None:
        self.message = message or self.message
        self.details = details or {}
        super().__init__(self.message)


# ---------------------------------------------------------------------------
# 400
# ---------------------------------------------------------------------------


class ValidationError(HiredValleyError):
    status_code = 400
    code = "validation_error"
    message = "Request validation failed."


class InvalidRole(ValidationError):
    code = "invalid_role"
    message = "Role must be one of: user, mentor."


# ---------------------------------------------------------------------------
# 401
# ---------------------------------------------------------------------------


class Unauthenticated(HiredValleyError):
    status_code = 401
    code = "unauthorized"
    message = "Authentication required."


class MissingAuthorization(Unauthenticated):
    code = "missing_authorization"
    message = "Authorization header required."


class InvalidToken(Unauthenticated):
    code = "invalid_token"
    message = "Invalid token."


class ExpiredToken(InvalidToken):
    code = "token_expired"
    message = "Token has expired."


class InvalidCredentials(Unauthenticated):
    code = "bad_credentials"
    message = "Invalid email or password."


class UnknownAccount(InvalidCredentials):
    """No active local account for the email. Rendered exactly like InvalidCredentials."""


# ---------------------------------------------------------------------------
# 403 / 404 / 409
# ---------------------------------------------------------------------------


class PermissionDenied(HiredValleyError):
    status_code = 403
    code = "permission_denied"
    message = "You do not have permission to perform this action."


class NotFound(HiredValleyError):
    status_code = 404
    code = "not_found"
    message = "Resource not found."


class Conflict(HiredValleyError):
    status_code = 409
    code = "conflict"
    message = "Resource already exists."


class DuplicateEmail(Conflict):
    code = "duplicate_email"
    message = "Email already registered."


# ---------------------------------------------------------------------------
# 500
# ---------------------------------------------------------------------------


class UpstreamFailure(HiredValleyError):
    """An external provider call failed, timed out, or returned a bad payload."""

    status_code = 500
    code = "upstream_failure"
    message = "An external provider request failed."

    def __init__(self, message: Optional[str] = None, *, provider: str = "", details: Optional[dict] = None) -> None:
        super().__init__(message, details=details)
        self.provider = provider
        if provider:
            self.details["provider"] = provider


class InternalFailure(HiredValleyError):
    status_code = 500
    code = "internal_error"
    message = "An unexpected error occurred."
