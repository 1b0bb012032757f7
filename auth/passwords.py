"""
auth/passwords.py -- bcrypt password hashing.

Using bcrypt directly rather than passlib[bcrypt] because passlib's internal
wrap-bug detection creates a password longer than 72 bytes, which bcrypt 4.x
rejects with an explicit error. Direct bcrypt usage is simpler and has no
compatibility shim.

bcrypt only reads the first 72 bytes of its input (and bcrypt 5 refuses longer
input). hash_password() rejects such passwords with ValidationError rather
than letting two different passwords share a hash.

Layer rule: no imports from api/ or web/.
"""

from __future__ import annotations

import bcrypt

from core.errors import ValidationError

MAX_PASSWORD_BYTES = 72


def hash_password(plain: str) -> str:
    """Return a salted bcrypt hash of the given plaintext password."""
    raw = plain.encode("utf-8")
    if len(raw) > MAX_PASSWORD_BYTES:
        raise ValidationError(f"Password must be at most {MAX_PASSWORD_BYTES} bytes.")
    return bcrypt.hashpw(raw, bcrypt.gensalt()).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash.

    A wrong password, a malformed hash and an over-long password all return
    False; the caller cannot tell which one happened.
    """
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except (ValueError, TypeError):
        return False


# Timing equalization dummy hash [C1].
# Computed once at module load. authenticate_local() verifies against it when
# the email is unknown so response time does not reveal account existence.
DUMMY_HASH: str = hash_password("hiredvalley_timing_dummy")
