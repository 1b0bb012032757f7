"""
auth/credentials.py -- Local (email + password) account operations.

register_local / authenticate_local / change_password are the only code paths
that create or check local passwords. Route handlers call these; they never
inline get_by_email() + verify_password() because that re-introduces the
timing and enumeration leaks fixed here [C1].

Layer rule: no imports from api/ or web/.
"""

from __future__ import annotations

import logging

from sqlalchemy.exc import IntegrityError

from auth.models import LOCAL_PROVIDER, SELF_SERVICE_ROLES, User
from auth.passwords import DUMMY_HASH, hash_password, verify_password
from auth.store import UserStore
from core.errors import DuplicateEmail, InternalFailure, InvalidCredentials, InvalidRole, UnknownAccount

logger = logging.getLogger("hiredvalley.auth.credentials")


def normalize_email(email: str) -> str:
    return email.strip().lower()


def register_local(store: UserStore, email: str, password: str, role: str = "user", name: str = "") -> User:
    """Create a local account and return it.

    Raises:
        InvalidRole:    role is not a self-service role (user, mentor).
        DuplicateEmail: the email is already taken. Detected by the unique
                        constraint, so a concurrent duplicate also lands here.
    """
    if role not in SELF_SERVICE_ROLES:
        raise InvalidRole(details={"role": role})

    email = normalize_email(email)
    new_user = User(
        email=email,
        name=name.strip(),
        role=role,
        provider=LOCAL_PROVIDER,
        hashed_password=hash_password(password),
    )
    try:
        user_id = store.create_user(new_user)
    except IntegrityError as exc:
        raise DuplicateEmail() from exc

    created = store.get_by_id(user_id)
    if created is None:
        raise InternalFailure("User not found after write.")
    logger.info("Registered local user id=%d role=%s", user_id, role)
    return created


def authenticate_local(store: UserStore, email: str, password: str) -> User:
    """Authenticate an email/password login with timing equalization.

    Always runs bcrypt whether or not the account exists:
    - Unknown email or external-only account: bcrypt against DUMMY_HASH.
    - Wrong password: bcrypt against the real hash.

    Raises:
        UnknownAccount:     no active local account for the email.
        InvalidCredentials: the password does not verify.
    Both render as the same 401 "bad_credentials" response.
    """
    user = store.get_by_email(normalize_email(email))
    if user is None or user.hashed_password is None:
        # Equalize timing -- do NOT return early before running bcrypt [C1]
        verify_password(password, DUMMY_HASH)
        raise UnknownAccount()
    if not verify_password(password, user.hashed_password):
        raise InvalidCredentials()
    return user


def change_password(store: UserStore, user: User, old_password: str, new_password: str) -> None:
    """Replace the user's password after checking the current one.

    The swap is conditional on the stored hash being the one just verified,
    so two concurrent changes cannot both succeed.

    Raises:
        InvalidCredentials: old password wrong, no local password, or the
                            hash changed between verify and update.
    """
    current = store.get_by_id(user.id) if user.id is not None else None
    if current is None or current.hashed_password is None:
        verify_password(old_password, DUMMY_HASH)
        raise InvalidCredentials("Current password is incorrect.")
    if not verify_password(old_password, current.hashed_password):
        raise InvalidCredentials("Current password is incorrect.")

    new_hash = hash_password(new_password)
    if not store.update_password(current.id, current.hashed_password, new_hash):
        raise InvalidCredentials("Current password is incorrect.")
    logger.info("Password changed for user id=%d", current.id)
