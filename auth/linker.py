"""
auth/linker.py -- Link an external login to a local User.

link_external_identity() runs after the code exchange and profile fetch have
succeeded (see web/routes.py for the whole callback flow):

  1. Known (provider, subject): the linked User is the one signing in, even
     if the provider now reports a different email. Its tokens are refreshed.
  2. Otherwise upsert User by email. New users get the provider tag and no
     password; existing users get the latest provider access token recorded.
  3. Create the ExternalIdentity linked to that User.

Uniqueness is left to the store's constraints. Losing a race against a
concurrent first login surfaces as IntegrityError and is re-read once, since
the winner created exactly the row this request wanted.

refresh_identity_token() trades a stored refresh token for a new access
token when the stored one has expired.

Layer rule: no imports from api/ or web/.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

import httpx
from authlib.integrations.starlette_client import OAuthError
from sqlalchemy.exc import IntegrityError

from auth.models import ExternalIdentity, User
from auth.oauth import ExternalProfile, token_expiry_iso
from auth.store import UserStore
from core.errors import Conflict, InternalFailure, UpstreamFailure, ValidationError

logger = logging.getLogger("hiredvalley.auth.linker")


def _identity_fields(profile: ExternalProfile, token: dict) -> dict:
    return {
        "email": profile.email,
        "first_name": profile.first_name,
        "last_name": profile.last_name,
        "access_token": token.get("access_token"),
        "refresh_token": token.get("refresh_token"),
        "expires_at": token_expiry_iso(token),
    }


def _upsert_user(store: UserStore, profile: ExternalProfile, access_token: str | None) -> User | None:
    user = store.get_by_email(profile.email)
    if user is None:
        try:
            user_id = store.create_user(
                User(
                    email=profile.email,
                    name=profile.display_name,
                    provider=profile.provider,
                    access_token=access_token,
                )
            )
        except IntegrityError:
            # Concurrent first login won, or the email belongs to a
            # soft-deleted account (which stays reserved).
            user = store.get_by_email(profile.email)
            if user is None:
                raise Conflict("Email belongs to a deactivated account.") from None
            store.record_external_login(user.id, profile.provider, access_token)
        else:
            logger.info("Created user id=%d from %s login", user_id, profile.provider)
            return store.get_by_id(user_id)
    else:
        store.record_external_login(user.id, profile.provider, access_token)
    return store.get_by_id(user.id)


def _create_identity(store: UserStore, user: User, profile: ExternalProfile, token: dict) -> None:
    fields = _identity_fields(profile, token)
    try:
        store.create_identity(
            ExternalIdentity(user_id=user.id, provider=profile.provider, subject=profile.subject, **fields)
        )
    except IntegrityError as exc:
        identity = store.get_identity(profile.provider, profile.subject)
        if identity is None:
            # The user already has a different account with this provider.
            raise Conflict(f"User already linked to another {profile.provider} account.") from exc
        store.update_identity(identity.id, **fields)


def link_external_identity(store: UserStore, profile: ExternalProfile, token: dict) -> User:
    """Create or refresh the User and ExternalIdentity for a verified external login.

    Args:
        store:   The user store.
        profile: Decoded, verified provider profile.
        token:   Provider token dict (access_token, optional refresh_token,
                 optional expires_at).

    Returns the User the session/token should be issued for.

    Raises:
        Conflict: the email or the linked account is deactivated, or the user
                  is already linked to a different account at this provider.
    """
    access_token = token.get("access_token")

    existing = store.get_identity(profile.provider, profile.subject)
    if existing is not None:
        owner = store.get_by_id(existing.user_id)
        if owner is None:
            raise Conflict("Linked account is deactivated.")
        store.record_external_login(owner.id, profile.provider, access_token)
        store.update_identity(existing.id, **_identity_fields(profile, token))
        refreshed = store.get_by_id(owner.id)
        if refreshed is None:
            raise InternalFailure("User not found after write.")
        return refreshed

    user = _upsert_user(store, profile, access_token)
    if user is None:
        raise InternalFailure("User not found after write.")
    _create_identity(store, user, profile, token)
    logger.info("Linked %s account to user id=%d", profile.provider, user.id)
    return user


async def refresh_identity_token(
    store: UserStore,
    client,
    identity: ExternalIdentity,
    now: datetime | None = None,
) -> ExternalIdentity:
    """Return the identity with a usable access token, refreshing it if expired.

    An identity without a recorded expiry is treated as still valid.

    Raises:
        ValidationError: the token expired and no refresh token is stored.
        UpstreamFailure: the provider rejected the refresh or timed out.
    """
    now = now or datetime.now(timezone.utc)
    if identity.expires_at is None or datetime.fromisoformat(identity.expires_at) > now:
        return identity
    if not identity.refresh_token:
        raise ValidationError(f"No refresh token stored for {identity.provider}; log in again.")

    try:
        token = await client.fetch_access_token(grant_type="refresh_token", refresh_token=identity.refresh_token)
    except (OAuthError, httpx.HTTPError) as exc:
        logger.warning("Token refresh failed for %s identity id=%s", identity.provider, identity.id)
        raise UpstreamFailure(f"{identity.provider} token refresh failed.", provider=identity.provider) from exc

    store.update_identity(
        identity.id,
        access_token=token.get("access_token"),
        refresh_token=token.get("refresh_token"),
        expires_at=token_expiry_iso(token),
    )
    refreshed = store.get_identity(identity.provider, identity.subject)
    if refreshed is None:
        raise InternalFailure("Identity not found after write.")
    return refreshed
