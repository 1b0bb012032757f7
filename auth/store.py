"""
auth/store.py -- SQLAlchemy Core persistence layer for auth entities.

Pattern: Repository + Data Mapper.
UserStore is the repository; _row_to_user / _row_to_identity are the mappers.
Route and dependency code never touches SQL directly.

Security:
  All queries use bound parameters. No f-strings in SQL.

Uniqueness is enforced by the database, never by check-then-act in Python:
  users.email                              UNIQUE
  external_identities(provider, subject)   UNIQUE
  external_identities(user_id, provider)   UNIQUE
create_user() and create_identity() let sqlalchemy.exc.IntegrityError
propagate; callers translate it into a domain Conflict. When two requests
register the same email at once, exactly one INSERT wins.

Soft delete: users are never removed. soft_delete_user() stamps deleted_at and
every lookup filters on deleted_at IS NULL. The email stays reserved.

Layer rule: no imports from api/ or web/.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone

from sqlalchemy import (
    Column,
    ForeignKey,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    UniqueConstraint,
    create_engine,
    event,
    select,
)
from sqlalchemy.engine import Engine

from auth.models import LOCAL_PROVIDER, ExternalIdentity, User

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("email", String(255), nullable=False, unique=True),
    Column("hashed_password", Text),  # NULL for external-login accounts
    Column("name", String(255), nullable=False, server_default=""),
    Column("role", String(30), nullable=False, server_default="user"),
    Column("provider", String(30), nullable=False, server_default=LOCAL_PROVIDER),
    Column("position", String(255)),
    Column("city", String(255)),
    Column("income", Integer),
    Column("skills", Text, nullable=False, server_default="[]"),  # JSON list
    Column("interests", Text, nullable=False, server_default="[]"),  # JSON list
    Column("visibility", String(20), nullable=False, server_default="public"),
    Column("access_token", Text),  # provider token from the latest OAuth login
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
    Column("deleted_at", String(32)),
)

_identities = Table(
    "external_identities",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("user_id", Integer, ForeignKey("users.id"), nullable=False),
    Column("provider", String(30), nullable=False),
    Column("subject", String(255), nullable=False),
    Column("email", String(255), nullable=False),
    Column("first_name", String(255), nullable=False, server_default=""),
    Column("last_name", String(255), nullable=False, server_default=""),
    Column("access_token", Text),
    Column("refresh_token", Text),
    Column("expires_at", String(32)),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
    UniqueConstraint("provider", "subject", name="uq_identity_provider_subject"),
    UniqueConstraint("user_id", "provider", name="uq_identity_user_provider"),
)

# Columns update_user() may touch. Identity columns (email, provider,
# hashed_password) have dedicated methods that keep their invariants.
_MUTABLE_USER_FIELDS = frozenset(
    {"name", "role", "position", "city", "income", "skills", "interests", "visibility", "access_token"}
)


# ---------------------------------------------------------------------------
# WAL mode
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode for concurrent read safety.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")
    dbapi_conn.execute("PRAGMA foreign_keys=ON")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _encode_list(values: list[str] | None) -> str:
    return json.dumps(list(values or []))


def _active_users():
    return _users.select().where(_users.c.deleted_at.is_(None))


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class UserStore:
    """Repository for User and ExternalIdentity entities.

    Usage:
        store = UserStore("sqlite:///./hiredvalley.db")
        user_id = store.create_user(User(email="a@x.com", hashed_password=hash_password("secret")))
        user = store.get_by_email("a@x.com")
        store.close()
    """

    def __init__(self, db_url: str) -> None:
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
        _metadata.create_all(self.engine)

    def ping(self) -> bool:
        """Return True if the database answers a trivial query."""
        with self.engine.connect() as conn:
            return conn.execute(select(1)).scalar() == 1

    # ------------------------------------------------------------------
    # User queries
    # ------------------------------------------------------------------

    def create_user(self, user: User) -> int:
        """Insert a new user and return its assigned database ID.

        Raises sqlalchemy.exc.IntegrityError if the email already exists,
        including when a concurrent request inserted it a moment earlier.
        """
        if user.hashed_password is not None and user.provider != LOCAL_PROVIDER:
            raise ValueError("hashed_password is only allowed for local accounts")
        now = _now_iso()
        with self.engine.begin() as conn:
            result = conn.execute(
                _users.insert().values(
                    email=user.email,
                    hashed_password=user.hashed_password,
                    name=user.name,
                    role=user.role,
                    provider=user.provider,
                    position=user.position,
                    city=user.city,
                    income=user.income,
                    skills=_encode_list(user.skills),
                    interests=_encode_list(user.interests),
                    visibility=user.visibility,
                    access_token=user.access_token,
                    created_at=now,
                    updated_at=now,
                )
            )
            return result.inserted_primary_key[0]

    def get_by_email(self, email: str) -> User | None:
        """Look up an active user by email. Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_active_users().where(_users.c.email == email)).fetchone()
        return _row_to_user(row) if row is not None else None

    def get_by_id(self, user_id: int, include_deleted: bool = False) -> User | None:
        """Look up a user by primary key. Soft-deleted users only with include_deleted."""
        query = _users.select() if include_deleted else _active_users()
        with self.engine.connect() as conn:
            row = conn.execute(query.where(_users.c.id == user_id)).fetchone()
        return _row_to_user(row) if row is not None else None

    def update_user(self, user_id: int, **fields) -> bool:
        """Update profile fields on an active user.

        Accepted fields: see _MUTABLE_USER_FIELDS. skills/interests are lists.
        Returns True if a row was updated, False if user_id was not found.
        """
        unknown = set(fields) - _MUTABLE_USER_FIELDS
        if unknown:
            raise ValueError(f"Unknown user fields: {sorted(unknown)!r}")
        for key in ("skills", "interests"):
            if key in fields:
                fields[key] = _encode_list(fields[key])
        with self.engine.begin() as conn:
            result = conn.execute(
                _users.update()
                .where((_users.c.id == user_id) & _users.c.deleted_at.is_(None))
                .values(updated_at=_now_iso(), **fields)
            )
        return result.rowcount > 0

    def update_password(self, user_id: int, expected_hash: str, new_hash: str) -> bool:
        """Replace a local user's password hash if it still equals expected_hash.

        Compare-and-swap in a single UPDATE: a concurrent password change makes
        this return False instead of being silently overwritten.
        """
        with self.engine.begin() as conn:
            result = conn.execute(
                _users.update()
                .where(
                    (_users.c.id == user_id)
                    & (_users.c.provider == LOCAL_PROVIDER)
                    & (_users.c.hashed_password == expected_hash)
                    & _users.c.deleted_at.is_(None)
                )
                .values(hashed_password=new_hash, updated_at=_now_iso())
            )
        return result.rowcount > 0

    def record_external_login(self, user_id: int, provider: str, access_token: str | None) -> None:
        """Stamp the provider access token from an OAuth login on the user.

        The provider tag moves to the external provider only for accounts
        without a local password, so "hashed_password only when provider is
        local" keeps holding.
        """
        with self.engine.begin() as conn:
            conn.execute(
                _users.update()
                .where((_users.c.id == user_id) & _users.c.hashed_password.is_(None))
                .values(provider=provider)
            )
            conn.execute(
                _users.update().where(_users.c.id == user_id).values(access_token=access_token, updated_at=_now_iso())
            )

    def soft_delete_user(self, user_id: int) -> bool:
        """Mark a user deleted. Returns False if not found or already deleted."""
        with self.engine.begin() as conn:
            result = conn.execute(
                _users.update()
                .where((_users.c.id == user_id) & _users.c.deleted_at.is_(None))
                .values(deleted_at=_now_iso(), updated_at=_now_iso())
            )
        return result.rowcount > 0

    def search_users(
        self,
        skill: str | None = None,
        interest: str | None = None,
        position: str | None = None,
        limit: int = 100,
    ) -> list[User]:
        """Return active, public users matching every given filter.

        skills/interests are JSON lists; matching is on the quoted element so
        "java" does not match "javascript".
        """
        query = _active_users().where(_users.c.visibility == "public")
        if skill:
            query = query.where(_users.c.skills.contains(json.dumps(skill), autoescape=True))
        if interest:
            query = query.where(_users.c.interests.contains(json.dumps(interest), autoescape=True))
        if position:
            query = query.where(_users.c.position == position)
        with self.engine.connect() as conn:
            rows = conn.execute(query.order_by(_users.c.id).limit(limit)).fetchall()
        return [_row_to_user(r) for r in rows]

    # ------------------------------------------------------------------
    # External identity queries
    # ------------------------------------------------------------------

    def get_identity(self, provider: str, subject: str) -> ExternalIdentity | None:
        """Look up a linked identity by (provider, subject)."""
        with self.engine.connect() as conn:
            row = conn.execute(
                _identities.select().where((_identities.c.provider == provider) & (_identities.c.subject == subject))
            ).fetchone()
        return _row_to_identity(row) if row is not None else None

    def get_identity_for_user(self, user_id: int, provider: str) -> ExternalIdentity | None:
        with self.engine.connect() as conn:
            row = conn.execute(
                _identities.select().where((_identities.c.user_id == user_id) & (_identities.c.provider == provider))
            ).fetchone()
        return _row_to_identity(row) if row is not None else None

    def list_identities(self, user_id: int) -> list[ExternalIdentity]:
        with self.engine.connect() as conn:
            rows = conn.execute(
                _identities.select().where(_identities.c.user_id == user_id).order_by(_identities.c.provider)
            ).fetchall()
        return [_row_to_identity(r) for r in rows]

    def create_identity(self, identity: ExternalIdentity) -> int:
        """Insert a new identity link and return its ID.

        Raises sqlalchemy.exc.IntegrityError on a duplicate (provider, subject)
        or a second identity for the same (user, provider).
        """
        now = _now_iso()
        with self.engine.begin() as conn:
            result = conn.execute(
                _identities.insert().values(
                    user_id=identity.user_id,
                    provider=identity.provider,
                    subject=identity.subject,
                    email=identity.email,
                    first_name=identity.first_name,
                    last_name=identity.last_name,
                    access_token=identity.access_token,
                    refresh_token=identity.refresh_token,
                    expires_at=identity.expires_at,
                    created_at=now,
                    updated_at=now,
                )
            )
            return result.inserted_primary_key[0]

    def update_identity(self, identity_id: int, **fields) -> bool:
        """Refresh profile and token columns on an identity.

        A refresh_token of None is ignored: providers usually omit it on
        subsequent grants and the stored one stays valid.
        """
        allowed = {"email", "first_name", "last_name", "access_token", "refresh_token", "expires_at"}
        unknown = set(fields) - allowed
        if unknown:
            raise ValueError(f"Unknown identity fields: {sorted(unknown)!r}")
        if fields.get("refresh_token") is None:
            fields.pop("refresh_token", None)
        with self.engine.begin() as conn:
            result = conn.execute(
                _identities.update().where(_identities.c.id == identity_id).values(updated_at=_now_iso(), **fields)
            )
        return result.rowcount > 0

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_user(row) -> User:
    return User(
        id=row.id,
        email=row.email,
        hashed_password=row.hashed_password,
        name=row.name,
        role=row.role,
        provider=row.provider,
        position=row.position,
        city=row.city,
        income=row.income,
        skills=json.loads(row.skills or "[]"),
        interests=json.loads(row.interests or "[]"),
        visibility=row.visibility,
        access_token=row.access_token,
        created_at=row.created_at,
        updated_at=row.updated_at,
        deleted_at=row.deleted_at,
    )


def _row_to_identity(row) -> ExternalIdentity:
    return ExternalIdentity(
        id=row.id,
        user_id=row.user_id,
        provider=row.provider,
        subject=row.subject,
        email=row.email,
        first_name=row.first_name,
        last_name=row.last_name,
        access_token=row.access_token,
        refresh_token=row.refresh_token,
        expires_at=row.expires_at,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )
