"""
tests/test_credentials.py -- Unit tests for auth/credentials.py.

Covers:
  - register_local -> authenticate_local round trip for both self-service roles
  - InvalidRole for instructor/admin/unknown roles
  - DuplicateEmail on a second registration, case-insensitively
  - concurrent registrations of one email yield exactly one success
  - UnknownAccount vs InvalidCredentials share code and message
  - change_password success, wrong old password, passwordless account
"""

from __future__ import annotations

import threading

import pytest

from auth.credentials import authenticate_local, change_password, register_local
from auth.models import User
from auth.store import UserStore
from core.errors import DuplicateEmail, InvalidCredentials, InvalidRole, UnknownAccount


class TestRegisterAuthenticate:
    @pytest.mark.parametrize("role", ["user", "mentor"])
    def test_round_trip(self, store: UserStore, role: str) -> None:
        created = register_local(store, "a@x.com", "pw123456", role=role, name="Ada")
        user = authenticate_local(store, "a@x.com", "pw123456")
        assert user.id == created.id
        assert user.email == "a@x.com"
        assert user.role == role
        assert user.provider == "local"
        assert user.hashed_password != "pw123456"

    def test_email_is_normalized(self, store: UserStore) -> None:
        register_local(store, "  Ada@X.com ", "pw123456")
        assert authenticate_local(store, "ADA@x.COM", "pw123456").email == "ada@x.com"

    @pytest.mark.parametrize("role", ["admin", "instructor", "superuser", ""])
    def test_invalid_role(self, store: UserStore, role: str) -> None:
        with pytest.raises(InvalidRole):
            register_local(store, "a@x.com", "pw123456", role=role)
        assert store.get_by_email("a@x.com") is None

    def test_duplicate_email(self, store: UserStore) -> None:
        register_local(store, "a@x.com", "pw123456")
        with pytest.raises(DuplicateEmail):
            register_local(store, "A@x.com", "different1")

    def test_duplicate_against_external_account(self, store: UserStore) -> None:
        """Email is globally unique, not per provider."""
        store.create_user(User(email="a@x.com", provider="google"))
        with pytest.raises(DuplicateEmail):
            register_local(store, "a@x.com", "pw123456")

    def test_concurrent_registration_yields_one_success(self, store: UserStore) -> None:
        attempts = 8
        barrier = threading.Barrier(attempts)
        successes: list[User] = []
        conflicts: list[DuplicateEmail] = []
        lock = threading.Lock()

        def attempt(i: int) -> None:
            barrier.wait()
            try:
                user = register_local(store, "race@x.com", f"password-{i}")
            except DuplicateEmail as exc:
                with lock:
                    conflicts.append(exc)
            else:
                with lock:
                    successes.append(user)

        threads = [threading.Thread(target=attempt, args=(i,)) for i in range(attempts)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=60)

        assert len(successes) == 1, f"expected exactly one winner, got {len(successes)}"
        assert len(conflicts) == attempts - 1
        assert store.get_by_email("race@x.com").id == successes[0].id


class TestAuthenticateFailures:
    def test_unknown_email(self, store: UserStore) -> None:
        with pytest.raises(UnknownAccount):
            authenticate_local(store, "nobody@x.com", "pw123456")

    def test_wrong_password(self, store: UserStore) -> None:
        register_local(store, "a@x.com", "pw123456")
        with pytest.raises(InvalidCredentials) as exc_info:
            authenticate_local(store, "a@x.com", "wrong-password")
        assert not isinstance(exc_info.value, UnknownAccount)

    def test_failures_are_indistinguishable(self, store: UserStore) -> None:
        register_local(store, "a@x.com", "pw123456")
        with pytest.raises(InvalidCredentials) as unknown:
            authenticate_local(store, "nobody@x.com", "pw123456")
        with pytest.raises(InvalidCredentials) as wrong:
            authenticate_local(store, "a@x.com", "wrong-password")
        assert (unknown.value.code, unknown.value.message, unknown.value.status_code) == (
            wrong.value.code,
            wrong.value.message,
            wrong.value.status_code,
        )

    def test_external_only_account_cannot_password_login(self, store: UserStore) -> None:
        store.create_user(User(email="g@x.com", provider="google"))
        with pytest.raises(UnknownAccount):
            authenticate_local(store, "g@x.com", "")

    def test_deleted_account_cannot_login(self, store: UserStore) -> None:
        user = register_local(store, "a@x.com", "pw123456")
        store.soft_delete_user(user.id)
        with pytest.raises(UnknownAccount):
            authenticate_local(store, "a@x.com", "pw123456")


class TestChangePassword:
    def test_success(self, store: UserStore) -> None:
        user = register_local(store, "a@x.com", "pw123456")
        change_password(store, user, "pw123456", "new-password")
        assert authenticate_local(store, "a@x.com", "new-password").id == user.id
        with pytest.raises(InvalidCredentials):
            authenticate_local(store, "a@x.com", "pw123456")

    def test_wrong_old_password(self, store: UserStore) -> None:
        user = register_local(store, "a@x.com", "pw123456")
        with pytest.raises(InvalidCredentials):
            change_password(store, user, "not-it", "new-password")
        assert authenticate_local(store, "a@x.com", "pw123456").id == user.id

    def test_passwordless_account(self, store: UserStore) -> None:
        uid = store.create_user(User(email="g@x.com", provider="google"))
        with pytest.raises(InvalidCredentials):
            change_password(store, store.get_by_id(uid), "anything", "new-password")

    def test_stale_user_object_uses_stored_hash(self, store: UserStore) -> None:
        """A second change with the original password fails once the first one landed."""
        user = register_local(store, "a@x.com", "pw123456")
        change_password(store, user, "pw123456", "first-change")
        with pytest.raises(InvalidCredentials):
            change_password(store, user, "pw123456", "second-change")
