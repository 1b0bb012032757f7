"""
tests/test_passwords.py -- Unit tests for auth/passwords.py.

Covers:
  - hash/verify round trip and salt uniqueness
  - wrong password, malformed hash and over-long input all verify False
  - hash_password() refuses input beyond bcrypt's 72-byte limit
"""

from __future__ import annotations

import pytest

from auth.passwords import DUMMY_HASH, MAX_PASSWORD_BYTES, hash_password, verify_password
from core.errors import ValidationError


class TestHashPassword:
    def test_round_trip(self) -> None:
        hashed = hash_password("pw123456")
        assert verify_password("pw123456", hashed)

    def test_hash_never_contains_plaintext(self) -> None:
        hashed = hash_password("correct horse battery")
        assert "correct horse battery" not in hashed
        assert hashed.startswith("$2")

    def test_same_password_hashes_differently(self) -> None:
        """Each hash gets its own salt."""
        assert hash_password("pw123456") != hash_password("pw123456")

    def test_72_bytes_is_accepted(self) -> None:
        password = "a" * MAX_PASSWORD_BYTES
        assert verify_password(password, hash_password(password))

    def test_over_72_bytes_is_rejected(self) -> None:
        with pytest.raises(ValidationError):
            hash_password("a" * (MAX_PASSWORD_BYTES + 1))

    def test_multibyte_length_is_counted_in_bytes(self) -> None:
        """25 three-byte characters is 75 bytes, over the limit despite 25 chars."""
        with pytest.raises(ValidationError):
            hash_password("€" * 25)


class TestVerifyPassword:
    def test_wrong_password(self) -> None:
        assert not verify_password("pw1234567", hash_password("pw123456"))

    def test_malformed_hash_is_false_not_error(self) -> None:
        assert verify_password("pw123456", "not-a-bcrypt-hash") is False

    def test_empty_hash_is_false(self) -> None:
        assert verify_password("pw123456", "") is False

    def test_dummy_hash_is_a_real_hash(self) -> None:
        """The timing-equalization hash must make bcrypt do real work."""
        assert DUMMY_HASH.startswith("$2")
        assert not verify_password("pw123456", DUMMY_HASH)
