"""
tests/test_tokens.py -- Unit tests for auth/tokens.py.

Covers:
  - issued claims carry user_id, email, role and a 24h expiry
  - validity window [T, T+24h); ExpiredToken at and after T+24h
  - tokens signed with another secret never verify
  - malformed tokens and tokens missing claims are InvalidToken
  - Authorization header parsing: missing vs wrong scheme
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from jose import jwt

from auth.tokens import ALGORITHM, TokenIssuer, parse_bearer
from core.errors import ExpiredToken, InvalidToken, MissingAuthorization

SECRET = "a" * 48
T0 = datetime(2024, 3, 1, 12, 0, 0, tzinfo=timezone.utc)
DAY = timedelta(hours=24)


@pytest.fixture
def issuer() -> TokenIssuer:
    return TokenIssuer(SECRET, expire_seconds=24 * 3600)


class TestIssueVerify:
    def test_claims_round_trip(self, issuer: TokenIssuer) -> None:
        token = issuer.issue(7, "a@x.com", "mentor", now=T0)
        claims = issuer.verify(token, now=T0)
        assert claims.user_id == 7
        assert claims.email == "a@x.com"
        assert claims.role == "mentor"
        assert claims.expires_at == T0 + DAY

    def test_payload_uses_documented_claim_names(self, issuer: TokenIssuer) -> None:
        payload = jwt.get_unverified_claims(issuer.issue(7, "a@x.com", "user", now=T0))
        assert set(payload) == {"email", "role", "user_id", "exp"}
        assert payload["exp"] == (T0 + DAY).timestamp()

    @pytest.mark.parametrize("offset", [timedelta(0), timedelta(hours=12), DAY - timedelta(seconds=1)])
    def test_valid_inside_window(self, issuer: TokenIssuer, offset: timedelta) -> None:
        token = issuer.issue(1, "a@x.com", "user", now=T0)
        assert issuer.verify(token, now=T0 + offset).user_id == 1

    @pytest.mark.parametrize("offset", [DAY, DAY + timedelta(seconds=1), DAY * 30])
    def test_expired_at_and_after_window(self, issuer: TokenIssuer, offset: timedelta) -> None:
        token = issuer.issue(1, "a@x.com", "user", now=T0)
        with pytest.raises(ExpiredToken):
            issuer.verify(token, now=T0 + offset)

    def test_expired_is_a_kind_of_invalid(self) -> None:
        assert issubclass(ExpiredToken, InvalidToken)

    def test_custom_lifetime(self) -> None:
        short = TokenIssuer(SECRET, expire_seconds=60)
        token = short.issue(1, "a@x.com", "user", now=T0)
        short.verify(token, now=T0 + timedelta(seconds=59))
        with pytest.raises(ExpiredToken):
            short.verify(token, now=T0 + timedelta(seconds=60))

    def test_sub_second_issue_instant_keeps_full_window(self, issuer: TokenIssuer) -> None:
        issued = T0 + timedelta(milliseconds=900)
        token = issuer.issue(1, "a@x.com", "user", now=issued)
        claims = issuer.verify(token, now=issued + DAY - timedelta(milliseconds=500))
        assert claims.expires_at == issued + DAY
        with pytest.raises(ExpiredToken):
            issuer.verify(token, now=issued + DAY)

    def test_wall_clock_issue_verifies_just_before_expiry(self, issuer: TokenIssuer) -> None:
        token = issuer.issue(1, "a@x.com", "user")
        expires_at = issuer.verify(token).expires_at
        assert issuer.verify(token, now=expires_at - timedelta(microseconds=1)).user_id == 1

    def test_non_numeric_exp_is_invalid(self) -> None:
        payload = {"email": "a@x.com", "role": "user", "user_id": 1, "exp": "tomorrow"}
        token = jwt.encode(payload, SECRET, algorithm=ALGORITHM)
        with pytest.raises(InvalidToken):
            TokenIssuer(SECRET).verify(token, now=T0)

    def test_empty_secret_is_refused(self) -> None:
        with pytest.raises(ValueError):
            TokenIssuer("")


class TestForgery:
    def test_foreign_secret_never_verifies(self, issuer: TokenIssuer) -> None:
        forged = TokenIssuer("b" * 48).issue(1, "a@x.com", "admin", now=T0)
        with pytest.raises(InvalidToken) as exc_info:
            issuer.verify(forged, now=T0)
        assert not isinstance(exc_info.value, ExpiredToken)

    def test_tampered_payload_is_rejected(self, issuer: TokenIssuer) -> None:
        """A user token with its payload swapped for an admin payload keeps the old signature."""
        header, _payload, signature = issuer.issue(1, "a@x.com", "user", now=T0).split(".")
        admin_payload = issuer.issue(1, "a@x.com", "admin", now=T0).split(".")[1]
        with pytest.raises(InvalidToken):
            issuer.verify(f"{header}.{admin_payload}.{signature}", now=T0)

    @pytest.mark.parametrize("token", ["", "garbage", "a.b.c", "eyJhbGciOiJIUzI1NiJ9.e30"])
    def test_malformed_tokens(self, issuer: TokenIssuer, token: str) -> None:
        with pytest.raises(InvalidToken):
            issuer.verify(token, now=T0)

    def test_missing_claims_is_invalid(self, issuer: TokenIssuer) -> None:
        token = jwt.encode({"email": "a@x.com", "exp": int((T0 + DAY).timestamp())}, SECRET, algorithm=ALGORITHM)
        with pytest.raises(InvalidToken, match="missing required claims"):
            issuer.verify(token, now=T0)

    def test_non_numeric_user_id_is_invalid(self, issuer: TokenIssuer) -> None:
        payload = {"email": "a@x.com", "role": "user", "user_id": "abc", "exp": int((T0 + DAY).timestamp())}
        token = jwt.encode(payload, SECRET, algorithm=ALGORITHM)
        with pytest.raises(InvalidToken, match="malformed"):
            issuer.verify(token, now=T0)


class TestParseBearer:
    def test_extracts_token(self) -> None:
        assert parse_bearer("Bearer abc.def.ghi") == "abc.def.ghi"

    def test_scheme_is_case_insensitive(self) -> None:
        assert parse_bearer("bearer abc") == "abc"

    @pytest.mark.parametrize("value", [None, ""])
    def test_missing_header(self, value) -> None:
        with pytest.raises(MissingAuthorization):
            parse_bearer(value)

    @pytest.mark.parametrize("value", ["Basic dXNlcjpwYXNz", "Bearer", "Bearer   ", "abc.def.ghi"])
    def test_wrong_scheme_or_empty_token(self, value: str) -> None:
        with pytest.raises(InvalidToken):
            parse_bearer(value)
