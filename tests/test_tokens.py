"""Unit tests for auth/tokens.py -- JWT issue and verify.

Covers:
- issued tokens verify with the same key and carry every identity claim
- exp is exactly 24 hours after iat
- expired tokens raise ExpiredTokenError
- a different key or a tampered payload raises InvalidSignatureError
- garbage input and tokens missing claims raise MalformedTokenError
"""

import base64
import json
from datetime import datetime, timedelta, timezone

import pytest
from jose import jwt

from auth.models import Role, TokenClaims
from auth.tokens import (
    TOKEN_LIFETIME,
    ExpiredTokenError,
    InvalidSignatureError,
    MalformedTokenError,
    TokenError,
    create_access_token,
    decode_access_token,
)

KEY = "unit-test-signing-key-0123456789abcdef"
OTHER_KEY = "another-signing-key-fedcba9876543210xx"


def _issue(**overrides) -> str:
    params = dict(user_id="u1", username="alice", email="a@x.com", role=Role.user, secret_key=KEY)
    params.update(overrides)
    return create_access_token(**params)


def _b64(data: dict) -> str:
    raw = json.dumps(data, separators=(",", ":")).encode()
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode()


class TestIssueAndVerify:
    def test_roundtrip_returns_claims(self):
        claims = decode_access_token(_issue(), KEY)
        assert isinstance(claims, TokenClaims)
        assert claims.sub == "u1"
        assert claims.username == "alice"
        assert claims.email == "a@x.com"
        assert claims.role is Role.user

    def test_role_given_as_string_is_accepted(self):
        claims = decode_access_token(_issue(role="moderator"), KEY)
        assert claims.role is Role.moderator

    def test_expiry_is_24_hours_after_issue(self):
        now = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)
        token = _issue(now=now)
        payload = jwt.get_unverified_claims(token)
        assert payload["iat"] == int(now.timestamp())
        assert payload["exp"] - payload["iat"] == int(TOKEN_LIFETIME.total_seconds()) == 86400

    def test_token_is_opaque_string(self):
        token = _issue()
        assert isinstance(token, str)
        assert token.count(".") == 2


class TestVerifyFailures:
    def test_expired_token(self):
        token = _issue(now=datetime.now(timezone.utc) - timedelta(hours=25))
        with pytest.raises(ExpiredTokenError):
            decode_access_token(token, KEY)

    def test_token_just_inside_window_is_valid(self):
        token = _issue(now=datetime.now(timezone.utc) - timedelta(hours=23, minutes=59))
        assert decode_access_token(token, KEY).username == "alice"

    def test_different_key(self):
        with pytest.raises(InvalidSignatureError):
            decode_access_token(_issue(), OTHER_KEY)

    def test_tampered_payload(self):
        """Swapping in an admin role without re-signing must be detected."""
        header, payload, signature = _issue().split(".")
        claims = jwt.get_unverified_claims(_issue())
        claims["role"] = "admin"
        forged = ".".join([header, _b64(claims), signature])
        with pytest.raises(InvalidSignatureError):
            decode_access_token(forged, KEY)

    def test_unsigned_alg_none_token(self):
        header = _b64({"alg": "none", "typ": "JWT"})
        payload = _b64(jwt.get_unverified_claims(_issue()))
        with pytest.raises(TokenError):
            decode_access_token(f"{header}.{payload}.", KEY)

    @pytest.mark.parametrize("garbage", ["", "not-a-token", "a.b.c", "....."])
    def test_garbage_is_malformed(self, garbage):
        with pytest.raises(MalformedTokenError):
            decode_access_token(garbage, KEY)

    def test_missing_claims_is_malformed(self):
        exp = int((datetime.now(timezone.utc) + timedelta(hours=1)).timestamp())
        token = jwt.encode({"sub": "u1", "exp": exp}, KEY, algorithm="HS256")
        with pytest.raises(MalformedTokenError):
            decode_access_token(token, KEY)

    def test_unknown_role_is_malformed(self):
        now = datetime.now(timezone.utc)
        token = jwt.encode(
            {
                "sub": "u1",
                "username": "alice",
                "email": "a@x.com",
                "role": "superuser",
                "iat": int(now.timestamp()),
                "exp": int((now + timedelta(hours=1)).timestamp()),
            },
            KEY,
            algorithm="HS256",
        )
        with pytest.raises(MalformedTokenError):
            decode_access_token(token, KEY)

    def test_all_failures_share_a_base_class(self):
        for exc in (MalformedTokenError, InvalidSignatureError, ExpiredTokenError):
            assert issubclass(exc, TokenError)
