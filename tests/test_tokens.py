"""Unit tests for auth/tokens.py -- bearer JWTs and reset token helpers.

Covers:
- create_access_token() / verify_access_token() carry sub and email
- expired tokens raise TokenExpired; tampered or exp-less tokens raise TokenMalformed
- decode_access_token() returns None instead of raising
- reset tokens are 64 hex chars and only their sha256 digest is derived
"""

import hashlib
from datetime import datetime, timedelta, timezone

import pytest
from jose import jwt

from auth.tokens import (
    create_access_token,
    decode_access_token,
    generate_reset_token,
    hash_reset_token,
    verify_access_token,
)
from core.config import get_settings
from core.errors import TokenExpired, TokenMalformed, Unauthenticated

ACCOUNT_ID = "0123456789abcdef0123456789abcdef"


def _expired_token() -> str:
    payload = {
        "sub": ACCOUNT_ID,
        "email": "a@x.com",
        "exp": datetime.now(timezone.utc) - timedelta(minutes=5),
    }
    return jwt.encode(payload, get_settings().secret_key, algorithm="HS256")


def test_round_trip_claims():
    token = create_access_token(ACCOUNT_ID, "a@x.com")
    claim = verify_access_token(token)
    assert claim.account_id == ACCOUNT_ID
    assert claim.email == "a@x.com"


def test_default_expiry_follows_settings():
    token = create_access_token(ACCOUNT_ID, "a@x.com")
    claim = verify_access_token(token)
    remaining = claim.expires_at - datetime.now(timezone.utc).timestamp()
    assert abs(remaining - get_settings().token_expire_seconds) < 60


def test_explicit_expiry_overrides_default():
    claim = verify_access_token(create_access_token(ACCOUNT_ID, "a@x.com", expire_seconds=120))
    remaining = claim.expires_at - datetime.now(timezone.utc).timestamp()
    assert 0 < remaining <= 120


def test_expired_token_raises_token_expired():
    with pytest.raises(TokenExpired):
        verify_access_token(_expired_token())


def test_tampered_token_raises_token_malformed():
    token = create_access_token(ACCOUNT_ID, "a@x.com")
    with pytest.raises(TokenMalformed):
        verify_access_token(token[:-4] + ("AAAA" if not token.endswith("AAAA") else "BBBB"))


def test_foreign_key_raises_token_malformed():
    token = jwt.encode(
        {"sub": ACCOUNT_ID, "email": "a@x.com", "exp": datetime.now(timezone.utc) + timedelta(minutes=5)},
        "x" * 40,
        algorithm="HS256",
    )
    with pytest.raises(TokenMalformed):
        verify_access_token(token)


def test_missing_subject_raises_token_malformed():
    token = jwt.encode(
        {"email": "a@x.com", "exp": datetime.now(timezone.utc) + timedelta(minutes=5)},
        get_settings().secret_key,
        algorithm="HS256",
    )
    with pytest.raises(TokenMalformed):
        verify_access_token(token)


def test_missing_expiry_raises_token_malformed():
    token = jwt.encode({"sub": ACCOUNT_ID, "email": "a@x.com"}, get_settings().secret_key, algorithm="HS256")
    with pytest.raises(TokenMalformed):
        verify_access_token(token)
    assert decode_access_token(token) is None


def test_token_errors_are_unauthenticated():
    assert issubclass(TokenExpired, Unauthenticated)
    assert issubclass(TokenMalformed, Unauthenticated)


def test_decode_returns_none_on_failure():
    assert decode_access_token("garbage") is None
    assert decode_access_token(_expired_token()) is None


def test_reset_token_shape():
    token = generate_reset_token()
    assert len(token) == 64
    int(token, 16)
    assert generate_reset_token() != token


def test_reset_token_hash_is_sha256():
    token = generate_reset_token()
    assert hash_reset_token(token) == hashlib.sha256(token.encode()).hexdigest()
    assert hash_reset_token(token) != token
