"""
auth/tokens.py -- Bearer token (JWT) and password-reset token utilities.

Security design decisions:
  JWT: python-jose with HS256. Tokens are signed with SECRET_KEY and carry the
       account id (sub), email, and expiry. They are stateless: possession is
       sufficient until expiry and there is no server-side revocation list, so
       logging out ends the cookie session but not previously issued bearer
       tokens. API clients that need immediate revocation should use the
       session cookie instead.

       verify_access_token() raises TokenExpired / TokenMalformed so callers
       that care can tell the two apart. decode_access_token() is the soft
       variant that returns None on any failure.

  Reset tokens: secrets.token_hex(32) gives 256 bits of entropy. Only
       sha256(token) is stored. A plain digest (rather than bcrypt) is enough
       because the input is long and random, and it enables an indexed
       equality lookup.

  SECRET_KEY: sourced from core.config.get_settings(), validated at startup.

Layer rule: no imports from api/ or catalog/. Import from core/ is allowed.
"""

from __future__ import annotations

import hashlib
import logging
import secrets
from datetime import datetime, timedelta, timezone

from jose import ExpiredSignatureError, JWTError, jwt

from auth.models import IdentityClaim
from core.config import get_settings
from core.errors import TokenExpired, TokenMalformed

logger = logging.getLogger("tradepost.auth")

_ALGORITHM = "HS256"


# ---------------------------------------------------------------------------
# JWT encode / decode
# ---------------------------------------------------------------------------


def create_access_token(account_id: str, email: str, expire_seconds: int = 0) -> str:
    """Encode a signed JWT carrying the account identity.

    Args:
        account_id:     Canonical account id, stored as the JWT subject.
        email:          Account email at issue time.
        expire_seconds: Token lifetime. If 0 (default), uses
                        Settings.token_expire_seconds.
    """
    settings = get_settings()
    duration = expire_seconds if expire_seconds > 0 else settings.token_expire_seconds
    expire = datetime.now(timezone.utc) + timedelta(seconds=duration)
    payload = {
        "sub": account_id,
        "email": email,
        "exp": expire,
    }
    return jwt.encode(payload, settings.secret_key, algorithm=_ALGORITHM)


def verify_access_token(token: str) -> IdentityClaim:
    """Decode and verify a JWT.

    Raises:
        TokenExpired:   signature valid but exp is in the past.
        TokenMalformed: bad signature, undecodable, or missing claims.
    """
    settings = get_settings()
    try:
        payload = jwt.decode(token, settings.secret_key, algorithms=[_ALGORITHM])
    except ExpiredSignatureError as exc:
        raise TokenExpired() from exc
    except JWTError as exc:
        raise TokenMalformed() from exc
    sub = payload.get("sub")
    email = payload.get("email")
    exp = payload.get("exp")
    if not isinstance(sub, str) or not sub or not isinstance(email, str):
        raise TokenMalformed()
    # jose only checks exp when present; a token without one would never expire.
    if not isinstance(exp, (int, float)):
        raise TokenMalformed()
    return IdentityClaim(account_id=sub, email=email, expires_at=int(exp))


def decode_access_token(token: str) -> IdentityClaim | None:
    """Soft variant of verify_access_token(): returns None on any failure."""
    try:
        return verify_access_token(token)
    except (TokenExpired, TokenMalformed) as exc:
        logger.debug("Rejected bearer token: %s", exc.code)
        return None


# ---------------------------------------------------------------------------
# Password reset tokens
# ---------------------------------------------------------------------------


def generate_reset_token() -> str:
    """Return a new plaintext reset token (64 hex chars, 256 bits)."""
    return secrets.token_hex(32)


def hash_reset_token(raw_token: str) -> str:
    """Return sha256(raw_token) as a hex string -- the only form that is stored."""
    return hashlib.sha256(raw_token.encode("utf-8")).hexdigest()
