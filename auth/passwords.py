"""
auth/passwords.py -- Credential hashing with bcrypt.

bcrypt is the right choice for low-entropy secrets (passwords): its cost factor
makes brute-force expensive, and every hash embeds its own random salt.
Verification delegates to bcrypt.checkpw, which compares in constant time.

Using bcrypt directly rather than passlib[bcrypt] because passlib's internal
wrap-bug detection creates a password longer than 72 bytes, which bcrypt 4.x
rejects with an explicit error.

Layer rule: no imports from api/ or catalog/.
"""

from __future__ import annotations

import bcrypt

# bcrypt only reads the first 72 bytes of its input. The API layer rejects
# longer passwords so two different passwords can never share a hash.
MAX_PASSWORD_BYTES = 72


def hash_password(plain: str) -> str:
    """Return a salted bcrypt hash of the given plaintext password."""
    return bcrypt.hashpw(plain.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash.

    A malformed or empty stored hash makes bcrypt raise ValueError; that is
    reported as a mismatch, never propagated.
    """
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        return False


# Timing equalization dummy hash.
# Computed once at module load so the first login attempt is not measurably
# slower than subsequent ones. Login always runs verify_password() even when
# the email does not exist, so response time does not reveal which emails are
# registered.
DUMMY_HASH: str = hash_password("tradepost_timing_dummy")
