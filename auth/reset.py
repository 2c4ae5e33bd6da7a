"""
auth/reset.py -- Password Reset Ledger.

A reset ticket is two columns on the account row: sha256(token) and an expiry.
The plaintext token is returned to the caller exactly once and never stored.

Anti-enumeration: request_reset() returns "" for an unknown email instead of
raising. The route renders both outcomes with the same response shape, so a
caller cannot probe which addresses are registered.

Single use: consume() clears the ticket in the same UPDATE that sets the new
password. The expiry check reads the clock at call time, never a cached value.

Layer rule: no imports from api/ or catalog/.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone

from auth.directory import normalize_email
from auth.passwords import hash_password
from auth.store import AccountStore
from auth.tokens import generate_reset_token, hash_reset_token
from core.database import now_iso
from core.errors import InvalidOrExpiredToken

logger = logging.getLogger("tradepost.auth")


class PasswordResetLedger:
    def __init__(self, store: AccountStore, expire_minutes: int) -> None:
        self.store = store
        self.expire_minutes = expire_minutes

    def request_reset(self, email: str) -> str:
        """Issue a reset ticket for email and return the plaintext token.

        Returns "" when no account has that email. Any previous ticket for the
        account is replaced, so only the newest token is redeemable.
        """
        email = normalize_email(email)
        account = self.store.get_by_email(email)
        if account is None:
            logger.warning("Password reset requested for unknown email")
            return ""

        raw_token = generate_reset_token()
        expires = datetime.now(timezone.utc) + timedelta(minutes=self.expire_minutes)
        self.store.set_reset_ticket(
            account.id,
            hash_reset_token(raw_token),
            expires.isoformat(timespec="microseconds"),
        )
        logger.info("Password reset ticket issued for account %s", account.id)
        return raw_token

    def consume(self, raw_token: str, new_password: str) -> None:
        """Redeem a ticket and set a new password.

        Raises InvalidOrExpiredToken if the token is unknown, expired, or was
        already used.
        """
        account_id = self.store.consume_reset_ticket(
            hash_reset_token(raw_token),
            now_iso(),
            hash_password(new_password),
        )
        if account_id is None:
            raise InvalidOrExpiredToken()
        logger.info("Password reset completed for account %s", account_id)
