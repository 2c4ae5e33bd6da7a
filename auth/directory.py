"""
auth/directory.py -- Account Directory: registration, login and profile rules.

The directory is the only component that sees full Account records. Every
public method returns PublicAccount (no password hash, no reset ticket), so
secret fields are stripped at this boundary regardless of what the caller
does with the result.

Uniqueness:
  email    -- compared and stored lowercase; a second registration with the
              same address in any case is a Conflict.
  username -- exact match, checked only when one is supplied.

  The pre-checks below exist to produce a specific message ("Username already
  taken"). They do not provide the guarantee: the unique indexes in
  auth/store.py do. A concurrent insert that slips past the pre-check surfaces
  as IntegrityError and is translated into the same Conflict here.

Layer rule: no imports from api/ or catalog/.
"""

from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy.exc import IntegrityError

from auth.models import Account, PublicAccount
from auth.passwords import DUMMY_HASH, hash_password, verify_password
from auth.store import AccountStore
from auth.tokens import create_access_token
from core.errors import Conflict, NotFound, Unauthenticated

logger = logging.getLogger("tradepost.auth")

_EMAIL_TAKEN = "User with this email already exists."
_USERNAME_TAKEN = "Username already taken."
_BAD_CREDENTIALS = "Invalid email or password."

# Profile fields a caller may change through update_profile().
_PROFILE_FIELDS = ("first_name", "last_name", "gender", "dob", "phone")


def normalize_email(email: str) -> str:
    return email.strip().lower()


def _clean(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


class AccountDirectory:
    """Service wrapper around AccountStore enforcing identity rules."""

    def __init__(self, store: AccountStore) -> None:
        self.store = store

    # ------------------------------------------------------------------
    # Registration and login
    # ------------------------------------------------------------------

    def register(
        self,
        email: str,
        password: str,
        username: Optional[str] = None,
        first_name: Optional[str] = None,
        last_name: Optional[str] = None,
        gender: str = "",
        dob: Optional[str] = None,
        phone: Optional[str] = None,
    ) -> tuple[PublicAccount, str]:
        """Create an account and return (public account, bearer token).

        Raises Conflict if the email or username is already registered.
        """
        email = normalize_email(email)
        username = _clean(username)

        if self.store.get_by_email(email) is not None:
            raise Conflict(_EMAIL_TAKEN)
        if username and self.store.get_by_username(username) is not None:
            raise Conflict(_USERNAME_TAKEN)

        account = Account(
            email=email,
            hashed_password=hash_password(password),
            username=username,
            first_name=_clean(first_name),
            last_name=_clean(last_name),
            gender=gender or "",
            dob=dob,
            phone=_clean(phone),
            is_active=True,
        )
        try:
            account_id = self.store.create_account(account)
        except IntegrityError as exc:
            raise self._conflict_for(email, username) from exc

        created = self._require(account_id)
        logger.info("Registered account %s", account_id)
        token = create_access_token(created.id, created.email)
        return created.to_public(), token

    def authenticate(self, email: str, password: str) -> Account | None:
        """Verify credentials with timing equalization.

        Always runs bcrypt whether or not the account exists:
        - Unknown email: bcrypt runs against DUMMY_HASH (same cost as real check)
        - Wrong password: bcrypt runs against the real hash (same cost)

        Deactivated accounts fail the same way as a wrong password so the
        response does not reveal account state. Returns None on any failure.
        """
        account = self.store.get_by_email(normalize_email(email))
        if account is None:
            verify_password(password, DUMMY_HASH)
            return None
        if not verify_password(password, account.hashed_password):
            return None
        if not account.is_active:
            return None
        return account

    def login(self, email: str, password: str) -> tuple[PublicAccount, str]:
        """Authenticate, stamp last_login_at, and issue a bearer token.

        Raises Unauthenticated with a generic message on any failure.
        """
        account = self.authenticate(email, password)
        if account is None:
            logger.warning("Failed login attempt for %s", normalize_email(email))
            raise Unauthenticated(_BAD_CREDENTIALS)
        account.last_login_at = self.store.stamp_last_login(account.id)
        token = create_access_token(account.id, account.email)
        return account.to_public(), token

    # ------------------------------------------------------------------
    # Profile
    # ------------------------------------------------------------------

    def get_account(self, account_id: str) -> Account | None:
        """Full record lookup for auth/ internals (guard, session layer)."""
        return self.store.get_by_id(account_id)

    def get_public(self, account_id: str) -> PublicAccount:
        account = self.store.get_by_id(account_id)
        if account is None:
            raise NotFound("User not found.")
        return account.to_public()

    def update_profile(self, account_id: str, **changes) -> PublicAccount:
        """Apply profile changes for account_id.

        Keys absent from changes are left untouched. email and username are
        re-checked for uniqueness against every other account; submitting the
        account's own current value is not a conflict.
        """
        account = self._require(account_id)
        updates: dict = {}

        email = changes.get("email")
        if email:
            email = normalize_email(email)
            if email != account.email:
                other = self.store.get_by_email(email)
                if other is not None and other.id != account_id:
                    raise Conflict("Email is already in use.")
                updates["email"] = email

        username = _clean(changes.get("username"))
        if username and username != account.username:
            other = self.store.get_by_username(username)
            if other is not None and other.id != account_id:
                raise Conflict(_USERNAME_TAKEN)
            updates["username"] = username

        for field in _PROFILE_FIELDS:
            if field in changes:
                value = changes[field]
                if field == "gender":
                    updates[field] = value or ""
                elif field == "dob":
                    updates[field] = value or None
                else:
                    updates[field] = _clean(value)

        if updates:
            try:
                self.store.update_account(account_id, **updates)
            except IntegrityError as exc:
                raise self._conflict_for(updates.get("email"), updates.get("username")) from exc

        return self._require(account_id).to_public()

    def delete_account(self, account_id: str) -> None:
        if not self.store.delete_account(account_id):
            raise NotFound("User not found.")
        logger.info("Deleted account %s", account_id)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _require(self, account_id: str) -> Account:
        account = self.store.get_by_id(account_id)
        if account is None:
            raise NotFound("User not found.")
        return account

    def _conflict_for(self, email: Optional[str], username: Optional[str]) -> Conflict:
        """Pick the message for an IntegrityError raised by a lost race."""
        if email and self.store.get_by_email(email) is not None:
            return Conflict(_EMAIL_TAKEN)
        if username and self.store.get_by_username(username) is not None:
            return Conflict(_USERNAME_TAKEN)
        return Conflict()
