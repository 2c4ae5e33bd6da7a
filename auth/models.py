"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class. Dataclasses own domain shape; stores and services do the
work. The one exception is SessionState, which validates its own invariants on
construction so an inconsistent session can never be written.

Layer rule: no imports from api/ or catalog/.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional


@dataclass
class Account:
    """Full identity record as stored in the accounts table.

    Holds the secret fields (hashed_password, password_reset_token,
    password_reset_expires). Instances never leave auth/ -- callers outside the
    Account Directory receive PublicAccount via to_public().

    email is always stored lowercase. username is None when not supplied; the
    unique index ignores NULLs so any number of accounts may omit it.
    """

    email: str
    hashed_password: str
    id: Optional[str] = None  # 32-char hex, assigned by the store on insert
    username: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    gender: str = ""  # "male" | "female" | "other" | ""
    dob: Optional[str] = None  # YYYY-MM-DD
    phone: Optional[str] = None
    is_active: bool = True
    password_reset_token: Optional[str] = None  # sha256 hex of the plaintext token
    password_reset_expires: Optional[str] = None  # ISO 8601 UTC
    last_login_at: Optional[str] = None
    created_at: str = ""
    updated_at: str = ""

    def to_public(self) -> PublicAccount:
        return PublicAccount(
            id=self.id or "",
            email=self.email,
            username=self.username,
            first_name=self.first_name,
            last_name=self.last_name,
            gender=self.gender,
            dob=self.dob,
            phone=self.phone,
            is_active=self.is_active,
            last_login_at=self.last_login_at,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )


@dataclass(frozen=True)
class PublicAccount:
    """The serializable view of an Account. Contains no credential material."""

    id: str
    email: str
    username: Optional[str]
    first_name: Optional[str]
    last_name: Optional[str]
    gender: str
    dob: Optional[str]
    phone: Optional[str]
    is_active: bool
    last_login_at: Optional[str]
    created_at: str
    updated_at: str


@dataclass(frozen=True)
class IdentityClaim:
    """Payload carried by a bearer token. Never persisted."""

    account_id: str
    email: str
    expires_at: int  # epoch seconds


class SessionStatus(str, Enum):
    logged_in = "logged_in"
    logged_out = "logged_out"


@dataclass
class SessionState:
    """Typed server-side session payload.

    Invariants (checked on construction, i.e. on every write):
      logged_in  -- account_id and email are both set
      logged_out -- account_id and email are both None
    """

    status: SessionStatus = SessionStatus.logged_out
    account_id: Optional[str] = None
    email: Optional[str] = None

    def __post_init__(self) -> None:
        self.status = SessionStatus(self.status)
        if self.status is SessionStatus.logged_in:
            if not self.account_id or not self.email:
                raise ValueError("logged_in session requires account_id and email")
        elif self.account_id is not None or self.email is not None:
            raise ValueError("logged_out session must not carry identity fields")

    @property
    def is_logged_in(self) -> bool:
        return self.status is SessionStatus.logged_in

    def to_dict(self) -> dict:
        data: dict = {"status": self.status.value}
        if self.is_logged_in:
            data["account_id"] = self.account_id
            data["email"] = self.email
        return data

    @classmethod
    def from_dict(cls, data: dict) -> SessionState:
        return cls(
            status=SessionStatus(data.get("status", SessionStatus.logged_out.value)),
            account_id=data.get("account_id"),
            email=data.get("email"),
        )
