"""
auth/store.py -- SQLAlchemy Core persistence layer for accounts.

Pattern: Repository + Data Mapper (same as catalog/store.py).
AccountStore is the repository; _row_to_account is the mapper.
Service and dependency code never touches SQL directly.

Security:
  All queries use bound parameters. No f-strings in SQL.

  UNIQUE(email) and UNIQUE(username) are enforced by the database. A
  check-then-insert in application code cannot stop two concurrent
  registrations from both passing the check; the unique index can. Callers
  catch IntegrityError and translate it into a Conflict.

  SQLite, PostgreSQL and MySQL all treat NULLs as distinct in a UNIQUE index,
  which gives username the "unique when present" semantics it needs.

  Reset tickets are consumed with a single conditional UPDATE (token hash
  matches AND expiry is in the future), so two concurrent resets with the same
  token cannot both succeed.

Layer rule: no imports from api/ or catalog/.
"""

from __future__ import annotations

import uuid

from sqlalchemy import Column, Index, Integer, MetaData, String, Table, Text, func, select
from sqlalchemy.engine import Engine

from auth.models import Account
from core.database import now_iso

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_accounts = Table(
    "accounts",
    _metadata,
    Column("id", String(32), primary_key=True),
    Column("email", String(255), nullable=False, unique=True),  # always lowercase
    Column("username", String(50), unique=True),  # NULL when not supplied
    Column("hashed_password", Text, nullable=False),
    Column("first_name", String(50)),
    Column("last_name", String(50)),
    Column("gender", String(10), nullable=False, server_default=""),
    Column("dob", String(10)),  # YYYY-MM-DD
    Column("phone", String(30)),
    Column("is_active", Integer, nullable=False, server_default="1"),
    Column("password_reset_token", String(64)),  # sha256 hex
    Column("password_reset_expires", String(32)),  # ISO 8601 UTC
    Column("last_login_at", String(32)),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
    Index("ix_accounts_reset_token", "password_reset_token"),
)

# Fields update_account() accepts. Everything else (id, timestamps, reset
# ticket) has its own dedicated method.
_MUTABLE_FIELDS = frozenset(
    {
        "email",
        "username",
        "hashed_password",
        "first_name",
        "last_name",
        "gender",
        "dob",
        "phone",
        "is_active",
    }
)


def new_id() -> str:
    """Return a fresh canonical identifier (UUID4 as 32 lowercase hex chars)."""
    return uuid.uuid4().hex


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class AccountStore:
    """Repository for Account entities.

    Usage:
        store = AccountStore(create_db_engine("sqlite:///tradepost.db"))
        account_id = store.create_account(Account(email="a@x.com", hashed_password=hash_password("p1")))
        account = store.get_by_email("a@x.com")
    """

    def __init__(self, engine: Engine) -> None:
        self.engine = engine
        _metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create_account(self, account: Account) -> str:
        """Insert a new account and return its assigned id.

        Raises sqlalchemy.exc.IntegrityError if the email or username is
        already taken (including a concurrent insert that won the race).
        """
        account_id = new_id()
        stamp = now_iso()
        with self.engine.connect() as conn:
            conn.execute(
                _accounts.insert().values(
                    id=account_id,
                    email=account.email,
                    username=account.username,
                    hashed_password=account.hashed_password,
                    first_name=account.first_name,
                    last_name=account.last_name,
                    gender=account.gender or "",
                    dob=account.dob,
                    phone=account.phone,
                    is_active=1 if account.is_active else 0,
                    created_at=stamp,
                    updated_at=stamp,
                )
            )
            conn.commit()
        return account_id

    def update_account(self, account_id: str, **fields) -> bool:
        """Update mutable fields on an existing account in one statement.

        Returns True if a row was updated, False if account_id was not found.
        Raises ValueError for unknown field names and IntegrityError when an
        email/username change collides with another account.
        """
        unknown = set(fields) - _MUTABLE_FIELDS
        if unknown:
            raise ValueError(f"Unknown account fields: {unknown!r}")
        if "is_active" in fields:
            fields["is_active"] = 1 if fields["is_active"] else 0
        fields["updated_at"] = now_iso()
        with self.engine.connect() as conn:
            result = conn.execute(_accounts.update().where(_accounts.c.id == account_id).values(**fields))
            conn.commit()
        return result.rowcount > 0

    def stamp_last_login(self, account_id: str) -> str:
        """Record the current UTC time as last_login_at and return it.

        Concurrent logins race here with last-write-wins, which is acceptable.
        """
        stamp = now_iso()
        with self.engine.connect() as conn:
            conn.execute(_accounts.update().where(_accounts.c.id == account_id).values(last_login_at=stamp))
            conn.commit()
        return stamp

    def delete_account(self, account_id: str) -> bool:
        """Permanently delete an account. Returns True if a row was removed."""
        with self.engine.connect() as conn:
            result = conn.execute(_accounts.delete().where(_accounts.c.id == account_id))
            conn.commit()
        return result.rowcount > 0

    # ------------------------------------------------------------------
    # Reset tickets
    # ------------------------------------------------------------------

    def set_reset_ticket(self, account_id: str, token_hash: str, expires_at: str) -> None:
        """Store a reset ticket, replacing any previous one for the account."""
        with self.engine.connect() as conn:
            conn.execute(
                _accounts.update()
                .where(_accounts.c.id == account_id)
                .values(password_reset_token=token_hash, password_reset_expires=expires_at)
            )
            conn.commit()

    def find_by_reset_ticket(self, token_hash: str, now: str) -> Account | None:
        """Return the account holding an unexpired ticket with this hash, if any."""
        with self.engine.connect() as conn:
            row = conn.execute(
                _accounts.select().where(
                    (_accounts.c.password_reset_token == token_hash) & (_accounts.c.password_reset_expires > now)
                )
            ).fetchone()
        return _row_to_account(row) if row is not None else None

    def consume_reset_ticket(self, token_hash: str, now: str, hashed_password: str) -> str | None:
        """Redeem a reset ticket: set the new password and clear the ticket.

        The WHERE clause re-checks hash and expiry so the update is the single
        point of truth -- a ticket redeemed by a concurrent request no longer
        matches. Returns the account id, or None if no live ticket matched.
        """
        account = self.find_by_reset_ticket(token_hash, now)
        if account is None:
            return None
        with self.engine.connect() as conn:
            result = conn.execute(
                _accounts.update()
                .where(
                    (_accounts.c.id == account.id)
                    & (_accounts.c.password_reset_token == token_hash)
                    & (_accounts.c.password_reset_expires > now)
                )
                .values(
                    hashed_password=hashed_password,
                    password_reset_token=None,
                    password_reset_expires=None,
                    updated_at=now_iso(),
                )
            )
            conn.commit()
        return account.id if result.rowcount > 0 else None

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_by_id(self, account_id: str) -> Account | None:
        with self.engine.connect() as conn:
            row = conn.execute(_accounts.select().where(_accounts.c.id == account_id)).fetchone()
        return _row_to_account(row) if row is not None else None

    def get_by_email(self, email: str) -> Account | None:
        """Look up by email. Callers pass the normalized (lowercase) form."""
        with self.engine.connect() as conn:
            row = conn.execute(_accounts.select().where(_accounts.c.email == email)).fetchone()
        return _row_to_account(row) if row is not None else None

    def get_by_username(self, username: str) -> Account | None:
        """Look up by exact username (case-sensitive)."""
        with self.engine.connect() as conn:
            row = conn.execute(_accounts.select().where(_accounts.c.username == username)).fetchone()
        return _row_to_account(row) if row is not None else None

    def count_accounts(self) -> int:
        with self.engine.connect() as conn:
            result = conn.execute(select(func.count()).select_from(_accounts)).scalar()
        return result or 0

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_account(row) -> Account:
    return Account(
        id=row.id,
        email=row.email,
        username=row.username,
        hashed_password=row.hashed_password,
        first_name=row.first_name,
        last_name=row.last_name,
        gender=row.gender or "",
        dob=row.dob,
        phone=row.phone,
        is_active=bool(row.is_active),
        password_reset_token=row.password_reset_token,
        password_reset_expires=row.password_reset_expires,
        last_login_at=row.last_login_at,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )
