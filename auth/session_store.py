"""
auth/session_store.py -- TTL key-value store for server-side session records.

Each record is a JSON-serialized SessionState keyed by an opaque session id.
The TTL is measured from the last write: save() always pushes expires_at to
now + ttl. Expired records are invisible to get() immediately and are removed
in bulk by purge_expired(), which the API lifespan calls periodically.

Usage:
    sessions = SessionStore(engine, ttl=86400)
    sessions.save(session_id, SessionState(...))
    state = sessions.get(session_id)    # SessionState or None
    sessions.delete(session_id)
    sessions.purge_expired()            # call periodically to trim old records

Layer rule: no imports from api/ or catalog/.
"""

from __future__ import annotations

import json
import time

from sqlalchemy import Column, Float, Index, MetaData, String, Table, Text
from sqlalchemy.engine import Engine

from auth.models import SessionState

_DEFAULT_TTL = 60 * 60 * 24  # 24 hours in seconds

_metadata = MetaData()

_sessions = Table(
    "sessions",
    _metadata,
    Column("id", String(64), primary_key=True),
    Column("data", Text, nullable=False),  # SessionState.to_dict() as JSON
    Column("expires_at", Float, nullable=False),  # epoch seconds
    Index("ix_sessions_expires_at", "expires_at"),
)


class SessionStore:
    def __init__(self, engine: Engine, ttl: int = _DEFAULT_TTL) -> None:
        self.engine = engine
        self.ttl = ttl
        _metadata.create_all(self.engine)

    def get(self, session_id: str) -> SessionState | None:
        """Return the stored state for session_id if it exists and hasn't expired."""
        with self.engine.connect() as conn:
            row = conn.execute(
                _sessions.select().where((_sessions.c.id == session_id) & (_sessions.c.expires_at > time.time()))
            ).fetchone()
        if row is None:
            return None
        return SessionState.from_dict(json.loads(row.data))

    def save(self, session_id: str, state: SessionState) -> None:
        """Write state for session_id, replacing any existing record and resetting its TTL."""
        payload = json.dumps(state.to_dict())
        expires_at = time.time() + self.ttl
        with self.engine.connect() as conn:
            updated = conn.execute(
                _sessions.update()
                .where(_sessions.c.id == session_id)
                .values(data=payload, expires_at=expires_at)
            )
            if updated.rowcount == 0:
                conn.execute(_sessions.insert().values(id=session_id, data=payload, expires_at=expires_at))
            conn.commit()

    def delete(self, session_id: str) -> None:
        with self.engine.connect() as conn:
            conn.execute(_sessions.delete().where(_sessions.c.id == session_id))
            conn.commit()

    def purge_expired(self) -> int:
        """Delete all records past their expiry. Returns number of rows removed."""
        with self.engine.connect() as conn:
            result = conn.execute(_sessions.delete().where(_sessions.c.expires_at <= time.time()))
            conn.commit()
        return result.rowcount
