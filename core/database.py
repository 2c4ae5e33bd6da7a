"""
core/database.py -- Engine construction shared by every store.

One Engine is created per process in the application lifespan and handed to
AccountStore, ProductStore and SessionStore. Each store owns its own Table
metadata and calls create_all() in its constructor, so the schema is created
exactly once at startup rather than on first access.

SQLAlchemy provides a database-agnostic abstraction: swapping SQLite for
PostgreSQL is a connection string change (DATABASE_URL), not a rewrite.

Layer rule: core/ is the kernel. No imports from api/, auth/, or catalog/.
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode for concurrent read safety.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


def create_db_engine(db_url: str) -> Engine:
    """Create an Engine for db_url with the SQLite tweaks the stores rely on.

    check_same_thread=False is required because FastAPI runs sync route
    handlers in a worker thread pool, so a pooled connection may be used by a
    thread other than the one that opened it.
    """
    connect_args: dict = {}
    if db_url.startswith("sqlite"):
        connect_args["check_same_thread"] = False
    engine = create_engine(db_url, connect_args=connect_args)
    if db_url.startswith("sqlite") and ":memory:" not in db_url and "mode=memory" not in db_url:
        event.listen(engine, "connect", _set_wal_mode)
    return engine


def now_iso() -> str:
    """Current UTC time as a fixed-width ISO 8601 string.

    timespec="microseconds" keeps every stamp the same width so stored values
    compare correctly as strings (used by the reset-ticket expiry filter).
    """
    return datetime.now(timezone.utc).isoformat(timespec="microseconds")
