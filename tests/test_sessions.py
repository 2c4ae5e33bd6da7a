"""Unit tests for the server-side session layer.

Covers:
- SessionState enforces its invariants on construction (and therefore on write)
- SessionStore round-trips state, hides expired records, purges them
- SessionHandle.regenerate() mints a new id and drops the previous record
- SessionHandle.clear() persists logged_out with no identity fields
- establish_session() / terminate_session() raise SessionUnavailable without middleware
"""

import pytest
from starlette.requests import Request

from auth.models import Account, SessionState, SessionStatus
from auth.session import SCOPE_KEY, SessionHandle, establish_session, terminate_session
from auth.session_store import SessionStore
from core.errors import SessionUnavailable

ACCOUNT_ID = "0123456789abcdef0123456789abcdef"


def _logged_in() -> SessionState:
    return SessionState(status=SessionStatus.logged_in, account_id=ACCOUNT_ID, email="a@x.com")


def _request(handle=None) -> Request:
    scope = {"type": "http", "method": "POST", "path": "/", "headers": [], "query_string": b""}
    if handle is not None:
        scope[SCOPE_KEY] = handle
    return Request(scope)


# ---------------------------------------------------------------------------
# SessionState
# ---------------------------------------------------------------------------


class TestSessionState:
    def test_default_is_logged_out(self):
        state = SessionState()
        assert state.status is SessionStatus.logged_out
        assert state.is_logged_in is False

    def test_logged_in_requires_identity(self):
        with pytest.raises(ValueError):
            SessionState(status=SessionStatus.logged_in, account_id=ACCOUNT_ID)
        with pytest.raises(ValueError):
            SessionState(status=SessionStatus.logged_in, email="a@x.com")

    def test_logged_out_forbids_identity(self):
        with pytest.raises(ValueError):
            SessionState(status=SessionStatus.logged_out, account_id=ACCOUNT_ID, email="a@x.com")

    def test_dict_round_trip(self):
        state = _logged_in()
        assert SessionState.from_dict(state.to_dict()) == state
        assert SessionState().to_dict() == {"status": "logged_out"}


# ---------------------------------------------------------------------------
# SessionStore
# ---------------------------------------------------------------------------


class TestSessionStore:
    def test_save_and_get(self, session_store):
        session_store.save("sid-1", _logged_in())
        assert session_store.get("sid-1") == _logged_in()

    def test_missing_returns_none(self, session_store):
        assert session_store.get("nope") is None

    def test_save_replaces_existing(self, session_store):
        session_store.save("sid-1", _logged_in())
        session_store.save("sid-1", SessionState())
        assert session_store.get("sid-1") == SessionState()

    def test_delete(self, session_store):
        session_store.save("sid-1", _logged_in())
        session_store.delete("sid-1")
        assert session_store.get("sid-1") is None

    def test_expired_records_are_invisible_and_purged(self, engine):
        expired = SessionStore(engine, ttl=-1)
        expired.save("old", _logged_in())
        assert expired.get("old") is None
        assert expired.purge_expired() == 1
        assert expired.purge_expired() == 0


# ---------------------------------------------------------------------------
# SessionHandle and the session manager operations
# ---------------------------------------------------------------------------


class TestSessionHandle:
    def test_regenerate_mints_new_id_and_drops_old_record(self, session_store):
        handle = SessionHandle(session_store)
        first = handle.regenerate(_logged_in())
        second = handle.regenerate(_logged_in())

        assert first != second
        assert session_store.get(first) is None
        assert session_store.get(second) == _logged_in()
        assert handle.cookie_action == "set"

    def test_clear_persists_logged_out(self, session_store):
        handle = SessionHandle(session_store)
        session_id = handle.regenerate(_logged_in())
        handle.clear()

        stored = session_store.get(session_id)
        assert stored.status is SessionStatus.logged_out
        assert stored.account_id is None
        assert stored.email is None
        assert handle.cookie_action == "clear"

    def test_establish_and_terminate(self, session_store):
        handle = SessionHandle(session_store)
        request = _request(handle)
        account = Account(email="a@x.com", hashed_password="x", id=ACCOUNT_ID).to_public()

        session_id = establish_session(request, account)
        assert session_store.get(session_id).account_id == ACCOUNT_ID

        terminate_session(request)
        assert session_store.get(session_id).status is SessionStatus.logged_out

    def test_terminate_without_session_is_a_no_op(self, session_store):
        handle = SessionHandle(session_store)
        terminate_session(_request(handle))
        assert handle.cookie_action is None

    def test_operations_require_middleware(self):
        account = Account(email="a@x.com", hashed_password="x", id=ACCOUNT_ID).to_public()
        with pytest.raises(SessionUnavailable):
            establish_session(_request(), account)
        with pytest.raises(SessionUnavailable):
            terminate_session(_request())
