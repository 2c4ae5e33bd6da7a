"""
auth/session.py -- Server-side sessions bound to a signed cookie.

Two pieces:

  ServerSessionMiddleware -- pure ASGI middleware, shaped like Starlette's
      SessionMiddleware. On the way in it unsigns the session cookie, loads the
      record from SessionStore and attaches a SessionHandle to the scope. On the
      way out it emits Set-Cookie when the handle was regenerated or cleared.
      Unlike Starlette's cookie-only sessions, the cookie carries only a signed
      opaque id; all state lives server-side so it can be revoked.

  establish_session() / terminate_session() -- the Session Manager operations
      route handlers call.

Ordering:
  Both operations write to the store synchronously before returning, and the
  cookie header is only emitted when the response starts. The new record
  therefore exists before the client can learn its id, and a terminated record
  is already logged_out before the client's cookie is cleared.

Session fixation:
  establish_session() always mints a new id and deletes the record bound to
  the presented cookie. An id planted before login is useless afterwards.

Layer rule: no imports from api/ or catalog/.
"""

from __future__ import annotations

import logging
import secrets
from typing import Optional

from itsdangerous import BadSignature, TimestampSigner
from starlette.concurrency import run_in_threadpool
from starlette.datastructures import MutableHeaders
from starlette.requests import HTTPConnection
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from auth.models import PublicAccount, SessionState, SessionStatus
from auth.session_store import SessionStore
from core.errors import SessionUnavailable

logger = logging.getLogger("tradepost.auth.session")

SCOPE_KEY = "tradepost.session"

_SET = "set"
_CLEAR = "clear"


class SessionHandle:
    """Per-request view of the caller's session record.

    session_id is None until a record exists (nothing is persisted for
    anonymous visitors). cookie_action tells the middleware what to emit.
    """

    def __init__(self, store: SessionStore, session_id: Optional[str] = None, state: Optional[SessionState] = None):
        self.store = store
        self.session_id = session_id
        self.state = state or SessionState()
        self.cookie_action: Optional[str] = None

    def regenerate(self, state: SessionState) -> str:
        previous = self.session_id
        if previous is not None:
            self.store.delete(previous)
        self.session_id = secrets.token_urlsafe(32)
        self.store.save(self.session_id, state)
        self.state = state
        self.cookie_action = _SET
        return self.session_id

    def clear(self) -> None:
        if self.session_id is not None:
            cleared = SessionState(status=SessionStatus.logged_out)
            self.store.save(self.session_id, cleared)
            self.state = cleared
            self.cookie_action = _CLEAR


# ---------------------------------------------------------------------------
# Session Manager operations
# ---------------------------------------------------------------------------


def _handle_for(request: HTTPConnection) -> SessionHandle:
    handle = request.scope.get(SCOPE_KEY)
    if handle is None:
        raise SessionUnavailable()
    return handle


def establish_session(request: HTTPConnection, account: PublicAccount) -> str:
    """Bind a fresh logged_in session to account and return its new id.

    Raises SessionUnavailable if ServerSessionMiddleware is not installed.
    """
    handle = _handle_for(request)
    state = SessionState(status=SessionStatus.logged_in, account_id=account.id, email=account.email)
    session_id = handle.regenerate(state)
    logger.debug("Session regenerated for account %s", account.id)
    return session_id


def terminate_session(request: HTTPConnection) -> None:
    """Log the current session out. Succeeds silently when there is none.

    Raises SessionUnavailable if ServerSessionMiddleware is not installed.
    """
    handle = _handle_for(request)
    if handle.session_id is None:
        return
    account_id = handle.state.account_id
    handle.clear()
    logger.info("Session terminated for account %s", account_id)


def get_session_state(request: HTTPConnection) -> SessionState | None:
    """Return the request's session state, or None when sessions are not installed."""
    handle = request.scope.get(SCOPE_KEY)
    return handle.state if handle is not None else None


# ---------------------------------------------------------------------------
# Middleware
# ---------------------------------------------------------------------------


class ServerSessionMiddleware:
    """Attach a SessionHandle to every HTTP request.

    The SessionStore is looked up on app.state at request time because the
    store is created in the application lifespan, after middleware is built.
    """

    def __init__(
        self,
        app: ASGIApp,
        secret_key: str,
        cookie_name: str = "tradepost_sid",
        max_age: int = 24 * 3600,
        same_site: str = "lax",
        https_only: bool = False,
        path: str = "/",
    ) -> None:
        self.app = app
        self.signer = TimestampSigner(secret_key, salt="tradepost.session")
        self.cookie_name = cookie_name
        self.max_age = max_age
        self.path = path
        self.security_flags = "httponly; samesite=" + same_site
        if https_only:
            self.security_flags += "; secure"

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        store: SessionStore = scope["app"].state.session_store
        handle = SessionHandle(store)
        connection = HTTPConnection(scope)

        raw_cookie = connection.cookies.get(self.cookie_name)
        if raw_cookie:
            session_id = self._unsign(raw_cookie)
            state = await run_in_threadpool(store.get, session_id) if session_id else None
            if state is not None:
                handle.session_id = session_id
                handle.state = state
            else:
                # Tampered, expired, or purged -- drop the stale cookie.
                handle.cookie_action = _CLEAR

        scope[SCOPE_KEY] = handle

        async def send_wrapper(message: Message) -> None:
            if message["type"] == "http.response.start" and handle.cookie_action is not None:
                headers = MutableHeaders(scope=message)
                headers.append("Set-Cookie", self._cookie_header(handle))
            await send(message)

        await self.app(scope, receive, send_wrapper)

    def _unsign(self, raw_cookie: str) -> Optional[str]:
        try:
            return self.signer.unsign(raw_cookie.encode("utf-8"), max_age=self.max_age).decode("utf-8")
        except BadSignature:
            return None

    def _cookie_header(self, handle: SessionHandle) -> str:
        if handle.cookie_action == _SET and handle.session_id is not None:
            value = self.signer.sign(handle.session_id.encode("utf-8")).decode("utf-8")
            return f"{self.cookie_name}={value}; path={self.path}; Max-Age={self.max_age}; {self.security_flags}"
        return (
            f"{self.cookie_name}=null; path={self.path}; "
            f"expires=Thu, 01 Jan 1970 00:00:00 GMT; Max-Age=0; {self.security_flags}"
        )
