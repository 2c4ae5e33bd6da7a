"""
auth/dependencies.py -- FastAPI Depends() helpers: the Authorization Guard.

Two credential sources, selected by Settings.auth_strategy:
  token   -- Authorization: Bearer <jwt> header only.
  session -- the server-side session cookie only (status must be logged_in).
  any     -- bearer header first, then session cookie.

Both converge on an Account that must still exist and be active -- a token
issued before an account was deleted or deactivated stops working at once.
The guard hands routes the PublicAccount view; the full record stays here.

Note the asymmetry: logout revokes the session but not bearer tokens, which
stay valid until they expire.

try_get_current_account() is the soft variant (returns None on failure).
get_current_account() wraps it and raises Unauthenticated before any handler
logic runs. ensure_owner() is the ownership check used for mutations.

Layer rule: no imports from api/ or catalog/.
"""

from __future__ import annotations

from fastapi import Request

from auth.directory import AccountDirectory
from auth.models import Account, PublicAccount
from auth.session import get_session_state
from auth.tokens import decode_access_token
from core.config import get_settings
from core.errors import Forbidden, Unauthenticated


def _bearer_token(request: Request) -> str | None:
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        return auth_header[7:].strip() or None
    return None


def _account_from_token(request: Request, directory: AccountDirectory) -> Account | None:
    token = _bearer_token(request)
    if not token:
        return None
    claim = decode_access_token(token)
    if claim is None:
        return None
    return directory.get_account(claim.account_id)


def _account_from_session(request: Request, directory: AccountDirectory) -> Account | None:
    state = get_session_state(request)
    if state is None or not state.is_logged_in:
        return None
    return directory.get_account(state.account_id)


def try_get_current_account(request: Request) -> PublicAccount | None:
    """Resolve the acting account per the configured strategy, or None.

    Never raises -- callers that need a hard 401 should use get_current_account().
    """
    directory: AccountDirectory = request.app.state.accounts
    strategy = get_settings().auth_strategy

    account: Account | None = None
    if strategy in ("token", "any"):
        account = _account_from_token(request, directory)
    if account is None and strategy in ("session", "any"):
        account = _account_from_session(request, directory)

    if account is None or not account.is_active:
        return None
    return account.to_public()


def get_current_account(request: Request) -> PublicAccount:
    """Require authentication. Raises Unauthenticated (401) if unresolved.

    Use as a FastAPI dependency:
        @router.get("/protected")
        def route(account: PublicAccount = Depends(get_current_account)): ...
    """
    account = try_get_current_account(request)
    if account is None:
        raise Unauthenticated()
    return account


def ensure_owner(owner_id: str, account: PublicAccount) -> None:
    """Raise Forbidden unless account is the recorded owner.

    Ids are compared in their canonical 32-char hex form with plain equality;
    there are no admin overrides.
    """
    if owner_id != account.id:
        raise Forbidden()
