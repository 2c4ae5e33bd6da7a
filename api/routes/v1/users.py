"""
api/routes/v1/users.py -- Account lookup and self-service profile endpoints.

Routes:
  GET    /api/v1/users/{user_id}  -- public view of any account
  PUT    /api/v1/users            -- update the caller's own profile (requires auth)
  DELETE /api/v1/users            -- delete the caller's account (requires auth)

There is no endpoint that edits another account: PUT and DELETE act on the
authenticated caller only, so no ownership check is needed here.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Path, Request

from api.models import ID_PATTERN, AccountResponse, AccountUpdate, MessageResponse
from auth.dependencies import get_current_account
from auth.directory import AccountDirectory
from auth.models import PublicAccount
from auth.session import terminate_session
from catalog.service import ProductCatalog

router = APIRouter()


@router.get("/users/{user_id}", response_model=AccountResponse)
def get_user(request: Request, user_id: str = Path(pattern=ID_PATTERN)) -> AccountResponse:
    directory: AccountDirectory = request.app.state.accounts
    return AccountResponse.from_public(directory.get_public(user_id))


@router.put("/users", response_model=AccountResponse)
def update_user(
    request: Request,
    body: AccountUpdate,
    account: PublicAccount = Depends(get_current_account),
) -> AccountResponse:
    """Apply the fields present in the body. Conflict (409) on a taken email or username."""
    directory: AccountDirectory = request.app.state.accounts
    changes = body.profile_changes()
    if body.email is not None:
        changes["email"] = body.email
    return AccountResponse.from_public(directory.update_profile(account.id, **changes))


@router.delete("/users", response_model=MessageResponse)
def delete_user(request: Request, account: PublicAccount = Depends(get_current_account)) -> MessageResponse:
    """Hard-delete the caller's account, their products, and end the session."""
    directory: AccountDirectory = request.app.state.accounts
    catalog: ProductCatalog = request.app.state.catalog
    catalog.delete_all_for(account)
    directory.delete_account(account.id)
    terminate_session(request)
    return MessageResponse(message="Account deleted successfully.")
