"""
api/routes/v1/auth.py -- Registration, login, logout and password reset endpoints.

Routes:
  POST /api/v1/auth/register         -- create account; returns user + bearer token
  POST /api/v1/auth/login            -- password login; bearer token + fresh session cookie
  POST /api/v1/auth/logout           -- terminate the server-side session (requires auth)
  GET  /api/v1/auth/profile          -- current account (requires auth)
  POST /api/v1/auth/forgot-password  -- issue a reset token
  POST /api/v1/auth/reset-password   -- redeem a reset token for a new password

Security:
  POST /login, /register and /forgot-password are rate-limited per IP.
  AccountDirectory.authenticate() provides timing equalization -- never inline
  get_by_email() + verify_password() here.
  Cache-Control: no-store on responses that carry credentials.
  forgot-password answers with the same shape for known and unknown emails.

Handlers are plain def: bcrypt and the store block, so FastAPI runs them in
its thread pool.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request, Response

from api.limiter import limiter, login_limit, reset_limit
from api.models import (
    AccountResponse,
    AuthResponse,
    ForgotPasswordRequest,
    ForgotPasswordResponse,
    LoginRequest,
    MessageResponse,
    RegisterRequest,
    ResetPasswordRequest,
)
from auth.dependencies import get_current_account
from auth.directory import AccountDirectory
from auth.models import PublicAccount
from auth.reset import PasswordResetLedger
from auth.session import establish_session, terminate_session

# Auth policy:
# - POST /api/v1/auth/register:         public
# - POST /api/v1/auth/login:            public
# - POST /api/v1/auth/forgot-password:  public
# - POST /api/v1/auth/reset-password:   public -- the reset token is the credential
# - POST /api/v1/auth/logout:           requires auth (get_current_account)
# - GET  /api/v1/auth/profile:          requires auth (get_current_account)
router = APIRouter()

_RESET_ISSUED = "Use the provided token to reset the password."
_RESET_GENERIC = "If an account exists for the provided email, a reset token has been generated."


@limiter.limit(login_limit)
@router.post("/auth/register", response_model=AuthResponse, status_code=201)
def register(request: Request, response: Response, body: RegisterRequest) -> AuthResponse:
    """Create an account. Conflict (409) if the email or username is taken."""
    directory: AccountDirectory = request.app.state.accounts
    public, token = directory.register(email=body.email, password=body.password, **body.profile_changes())
    response.headers["Cache-Control"] = "no-store"
    return AuthResponse(user=AccountResponse.from_public(public), token=token)


@limiter.limit(login_limit)
@router.post("/auth/login", response_model=AuthResponse)
def login(request: Request, response: Response, body: LoginRequest) -> AuthResponse:
    """Authenticate with email and password.

    Returns the same generic 401 for an unknown email, a wrong password and a
    deactivated account. On success the session id is regenerated and the
    new record is persisted before the response is sent.
    """
    directory: AccountDirectory = request.app.state.accounts
    public, token = directory.login(body.email, body.password)
    establish_session(request, public)
    response.headers["Cache-Control"] = "no-store"
    return AuthResponse(user=AccountResponse.from_public(public), token=token)


@router.post("/auth/logout", response_model=MessageResponse)
def logout(request: Request, account: PublicAccount = Depends(get_current_account)) -> MessageResponse:
    """End the server-side session and clear its cookie.

    Bearer tokens are stateless and remain valid until they expire.
    """
    terminate_session(request)
    return MessageResponse(message="Logged out successfully.")


@router.get("/auth/profile", response_model=AccountResponse)
def profile(account: PublicAccount = Depends(get_current_account)) -> AccountResponse:
    return AccountResponse.from_public(account)


@limiter.limit(reset_limit)
@router.post("/auth/forgot-password", response_model=ForgotPasswordResponse)
def forgot_password(request: Request, body: ForgotPasswordRequest) -> ForgotPasswordResponse:
    """Issue a password reset token.

    There is no mail delivery; the token is returned in the body. For an
    unknown email reset_token is null and the message is the generic one.
    """
    ledger: PasswordResetLedger = request.app.state.reset_ledger
    raw_token = ledger.request_reset(body.email)
    if raw_token:
        return ForgotPasswordResponse(message=_RESET_ISSUED, reset_token=raw_token)
    return ForgotPasswordResponse(message=_RESET_GENERIC, reset_token=None)


@router.post("/auth/reset-password", response_model=MessageResponse)
def reset_password(request: Request, body: ResetPasswordRequest) -> MessageResponse:
    """Set a new password. 400 invalid_reset_token if the token is unknown, used or expired."""
    ledger: PasswordResetLedger = request.app.state.reset_ledger
    ledger.consume(body.token, body.password)
    return MessageResponse(message="Password has been reset successfully.")
