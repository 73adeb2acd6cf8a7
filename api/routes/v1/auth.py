"""
api/routes/v1/auth.py -- Authentication and password reset REST endpoints.

Routes:
  POST  /api/v1/auth/register                 -- create founder/investor; sets cookie
  POST  /api/v1/auth/login                    -- password login; sets cookie
  POST  /api/v1/auth/logout                   -- clears cookie (max-age 0)
  GET   /api/v1/auth/me                       -- current user + is_administrator
  PATCH /api/v1/auth/profile                  -- update name and profile links
  POST  /api/v1/auth/forgot-password/request  -- issue and mail a reset code
  POST  /api/v1/auth/forgot-password/verify   -- check a code (does not consume it)
  POST  /api/v1/auth/forgot-password/reset    -- check code, set new password, consume code

Security:
  [C1] authenticate() provides timing equalization -- use it, never inline.
  [M5] Cache-Control: no-store on responses that carry a token.
  Login answers "bad_credentials" for both unknown email and wrong password.
  forgot-password/request answers identically whether or not the email exists.
  Reset-code failures are reported only as invalid_code or code_expired.
"""

from __future__ import annotations

import logging
from functools import partial

from fastapi import APIRouter, BackgroundTasks, Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError

from api.models import (
    AuthResponse,
    LoginRequest,
    MeResponse,
    MessageResponse,
    ProfileUpdate,
    RegisterRequest,
    ResetCompleteRequest,
    ResetRequest,
    ResetVerifyRequest,
    UserResponse,
)
from auth.dependencies import get_current_session
from auth.errors import Conflict, InvalidInput, NotFound, Unauthenticated
from auth.models import ResetOutcome, Session, User
from auth.passwords import authenticate, hash_password
from auth.reset import ResetCodeFlow
from auth.store import UserStore
from auth.tokens import TokenService, clear_auth_cookie, set_auth_cookie
from core.config import get_settings

logger = logging.getLogger("foundex.api")

_settings = get_settings()

# Auth policy:
# - POST  /auth/register, /auth/login, /auth/logout: public
# - POST  /auth/forgot-password/*:                   public
# - GET   /auth/me, PATCH /auth/profile:             requires auth (get_current_session)
router = APIRouter()

_RESET_SENT = "If an account exists, a reset code has been sent."


def _session_response(request: Request, user: User, status_code: int) -> JSONResponse:
    """Issue a token for user and return it in both the body and the cookie."""
    tokens: TokenService = request.app.state.tokens
    token = tokens.issue(user.id, user.email)
    resp = JSONResponse(
        status_code=status_code,
        content=AuthResponse(
            user=UserResponse.from_user(user),
            token=token,
            expires_in=tokens.lifetime_seconds,
        ).model_dump(),
    )
    set_auth_cookie(resp, token, max_age=tokens.lifetime_seconds, secure=_settings.secure_cookies)
    resp.headers["Cache-Control"] = "no-store"  # [M5]
    return resp


def _raise_for_outcome(outcome: ResetOutcome) -> None:
    if outcome is ResetOutcome.invalid_code:
        raise InvalidInput("Invalid code.", code="invalid_code")
    if outcome is ResetOutcome.expired:
        raise InvalidInput("Code has expired.", code="code_expired")


# ---------------------------------------------------------------------------
# Registration and login
# ---------------------------------------------------------------------------


@router.post("/auth/register", response_model=AuthResponse, status_code=201)
def register(request: Request, body: RegisterRequest) -> JSONResponse:
    """Create a founder or investor account and start a session.

    The role chosen here is permanent. Duplicate emails (after
    normalization) are rejected with 409, including the case where a
    concurrent registration wins the INSERT race.
    """
    user_store: UserStore = request.app.state.user_store
    if user_store.get_by_email(body.email) is not None:
        raise Conflict()

    try:
        user = user_store.create_user(
            User(
                email=body.email,
                full_name=body.full_name,
                role=body.user_type.value,
                password_hash=hash_password(body.password),
            )
        )
    except IntegrityError as exc:
        raise Conflict() from exc

    logger.info("Registered user %s (role=%s)", user.id, user.role)
    return _session_response(request, user, status_code=201)


@router.post("/auth/login", response_model=AuthResponse)
def login(request: Request, body: LoginRequest) -> JSONResponse:
    """Authenticate with email and password; set the session cookie."""
    user_store: UserStore = request.app.state.user_store
    user = authenticate(user_store, body.email, body.password)
    if user is None:
        raise Unauthenticated("Invalid email or password.", code="bad_credentials")
    return _session_response(request, user, status_code=200)


@router.post("/auth/logout", response_model=MessageResponse)
async def logout() -> JSONResponse:
    """Clear the session cookie. The token itself stays valid until it expires."""
    resp = JSONResponse(content=MessageResponse(message="Logged out.").model_dump())
    clear_auth_cookie(resp, secure=_settings.secure_cookies)
    return resp


# ---------------------------------------------------------------------------
# Authenticated endpoints
# ---------------------------------------------------------------------------


@router.get("/auth/me", response_model=MeResponse)
def me(session: Session = Depends(get_current_session)) -> MeResponse:
    """Return the live user record and the derived administrator flag."""
    return MeResponse(user=UserResponse.from_user(session.user), is_administrator=session.is_administrator)


@router.patch("/auth/profile", response_model=UserResponse)
def update_profile(
    request: Request,
    body: ProfileUpdate,
    session: Session = Depends(get_current_session),
) -> UserResponse:
    """Update the caller's name and profile links. Email and role are not editable here."""
    user_store: UserStore = request.app.state.user_store
    updated = user_store.update_profile(session.user.id, **body.changes())
    if updated is None:
        raise NotFound("User not found.")
    return UserResponse.from_user(updated)


# ---------------------------------------------------------------------------
# Password reset
# ---------------------------------------------------------------------------


@router.post("/auth/forgot-password/request", response_model=MessageResponse)
def request_reset(request: Request, body: ResetRequest, background_tasks: BackgroundTasks) -> MessageResponse:
    """Issue a reset code and mail it after the response is sent.

    The answer is the same whether or not the email belongs to an account.
    Email delivery runs as a background task: a slow or failing mail
    provider never delays or fails this request, and the stored code stays.
    """
    flow: ResetCodeFlow = request.app.state.reset_flow
    mailer = request.app.state.mailer
    flow.start(body.email, dispatch=partial(background_tasks.add_task, mailer.send))
    return MessageResponse(message=_RESET_SENT)


@router.post("/auth/forgot-password/verify", response_model=MessageResponse)
def verify_reset(request: Request, body: ResetVerifyRequest) -> MessageResponse:
    """Check a reset code. The code stays valid until used or expired."""
    flow: ResetCodeFlow = request.app.state.reset_flow
    _raise_for_outcome(flow.verify(body.email, body.code))
    return MessageResponse(message="Code verified successfully.")


@router.post("/auth/forgot-password/reset", response_model=MessageResponse)
def complete_reset(request: Request, body: ResetCompleteRequest) -> MessageResponse:
    """Set a new password with a valid reset code, then discard the code."""
    flow: ResetCodeFlow = request.app.state.reset_flow
    _raise_for_outcome(flow.complete(body.email, body.code, body.new_password))
    return MessageResponse(message="Password reset successful.")
