"""
api/routes/auth.py -- Authentication workflow endpoints.

Routes (mounted under /api):
  POST /auth/register                     -- register gate, then create the account
  POST /auth/login                        -- login gate; returns the public user
  POST /auth/verify/{userID}/{token}      -- verification gate (token + OTP), then mark verified
  GET  /auth/verify/{userID}/{token}      -- read-only link check; the gate answers itself
  POST /auth/verify/resend                -- re-verification gate (auth required), then re-issue codes
  POST /auth/forgot-password              -- forgot-password gate, then issue a reset token
  POST /auth/reset-password/{id}/{token}  -- reset gate, then store the new password

Every handler follows the same shape: build a RequestContext from the raw
body and path, run one AuthGate procedure, render anything other than
Continue straight back to the client, and otherwise perform the downstream
write the gate left undone.

Security:
  POST /login and POST /forgot-password are rate-limited per client IP.
  Cache-Control: no-store on responses that carry user data.
  Plaintext OTPs and tokens leave this module only through the mailer.
"""

from __future__ import annotations

import logging
from dataclasses import replace

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError
from starlette.concurrency import run_in_threadpool

from api.limiter import limiter
from api.models import ErrorResponse, MessageResponse, UserResponse
from auth.dependencies import get_current_user
from auth.errors import DuplicateAccount
from auth.gates import AuthGate, Continue, Outcome, Reject, RequestContext
from auth.models import User
from auth.store import UserStore
from auth.tokens import generate_otp, generate_token, hash_secret
from core.config import get_settings

logger = logging.getLogger("authgate.api")

_settings = get_settings()

router = APIRouter()


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


async def _read_body(request: Request) -> dict:
    """Return the JSON object body, or {} when the body is empty, invalid, or not an object."""
    try:
        payload = await request.json()
    except ValueError:
        return {}
    return payload if isinstance(payload, dict) else {}


def _gate(request: Request) -> AuthGate:
    return request.app.state.auth_gate


def _hash_all(*plain: str) -> list[str]:
    return [hash_secret(p) for p in plain]


def _success(msg: str, user: User | None = None, status_code: int = 200) -> JSONResponse:
    body = MessageResponse(msg=msg, user=UserResponse.from_user(user) if user is not None else None)
    resp = JSONResponse(status_code=status_code, content=body.model_dump(by_alias=True, exclude_none=True))
    if user is not None:
        resp.headers["Cache-Control"] = "no-store"
    return resp


def _outcome_response(outcome: Outcome) -> JSONResponse:
    """Render a Reject or Respond outcome exactly as the gate decided it."""
    if isinstance(outcome, Reject):
        return JSONResponse(status_code=outcome.status_code, content=ErrorResponse(msg=outcome.message).model_dump())
    return _success(outcome.message, outcome.user, status_code=outcome.status_code)


# ---------------------------------------------------------------------------
# Registration and login
# ---------------------------------------------------------------------------


@router.post("/auth/register", status_code=201)
async def register(request: Request) -> JSONResponse:
    """Create an unverified account and send its verification OTP and link."""
    body = await _read_body(request)
    outcome = await _gate(request).validate_register(RequestContext(body=body))
    if not isinstance(outcome, Continue):
        return _outcome_response(outcome)

    user_store: UserStore = request.app.state.user_store
    otp, token = generate_otp(), generate_token()
    password_hash, otp_hash, token_hash = await run_in_threadpool(_hash_all, body["password"], otp, token)
    new_user = User(
        email=body["email"],
        first_name=body["firstName"],
        last_name=body["lastName"],
        password=password_hash,
        account_verify_otp=otp_hash,
        account_verify_token=token_hash,
    )
    try:
        user_id = await run_in_threadpool(user_store.create_user, new_user)
    except IntegrityError:
        # A concurrent registration won the race after the gate's duplicate check.
        return _outcome_response(Reject.from_error(DuplicateAccount()))

    created = await run_in_threadpool(user_store.find_by_id, user_id)
    request.app.state.mailer.send_account_verification(created, otp, token)
    logger.info("Registered user_id=%s", user_id)
    return _success("account created, please check your email to verify your account.", created, status_code=201)


@limiter.limit(_settings.login_rate_limit)  # must be ABOVE @router to preserve FastAPI introspection
@router.post("/auth/login")
async def login(request: Request) -> JSONResponse:
    """Check email and password; return the public user on success.

    Issuing a session is the session service's job, not this endpoint's.
    """
    outcome = await _gate(request).validate_login(RequestContext(body=await _read_body(request)))
    if not isinstance(outcome, Continue):
        return _outcome_response(outcome)
    return _success("logged in successfully.", outcome.context.user)


# ---------------------------------------------------------------------------
# Account verification
# ---------------------------------------------------------------------------


@router.post("/auth/verify/resend")
async def resend_verification(request: Request, current_user: User = Depends(get_current_user)) -> JSONResponse:
    """Replace the pending OTP and link token and send them again."""
    outcome = await _gate(request).validate_reverify(RequestContext(user=current_user))
    if not isinstance(outcome, Continue):
        return _outcome_response(outcome)

    user_store: UserStore = request.app.state.user_store
    otp, token = generate_otp(), generate_token()
    otp_hash, token_hash = await run_in_threadpool(_hash_all, otp, token)
    await run_in_threadpool(
        user_store.update_user, current_user.id, account_verify_otp=otp_hash, account_verify_token=token_hash
    )
    request.app.state.mailer.send_account_verification(current_user, otp, token)
    return _success("a new verification code has been sent to your email.")


@router.get("/auth/verify/{userID}/{token}")
async def check_verification_link(request: Request, userID: str, token: str) -> JSONResponse:
    """Tell the front end whether a verification link is still usable."""
    ctx = RequestContext(params={"userID": userID, "token": token})
    return _outcome_response(await _gate(request).validate_verify_account_client(ctx))


@router.post("/auth/verify/{userID}/{token}")
async def verify_account(request: Request, userID: str, token: str) -> JSONResponse:
    """Mark the account verified and burn the OTP and link token."""
    ctx = RequestContext(body=await _read_body(request), params={"userID": userID, "token": token})
    outcome = await _gate(request).validate_verify_account(ctx)
    if not isinstance(outcome, Continue):
        return _outcome_response(outcome)

    user = outcome.context.user
    user_store: UserStore = request.app.state.user_store
    await run_in_threadpool(
        user_store.update_user,
        user.id,
        is_account_verified=True,
        account_verify_otp=None,
        account_verify_token=None,
    )
    logger.info("Verified user_id=%s", user.id)
    return _success("your account has been verified.", replace(user, is_account_verified=True))


# ---------------------------------------------------------------------------
# Forgot / reset password
# ---------------------------------------------------------------------------


@limiter.limit(_settings.forgot_password_rate_limit)
@router.post("/auth/forgot-password")
async def forgot_password(request: Request) -> JSONResponse:
    """Issue a single-use reset token and mail the reset link."""
    outcome = await _gate(request).validate_forgot_password(RequestContext(body=await _read_body(request)))
    if not isinstance(outcome, Continue):
        return _outcome_response(outcome)

    user = outcome.context.user
    user_store: UserStore = request.app.state.user_store
    token = generate_token()
    (token_hash,) = await run_in_threadpool(_hash_all, token)
    await run_in_threadpool(user_store.update_user, user.id, reset_password_token=token_hash)
    request.app.state.mailer.send_password_reset(user, token)
    return _success("a password reset link has been sent to your email.")


@router.post("/auth/reset-password/{id}/{token}")
async def reset_password(request: Request, id: str, token: str) -> JSONResponse:
    """Store the staged new password and invalidate the reset token."""
    ctx = RequestContext(body=await _read_body(request), params={"id": id, "token": token})
    outcome = await _gate(request).validate_reset_password(ctx)
    if not isinstance(outcome, Continue):
        return _outcome_response(outcome)

    user = outcome.context.user
    user_store: UserStore = request.app.state.user_store
    (password_hash,) = await run_in_threadpool(_hash_all, outcome.context.new_password)
    await run_in_threadpool(user_store.update_user, user.id, password=password_hash, reset_password_token=None)
    logger.info("Password reset for user_id=%s", user.id)
    return _success("your password has been reset successfully.")
