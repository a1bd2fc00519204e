"""
auth/gates.py -- AuthGate: pre-flight validation for every auth workflow step.

Each gate is a coroutine that inspects one request's RequestContext, awaits
zero or more lookups and secret comparisons, and returns exactly one
outcome:

  Continue(context)                 -- checks passed; the context may now
                                       carry the matched user (secrets
                                       cleared) and a staged new password.
  Reject(status_code, code, msg)    -- the first violated rule, in the order
                                       listed on each gate. Later checks and
                                       lookups do not run.
  Respond(status_code, msg, user)   -- terminal success; only the read-only
                                       verification check produces it.

Gates never persist anything. Creating the user, marking it verified,
issuing codes, and writing the new password all happen downstream once a
gate has returned Continue.

Error guarding:
  The two token gates (account verification and reset password) turn any
  unexpected failure -- store errors, a non-integer id, a comparator that
  raises -- into the same InvalidOrExpiredToken rejection used for a bad id
  or token. The other gates let such failures propagate to the caller.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass, field
from typing import Any, Protocol, Union

from auth.errors import (
    AlreadyVerified,
    DuplicateAccount,
    GateError,
    IncorrectOtp,
    InvalidCredentials,
    InvalidOrExpiredToken,
    InvalidOtpFormat,
    MissingFields,
    PasswordMismatch,
    UnknownEmail,
    WeakPassword,
)
from auth.models import User, without_secrets
from auth.tokens import DUMMY_HASH, compare_secret
from auth.validators import check_fields, field_rules, is_numeric, is_strong_password, missing_fields
from core.config import PasswordPolicy

logger = logging.getLogger("authgate.auth")

REGISTER_FIELDS = ("firstName", "lastName", "email", "password")
LOGIN_FIELDS = ("email", "password")
RESET_FIELDS = ("newPassword", "newPasswordConfirmation")

_VERIFY_PURPOSE = "account verification"
_RESET_PURPOSE = "reset password"


class UserLookup(Protocol):
    """The slice of the user store the gates read from."""

    async def find_by_email(self, email: str, select: Iterable[str] = ()) -> User | None: ...

    async def find_by_id(self, user_id: int | str, select: Iterable[str] = ()) -> User | None: ...


Comparator = Callable[[str, str | None], Awaitable[bool]]


# ---------------------------------------------------------------------------
# Context and outcomes
# ---------------------------------------------------------------------------


@dataclass
class RequestContext:
    """Per-request state threaded from gate to handler."""

    body: dict[str, Any] = field(default_factory=dict)
    params: dict[str, str] = field(default_factory=dict)
    user: User | None = None
    new_password: str | None = None


@dataclass(frozen=True)
class Continue:
    context: RequestContext


@dataclass(frozen=True)
class Reject:
    status_code: int
    code: str
    message: str

    @classmethod
    def from_error(cls, exc: GateError) -> "Reject":
        return cls(status_code=exc.status_code, code=exc.code, message=exc.message)


@dataclass(frozen=True)
class Respond:
    status_code: int
    message: str
    user: User | None = None


Outcome = Union[Continue, Reject, Respond]


# ---------------------------------------------------------------------------
# AuthGate
# ---------------------------------------------------------------------------


class AuthGate:
    """The collection of validation gates, bound to a user store and comparator.

    Usage:
        gate = AuthGate(AsyncUserStore(store), policy=settings.password_policy)
        outcome = await gate.validate_login(RequestContext(body=payload))
    """

    def __init__(
        self,
        users: UserLookup,
        compare: Comparator = compare_secret,
        policy: PasswordPolicy = PasswordPolicy(),
        otp_length: int = 6,
    ) -> None:
        self.users = users
        self.compare = compare
        self.policy = policy
        self.otp_length = otp_length
        self.rules = field_rules(policy)

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    async def validate_register(self, ctx: RequestContext) -> Outcome:
        """Required fields, then duplicate email, then the per-field rule scan."""
        try:
            if missing_fields(ctx.body, *REGISTER_FIELDS):
                raise MissingFields("please enter the required fields to register (email, name and password)")
            email = ctx.body["email"]
            # A non-string email cannot be registered; the field scan rejects it.
            if isinstance(email, str) and await self.users.find_by_email(email) is not None:
                raise DuplicateAccount()
            check_fields(ctx.body, self.rules)
        except GateError as exc:
            return Reject.from_error(exc)
        return Continue(ctx)

    # ------------------------------------------------------------------
    # Login
    # ------------------------------------------------------------------

    async def validate_login(self, ctx: RequestContext) -> Outcome:
        if missing_fields(ctx.body, *LOGIN_FIELDS):
            return Reject.from_error(MissingFields("please enter the required fields to login (email and password)"))

        email = ctx.body["email"]
        user = await self.users.find_by_email(email, select=("password",)) if isinstance(email, str) else None
        if user is None:
            # Equalize timing -- run bcrypt even though the answer is known.
            await self.compare(ctx.body["password"], DUMMY_HASH)
            return Reject.from_error(InvalidCredentials())
        if not await self.compare(ctx.body["password"], user.password):
            return Reject.from_error(InvalidCredentials())

        ctx.user = without_secrets(user)
        return Continue(ctx)

    # ------------------------------------------------------------------
    # Account verification
    # ------------------------------------------------------------------

    async def _verification_target(self, ctx: RequestContext) -> User:
        """Steps shared by both verification variants: id, token, verified flag."""
        user = await self.users.find_by_id(
            ctx.params.get("userID"),
            select=("account_verify_otp", "account_verify_token"),
        )
        if user is None:
            raise InvalidOrExpiredToken.for_purpose(_VERIFY_PURPOSE)
        if not await self.compare(ctx.params.get("token"), user.account_verify_token):
            raise InvalidOrExpiredToken.for_purpose(_VERIFY_PURPOSE)
        if user.is_account_verified:
            raise AlreadyVerified()
        return user

    async def validate_verify_account(self, ctx: RequestContext) -> Outcome:
        """Complete verification: token must match, then the OTP in the body."""
        try:
            user = await self._verification_target(ctx)
            if missing_fields(ctx.body, "otp"):
                raise MissingFields("please enter your account verification otp.")
            otp = ctx.body["otp"]
            if not is_numeric(otp, no_symbols=True) or len(otp) != self.otp_length:
                raise InvalidOtpFormat(f"otp code must be numeric ({self.otp_length} digits) without spaces.")
            if not await self.compare(otp, user.account_verify_otp):
                raise IncorrectOtp()
        except GateError as exc:
            return Reject.from_error(exc)
        except Exception:
            logger.warning("Account verification check failed for user_id=%r", ctx.params.get("userID"), exc_info=True)
            return Reject.from_error(InvalidOrExpiredToken.for_purpose(_VERIFY_PURPOSE))

        ctx.user = without_secrets(user)
        return Continue(ctx)

    async def validate_verify_account_client(self, ctx: RequestContext) -> Outcome:
        """Read-only link check for the front end. Never forwards, never mutates."""
        try:
            user = await self._verification_target(ctx)
        except GateError as exc:
            return Reject.from_error(exc)
        except Exception:
            logger.warning("Verification link check failed for user_id=%r", ctx.params.get("userID"), exc_info=True)
            return Reject.from_error(InvalidOrExpiredToken.for_purpose(_VERIFY_PURPOSE))
        return Respond(status_code=200, message="valid token", user=without_secrets(user))

    # ------------------------------------------------------------------
    # Re-verification
    # ------------------------------------------------------------------

    async def validate_reverify(self, ctx: RequestContext) -> Outcome:
        """Gate a resend request; ctx.user must be set (authenticated upstream).

        The verified flag is re-read from the store rather than trusted from
        the upstream identity, which may be stale.
        """
        current = await self.users.find_by_id(ctx.user.id)
        if current is not None and current.is_account_verified:
            return Reject.from_error(AlreadyVerified())
        return Continue(ctx)

    # ------------------------------------------------------------------
    # Forgot / reset password
    # ------------------------------------------------------------------

    async def validate_forgot_password(self, ctx: RequestContext) -> Outcome:
        email = ctx.body.get("email")
        # No lookup for an absent or non-string email; the answer is the same.
        user = await self.users.find_by_email(email) if isinstance(email, str) and email else None
        if user is None:
            return Reject.from_error(UnknownEmail())
        ctx.user = without_secrets(user)
        return Continue(ctx)

    async def validate_reset_password(self, ctx: RequestContext) -> Outcome:
        """Token first, then the body: required, strength, confirmation match."""
        try:
            user = await self.users.find_by_id(ctx.params.get("id"), select=("reset_password_token", "password"))
            if user is None:
                raise InvalidOrExpiredToken.for_purpose(_RESET_PURPOSE)
            if not await self.compare(ctx.params.get("token"), user.reset_password_token):
                raise InvalidOrExpiredToken.for_purpose(_RESET_PURPOSE)
            if missing_fields(ctx.body, *RESET_FIELDS):
                raise MissingFields("please enter the required fields to reset password.")
            new_password = ctx.body["newPassword"]
            if not is_strong_password(new_password, self.policy):
                raise WeakPassword()
            if new_password != ctx.body["newPasswordConfirmation"]:
                raise PasswordMismatch()
        except GateError as exc:
            return Reject.from_error(exc)
        except Exception:
            logger.warning("Password reset check failed for id=%r", ctx.params.get("id"), exc_info=True)
            return Reject.from_error(InvalidOrExpiredToken.for_purpose(_RESET_PURPOSE))

        ctx.user = without_secrets(user)
        ctx.new_password = new_password
        return Continue(ctx)
