"""
auth/errors.py -- Rejection taxonomy for the authentication gates.

Every rejection a gate can produce is a GateError subclass carrying a
machine-readable code and the user-facing message. All of them map to
HTTP 400; the status code does not say which check failed.

Gates raise these internally and convert them to a Reject outcome at the
gate boundary, so callers never see them propagate.
"""

from __future__ import annotations


class GateError(Exception):
    """Base class for every validation or credential rejection."""

    code: str = "gate_error"
    default_message: str = "invalid request."
    status_code: int = 400

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class MissingFields(GateError):
    code = "missing_fields"
    default_message = "please enter the required fields."


class DuplicateAccount(GateError):
    code = "duplicate_account"
    default_message = "the entered email address is already registered."


class InvalidName(GateError):
    code = "invalid_name"
    default_message = "user name must contains only letters (a-z)(A-Z)."


class InvalidEmail(GateError):
    code = "invalid_email"
    default_message = "please enter a valid email address."


class WeakPassword(GateError):
    code = "weak_password"
    default_message = "your password must be at least 8 characters with uppercase and numbers"


class InvalidCredentials(GateError):
    """Unknown email and wrong password share this message (no enumeration)."""

    code = "invalid_credentials"
    default_message = "the entered email address or password is incorrect."


class InvalidOrExpiredToken(GateError):
    """Unknown id, wrong token, and lookup failures share this message."""

    code = "invalid_or_expired_token"
    default_message = "invalid or expired token, try request again."

    @classmethod
    def for_purpose(cls, purpose: str) -> "InvalidOrExpiredToken":
        return cls(f"invalid or expired {purpose} token, try request again.")


class AlreadyVerified(GateError):
    code = "already_verified"
    default_message = "your account is already verified."


class InvalidOtpFormat(GateError):
    code = "invalid_otp_format"
    default_message = "otp code must be numeric (6 digits) without spaces."


class IncorrectOtp(GateError):
    code = "incorrect_otp"
    default_message = "incorrect otp code."


class UnknownEmail(GateError):
    code = "unknown_email"
    default_message = "incorrect email address."


class PasswordMismatch(GateError):
    code = "password_mismatch"
    default_message = "password and password confirmation are not the same."
