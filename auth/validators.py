"""
auth/validators.py -- Field format checks and the registration rule table.

Every check returns a bool and never raises: a value of the wrong type
(a number where a string was expected, None, a list) simply fails.

The registration gate does not validate a fixed list of fields. It scans
every supplied field and applies each rule whose name predicate matches,
so "username" or "middleName" are name-checked and "newPassword" is
strength-checked too. field_rules() builds that table.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any

from email_validator import EmailNotValidError, validate_email

from auth.errors import GateError, InvalidEmail, InvalidName, WeakPassword
from core.config import PasswordPolicy

_ALPHA_RE = re.compile(r"[A-Za-z]+")
_NUMERIC_RE = re.compile(r"[+-]?([0-9]*\.)?[0-9]+")
_DIGITS_RE = re.compile(r"[0-9]+")


def is_alpha(value: Any, ignore: str = " ") -> bool:
    """True if value holds only ASCII letters once ignored chars are removed."""
    if not isinstance(value, str):
        return False
    stripped = value.translate({ord(ch): None for ch in ignore})
    return _ALPHA_RE.fullmatch(stripped) is not None


def is_email(value: Any) -> bool:
    """True if value is a syntactically valid email address. No DNS lookup."""
    if not isinstance(value, str):
        return False
    try:
        validate_email(value, check_deliverability=False)
    except EmailNotValidError:
        return False
    return True


def is_numeric(value: Any, no_symbols: bool = False) -> bool:
    """True if value is a decimal number string.

    no_symbols=True accepts digits only (no sign, no decimal point).
    """
    if not isinstance(value, str):
        return False
    pattern = _DIGITS_RE if no_symbols else _NUMERIC_RE
    return pattern.fullmatch(value) is not None


def is_strong_password(value: Any, policy: PasswordPolicy = PasswordPolicy()) -> bool:
    if not isinstance(value, str) or len(value) < policy.min_length:
        return False
    if len(value.encode("utf-8")) > policy.max_bytes:
        return False
    lower = sum(1 for ch in value if "a" <= ch <= "z")
    upper = sum(1 for ch in value if "A" <= ch <= "Z")
    digits = sum(1 for ch in value if "0" <= ch <= "9")
    symbols = len(value) - lower - upper - digits
    return (
        lower >= policy.min_lowercase
        and upper >= policy.min_uppercase
        and digits >= policy.min_numbers
        and symbols >= policy.min_symbols
    )


def missing_fields(data: Any, *names: str) -> list[str]:
    """Return the required names that are absent, None, or blank in data.

    A body that is not a mapping at all is missing everything.
    """
    if not isinstance(data, Mapping):
        return list(names)
    missing = []
    for name in names:
        value = data.get(name)
        if value is None or (isinstance(value, str) and not value.strip()):
            missing.append(name)
    return missing


# ---------------------------------------------------------------------------
# Registration rule table
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class FieldRule:
    """Apply check to any field whose name satisfies matches; raise error on failure."""

    matches: Callable[[str], bool]
    check: Callable[[Any], bool]
    error: type[GateError]


def field_rules(policy: PasswordPolicy = PasswordPolicy()) -> tuple[FieldRule, ...]:
    # Substring matching is case-sensitive: "firstName" and
    # "username" match, "NAME" does not.
    return (
        FieldRule(lambda name: "name" in name or "Name" in name, is_alpha, InvalidName),
        FieldRule(lambda name: "email" in name, is_email, InvalidEmail),
        FieldRule(
            lambda name: "password" in name or "Password" in name,
            lambda value: is_strong_password(value, policy),
            WeakPassword,
        ),
    )


def check_fields(data: Mapping[str, Any], rules: tuple[FieldRule, ...]) -> None:
    """Scan data in insertion order; raise the first matching rule's error that fails."""
    for name, value in data.items():
        for rule in rules:
            if rule.matches(name) and not rule.check(value):
                raise rule.error()
