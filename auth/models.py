"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container). Stores and gates do the work.

Layer rule: no imports from api/.
"""

from __future__ import annotations

from dataclasses import dataclass, replace

# Hash columns hidden from the default store projection. A caller that needs
# one must name it in select=(...); gates clear them again before a user
# leaves the core.
SECRET_FIELDS: tuple[str, ...] = (
    "password",
    "account_verify_otp",
    "account_verify_token",
    "reset_password_token",
)


@dataclass
class User:
    """One registered account.

    All secret fields hold bcrypt hashes, never plaintext. They are None
    either because the value was never issued (no pending reset) or because
    the store was not asked to select it.
    """

    email: str
    first_name: str
    last_name: str
    id: int | None = None
    is_account_verified: bool = False
    password: str | None = None
    account_verify_otp: str | None = None
    account_verify_token: str | None = None
    reset_password_token: str | None = None
    created_at: str | None = None


def without_secrets(user: User) -> User:
    """Return a copy of user with every secret field cleared."""
    return replace(user, **{name: None for name in SECRET_FIELDS})
