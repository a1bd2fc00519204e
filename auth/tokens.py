"""
auth/tokens.py -- Secret hashing, one-time code generation, and session JWT decoding.

Security design decisions:
  Secrets: bcrypt directly (no passlib wrapper). Passwords, verification
       OTPs, verification tokens, and reset tokens are all stored as bcrypt
       hashes. The _DUMMY_HASH constant enables timing equalization in the
       login gate so response time does not reveal whether an email exists.

  compare_secret() is the awaited comparator the gates use. bcrypt is
       CPU-bound, so the check runs in Starlette's thread pool.

  OTPs and tokens: drawn from the secrets module. OTPs are fixed-length
       decimal strings (leading zeros kept); link tokens carry 256 bits.

  Session JWT: issuing sessions is not this service's job. decode_access_token
       only verifies an HS256 token minted by the session service with the
       shared SECRET_KEY, so "resend verification" can identify its caller.

Layer rule: no imports from api/. Import from core/ is allowed.
"""

from __future__ import annotations

import logging
import secrets

import bcrypt
from jose import JWTError, jwt
from starlette.concurrency import run_in_threadpool

from core.config import get_settings

logger = logging.getLogger("authgate.auth")

_settings = get_settings()

_ALGORITHM = "HS256"

# ---------------------------------------------------------------------------
# Hashing
# ---------------------------------------------------------------------------


def hash_secret(plain: str) -> str:
    """Return a bcrypt hash of the given plaintext secret.

    bcrypt rejects input beyond 72 bytes with ValueError. Generated OTPs and
    tokens are well under that; PasswordPolicy.max_bytes keeps passwords
    under it before they reach this function.
    """
    return bcrypt.hashpw(plain.encode("utf-8"), bcrypt.gensalt(rounds=_settings.bcrypt_rounds)).decode("utf-8")


def verify_secret(plain: str, hashed: str | None) -> bool:
    """Return True if the plaintext matches the bcrypt hash.

    A missing or malformed hash is a mismatch, not an error.
    """
    if not isinstance(plain, str) or not hashed:
        return False
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        return False


async def compare_secret(plain: str, hashed: str | None) -> bool:
    """Awaitable verify_secret(), offloaded to the thread pool."""
    return await run_in_threadpool(verify_secret, plain, hashed)


# Timing equalization dummy hash.
# Computed once at module load so the first login attempt is not measurably
# slower than subsequent ones.
DUMMY_HASH: str = hash_secret("authgate_timing_dummy")


# ---------------------------------------------------------------------------
# One-time codes and link tokens
# ---------------------------------------------------------------------------


def generate_otp(length: int = 0) -> str:
    """Return a random decimal code of the configured length (default 6)."""
    length = length or _settings.otp_length
    return "".join(str(secrets.randbelow(10)) for _ in range(length))


def generate_token() -> str:
    """Return a 64-char hex link token (256 bits of entropy)."""
    return secrets.token_hex(32)


# ---------------------------------------------------------------------------
# Upstream session JWT
# ---------------------------------------------------------------------------


def decode_access_token(token: str) -> dict | None:
    """Decode and verify a session JWT. Returns the payload dict or None on any failure.

    Any invalid token is treated as unauthenticated; the dependency layer
    turns None into 401.
    """
    try:
        payload = jwt.decode(token, _settings.secret_key, algorithms=[_ALGORITHM])
    except JWTError:
        return None
    if "user_id" not in payload:
        return None
    return payload
