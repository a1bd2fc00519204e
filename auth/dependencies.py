"""
auth/dependencies.py -- FastAPI Depends() helpers for upstream authentication.

Two token locations are checked in priority order:
  1. JWT cookie ("access_token") -- set by the session service for browsers.
  2. Authorization: Bearer <token> header -- API clients.

Both are verified with decode_access_token() and resolved to a User from the
store. This service never mints these tokens.

try_get_current_user() is the soft variant (returns None on failure).
get_current_user() wraps it and raises HTTP 401 if unauthenticated.

auth/dependencies.py may import from fastapi because this module is part of
the FastAPI dependency injection system.
"""

from __future__ import annotations

from fastapi import HTTPException, Request

from auth.models import User
from auth.tokens import decode_access_token


def try_get_current_user(request: Request) -> User | None:
    """Attempt to authenticate the request via cookie or Bearer header.

    Returns the User on success, None on any failure. Never raises.
    """
    token: str | None = request.cookies.get("access_token")
    if not token:
        auth_header = request.headers.get("Authorization", "")
        if auth_header.startswith("Bearer "):
            token = auth_header[7:]
    if not token:
        return None

    payload = decode_access_token(token)
    if payload is None:
        return None
    try:
        return request.app.state.user_store.find_by_id(payload["user_id"])
    except (TypeError, ValueError):
        return None


def get_current_user(request: Request) -> User:
    """Require authentication. Raises HTTP 401 if the request is not authenticated.

    Use as a FastAPI dependency:
        @router.post("/protected")
        async def route(user: User = Depends(get_current_user)): ...
    """
    user = try_get_current_user(request)
    if user is None:
        raise HTTPException(status_code=401, detail="please login to continue.")
    return user
