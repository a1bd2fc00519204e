#!/usr/bin/env python3
"""
AuthGate -- request validation and credential checks for an account API.

Usage:
  python main.py serve
  python main.py serve --host 0.0.0.0 --port 8080 --reload
  python main.py create-user --email ada@lovelace.dev --first-name Ada --last-name Lovelace
  python main.py create-user --email ada@lovelace.dev --first-name Ada --last-name Lovelace --verified

Environment variables (see core/config.py for the full list):
  SECRET_KEY     Required unless DEBUG=true. Verifies upstream session tokens.
  DATABASE_URL   SQLAlchemy URL of the user store. Defaults to a local SQLite file.
  PORT           Listen port for `serve` (default 4040).
"""

import argparse
import asyncio
import getpass
from typing import Optional

from auth.gates import AuthGate, Continue, RequestContext
from auth.mailer import verification_link
from auth.models import User
from auth.store import AsyncUserStore, UserStore
from auth.tokens import generate_otp, generate_token, hash_secret
from core.config import get_settings


def _serve(args: argparse.Namespace) -> int:
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "asgi:app",
        host=args.host or settings.host,
        port=args.port or settings.port,
        reload=args.reload,
    )
    return 0


def create_user(
    store: UserStore,
    email: str,
    first_name: str,
    last_name: str,
    password: str,
    verified: bool = False,
) -> tuple[Optional[User], str, str]:
    """Run the registration gate and persist the account.

    Returns (user, otp, token) on success or (None, error message, "") when
    the gate rejects the input. otp/token are empty for pre-verified users.
    """
    settings = get_settings()
    gate = AuthGate(AsyncUserStore(store), policy=settings.password_policy, otp_length=settings.otp_length)
    body = {"firstName": first_name, "lastName": last_name, "email": email, "password": password}
    outcome = asyncio.run(gate.validate_register(RequestContext(body=body)))
    if not isinstance(outcome, Continue):
        return None, outcome.message, ""

    otp = token = ""
    new_user = User(
        email=email,
        first_name=first_name,
        last_name=last_name,
        password=hash_secret(password),
        is_account_verified=verified,
    )
    if not verified:
        otp, token = generate_otp(), generate_token()
        new_user.account_verify_otp = hash_secret(otp)
        new_user.account_verify_token = hash_secret(token)
    user_id = store.create_user(new_user)
    return store.find_by_id(user_id), otp, token


def _create_user(args: argparse.Namespace) -> int:
    password = args.password or getpass.getpass("Password: ")
    store = UserStore()
    try:
        user, otp, token = create_user(
            store, args.email, args.first_name, args.last_name, password, verified=args.verified
        )
    finally:
        store.close()

    if user is None:
        print(f"  [!] {otp}")
        return 1
    print(f"  Created user {user.id} ({user.email}).")
    if otp:
        print(f"  Verification OTP:  {otp}")
        print(f"  Verification link: {verification_link(get_settings().frontend_base_url, user.id, token)}")
    return 0


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        prog="authgate",
        description="Request validation and credential checks for an account API.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py serve --port 4040
  python main.py create-user --email ada@lovelace.dev --first-name Ada --last-name Lovelace
        """,
    )
    sub = parser.add_subparsers(dest="command", metavar="COMMAND")

    serve = sub.add_parser("serve", help="Run the API server (uvicorn)")
    serve.add_argument("--host", default=None, help="Bind address (default: HOST setting)")
    serve.add_argument("--port", type=int, default=None, help="Listen port (default: PORT setting, 4040)")
    serve.add_argument("--reload", action="store_true", help="Restart on code changes (development only)")
    serve.set_defaults(func=_serve)

    create = sub.add_parser("create-user", help="Validate and insert a user account")
    create.add_argument("--email", required=True)
    create.add_argument("--first-name", required=True)
    create.add_argument("--last-name", required=True)
    create.add_argument("--password", default=None, help="Prompted for when omitted")
    create.add_argument("--verified", action="store_true", help="Create the account already verified")
    create.set_defaults(func=_create_user)

    args = parser.parse_args(argv)
    if not getattr(args, "func", None):
        parser.print_help()
        return 0
    return args.func(args)


if __name__ == "__main__":
    raise SystemExit(main())
