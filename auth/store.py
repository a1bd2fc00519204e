"""
auth/store.py -- SQLAlchemy Core persistence layer for user accounts.

Pattern: Repository + Data Mapper.
UserStore is the repository; _row_to_user is the mapper.
Route and gate code never touches SQL directly.

Projection:
  Secret hash columns (see auth.models.SECRET_FIELDS) are not loaded unless
  the caller names them in select=(...). A gate that compares a token asks
  for exactly the hashes it needs; everything else gets a user whose secret
  fields are None.

Security:
  All queries use bound parameters. No f-strings in SQL.

AsyncUserStore wraps UserStore for the gates, which await every lookup.
Calls are offloaded to Starlette's thread pool so a slow query does not
stall the event loop.

Layer rule: no imports from api/.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, Integer, MetaData, String, Table, Text, create_engine, event, select
from sqlalchemy.engine import Engine
from starlette.concurrency import run_in_threadpool

from auth.models import SECRET_FIELDS, User
from core.config import get_settings

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("email", String(255), nullable=False, unique=True),
    Column("first_name", String(100), nullable=False),
    Column("last_name", String(100), nullable=False),
    Column("password", Text),  # bcrypt hash
    Column("is_account_verified", Boolean, nullable=False, server_default="0"),
    Column("account_verify_otp", Text),  # bcrypt hash of the 6-digit code
    Column("account_verify_token", Text),  # bcrypt hash of the link token
    Column("reset_password_token", Text),  # bcrypt hash, NULL when no reset pending
    Column("created_at", String(32), nullable=False),
)

_PUBLIC_COLUMNS = [c for c in _users.columns if c.name not in SECRET_FIELDS]


# ---------------------------------------------------------------------------
# WAL mode
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode for concurrent read safety.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _columns_for(selected: Iterable[str]) -> list:
    """Return the public columns plus the requested secret columns.

    Unknown names raise ValueError rather than being silently ignored -- a
    typo here would otherwise surface as a token that never matches.
    """
    names = tuple(selected)
    unknown = set(names) - set(SECRET_FIELDS)
    if unknown:
        raise ValueError(f"Unknown secret fields: {sorted(unknown)!r}")
    return _PUBLIC_COLUMNS + [_users.c[name] for name in SECRET_FIELDS if name in names]


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class UserStore:
    """Repository for User entities.

    Usage:
        store = UserStore()
        uid = store.create_user(User(email="ada@example.com", first_name="Ada", last_name="Lovelace"))
        user = store.find_by_id(uid, select=("account_verify_token",))
        store.close()
    """

    def __init__(self, db_url: str | None = None) -> None:
        db_url = db_url or get_settings().database_url
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
        _metadata.create_all(self.engine)

    def create_user(self, user: User) -> int:
        """Insert a new user and return its assigned database ID.

        Raises sqlalchemy.exc.IntegrityError if the email already exists.
        Callers should treat that as a duplicate-account race.
        """
        with self.engine.connect() as conn:
            result = conn.execute(
                _users.insert().values(
                    email=user.email,
                    first_name=user.first_name,
                    last_name=user.last_name,
                    password=user.password,
                    is_account_verified=user.is_account_verified,
                    account_verify_otp=user.account_verify_otp,
                    account_verify_token=user.account_verify_token,
                    reset_password_token=user.reset_password_token,
                    created_at=_now_iso(),
                )
            )
            conn.commit()
            return result.inserted_primary_key[0]

    def find_by_email(self, email: str, select: Iterable[str] = ()) -> User | None:
        """Look up a user by exact email (case-sensitive). Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_select(select).where(_users.c.email == email)).fetchone()
        return _row_to_user(row) if row is not None else None

    def find_by_id(self, user_id: int | str, select: Iterable[str] = ()) -> User | None:
        """Look up a user by primary key. Returns None if not found.

        user_id usually arrives as a path segment; a value that is not an
        integer raises ValueError.
        """
        uid = int(user_id)
        with self.engine.connect() as conn:
            row = conn.execute(_select(select).where(_users.c.id == uid)).fetchone()
        return _row_to_user(row) if row is not None else None

    def update_user(self, user_id: int, **fields) -> bool:
        """Update columns on an existing user.

        Returns True if a row was updated, False if user_id was not found.
        """
        with self.engine.connect() as conn:
            result = conn.execute(_users.update().where(_users.c.id == user_id).values(**fields))
            conn.commit()
        return result.rowcount > 0

    def close(self) -> None:
        self.engine.dispose()


class AsyncUserStore:
    """Awaitable facade over UserStore, consumed by AuthGate."""

    def __init__(self, store: UserStore) -> None:
        self.store = store

    async def find_by_email(self, email: str, select: Iterable[str] = ()) -> User | None:
        return await run_in_threadpool(self.store.find_by_email, email, tuple(select))

    async def find_by_id(self, user_id: int | str, select: Iterable[str] = ()) -> User | None:
        return await run_in_threadpool(self.store.find_by_id, user_id, tuple(select))


def _select(selected: Iterable[str]):
    return select(*_columns_for(selected))


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_user(row) -> User:
    # Secret columns are absent from the row unless they were selected.
    mapping = row._mapping
    return User(
        id=mapping["id"],
        email=mapping["email"],
        first_name=mapping["first_name"],
        last_name=mapping["last_name"],
        is_account_verified=bool(mapping["is_account_verified"]),
        created_at=mapping["created_at"],
        **{name: mapping[name] for name in SECRET_FIELDS if name in mapping},
    )
