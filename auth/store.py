"""
auth/store.py -- SQLAlchemy Core persistence layer for user credentials.

Pattern: Repository + Data Mapper. UserStore is the repository; _row_to_user
is the mapper. Service and dependency code never touches SQL directly.

Security:
  All queries use bound parameters. No f-strings in SQL.

  Emails are lowercased on write and compared with lower() on read, so the
  UNIQUE(email) constraint is effectively case-insensitive. The constraint is
  the final arbiter of concurrent registrations: the loser of the race gets
  DuplicateEmailError even though both requests passed the service pre-check.

DB path: homehost_auth.db at the project root unless DATABASE_URL is set.

Layer rule: no imports from api/.
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import Column, Integer, MetaData, String, Table, Text, create_engine, event, func, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError

from auth.errors import DuplicateEmailError, DuplicateUsernameError
from auth.models import User

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("email", String(255), nullable=False, unique=True),  # always lowercase
    Column("username", String(255), nullable=False, unique=True),
    Column("hashed_password", Text, nullable=False),
    Column("name", String(255)),
    Column("avatar", Text),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
)


# ---------------------------------------------------------------------------
# WAL mode
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode so readers are not blocked during writes.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class UserStore:
    """Repository for User records.

    Usage:
        store = UserStore("sqlite:///homehost_auth.db")
        user = store.create("a@example.com", "alice", hasher.hash("s3cretpass"))
        store.find_by_email("A@Example.com")  # same record
        store.close()
    """

    def __init__(self, db_url: str) -> None:
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
        _metadata.create_all(self.engine)

    def ping(self) -> bool:
        """Return True if the database answers a trivial query."""
        with self.engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return True

    def find_by_id(self, user_id) -> User | None:
        """Look up a user by primary key. Non-integer ids simply do not match."""
        if isinstance(user_id, bool):
            return None
        try:
            key = int(user_id)
        except (TypeError, ValueError):
            return None
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.id == key)).fetchone()
        return _row_to_user(row) if row is not None else None

    def find_by_email(self, email: str) -> User | None:
        """Case-insensitive lookup by email. Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(func.lower(_users.c.email) == email.lower())).fetchone()
        return _row_to_user(row) if row is not None else None

    def create(
        self,
        email: str,
        username: str,
        hashed_password: str,
        name: str | None = None,
        avatar: str | None = None,
    ) -> User:
        """Insert a new user and return the stored record.

        Raises DuplicateEmailError / DuplicateUsernameError when a UNIQUE
        constraint rejects the row.
        """
        normalized = email.lower()
        now = _now_iso()
        try:
            with self.engine.connect() as conn:
                result = conn.execute(
                    _users.insert().values(
                        email=normalized,
                        username=username,
                        hashed_password=hashed_password,
                        name=name,
                        avatar=avatar,
                        created_at=now,
                        updated_at=now,
                    )
                )
                conn.commit()
                user_id = result.inserted_primary_key[0]
        except IntegrityError as exc:
            if self.find_by_email(normalized) is not None:
                raise DuplicateEmailError(normalized) from exc
            raise DuplicateUsernameError(username) from exc
        return User(
            id=user_id,
            email=normalized,
            username=username,
            hashed_password=hashed_password,
            name=name,
            avatar=avatar,
            created_at=now,
            updated_at=now,
        )

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mapper
# ---------------------------------------------------------------------------


def _row_to_user(row) -> User:
    return User(
        id=row.id,
        email=row.email,
        username=row.username,
        hashed_password=row.hashed_password,
        name=row.name,
        avatar=row.avatar,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )
