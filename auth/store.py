"""
auth/store.py -- SQLAlchemy Core persistence layer for user records.

Pattern: Repository + Data Mapper.
UserStore is the repository; _row_to_user is the mapper. Controller and
middleware code never touches SQL directly.

Uniqueness:
  username (case-sensitive) and email (case-insensitive) must each be unique.
  Email is lower-cased before it is written or queried, so the plain UNIQUE
  index on the column enforces case-insensitive uniqueness.

  create_user() does check-then-insert inside one transaction while holding
  a per-store write lock, so two concurrent signups for the same identity
  cannot both pass the check. The UNIQUE constraints are the backstop for
  writers outside this process: a UNIQUE violation is reported as the same
  DuplicateIdentityError. Other integrity errors propagate unchanged.

Bounded blocking:
  The write lock is acquired with a timeout, and SQLite's busy timeout is set
  to the same value. Either limit being hit -- or any OperationalError from
  the driver -- surfaces as StoreUnavailableError (503, retryable) instead of
  hanging the request.

Security:
  All queries use bound parameters. No f-strings in SQL.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

import logging
import threading
import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, MetaData, String, Table, Text, create_engine, event, or_, select, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError

from auth.errors import DuplicateIdentityError, StoreUnavailableError
from auth.models import Role, User

logger = logging.getLogger("warden.store")

_DEFAULT_DB_URL = "sqlite:///warden_auth.db"
_DEFAULT_TIMEOUT = 5.0

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("id", String(32), primary_key=True),  # uuid4 hex
    Column("username", String(255), nullable=False, unique=True),
    Column("email", String(320), nullable=False, unique=True),  # stored lower-cased
    Column("password_hash", Text, nullable=False),
    Column("role", String(20), nullable=False, server_default=Role.user.value),
    Column("created_at", String(32), nullable=False),
)


# ---------------------------------------------------------------------------
# WAL mode
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode for concurrent read safety.

    WAL lets readers proceed while a signup is writing. Set per-connection
    because SQLite PRAGMAs are not inherited by new connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _normalize_email(email: str) -> str:
    return email.strip().lower()


def _is_unique_violation(exc: IntegrityError) -> bool:
    """True for UNIQUE violations (SQLite, PostgreSQL, MySQL wording); False for NOT NULL and the rest."""
    message = str(exc.orig).lower()
    return "unique" in message or "duplicate" in message


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class UserStore:
    """Repository for User records.

    Usage:
        store = UserStore("sqlite:///warden_auth.db")
        user = store.create_user(User(username="alice", email="a@x.com", password_hash=digest))
        store.get_by_email("A@X.com")   # same record
        store.close()
    """

    def __init__(self, db_url: str = _DEFAULT_DB_URL, timeout: float = _DEFAULT_TIMEOUT) -> None:
        self.timeout = timeout
        self._write_lock = threading.Lock()
        connect_args: dict = {}
        engine_kwargs: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
            connect_args["timeout"] = timeout  # SQLite busy timeout, seconds
        else:
            engine_kwargs["pool_timeout"] = timeout
        self.engine: Engine = create_engine(db_url, connect_args=connect_args, **engine_kwargs)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
        _metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create_user(self, user: User) -> User:
        """Persist a new user and return it with id and created_at assigned.

        The record is committed before this method returns.

        Raises:
            DuplicateIdentityError: username or email already taken.
            StoreUnavailableError:  lock or database busy past the timeout.
        """
        username = user.username.strip()
        email = _normalize_email(user.email)
        created = User(
            id=uuid.uuid4().hex,
            username=username,
            email=email,
            password_hash=user.password_hash,
            role=Role(user.role),
            created_at=_now_iso(),
        )

        if not self._write_lock.acquire(timeout=self.timeout):
            logger.warning("Timed out after %.1fs waiting for the user store write lock", self.timeout)
            raise StoreUnavailableError()
        try:
            with self.engine.begin() as conn:
                clash = conn.execute(
                    select(_users.c.id).where(or_(_users.c.username == username, _users.c.email == email)).limit(1)
                ).first()
                if clash is not None:
                    raise DuplicateIdentityError()
                conn.execute(
                    _users.insert().values(
                        id=created.id,
                        username=created.username,
                        email=created.email,
                        password_hash=created.password_hash,
                        role=created.role.value,
                        created_at=created.created_at,
                    )
                )
        except IntegrityError as exc:
            if not _is_unique_violation(exc):
                raise
            raise DuplicateIdentityError() from exc
        except OperationalError as exc:
            logger.error("User store write failed: %s", exc.orig)
            raise StoreUnavailableError() from exc
        finally:
            self._write_lock.release()

        logger.info("Created user id=%s username=%s role=%s", created.id, created.username, created.role.value)
        return created

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_by_email(self, email: str) -> User | None:
        """Look up a user by email (case-insensitive). Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.email == _normalize_email(email))).fetchone()
        return _row_to_user(row) if row is not None else None

    def get_by_id(self, user_id: str) -> User | None:
        """Look up a user by id. Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.id == user_id)).fetchone()
        return _row_to_user(row) if row is not None else None

    def list_users(self) -> list[User]:
        """Return all users ordered by username. Admin-only operation."""
        with self.engine.connect() as conn:
            rows = conn.execute(_users.select().order_by(_users.c.username)).fetchall()
        return [_row_to_user(r) for r in rows]

    def count_users(self) -> int:
        with self.engine.connect() as conn:
            result = conn.execute(text("SELECT COUNT(*) FROM users")).scalar()
        return result or 0

    def ping(self) -> bool:
        """Return True if the database answers a trivial query. Used by /health."""
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
        except SQLAlchemyError:
            logger.exception("User store health check failed")
            return False
        return True

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_user(row) -> User:
    return User(
        id=row.id,
        username=row.username,
        email=row.email,
        password_hash=row.password_hash,
        role=Role(row.role),
        created_at=row.created_at,
    )
