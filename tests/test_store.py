"""Unit tests for auth/store.py -- UserStore persistence and uniqueness.

Covers:
- create_user() assigns id / created_at and persists the record
- lookups by email (case-insensitive) and by id; None when absent
- duplicate username or email (any case) raises DuplicateIdentityError and
  leaves existing records untouched
- concurrent signups for the same identity: exactly one succeeds
- write lock or SQLite busy lock held past the timeout surfaces StoreUnavailableError
- non-UNIQUE integrity errors propagate instead of posing as duplicates
- list_users() ordering and ping()
"""

import sqlite3
import threading
import time

import pytest
from sqlalchemy import text
from sqlalchemy.exc import IntegrityError

from auth.errors import DuplicateIdentityError, StoreUnavailableError
from auth.models import Role, User
from auth.store import UserStore, _is_unique_violation


def _user(username="alice", email="a@x.com", role=Role.user, password_hash="$2b$04$fakehashfakehashfakehash") -> User:
    return User(username=username, email=email, password_hash=password_hash, role=role)


class TestCreate:
    def test_create_assigns_id_and_timestamp(self, store):
        created = store.create_user(_user())
        assert created.id and len(created.id) == 32
        assert created.created_at
        assert created.role is Role.user

    def test_ids_are_unique(self, store):
        first = store.create_user(_user("alice", "a@x.com"))
        second = store.create_user(_user("bob", "b@x.com"))
        assert first.id != second.id

    def test_trims_username_and_normalizes_email(self, store):
        created = store.create_user(_user("  alice  ", "  Alice@X.COM "))
        assert created.username == "alice"
        assert created.email == "alice@x.com"

    def test_record_is_persisted(self, store):
        created = store.create_user(_user(role=Role.moderator))
        fetched = store.get_by_id(created.id)
        assert fetched == created


class TestLookups:
    def test_get_by_email_is_case_insensitive(self, store):
        created = store.create_user(_user(email="a@x.com"))
        assert store.get_by_email("A@X.com").id == created.id
        assert store.get_by_email("  a@x.com ").id == created.id

    def test_get_by_email_missing(self, store):
        assert store.get_by_email("nobody@x.com") is None

    def test_get_by_id_missing(self, store):
        assert store.get_by_id("0" * 32) is None

    def test_list_users_ordered_by_username(self, store):
        store.create_user(_user("carol", "c@x.com"))
        store.create_user(_user("alice", "a@x.com"))
        store.create_user(_user("bob", "b@x.com"))
        assert [u.username for u in store.list_users()] == ["alice", "bob", "carol"]
        assert store.count_users() == 3

    def test_list_users_empty(self, store):
        assert store.list_users() == []

    def test_ping(self, store):
        assert store.ping() is True


class TestUniqueness:
    def test_duplicate_username(self, store):
        original = store.create_user(_user("alice", "a@x.com"))
        with pytest.raises(DuplicateIdentityError):
            store.create_user(_user("alice", "other@x.com"))
        assert store.count_users() == 1
        assert store.get_by_id(original.id) == original
        assert store.get_by_email("other@x.com") is None

    def test_duplicate_email_any_case(self, store):
        store.create_user(_user("alice", "a@x.com"))
        with pytest.raises(DuplicateIdentityError):
            store.create_user(_user("alice2", "A@X.COM"))
        assert store.count_users() == 1

    def test_username_is_case_sensitive(self, store):
        store.create_user(_user("alice", "a@x.com"))
        store.create_user(_user("Alice", "a2@x.com"))
        assert store.count_users() == 2


def test_concurrent_signups_only_one_wins(tmp_path):
    """Eight threads race to create the same identity; exactly one succeeds."""
    store = UserStore(db_url=f"sqlite:///{tmp_path / 'race.db'}", timeout=5.0)
    barrier = threading.Barrier(8)
    outcomes: list[str] = []
    outcomes_lock = threading.Lock()

    def attempt() -> None:
        barrier.wait()
        try:
            store.create_user(_user("racer", "race@x.com"))
            result = "created"
        except DuplicateIdentityError:
            result = "duplicate"
        with outcomes_lock:
            outcomes.append(result)

    threads = [threading.Thread(target=attempt) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=10)

    try:
        assert outcomes.count("created") == 1
        assert outcomes.count("duplicate") == 7
        assert store.count_users() == 1
    finally:
        store.close()


def test_write_lock_timeout_is_retryable_failure(tmp_path):
    """A writer stuck behind the lock gives up after the timeout instead of hanging."""
    store = UserStore(db_url=f"sqlite:///{tmp_path / 'busy.db'}", timeout=0.05)
    store._write_lock.acquire()
    try:
        with pytest.raises(StoreUnavailableError) as excinfo:
            store.create_user(_user())
        assert excinfo.value.status_code == 503
        assert store.count_users() == 0
    finally:
        store._write_lock.release()
        store.close()


def test_records_survive_reopen(tmp_path):
    url = f"sqlite:///{tmp_path / 'durable.db'}"
    first = UserStore(db_url=url)
    created = first.create_user(_user())
    first.close()

    second = UserStore(db_url=url)
    try:
        assert second.get_by_email("a@x.com") == created
    finally:
        second.close()


def test_database_busy_past_timeout_is_retryable_failure(tmp_path):
    """Another connection holding the SQLite write lock makes create_user give up within the bound."""
    path = tmp_path / "locked.db"
    store = UserStore(db_url=f"sqlite:///{path}", timeout=0.2)
    other = sqlite3.connect(str(path), isolation_level=None)
    other.execute("BEGIN IMMEDIATE")
    try:
        started = time.monotonic()
        with pytest.raises(StoreUnavailableError):
            store.create_user(_user())
        assert time.monotonic() - started < 3.0
    finally:
        other.execute("ROLLBACK")
        other.close()
    try:
        assert store.count_users() == 0
        assert store.create_user(_user()).username == "alice"
    finally:
        store.close()


def test_not_null_violation_is_not_reported_as_duplicate(store):
    with pytest.raises(IntegrityError):
        store.create_user(_user(password_hash=None))
    assert store.count_users() == 0


def test_unique_violation_from_the_database_is_recognized(store):
    created = store.create_user(_user())
    with pytest.raises(IntegrityError) as excinfo:
        with store.engine.begin() as conn:
            conn.execute(
                text(
                    "INSERT INTO users (id, username, email, password_hash, role, created_at) "
                    "VALUES (:id, :username, :email, 'x', 'user', 'now')"
                ),
                {"id": "f" * 32, "username": created.username, "email": "other@x.com"},
            )
    assert _is_unique_violation(excinfo.value)
