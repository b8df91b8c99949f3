"""
PostgreSQL repository adapter - Implements CredentialStore protocol.

This module provides the PostgreSQL implementation of the domain's
credential store port using psycopg3 with raw SQL.

Locking Design
--------------
A locked read (lock_for_update=True) does two things inside the open
transaction:

1. **pg_advisory_xact_lock(key)**: Serializes every locked read on the same
   username/email, even when no row exists yet. SELECT ... FOR UPDATE alone
   locks nothing for a missing row, so two concurrent registrations could
   both observe "absent" and both insert.

2. **SELECT ... FOR UPDATE**: Locks the matching row against concurrent
   writers that do not go through the advisory lock.

Both locks are released at COMMIT/ROLLBACK. The UNIQUE constraints on
username and email remain the final guard and surface as
IdentityAlreadyExists.
"""

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

import psycopg
from psycopg import errors
from psycopg_pool import ConnectionPool

from src.domain.exceptions import IdentityAlreadyExists, StoreError
from src.domain.models import User

logger = logging.getLogger(__name__)

_USER_COLUMNS = "id::text, username, email, password_digest, verified"

# Columns the domain is allowed to change after creation
_UPDATABLE_FIELDS = ("verified", "password_digest")


class PostgresTransaction:
    """
    A single database transaction on a pooled connection.

    Writes are only made visible by an explicit commit().
    """

    def __init__(self, connection: psycopg.Connection) -> None:
        self.connection = connection
        self.closed = False

    def commit(self) -> None:
        try:
            self.connection.commit()
        except psycopg.Error as e:
            raise StoreError("Commit failed") from e
        finally:
            self.closed = True

    def rollback(self) -> None:
        try:
            self.connection.rollback()
        except psycopg.Error as e:
            raise StoreError("Rollback failed") from e
        finally:
            self.closed = True


class PostgresCredentialStore:
    """
    Implements CredentialStore protocol via psycopg3.

    Uses structural subtyping - no explicit inheritance from Protocol.
    All SQL uses parameterized queries for security.
    """

    def __init__(self, pool: ConnectionPool) -> None:
        """
        Initialize store with connection pool.

        Args:
            pool: psycopg3 ConnectionPool for database connections
        """
        self._pool = pool

    @contextmanager
    def begin_transaction(self) -> Iterator[PostgresTransaction]:
        """
        Open a transaction on a pooled connection.

        The pool commits on a clean exit from its connection block, so any
        transaction the caller did not commit is rolled back here first.
        """
        try:
            with self._pool.connection() as conn:
                txn = PostgresTransaction(conn)
                try:
                    yield txn
                finally:
                    if not txn.closed:
                        txn.rollback()
        except psycopg.Error as e:
            raise StoreError("Database unavailable") from e

    def find_by_username(
        self, txn: PostgresTransaction, username: str, lock_for_update: bool = False
    ) -> User | None:
        """Find a user by username, optionally locking the key."""
        return self._find(txn, "username", username, lock_for_update)

    def find_by_email(
        self, txn: PostgresTransaction, email: str, lock_for_update: bool = False
    ) -> User | None:
        """Find a user by email, optionally locking the key."""
        return self._find(txn, "email", email, lock_for_update)

    def create(
        self, txn: PostgresTransaction, username: str, email: str, password_digest: str
    ) -> User:
        """
        Insert a new unverified user.

        Raises:
            IdentityAlreadyExists: UNIQUE constraint on username or email hit
        """
        sql = f"""
            INSERT INTO users (username, email, password_digest, verified)
            VALUES (%s, %s, %s, FALSE)
            RETURNING {_USER_COLUMNS}
        """
        try:
            with txn.connection.cursor() as cursor:
                cursor.execute(sql, (username, email, password_digest))
                row = cursor.fetchone()
        except errors.UniqueViolation as e:
            raise IdentityAlreadyExists(username) from e
        except psycopg.Error as e:
            raise StoreError("Insert failed") from e
        return _row_to_user(row)

    def update(self, txn: PostgresTransaction, user: User, **fields: Any) -> User:
        """
        Update mutable fields of a user.

        Raises:
            ValueError: If a field is unknown or immutable
        """
        unknown = set(fields) - set(_UPDATABLE_FIELDS)
        if unknown:
            raise ValueError(f"Cannot update fields: {sorted(unknown)}")

        # Column names come from the allow-list above, never from input
        assignments = ", ".join(f"{name} = %s" for name in fields)
        sql = f"""
            UPDATE users
            SET {assignments}, updated_at = NOW()
            WHERE id = %s
            RETURNING {_USER_COLUMNS}
        """
        try:
            with txn.connection.cursor() as cursor:
                cursor.execute(sql, (*fields.values(), user.id))
                row = cursor.fetchone()
        except psycopg.Error as e:
            raise StoreError("Update failed") from e
        if row is None:
            raise StoreError(f"User {user.id} vanished during update")
        return _row_to_user(row)

    def ping(self) -> None:
        """Validate database connectivity."""
        try:
            with self._pool.connection() as conn:
                conn.execute("SELECT 1")
        except psycopg.Error as e:
            raise StoreError("Database unavailable") from e

    def _find(
        self, txn: PostgresTransaction, column: str, value: str, lock_for_update: bool
    ) -> User | None:
        sql = f"SELECT {_USER_COLUMNS} FROM users WHERE {column} = %s"
        if lock_for_update:
            sql += " FOR UPDATE"

        try:
            with txn.connection.cursor() as cursor:
                if lock_for_update:
                    cursor.execute(
                        "SELECT pg_advisory_xact_lock(hashtextextended(%s, 0))",
                        (f"{column}:{value}",),
                    )
                cursor.execute(sql, (value,))
                row = cursor.fetchone()
        except psycopg.Error as e:
            raise StoreError(f"Lookup by {column} failed") from e
        return _row_to_user(row) if row is not None else None


def _row_to_user(row: tuple) -> User:
    return User(
        id=row[0],
        username=row[1],
        email=row[2],
        password_digest=row[3],
        verified=row[4],
    )


def run_migrations(pool: ConnectionPool) -> None:
    """
    Execute all SQL migration files from the migrations directory.

    Migrations are executed in sorted order (alphabetically by filename).
    Each migration should be idempotent (use IF NOT EXISTS, etc.).

    Args:
        pool: psycopg3 ConnectionPool instance
    """
    # Structure: src/adapters/repository/postgres.py -> migrations/
    migrations_dir = Path(__file__).parent.parent.parent.parent / "migrations"

    if not migrations_dir.exists():
        logger.warning(f"Migrations directory not found: {migrations_dir}")
        return

    sql_files = sorted(migrations_dir.glob("*.sql"))

    if not sql_files:
        logger.info("No migration files found")
        return

    logger.info(f"Running {len(sql_files)} migration(s)")

    for sql_file in sql_files:
        logger.info(f"Executing migration: {sql_file.name}")
        try:
            sql_content = sql_file.read_text()

            with pool.connection() as conn:
                conn.execute(sql_content)

            logger.info(f"Migration complete: {sql_file.name}")
        except Exception as e:
            logger.error(f"Migration failed: {sql_file.name} - {e}")
            raise RuntimeError(f"Database migration failed: {sql_file.name}") from e
