"""
Shared test fixtures and configuration.

This module provides pytest fixtures for:
- Token service with a fixed test secret
- Fast bcrypt hasher (minimum cost factor)
- In-memory credential store
- Identity service wired with a mocked notification gateway
- PostgreSQL pool and store (skipped when the database is unreachable)
"""

from collections.abc import Generator
from unittest.mock import Mock

import pytest
from psycopg_pool import ConnectionPool, PoolTimeout

from src.adapters.repository.memory import InMemoryCredentialStore
from src.adapters.repository.postgres import PostgresCredentialStore, run_migrations
from src.adapters.security.hashing import BcryptPasswordHasher
from src.adapters.security.tokens import JwtTokenService
from src.config.settings import get_settings
from src.domain.identity import IdentityService

TEST_SECRET = "test-signing-secret-0123456789abcdef"


@pytest.fixture
def token_service() -> JwtTokenService:
    """Token service signing with the test secret."""
    return JwtTokenService(TEST_SECRET)


@pytest.fixture
def hasher() -> BcryptPasswordHasher:
    """bcrypt hasher with the minimum cost factor for speed."""
    return BcryptPasswordHasher(rounds=4)


@pytest.fixture
def store() -> InMemoryCredentialStore:
    """Fresh in-memory credential store for each test."""
    return InMemoryCredentialStore()


@pytest.fixture
def notifier() -> Mock:
    """Notification gateway mock recording every send."""
    return Mock()


@pytest.fixture
def service(
    store: InMemoryCredentialStore,
    hasher: BcryptPasswordHasher,
    token_service: JwtTokenService,
    notifier: Mock,
) -> IdentityService:
    """Identity service over the in-memory store."""
    return IdentityService(store=store, hasher=hasher, tokens=token_service, notifier=notifier)


@pytest.fixture(scope="session")
def pool() -> Generator[ConnectionPool, None, None]:
    """
    Connection pool for PostgreSQL-backed tests.

    Skips the requesting test when DATABASE_URL is not reachable.
    """
    settings = get_settings()
    pool = ConnectionPool(
        conninfo=settings.database_url,
        min_size=1,
        max_size=20,
        open=False,
    )
    try:
        pool.open(wait=True, timeout=3)
    except PoolTimeout:
        pool.close()
        pytest.skip(f"PostgreSQL not reachable at {settings.database_url}")
    run_migrations(pool)
    yield pool
    pool.close()


@pytest.fixture
def postgres_store(pool: ConnectionPool) -> PostgresCredentialStore:
    """PostgreSQL store over an emptied users table."""
    with pool.connection() as conn:
        conn.execute("DELETE FROM users")
        conn.commit()
    return PostgresCredentialStore(pool)


@pytest.fixture
def count_users(pool: ConnectionPool):
    """Count committed rows in users, optionally filtered by column values."""

    def _count(**where: object) -> int:
        sql = "SELECT COUNT(*) FROM users"
        if where:
            sql += " WHERE " + " AND ".join(f"{column} = %s" for column in where)
        with pool.connection() as conn, conn.cursor() as cursor:
            cursor.execute(sql, tuple(where.values()))
            return cursor.fetchone()[0]

    return _count
