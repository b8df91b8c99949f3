"""
Shared fixtures for adversarial tests.

Provides an identity service over each credential store backend so that
race condition tests run against the in-memory store and PostgreSQL alike.
"""

from unittest.mock import Mock

import pytest

from src.adapters.repository.memory import InMemoryCredentialStore
from src.adapters.security.hashing import BcryptPasswordHasher
from src.adapters.security.tokens import JwtTokenService
from src.domain.identity import IdentityService

# Module-level marker for all adversarial tests
pytestmark = pytest.mark.adversarial


@pytest.fixture(params=["memory", "postgres"])
def backend_store(request: pytest.FixtureRequest):
    """Credential store for each backend; postgres is skipped when unreachable."""
    if request.param == "postgres":
        return request.getfixturevalue("postgres_store")
    return InMemoryCredentialStore()


@pytest.fixture
def race_service(
    backend_store, hasher: BcryptPasswordHasher, token_service: JwtTokenService
) -> IdentityService:
    """Identity service over the parametrized backend with a mocked gateway."""
    return IdentityService(
        store=backend_store, hasher=hasher, tokens=token_service, notifier=Mock()
    )
