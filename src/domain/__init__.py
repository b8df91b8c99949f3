"""
Domain layer - Pure business logic with no web or database framework imports.

This package contains the Identity State Machine for registration, login,
email verification and password reset. It defines its own port interfaces
for infrastructure abstraction, ensuring hexagonal architecture decoupling.
"""

from .exceptions import (
    ConfigurationError,
    IdentityAlreadyExists,
    IdentityError,
    InvalidToken,
    NotificationFailed,
    StoreError,
)
from .identity import IdentityService
from .models import IdentityResult, Outcome, User
from .ports import (
    CredentialStore,
    IdentityState,
    NotificationGateway,
    NotificationKind,
    PasswordHasher,
    TokenPurpose,
    TokenService,
    Transaction,
)

__all__ = [
    "ConfigurationError",
    "CredentialStore",
    "IdentityAlreadyExists",
    "IdentityError",
    "IdentityResult",
    "IdentityService",
    "IdentityState",
    "InvalidToken",
    "NotificationFailed",
    "NotificationGateway",
    "NotificationKind",
    "Outcome",
    "PasswordHasher",
    "StoreError",
    "TokenPurpose",
    "TokenService",
    "Transaction",
    "User",
]
