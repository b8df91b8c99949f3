"""
Port interfaces - Protocol definitions for infrastructure abstraction.

This module defines the interfaces (ports) that the domain requires
from infrastructure. Adapters implement these protocols.
"""

from collections.abc import Mapping
from contextlib import AbstractContextManager
from datetime import timedelta
from enum import Enum
from typing import Any, Protocol

from .models import User


class IdentityState(str, Enum):
    """
    Identity State Machine states.

    State Transitions (forward-only):
    - NON_EXISTENT -> UNVERIFIED (registration)
    - UNVERIFIED -> VERIFIED (email verification)

    Password digest replacement is an attribute change, not a transition.
    There is no un-verify path and no deletion.
    """

    NON_EXISTENT = "NON_EXISTENT"
    UNVERIFIED = "UNVERIFIED"
    VERIFIED = "VERIFIED"

    @classmethod
    def of(cls, user: User | None) -> "IdentityState":
        """Derive the state of a (possibly missing) user record."""
        if user is None:
            return cls.NON_EXISTENT
        return cls.VERIFIED if user.verified else cls.UNVERIFIED


class TokenPurpose(str, Enum):
    """What a signed token may be used for."""

    VERIFICATION = "verification"
    LOGIN = "login"
    RESET = "reset"


class NotificationKind(str, Enum):
    """Kind of out-of-band message sent to a user."""

    VERIFICATION = "verification"
    RESET = "reset"


class Transaction(Protocol):
    """
    Unit of work handed out by CredentialStore.begin_transaction().

    Must be explicitly committed. Leaving the begin_transaction() block
    without a commit rolls back every write and releases every lock.
    """

    def commit(self) -> None:
        """Make all writes visible and release locks."""
        ...

    def rollback(self) -> None:
        """Discard all writes and release locks."""
        ...


class CredentialStore(Protocol):
    """
    Port interface for user persistence.

    Reads with lock_for_update=True take an exclusive lock on the key
    (username or email) that is held until the transaction ends, even if
    no row matches yet. This closes the check-then-act window between an
    existence check and the following insert or update.
    """

    def begin_transaction(self) -> AbstractContextManager[Transaction]:
        """Open a transaction; rolled back unless committed."""
        ...

    def find_by_username(
        self, txn: Transaction, username: str, lock_for_update: bool = False
    ) -> User | None:
        """Find a user by exact username."""
        ...

    def find_by_email(
        self, txn: Transaction, email: str, lock_for_update: bool = False
    ) -> User | None:
        """Find a user by normalized email."""
        ...

    def create(
        self, txn: Transaction, username: str, email: str, password_digest: str
    ) -> User:
        """
        Insert a new unverified user.

        Raises:
            IdentityAlreadyExists: If username or email is already taken
        """
        ...

    def update(self, txn: Transaction, user: User, **fields: Any) -> User:
        """
        Update mutable fields (verified, password_digest) of a user.

        Returns:
            The updated user record
        """
        ...

    def ping(self) -> None:
        """Raise StoreError if the store is unreachable."""
        ...


class PasswordHasher(Protocol):
    """Port interface for the one-way password hash primitive."""

    def hash(self, secret: str) -> str:
        """Return a salted digest of secret."""
        ...

    def verify(self, secret: str, digest: str) -> bool:
        """Constant-time check of secret against digest."""
        ...


class TokenService(Protocol):
    """Port interface for short-lived signed tokens."""

    def issue(self, claim: Mapping[str, Any], ttl: timedelta, purpose: TokenPurpose) -> str:
        """Sign claim with an absolute expiry of now + ttl."""
        ...

    def verify(self, token: str, purpose: TokenPurpose) -> dict[str, Any]:
        """
        Return the claim carried by token.

        Raises:
            InvalidToken: Tampered, malformed, expired or wrong purpose
        """
        ...


class NotificationGateway(Protocol):
    """Port interface for out-of-band message delivery."""

    def send(self, kind: NotificationKind, address: str, token: str) -> None:
        """
        Deliver token to address.

        Raises:
            NotificationFailed: If the message could not be delivered
        """
        ...
