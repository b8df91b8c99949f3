"""
Domain models - User record and operation results.

The User record is immutable; stores return a new instance for every
update. Every IdentityService operation reports an IdentityResult instead
of raising, so callers branch on the outcome rather than on exceptions.
"""

from dataclasses import dataclass
from enum import Enum


@dataclass(frozen=True)
class User:
    """
    A user identity as persisted by the credential store.

    Lifecycle: created unverified by registration, flipped to verified by
    email verification, password digest replaced by password reset.
    Never deleted by this service.
    """

    id: str
    username: str
    email: str
    password_digest: str
    verified: bool = False

    def __repr__(self) -> str:
        # Keep the digest out of logs and tracebacks
        return (
            f"User(id={self.id!r}, username={self.username!r}, "
            f"email={self.email!r}, verified={self.verified!r})"
        )


class Outcome(str, Enum):
    """Classification of an identity operation result."""

    CREATED = "created"
    AUTHENTICATED = "authenticated"
    VERIFIED = "verified"
    SENT = "sent"
    UPDATED = "updated"
    VALIDATION_ERROR = "validation_error"
    CONFLICT = "conflict"
    NOT_FOUND = "not_found"
    UNAUTHORIZED = "unauthorized"
    INVALID_TOKEN = "invalid_token"
    INTERNAL_ERROR = "internal_error"


SUCCESS_OUTCOMES = frozenset(
    {
        Outcome.CREATED,
        Outcome.AUTHENTICATED,
        Outcome.VERIFIED,
        Outcome.SENT,
        Outcome.UPDATED,
    }
)


@dataclass(frozen=True)
class IdentityResult:
    """
    Result of an identity operation.

    Attributes:
        outcome: Success or error classification
        message: Human-readable message, safe to show to the caller
        token: Login token for AUTHENTICATED results, None otherwise
    """

    outcome: Outcome
    message: str
    token: str | None = None

    @property
    def ok(self) -> bool:
        """True when the outcome is one of the success kinds."""
        return self.outcome in SUCCESS_OUTCOMES
