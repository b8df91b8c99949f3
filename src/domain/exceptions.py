"""
Domain exceptions - Semantic error types for identity management.

This module defines domain-specific exceptions that communicate
business rule violations without leaking infrastructure details.
Adapters raise them; IdentityService classifies them into outcomes.
"""


class IdentityError(Exception):
    """Base class for identity domain errors."""

    pass


class InvalidToken(IdentityError):
    """Token signature, structure, purpose or expiry check failed."""

    pass


class IdentityAlreadyExists(IdentityError):
    """Username or email is already taken by another user."""

    pass


class NotificationFailed(IdentityError):
    """Notification gateway could not deliver a message."""

    pass


class StoreError(IdentityError):
    """Credential store failure (connection lost, query error, ...)."""

    pass


class ConfigurationError(IdentityError):
    """Required configuration is missing or unusable."""

    pass
