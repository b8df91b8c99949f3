"""
FastAPI dependencies - Dependency injection factories.

This module provides Depends() factories for injecting
domain services and infrastructure adapters into routes.
"""

from fastapi import Request

from src.adapters.repository.memory import InMemoryCredentialStore
from src.adapters.repository.postgres import PostgresCredentialStore
from src.adapters.security.hashing import BcryptPasswordHasher
from src.adapters.security.tokens import JwtTokenService
from src.adapters.smtp.console import ConsoleNotificationGateway
from src.config.settings import Settings, get_settings
from src.domain.identity import IdentityService
from src.domain.ports import CredentialStore, NotificationGateway, PasswordHasher, TokenService


def build_token_service(settings: Settings) -> JwtTokenService:
    """
    Create the token service from settings.

    Raises:
        ConfigurationError: If no token secret is configured
    """
    secret = settings.token_secret.get_secret_value() if settings.token_secret else None
    return JwtTokenService(secret, algorithm=settings.token_algorithm)


def build_store(settings: Settings, pool=None) -> CredentialStore:
    """Create the credential store selected by settings.storage_backend."""
    if settings.storage_backend == "memory":
        return InMemoryCredentialStore()
    return PostgresCredentialStore(pool)


def get_store(request: Request) -> CredentialStore:
    """
    Get credential store from app state.

    The store is created during app lifespan startup and stored in app.state.
    """
    return request.app.state.store


def get_token_service(request: Request) -> TokenService:
    """Get token service from app state."""
    return request.app.state.token_service


def get_hasher(request: Request) -> PasswordHasher:
    """Get password hasher from app state."""
    return request.app.state.hasher


def get_notifier(request: Request) -> NotificationGateway:
    """Get notification gateway from app state."""
    return request.app.state.notifier


def get_identity_service(request: Request) -> IdentityService:
    """
    Create identity service with injected dependencies.

    Wires together the store, hasher, token service and notification
    gateway for the domain service.
    """
    settings = get_settings()
    return IdentityService(
        store=get_store(request),
        hasher=get_hasher(request),
        tokens=get_token_service(request),
        notifier=get_notifier(request),
        verification_ttl=settings.verification_ttl,
        login_ttl=settings.login_ttl,
        reset_ttl=settings.reset_ttl,
    )


def install_services(app_state, settings: Settings, pool=None) -> None:
    """Create every adapter from settings and attach it to app.state."""
    app_state.token_service = build_token_service(settings)
    app_state.store = build_store(settings, pool)
    app_state.hasher = BcryptPasswordHasher(rounds=settings.bcrypt_cost)
    app_state.notifier = ConsoleNotificationGateway(settings.public_base_url)
