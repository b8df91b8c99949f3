"""Security adapters - Password hashing and signed tokens."""

from .hashing import BcryptPasswordHasher
from .tokens import JwtTokenService

__all__ = ["BcryptPasswordHasher", "JwtTokenService"]
