"""
bcrypt password hasher adapter - Implements PasswordHasher protocol.

bcrypt.checkpw() compares in constant time; its cost factor dominates
response time for both matching and non-matching secrets.
"""

import bcrypt

# bcrypt only considers the first 72 bytes of a secret
_BCRYPT_MAX_BYTES = 72


class BcryptPasswordHasher:
    """
    Implements PasswordHasher protocol via bcrypt.

    Uses structural subtyping - no explicit inheritance from Protocol.
    """

    def __init__(self, rounds: int = 10) -> None:
        """
        Initialize hasher with a bcrypt work factor.

        Args:
            rounds: bcrypt cost factor (log2 of iterations)
        """
        self._rounds = rounds

    def hash(self, secret: str) -> str:
        """Hash secret with a fresh salt."""
        return bcrypt.hashpw(self._encode(secret), bcrypt.gensalt(rounds=self._rounds)).decode()

    def verify(self, secret: str, digest: str) -> bool:
        """Check secret against a stored digest; malformed digests never match."""
        try:
            return bcrypt.checkpw(self._encode(secret), digest.encode())
        except ValueError:
            return False

    def _encode(self, secret: str) -> bytes:
        return secret.encode()[:_BCRYPT_MAX_BYTES]
