"""
JWT token adapter - Implements TokenService protocol via PyJWT.

Tokens are HMAC-signed JWTs carrying the identity claim, an absolute
expiry (exp), the issue time (iat) and the purpose they were issued for.
Tampering, malformed input, expiry and purpose mismatch all surface as
the single InvalidToken error.
"""

from collections.abc import Mapping
from datetime import datetime, timedelta, timezone
from typing import Any

import jwt

from src.domain.exceptions import ConfigurationError, InvalidToken
from src.domain.ports import TokenPurpose

PURPOSE_CLAIM = "purpose"


class JwtTokenService:
    """
    Implements TokenService protocol via PyJWT.

    Uses structural subtyping - no explicit inheritance from Protocol.
    The signing secret is fixed at construction and never changes.
    """

    def __init__(self, secret: str | None, algorithm: str = "HS256") -> None:
        """
        Initialize token service with a signing secret.

        Args:
            secret: Process-wide HMAC signing secret
            algorithm: JWT signing algorithm

        Raises:
            ConfigurationError: If the secret is missing or empty
        """
        if not secret:
            raise ConfigurationError("Token signing secret is not configured")
        self._secret = secret
        self._algorithm = algorithm

    def issue(self, claim: Mapping[str, Any], ttl: timedelta, purpose: TokenPurpose) -> str:
        """Sign claim with exp = now + ttl."""
        now = datetime.now(tz=timezone.utc)
        payload = dict(claim)
        payload.update({"iat": now, "exp": now + ttl, PURPOSE_CLAIM: purpose.value})
        return jwt.encode(payload, self._secret, algorithm=self._algorithm)

    def verify(self, token: str, purpose: TokenPurpose) -> dict[str, Any]:
        """
        Decode token and return its claim.

        Raises:
            InvalidToken: Bad signature, malformed, expired or wrong purpose
        """
        if not token:
            raise InvalidToken("Not a valid token")
        try:
            data: dict[str, Any] = jwt.decode(
                token,
                self._secret,
                algorithms=[self._algorithm],
                options={"require": ["exp"]},
            )
        except jwt.InvalidTokenError as e:
            raise InvalidToken("Not a valid token") from e

        if data.pop(PURPOSE_CLAIM, None) != purpose.value:
            raise InvalidToken("Not a valid token")
        data.pop("exp", None)
        data.pop("iat", None)
        return data
