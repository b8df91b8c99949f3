"""
Adversarial tests for token forgery and misuse.

Verifies that an attacker cannot verify or take over an account by:
- Forging tokens with a different signing secret
- Editing the claim of a genuine token
- Replaying a verification token as a reset token (or vice versa)
- Presenting expired or unsigned tokens
"""

import base64
import json
from datetime import datetime, timedelta, timezone

import jwt
import pytest

from src.adapters.repository.memory import InMemoryCredentialStore
from src.adapters.security.tokens import JwtTokenService
from src.domain.identity import IdentityService
from src.domain.models import Outcome
from src.domain.ports import TokenPurpose

# Apply adversarial marker to all tests in this module
pytestmark = pytest.mark.adversarial

VICTIM = "victim@example.com"


@pytest.fixture
def registered(service: IdentityService) -> IdentityService:
    """Service with an unverified victim account."""
    assert service.register("victim", VICTIM, "pw123").ok
    return service


def stored_user(store: InMemoryCredentialStore, username: str = "victim"):
    with store.begin_transaction() as txn:
        return store.find_by_username(txn, username)


class TestForgedTokens:
    """Tokens not signed by the service are rejected."""

    def test_foreign_secret_cannot_reset(
        self, registered: IdentityService, store: InMemoryCredentialStore
    ) -> None:
        forger = JwtTokenService("attacker-controlled-secret-0123456789")
        forged = forger.issue({"email": VICTIM}, timedelta(hours=1), TokenPurpose.RESET)

        result = registered.complete_password_reset(forged, "owned")

        assert result.outcome == Outcome.INVALID_TOKEN
        assert not registered.login("victim", "owned").ok

    def test_foreign_secret_cannot_verify(
        self, registered: IdentityService, store: InMemoryCredentialStore
    ) -> None:
        forger = JwtTokenService("attacker-controlled-secret-0123456789")
        forged = forger.issue({"email": VICTIM}, timedelta(hours=1), TokenPurpose.VERIFICATION)

        assert registered.verify_email(forged).outcome == Outcome.INVALID_TOKEN
        assert stored_user(store).verified is False

    def test_unsigned_token_rejected(self, registered: IdentityService) -> None:
        """alg=none tokens must never be accepted."""
        unsigned = jwt.encode(
            {
                "email": VICTIM,
                "purpose": TokenPurpose.RESET.value,
                "exp": datetime.now(tz=timezone.utc) + timedelta(hours=1),
            },
            key=None,
            algorithm="none",
        )

        assert registered.complete_password_reset(unsigned, "owned").outcome == Outcome.INVALID_TOKEN

    def test_edited_claim_breaks_signature(
        self, registered: IdentityService, token_service: JwtTokenService
    ) -> None:
        """Swapping the email in a genuine token's payload invalidates it."""
        assert registered.register("attacker", "attacker@example.com", "pw123").ok
        genuine = token_service.issue(
            {"email": "attacker@example.com"}, timedelta(minutes=15), TokenPurpose.RESET
        )
        header, payload, signature = genuine.split(".")
        claims = json.loads(base64.urlsafe_b64decode(payload + "=" * (-len(payload) % 4)))
        claims["email"] = VICTIM
        edited = base64.urlsafe_b64encode(json.dumps(claims).encode()).rstrip(b"=").decode()

        result = registered.complete_password_reset(f"{header}.{edited}.{signature}", "owned")

        assert result.outcome == Outcome.INVALID_TOKEN
        assert not registered.login("victim", "owned").ok


class TestTokenMisuse:
    """Genuine tokens used outside their purpose or lifetime are rejected."""

    def test_verification_token_cannot_reset(
        self, registered: IdentityService, token_service: JwtTokenService
    ) -> None:
        token = token_service.issue({"email": VICTIM}, timedelta(hours=1), TokenPurpose.VERIFICATION)

        assert registered.complete_password_reset(token, "owned").outcome == Outcome.INVALID_TOKEN
        assert registered.login("victim", "pw123").ok

    def test_login_token_cannot_verify(
        self, registered: IdentityService, store: InMemoryCredentialStore
    ) -> None:
        token = registered.login("victim", "pw123").token

        assert registered.verify_email(token).outcome == Outcome.INVALID_TOKEN
        assert stored_user(store).verified is False

    def test_reset_token_cannot_verify(
        self, registered: IdentityService, token_service: JwtTokenService
    ) -> None:
        token = token_service.issue({"email": VICTIM}, timedelta(minutes=15), TokenPurpose.RESET)

        assert registered.verify_email(token).outcome == Outcome.INVALID_TOKEN

    def test_expired_reset_token_rejected(
        self, registered: IdentityService, token_service: JwtTokenService
    ) -> None:
        token = token_service.issue({"email": VICTIM}, timedelta(seconds=-1), TokenPurpose.RESET)

        assert registered.complete_password_reset(token, "owned").outcome == Outcome.INVALID_TOKEN

    @pytest.mark.parametrize("garbage", ["", "not.a.token", "a" * 4096, "..."])
    def test_garbage_tokens_rejected(self, registered: IdentityService, garbage: str) -> None:
        assert registered.verify_email(garbage).outcome == Outcome.INVALID_TOKEN
