"""
Unit tests for API request/response models.

Tests Pydantic model validation for the identity endpoints.
"""

import pytest
from pydantic import ValidationError

from src.api.models import (
    ErrorResponse,
    LoginRequest,
    LoginResponse,
    MessageResponse,
    PasswordResetConfirmRequest,
    RegisterRequest,
)


class TestRegisterRequest:
    """Tests for RegisterRequest model."""

    def test_valid_register_request(self) -> None:
        request = RegisterRequest(username="alice", email="alice@example.com", password="pw123")
        assert request.username == "alice"
        assert request.email == "alice@example.com"
        assert request.password == "pw123"

    def test_fields_are_optional(self) -> None:
        """Presence is checked by the domain, not by the model."""
        request = RegisterRequest()
        assert request.username is None
        assert request.email is None
        assert request.password is None

    def test_email_is_not_rewritten(self) -> None:
        """Normalization happens in the domain."""
        request = RegisterRequest(email="USER@EXAMPLE.COM")
        assert request.email == "USER@EXAMPLE.COM"

    def test_non_string_rejected(self) -> None:
        with pytest.raises(ValidationError):
            RegisterRequest(username=123)  # type: ignore[arg-type]


class TestOtherRequests:
    def test_login_request_defaults(self) -> None:
        assert LoginRequest().password is None

    def test_reset_confirm_request(self) -> None:
        request = PasswordResetConfirmRequest(new_password="new")
        assert request.token is None
        assert request.new_password == "new"


class TestResponses:
    def test_message_response(self) -> None:
        assert MessageResponse(message="ok").model_dump() == {"message": "ok"}

    def test_login_response_requires_token(self) -> None:
        with pytest.raises(ValidationError):
            LoginResponse(message="ok")  # type: ignore[call-arg]

    def test_error_response(self) -> None:
        assert ErrorResponse(detail="nope").detail == "nope"
