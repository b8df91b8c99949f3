"""
API request and response models.

Pydantic models for FastAPI endpoint validation and OpenAPI schema generation.
Request fields are optional at this layer: a JSON object with absent fields
reaches the domain, which reports missing values and bad email syntax as 400
validation errors. A missing body or a non-string field fails request parsing
and gets FastAPI's 422 response instead.
"""

from pydantic import BaseModel, Field


class RegisterRequest(BaseModel):
    """Request model for user registration."""

    username: str | None = Field(None, description="Unique username")
    email: str | None = Field(None, description="Email address to verify")
    password: str | None = Field(None, description="Account password")


class LoginRequest(BaseModel):
    """Request model for login."""

    username: str | None = None
    password: str | None = None


class VerifyRequest(BaseModel):
    """Request model for email verification with a body token."""

    token: str | None = None


class PasswordResetRequest(BaseModel):
    """Request model for starting a password reset."""

    email: str | None = None


class PasswordResetConfirmRequest(BaseModel):
    """Request model for completing a password reset."""

    token: str | None = Field(None, description="Reset token; overrides a token in the path")
    new_password: str | None = None


class MessageResponse(BaseModel):
    """Response model for successful operations."""

    message: str


class LoginResponse(BaseModel):
    """Response model for successful login."""

    message: str
    token: str


class ErrorResponse(BaseModel):
    """Standard error response model."""

    detail: str
