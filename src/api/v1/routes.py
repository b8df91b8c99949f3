"""
API v1 routes.

Defines REST endpoints for registration, login, email verification and
password reset. Handlers are plain functions, so FastAPI runs each request
in its threadpool; the domain outcome decides the HTTP status.
"""

from fastapi import APIRouter, Depends, HTTPException, status

from src.api.dependencies import get_identity_service
from src.api.models import (
    ErrorResponse,
    LoginRequest,
    LoginResponse,
    MessageResponse,
    PasswordResetConfirmRequest,
    PasswordResetRequest,
    RegisterRequest,
    VerifyRequest,
)
from src.domain.identity import IdentityService
from src.domain.models import IdentityResult, Outcome

router = APIRouter(tags=["v1"])

ERROR_STATUS = {
    Outcome.VALIDATION_ERROR: status.HTTP_400_BAD_REQUEST,
    Outcome.INVALID_TOKEN: status.HTTP_400_BAD_REQUEST,
    Outcome.UNAUTHORIZED: status.HTTP_401_UNAUTHORIZED,
    Outcome.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    Outcome.CONFLICT: status.HTTP_409_CONFLICT,
    Outcome.INTERNAL_ERROR: status.HTTP_500_INTERNAL_SERVER_ERROR,
}

_ERRORS = {code: {"model": ErrorResponse} for code in (400, 404, 500)}


def _raise_for_error(result: IdentityResult) -> None:
    if not result.ok:
        raise HTTPException(status_code=ERROR_STATUS[result.outcome], detail=result.message)


@router.post(
    "/register",
    response_model=MessageResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        400: {"model": ErrorResponse, "description": "Missing fields or invalid email"},
        409: {"model": ErrorResponse, "description": "User already exists"},
        500: {"model": ErrorResponse, "description": "Registration could not be completed"},
    },
    summary="Register a new user",
    description="Create an unverified account and email a verification link.",
)
def register(
    request_data: RegisterRequest,
    service: IdentityService = Depends(get_identity_service),
) -> MessageResponse:
    """
    Register a new user and send a verification link.

    - **username**: Unique username
    - **email**: Valid email address
    - **password**: Account password
    """
    result = service.register(request_data.username, request_data.email, request_data.password)
    _raise_for_error(result)
    return MessageResponse(message=result.message)


@router.post(
    "/login",
    response_model=LoginResponse,
    responses={
        400: {"model": ErrorResponse, "description": "Missing credentials"},
        401: {"model": ErrorResponse, "description": "Incorrect password"},
        404: {"model": ErrorResponse, "description": "User not found"},
    },
    summary="Log in",
    description="Check username and password and return a signed login token.",
)
def login(
    request_data: LoginRequest,
    service: IdentityService = Depends(get_identity_service),
) -> LoginResponse:
    """Authenticate and return a token valid for one hour."""
    result = service.login(request_data.username, request_data.password)
    _raise_for_error(result)
    return LoginResponse(message=result.message, token=result.token)


@router.get(
    "/verify/{token}",
    response_model=MessageResponse,
    responses=_ERRORS,
    summary="Verify email from link",
)
def verify_from_link(
    token: str,
    service: IdentityService = Depends(get_identity_service),
) -> MessageResponse:
    """Verify the email named by the token in the path."""
    result = service.verify_email(token)
    _raise_for_error(result)
    return MessageResponse(message=result.message)


@router.post(
    "/verify",
    response_model=MessageResponse,
    responses=_ERRORS,
    summary="Verify email",
)
def verify(
    request_data: VerifyRequest,
    service: IdentityService = Depends(get_identity_service),
) -> MessageResponse:
    """Verify the email named by the token in the body."""
    result = service.verify_email(request_data.token)
    _raise_for_error(result)
    return MessageResponse(message=result.message)


@router.post(
    "/password-reset",
    response_model=MessageResponse,
    responses=_ERRORS,
    summary="Request a password reset",
    description="Email a reset link valid for 15 minutes.",
)
def request_password_reset(
    request_data: PasswordResetRequest,
    service: IdentityService = Depends(get_identity_service),
) -> MessageResponse:
    result = service.request_password_reset(request_data.email)
    _raise_for_error(result)
    return MessageResponse(message=result.message)


@router.post(
    "/password-reset/confirm",
    response_model=MessageResponse,
    responses=_ERRORS,
    summary="Complete a password reset",
)
def confirm_password_reset(
    request_data: PasswordResetConfirmRequest,
    service: IdentityService = Depends(get_identity_service),
) -> MessageResponse:
    result = service.complete_password_reset(request_data.token, request_data.new_password)
    _raise_for_error(result)
    return MessageResponse(message=result.message)


@router.post(
    "/password-reset/{token}",
    response_model=MessageResponse,
    responses=_ERRORS,
    summary="Complete a password reset from link",
)
def confirm_password_reset_from_link(
    token: str,
    request_data: PasswordResetConfirmRequest,
    service: IdentityService = Depends(get_identity_service),
) -> MessageResponse:
    """A token in the body takes precedence over the one in the path."""
    result = service.complete_password_reset(
        request_data.token or token, request_data.new_password
    )
    _raise_for_error(result)
    return MessageResponse(message=result.message)
