"""
API v1 routes.

Defines REST endpoints for the account lifecycle. Domain Failure results
are mapped to HTTP errors here; the session handle travels in an
HttpOnly cookie.
"""

from typing import NoReturn

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status

from src.api.dependencies import (
    get_client_info,
    get_current_account,
    get_lifecycle_service,
    get_session_token,
)
from src.api.models import (
    AccountResponse,
    EmailRequest,
    ErrorResponse,
    LoginRequest,
    MessageResponse,
    RedirectResponse,
    RegisterRequest,
    RegisterResponse,
    ResetPasswordRequest,
    SessionResponse,
    VerifyResponse,
)
from src.config.settings import get_settings
from src.domain.lifecycle import AccountLifecycleService
from src.domain.models import Account, ClientInfo
from src.domain.ports import ErrorKind, Failure

router = APIRouter(tags=["v1"])

_STATUS_BY_KIND = {
    ErrorKind.VALIDATION: status.HTTP_400_BAD_REQUEST,
    ErrorKind.CONFLICT: status.HTTP_409_CONFLICT,
    ErrorKind.AUTH: status.HTTP_401_UNAUTHORIZED,
    ErrorKind.UNVERIFIED: status.HTTP_403_FORBIDDEN,
    ErrorKind.INVALID_TOKEN: status.HTTP_400_BAD_REQUEST,
    ErrorKind.UNAUTHENTICATED: status.HTTP_401_UNAUTHORIZED,
}


def _raise_for(failure: Failure) -> NoReturn:
    raise HTTPException(status_code=_STATUS_BY_KIND[failure.kind], detail=failure.message)


def _set_session_cookie(response: Response, session: str) -> None:
    settings = get_settings()
    response.set_cookie(
        key=settings.session_cookie_name,
        value=session,
        max_age=settings.session_ttl_hours * 3600,
        httponly=True,
        secure=settings.session_cookie_secure,
        samesite="lax",
    )


@router.post(
    "/register",
    response_model=RegisterResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        400: {"model": ErrorResponse, "description": "Invalid email or password"},
        409: {"model": ErrorResponse, "description": "Email already registered"},
    },
    summary="Register a new account",
    description="Create an unverified account. A verification link is sent to the email address.",
)
def register(
    request_data: RegisterRequest,
    service: AccountLifecycleService = Depends(get_lifecycle_service),
) -> RegisterResponse:
    """
    Register a new account and send a verification link.

    - **email**: Email address to register
    - **password**: Password (minimum 6 characters)
    - **name**: Optional display name

    No session is created; the account must be verified first.
    """
    result = service.register(request_data.email, request_data.password, request_data.name)
    if isinstance(result, Failure):
        _raise_for(result)
    return RegisterResponse(message=result.message, email=result.email)


@router.post(
    "/login",
    response_model=SessionResponse,
    responses={
        400: {"model": ErrorResponse, "description": "Malformed input"},
        401: {"model": ErrorResponse, "description": "Invalid email or password"},
        403: {"model": ErrorResponse, "description": "Email not verified"},
    },
    summary="Log in with email and password",
)
def login(
    request_data: LoginRequest,
    response: Response,
    client: ClientInfo = Depends(get_client_info),
    service: AccountLifecycleService = Depends(get_lifecycle_service),
) -> SessionResponse:
    """
    Log in and receive a session cookie.

    Unknown email and wrong password return the same 401 response.
    """
    result = service.login(request_data.email, request_data.password, client)
    if isinstance(result, Failure):
        _raise_for(result)
    _set_session_cookie(response, result.session)
    return SessionResponse(message=result.message, email=result.email, redirect_to=result.redirect_to)


@router.get(
    "/verify",
    response_model=VerifyResponse,
    responses={400: {"model": ErrorResponse, "description": "Invalid or expired token"}},
    summary="Verify an email address",
    description="Consume the verification token from the email link. "
    "On first use the account is activated and a session cookie is set.",
)
def verify(
    response: Response,
    token: str = Query(default=""),
    service: AccountLifecycleService = Depends(get_lifecycle_service),
) -> VerifyResponse:
    result = service.verify_email(token)
    if isinstance(result, Failure):
        _raise_for(result)
    if result.session is not None:
        _set_session_cookie(response, result.session)
    return VerifyResponse(
        message=result.message,
        email=result.email,
        already_verified=result.already_verified,
        redirect_to=result.redirect_to,
    )


@router.post(
    "/verify/resend",
    response_model=MessageResponse,
    responses={400: {"model": ErrorResponse, "description": "Invalid email address"}},
    summary="Resend the verification link",
)
def resend_verification(
    request_data: EmailRequest,
    service: AccountLifecycleService = Depends(get_lifecycle_service),
) -> MessageResponse:
    """Always returns the same message for a well-formed email."""
    result = service.resend_verification(request_data.email)
    if isinstance(result, Failure):
        _raise_for(result)
    return MessageResponse(message=result.message)


@router.post(
    "/password-reset",
    response_model=MessageResponse,
    responses={400: {"model": ErrorResponse, "description": "Invalid email address"}},
    summary="Request a password reset link",
    description="Always returns the same message whether or not the account exists.",
)
def request_password_reset(
    request_data: EmailRequest,
    service: AccountLifecycleService = Depends(get_lifecycle_service),
) -> MessageResponse:
    result = service.request_password_reset(request_data.email)
    if isinstance(result, Failure):
        _raise_for(result)
    return MessageResponse(message=result.message)


@router.get(
    "/password-reset",
    response_model=MessageResponse,
    responses={400: {"model": ErrorResponse, "description": "Invalid or expired token"}},
    summary="Check a password reset token",
)
def validate_reset_token(
    token: str = Query(default=""),
    service: AccountLifecycleService = Depends(get_lifecycle_service),
) -> MessageResponse:
    result = service.validate_reset_token(token)
    if isinstance(result, Failure):
        _raise_for(result)
    return MessageResponse(message=result.message)


@router.post(
    "/password-reset/confirm",
    response_model=RedirectResponse,
    responses={400: {"model": ErrorResponse, "description": "Invalid password or token"}},
    summary="Set a new password with a reset token",
)
def reset_password(
    request_data: ResetPasswordRequest,
    service: AccountLifecycleService = Depends(get_lifecycle_service),
) -> RedirectResponse:
    """
    Complete a password reset.

    No session is created; the client is sent back to the login page.
    """
    result = service.reset_password(
        request_data.token, request_data.password, request_data.confirm_password
    )
    if isinstance(result, Failure):
        _raise_for(result)
    return RedirectResponse(message=result.message, redirect_to=result.redirect_to)


@router.post(
    "/logout",
    response_model=RedirectResponse,
    summary="Log out",
)
def logout(
    response: Response,
    session: str | None = Depends(get_session_token),
    service: AccountLifecycleService = Depends(get_lifecycle_service),
) -> RedirectResponse:
    """Destroy the session and clear the cookie. Safe to call without a session."""
    result = service.logout(session)
    response.delete_cookie(get_settings().session_cookie_name)
    return RedirectResponse(message=result.message, redirect_to=result.redirect_to)


@router.get(
    "/me",
    response_model=AccountResponse,
    responses={401: {"model": ErrorResponse, "description": "Authentication required"}},
    summary="Get the logged-in account",
)
def me(account: Account = Depends(get_current_account)) -> AccountResponse:
    return AccountResponse(
        id=account.id,
        email=account.email,
        display_name=account.display_name,
        email_verified=account.email_verified,
    )
