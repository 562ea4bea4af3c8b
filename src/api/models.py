"""
API request and response models.

Pydantic models for FastAPI endpoint validation and OpenAPI schema generation.
Field shape only: email format and password length rules are enforced by the
domain service, which reports them as 400 validation errors.
"""

from pydantic import BaseModel, Field


class RegisterRequest(BaseModel):
    """Request model for user registration."""

    email: str = Field(..., max_length=320, description="Email address to register")
    password: str = Field(..., max_length=128, description="Password (min 6 characters)")
    name: str | None = Field(default=None, max_length=200, description="Display name")


class LoginRequest(BaseModel):
    """Request model for password login."""

    email: str = Field(..., max_length=320)
    password: str = Field(..., max_length=128)


class EmailRequest(BaseModel):
    """Request model for endpoints that only take an email (reset, resend)."""

    email: str = Field(..., max_length=320)


class ResetPasswordRequest(BaseModel):
    """Request model for completing a password reset."""

    token: str = Field(..., description="Reset token from the email link")
    password: str = Field(..., max_length=128, description="New password (min 8 characters)")
    confirm_password: str = Field(..., max_length=128)


class MessageResponse(BaseModel):
    """Response model for outcomes that only carry a message."""

    message: str


class RegisterResponse(BaseModel):
    """Response model for successful registration."""

    message: str
    email: str


class SessionResponse(BaseModel):
    """Response model for outcomes that establish a session (login, verification)."""

    message: str
    email: str
    redirect_to: str


class VerifyResponse(BaseModel):
    """Response model for email verification, including the idempotent case."""

    message: str
    email: str
    already_verified: bool
    redirect_to: str | None = None


class RedirectResponse(BaseModel):
    """Response model for outcomes that tell the client where to go next."""

    message: str
    redirect_to: str


class AccountResponse(BaseModel):
    """Response model for the authenticated account."""

    id: str
    email: str
    display_name: str | None
    email_verified: bool


class ErrorResponse(BaseModel):
    """Standard error response model."""

    detail: str
