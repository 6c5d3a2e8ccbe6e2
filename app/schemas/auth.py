"""
Auth Schemas

Pydantic models for authentication and OTP request/response validation.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, EmailStr, Field

from app.schemas.user import UserSummary


class LoginRequest(BaseModel):
    """Schema for login request."""

    email: EmailStr = Field(..., description="User's email address")
    password: str = Field(..., min_length=1, description="User's password")


class VerifyOTPRequest(BaseModel):
    """Schema for OTP verification request."""

    email: EmailStr = Field(..., description="User's email address")
    otp_code: str = Field(..., min_length=4, max_length=6, description="4 or 6-digit OTP code")
    context: str = Field(default="verification", description="Context the code was issued for")


class ResendOTPRequest(BaseModel):
    """Schema for resend OTP request."""

    email: EmailStr = Field(..., description="User's email address")
    context: str = Field(default="verification", description="Context to issue the code for")


class RequestCodeRequest(BaseModel):
    """Schema for password reset code request."""

    email: EmailStr = Field(..., description="User's email address")


class ResetPasswordRequest(BaseModel):
    """Schema for reset password request."""

    email: EmailStr = Field(..., description="User's email address")
    code: str = Field(..., min_length=6, max_length=6, description="6-digit reset code")
    new_password: str = Field(..., min_length=6, max_length=72, description="New password (6 to 72 characters)")


class MessageResponse(BaseModel):
    """Generic success response."""

    success: bool = True
    message: str


class OTPSentResponse(MessageResponse):
    """Response after a code has been issued."""

    expires_at: Optional[datetime] = None


class RegisterResponse(MessageResponse):
    """Response after registration (email verification still required)."""

    user: UserSummary


class AuthResponse(MessageResponse):
    """Response carrying session tokens."""

    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    user: UserSummary


class VerifyOTPResponse(MessageResponse):
    """
    Response after OTP verification.

    Tokens and user are present only for contexts that verify the account;
    a password reset verification returns the confirmation alone.
    """

    access_token: Optional[str] = None
    refresh_token: Optional[str] = None
    token_type: Optional[str] = None
    user: Optional[UserSummary] = None
