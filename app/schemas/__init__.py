"""
Account Service - Schemas Module

Pydantic models for request/response validation.
"""

from app.schemas.user import (
    UserCreate,
    UserSummary,
    UserResponse,
    UserUpdate,
    PasswordUpdate,
)
from app.schemas.token import Token, RefreshRequest
from app.schemas.auth import (
    LoginRequest,
    VerifyOTPRequest,
    ResendOTPRequest,
    RequestCodeRequest,
    ResetPasswordRequest,
    MessageResponse,
    OTPSentResponse,
    RegisterResponse,
    AuthResponse,
    VerifyOTPResponse,
)

__all__ = [
    # User
    "UserCreate",
    "UserSummary",
    "UserResponse",
    "UserUpdate",
    "PasswordUpdate",
    # Token
    "Token",
    "RefreshRequest",
    # Auth
    "LoginRequest",
    "VerifyOTPRequest",
    "ResendOTPRequest",
    "RequestCodeRequest",
    "ResetPasswordRequest",
    "MessageResponse",
    "OTPSentResponse",
    "RegisterResponse",
    "AuthResponse",
    "VerifyOTPResponse",
]
