"""
Authentication Routes

Handles registration, login, OTP verification, password reset and
session refresh endpoints.
"""

from typing import Annotated, Optional

from fastapi import APIRouter, Cookie, Depends, Request, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_client_ip, get_current_user
from app.core.config import settings
from app.core.database import get_db
from app.models.user import User
from app.schemas.auth import (
    AuthResponse,
    LoginRequest,
    MessageResponse,
    OTPSentResponse,
    RegisterResponse,
    RequestCodeRequest,
    ResendOTPRequest,
    ResetPasswordRequest,
    VerifyOTPRequest,
    VerifyOTPResponse,
)
from app.schemas.token import RefreshRequest, Token
from app.schemas.user import UserCreate, UserSummary
from app.services import account_service


router = APIRouter(prefix="/auth", tags=["Authentication"])

REFRESH_COOKIE = "refresh_token"


def _set_refresh_cookie(response: Response, refresh_token: str) -> None:
    response.set_cookie(
        key=REFRESH_COOKIE,
        value=refresh_token,
        httponly=True,
        secure=not settings.is_development,
        samesite="strict",
        max_age=settings.REFRESH_TOKEN_EXPIRE_DAYS * 24 * 60 * 60,
    )


@router.post(
    "/register",
    response_model=RegisterResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a new account (requires email verification)",
)
async def register(
    user_data: UserCreate,
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db)],
) -> RegisterResponse:
    """
    Create an unverified account and email a 4-digit registration code.

    **Flow:**
    1. Reject duplicate emails (409)
    2. Hash the password and store the account with is_verified=False
    3. Generate and send the registration code

    Raises:
        409 if the email is already registered.
        500 if the code could not be issued.
    """
    user = await account_service.register(db, user_data, get_client_ip(request))
    return RegisterResponse(
        message="User registered. Please check your email to activate your account.",
        user=UserSummary.model_validate(user),
    )


@router.post(
    "/login",
    response_model=AuthResponse,
    summary="Login and get access token",
)
async def login(
    data: LoginRequest,
    request: Request,
    response: Response,
    db: Annotated[AsyncSession, Depends(get_db)],
) -> AuthResponse:
    """
    Authenticate with email and password.

    Unverified accounts receive a new code and get a 403 instead of a
    session. On success the refresh token is also set as an httpOnly cookie.

    Raises:
        404 unknown email, 401 wrong password, 403 account not verified.
    """
    user, tokens = await account_service.login(
        db, data.email, data.password, get_client_ip(request)
    )
    _set_refresh_cookie(response, tokens.refresh_token)
    return AuthResponse(
        message="Login successful.",
        access_token=tokens.access_token,
        refresh_token=tokens.refresh_token,
        user=UserSummary.model_validate(user),
    )


@router.post(
    "/verify-otp",
    response_model=VerifyOTPResponse,
    response_model_exclude_none=True,
    summary="Verify an OTP code",
)
async def verify_otp(
    data: VerifyOTPRequest,
    request: Request,
    response: Response,
    db: Annotated[AsyncSession, Depends(get_db)],
) -> VerifyOTPResponse:
    """
    Verify a code for the given context.

    For registration, login and verification the account becomes verified
    and a session is returned. For password_reset only a confirmation is
    returned; follow up with /reset-password using the same code.

    Raises:
        400 invalid context / invalid, expired or missing code
        (``attempts_left`` present for a wrong code), 404 unknown email,
        429 locked (``lock_until`` present).
    """
    user, tokens = await account_service.verify_otp(
        db, data.email, data.otp_code, data.context, get_client_ip(request)
    )

    if tokens is None:
        return VerifyOTPResponse(message="Reset code verified successfully.")

    _set_refresh_cookie(response, tokens.refresh_token)
    return VerifyOTPResponse(
        message="Account verified successfully.",
        access_token=tokens.access_token,
        refresh_token=tokens.refresh_token,
        token_type="bearer",
        user=UserSummary.model_validate(user),
    )


@router.post(
    "/request-code",
    response_model=OTPSentResponse,
    summary="Request a password reset code",
)
async def request_code(
    data: RequestCodeRequest,
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db)],
) -> OTPSentResponse:
    """
    Email a 6-digit password reset code.

    Raises:
        404 unknown email, 429 locked.
    """
    result = await account_service.request_code(db, data.email, get_client_ip(request))
    return OTPSentResponse(
        message="Reset code sent to your email.",
        expires_at=result.expires_at,
    )


@router.post(
    "/reset-password",
    response_model=MessageResponse,
    summary="Reset password with the reset code",
)
async def reset_password(
    data: ResetPasswordRequest,
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db)],
) -> MessageResponse:
    """
    Verify the reset code, store the new password and clear the code.

    Raises:
        400 invalid/expired/missing code, 404 unknown email, 429 locked.
    """
    await account_service.reset_password(
        db, data.email, data.code, data.new_password, get_client_ip(request)
    )
    return MessageResponse(message="Password reset successfully.")


@router.post(
    "/resend-otp",
    response_model=OTPSentResponse,
    summary="Resend an OTP code",
)
async def resend_otp(
    data: ResendOTPRequest,
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db)],
) -> OTPSentResponse:
    """
    Issue a new code for registration, login, password_reset or verification.

    Raises:
        400 invalid context, 404 unknown email, 429 locked.
    """
    result = await account_service.resend_otp(
        db, data.email, data.context, get_client_ip(request)
    )
    return OTPSentResponse(
        message="A new verification code has been sent to your email.",
        expires_at=result.expires_at,
    )


@router.post(
    "/refresh",
    response_model=Token,
    summary="Get a new access token",
)
async def refresh(
    db: Annotated[AsyncSession, Depends(get_db)],
    data: Optional[RefreshRequest] = None,
    refresh_token: Annotated[Optional[str], Cookie(alias=REFRESH_COOKIE)] = None,
) -> Token:
    """
    Exchange the refresh token (cookie or body) for a new access token.

    Raises:
        401 no token, 403 invalid or revoked token.
    """
    token = refresh_token or (data.refresh_token if data else None)
    access_token = await account_service.refresh_access_token(db, token)
    return Token(access_token=access_token)


@router.post(
    "/logout",
    response_model=MessageResponse,
    summary="Logout and revoke the refresh token",
)
async def logout(
    response: Response,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> MessageResponse:
    """Revoke the stored refresh token and clear the cookie."""
    await account_service.logout(db, current_user)
    response.delete_cookie(
        REFRESH_COOKIE,
        httponly=True,
        secure=not settings.is_development,
        samesite="strict",
    )
    return MessageResponse(message="Logged out successfully.")
