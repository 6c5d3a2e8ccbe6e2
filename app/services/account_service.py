"""
Account Service

Account lifecycle flows (register, login, OTP verification, password
reset, session refresh and profile management) built on the OTP service.

Failures are raised as ``AccountError`` subclasses; the API layer renders
them through the registered exception handler.
"""

import logging
import uuid
from dataclasses import dataclass
from typing import List, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import (
    BadRequestError,
    ConflictError,
    ForbiddenError,
    InternalError,
    NotFoundError,
    UnauthorizedError,
    from_otp_result,
)
from app.core.security import (
    MAX_PASSWORD_BYTES,
    create_access_token,
    create_refresh_token,
    decode_refresh_token,
    hash_password,
    verify_password,
)
from app.models.enums import OTPContext, UserRole
from app.models.user import User
from app.schemas.user import UserCreate, UserUpdate
from app.services import email_service, otp_service
from app.services.otp_service import OTPResult


logger = logging.getLogger(__name__)


@dataclass
class SessionTokens:
    """Access/refresh token pair issued on successful authentication."""

    access_token: str
    refresh_token: str


def parse_context(value: str) -> OTPContext:
    """
    Validate a context string from the API.

    Raises:
        BadRequestError: If the value is not one of the known contexts.
    """
    try:
        return OTPContext(value)
    except ValueError:
        allowed = ", ".join(context.value for context in OTPContext)
        raise BadRequestError(f"Invalid context. Accepted values are: {allowed}")


def _check_password_length(password: str) -> None:
    # Multi-byte characters can pass the schema limit and still overflow bcrypt
    if len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
        raise BadRequestError(f"Password must not exceed {MAX_PASSWORD_BYTES} bytes.")


async def get_user_by_email(db: AsyncSession, email: str) -> Optional[User]:
    result = await db.execute(
        select(User).where(User.email == email.lower())
    )
    return result.scalar_one_or_none()


async def get_user_by_id(db: AsyncSession, user_id: uuid.UUID) -> Optional[User]:
    result = await db.execute(
        select(User).where(User.id == user_id)
    )
    return result.scalar_one_or_none()


async def _commit(db: AsyncSession, action: str) -> None:
    """Commit the session, turning store failures into a generic InternalError."""
    try:
        await db.commit()
    except SQLAlchemyError:
        await db.rollback()
        logger.exception(f"Database error during {action}")
        raise InternalError("An internal error occurred. Please try again later.")


async def _issue_session(db: AsyncSession, user: User) -> SessionTokens:
    """Create a token pair and remember the refresh token on the user."""
    tokens = SessionTokens(
        access_token=create_access_token(
            subject=user.id,
            email=user.email,
            role=user.role.value if user.role else None,
        ),
        refresh_token=create_refresh_token(subject=user.id),
    )
    user.refresh_token = tokens.refresh_token
    await _commit(db, "session issue")
    return tokens


# ============== Registration & Login ==============

async def register(db: AsyncSession, data: UserCreate, ip: str = "unknown") -> User:
    """
    Create an unverified account and send it a registration code.

    Raises:
        ConflictError: If the email is already registered (no code is sent).
        InternalError: If the account or its code could not be stored.
    """
    _check_password_length(data.password)
    email = data.email.lower()

    if await get_user_by_email(db, email) is not None:
        logger.info(f"Registration refused, email already exists: {email}")
        raise ConflictError("A user with this email already exists.")

    user = User(
        id=uuid.uuid4(),
        email=email,
        password_hash=hash_password(data.password),
        first_name=data.first_name,
        last_name=data.last_name,
        phone=data.phone,
        role=UserRole.CLIENT,
        is_verified=False,
        otp_attempts=0,
    )
    db.add(user)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ConflictError("A user with this email already exists.")
    except SQLAlchemyError:
        await db.rollback()
        logger.exception(f"Database error while registering {email}")
        raise InternalError("An internal error occurred. Please try again later.")
    await db.refresh(user)
    logger.info(f"User registered: {email} (id={user.id})")

    result = await otp_service.generate_and_send(db, email, OTPContext.REGISTRATION, ip)
    if not result.success:
        logger.error(f"Registration code could not be issued for {email}: {result.status.value}")
        raise InternalError("Error while sending the verification code.")

    return user


async def login(
    db: AsyncSession,
    email: str,
    password: str,
    ip: str = "unknown",
) -> Tuple[User, SessionTokens]:
    """
    Authenticate with email and password.

    Unverified accounts get a fresh login code and are refused a session.

    Raises:
        NotFoundError: Unknown email.
        UnauthorizedError: Wrong password.
        ForbiddenError: Account not verified yet.
        LockedError: Account unverified and locked, so no code could be sent.
    """
    user = await get_user_by_email(db, email)
    if user is None:
        raise NotFoundError("User not found.")

    if not verify_password(password, user.password_hash):
        logger.info(f"Login failed (bad password) for {email} from IP {ip}")
        raise UnauthorizedError("Incorrect password.")

    if not user.is_verified:
        result = await otp_service.generate_and_send(db, user.email, OTPContext.LOGIN, ip)
        if not result.success:
            raise from_otp_result(result)
        raise ForbiddenError(
            "Your account is not verified. A new verification code has been sent to your email."
        )

    tokens = await _issue_session(db, user)
    logger.info(f"Login succeeded for {email} from IP {ip}")
    return user, tokens


# ============== OTP Flows ==============

async def request_code(db: AsyncSession, email: str, ip: str = "unknown") -> OTPResult:
    """Send a password reset code."""
    result = await otp_service.generate_and_send(db, email, OTPContext.PASSWORD_RESET, ip)
    if not result.success:
        raise from_otp_result(result)
    return result


async def resend_otp(
    db: AsyncSession,
    email: str,
    context: str = OTPContext.VERIFICATION.value,
    ip: str = "unknown",
) -> OTPResult:
    """
    Issue a new code for a caller-chosen context.

    Raises:
        BadRequestError: Unknown context.
    """
    otp_context = parse_context(context)
    result = await otp_service.generate_and_send(db, email, otp_context, ip)
    if not result.success:
        raise from_otp_result(result)
    return result


async def verify_otp(
    db: AsyncSession,
    email: str,
    code: str,
    context: str = OTPContext.VERIFICATION.value,
    ip: str = "unknown",
) -> Tuple[User, Optional[SessionTokens]]:
    """
    Verify a code and apply the context's side effects.

    For contexts that consume the code, the account is marked verified,
    the OTP state is cleared and a session is issued. A password reset
    code stays active for ``reset_password`` and no session is issued.

    Returns:
        Tuple of (user, tokens); tokens is None for password reset.
    """
    otp_context = parse_context(context)
    result = await otp_service.verify(db, email, code, otp_context, ip)
    if not result.success:
        raise from_otp_result(result)

    user = result.user
    if not otp_context.consumes_on_verify:
        return user, None

    user.is_verified = True
    user.otp = user.otp.cleared()
    tokens = await _issue_session(db, user)
    logger.info(f"Account verified: {user.email} ({otp_context.value})")
    return user, tokens


async def reset_password(
    db: AsyncSession,
    email: str,
    code: str,
    new_password: str,
    ip: str = "unknown",
) -> User:
    """
    Set a new password after re-verifying the password reset code.

    The code is cleared only once the new password is stored, then a
    confirmation notice is emailed.
    """
    _check_password_length(new_password)

    result = await otp_service.verify(db, email, code, OTPContext.PASSWORD_RESET, ip)
    if not result.success:
        raise from_otp_result(result)

    user = result.user
    user.password_hash = hash_password(new_password)
    user.otp = user.otp.cleared()
    await _commit(db, "password reset")

    await email_service.send_password_changed_email(user.email, user.display_name)
    logger.info(f"Password reset succeeded for {user.email} from IP {ip}")
    return user


# ============== Session ==============

async def refresh_access_token(db: AsyncSession, refresh_token: Optional[str]) -> str:
    """
    Issue a new access token from a stored refresh token.

    Raises:
        UnauthorizedError: No token supplied.
        ForbiddenError: Token invalid, expired, or not the one on record.
    """
    if not refresh_token:
        raise UnauthorizedError("Missing refresh token.")

    payload = decode_refresh_token(refresh_token)
    if payload is None:
        raise ForbiddenError("Token expired or invalid.")

    try:
        user_id = uuid.UUID(payload.get("sub", ""))
    except ValueError:
        raise ForbiddenError("Invalid token.")

    user = await get_user_by_id(db, user_id)
    if user is None or user.refresh_token != refresh_token:
        raise ForbiddenError("Invalid token.")

    return create_access_token(
        subject=user.id,
        email=user.email,
        role=user.role.value if user.role else None,
    )


async def logout(db: AsyncSession, user: User) -> None:
    """Forget the user's refresh token."""
    user.refresh_token = None
    await _commit(db, "logout")
    logger.info(f"Logout: {user.email}")


# ============== Profile ==============

async def update_profile(db: AsyncSession, user: User, changes: UserUpdate) -> User:
    """
    Apply the provided profile fields.

    Raises:
        ConflictError: New email already belongs to another account.
    """
    updates = changes.model_dump(exclude_unset=True, exclude_none=True)

    new_email = updates.pop("email", None)
    if new_email and new_email.lower() != user.email:
        if await get_user_by_email(db, new_email) is not None:
            raise ConflictError("A user with this email already exists.")
        user.email = new_email.lower()

    for field, value in updates.items():
        setattr(user, field, value)

    await _commit(db, "profile update")
    await db.refresh(user)
    return user


async def update_password(
    db: AsyncSession,
    user: User,
    current_password: str,
    new_password: str,
) -> None:
    """
    Change the password of an authenticated user.

    Raises:
        UnauthorizedError: Current password is wrong.
    """
    if not verify_password(current_password, user.password_hash):
        raise UnauthorizedError("Current password is incorrect.")

    _check_password_length(new_password)
    user.password_hash = hash_password(new_password)
    await _commit(db, "password update")
    await email_service.send_password_changed_email(user.email, user.display_name)


async def delete_account(db: AsyncSession, user: User) -> None:
    """Delete the user's account."""
    await db.delete(user)
    await _commit(db, "account deletion")
    logger.info(f"Account deleted: {user.email}")


async def list_profiles(db: AsyncSession, current_user: User) -> List[User]:
    """
    List every account.

    Raises:
        ForbiddenError: Caller is not an admin.
    """
    if current_user.role != UserRole.ADMIN:
        raise ForbiddenError("Admin access required.")

    result = await db.execute(select(User).order_by(User.created_at))
    return list(result.scalars().all())
