"""
OTP Service

Generates, stores and verifies one-time codes, enforcing expiry and
attempt-based lockout.

Both entry points return an ``OTPResult`` and never raise: store failures
are logged and reported as ``OTPStatus.INTERNAL``.
"""

import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.security import hash_password, verify_password
from app.models.enums import OTPContext, OTPStatus
from app.models.otp_state import OTPState, utcnow
from app.models.user import User
from app.services import email_service


logger = logging.getLogger(__name__)

INTERNAL_ERROR_MESSAGE = "An internal error occurred. Please try again later."


@dataclass
class OTPResult:
    """
    Outcome of an OTP operation.

    ``lock_until`` is set only for LOCKED results and ``attempts_left`` only
    for INVALID_CODE; callers branch on their presence.
    """

    status: OTPStatus
    message: str
    user: Optional[User] = None
    expires_at: Optional[datetime] = None
    lock_until: Optional[datetime] = None
    attempts_left: Optional[int] = None

    @property
    def success(self) -> bool:
        return self.status is OTPStatus.SUCCESS


def _coerce_context(value: OTPContext | str) -> OTPContext:
    # Unknown tags get the generic code and template
    try:
        return OTPContext(value)
    except ValueError:
        return OTPContext.VERIFICATION


def generate_otp(context: OTPContext) -> str:
    """Generate a uniformly random numeric code sized for the context."""
    low = 10 ** (context.code_length - 1)
    return str(secrets.randbelow(9 * low) + low)


def hash_otp(code: str) -> str:
    """Hash an OTP code with bcrypt at the OTP work factor."""
    return hash_password(code, rounds=settings.OTP_HASH_ROUNDS)


async def _get_user_for_update(db: AsyncSession, email: str) -> Optional[User]:
    # Row lock so concurrent requests on one account serialize their read-modify-write
    result = await db.execute(
        select(User).where(User.email == email.lower()).with_for_update()
    )
    return result.scalar_one_or_none()


def _locked_result(state: OTPState, now: datetime, message: Optional[str] = None) -> OTPResult:
    minutes = state.lock_minutes_remaining(now)
    return OTPResult(
        status=OTPStatus.LOCKED,
        message=message or f"Too many failed attempts. Please try again in {minutes} minute(s).",
        lock_until=state.lock_until,
    )


async def generate_and_send(
    db: AsyncSession,
    email: str,
    context: OTPContext = OTPContext.VERIFICATION,
    ip: str = "unknown",
) -> OTPResult:
    """
    Issue a new OTP for the account and email it.

    The new code overwrites any previous one, resets the attempt counter
    and clears an elapsed lock. The record is committed before the email is
    sent; a delivery failure is logged and does not roll the code back.

    Args:
        db: Database session.
        email: Account email.
        context: Reason the code is issued (selects length and email template).
        ip: Origin of the request, recorded for audit.

    Returns:
        OTPResult: SUCCESS with ``expires_at``, or NOT_FOUND / LOCKED / INTERNAL.
    """
    context = _coerce_context(context)
    now = utcnow()

    try:
        user = await _get_user_for_update(db, email)
        if user is None:
            return OTPResult(status=OTPStatus.NOT_FOUND, message="User not found.")

        state = user.otp
        if state.is_locked(now):
            logger.info(f"OTP issue refused for {email} ({context.value}) from IP {ip}: account locked")
            return _locked_result(state, now)

        plain_otp = generate_otp(context)
        user.otp = state.issued(
            code_hash=hash_otp(plain_otp),
            context=context.value,
            ip=ip,
            now=now,
            ttl=timedelta(minutes=settings.OTP_EXPIRE_MINUTES),
        )
        await db.commit()
    except SQLAlchemyError:
        await db.rollback()
        logger.exception(f"Failed to store OTP for {email} ({context.value})")
        return OTPResult(status=OTPStatus.INTERNAL, message=INTERNAL_ERROR_MESSAGE)

    sent = await email_service.send_otp_email(user.email, plain_otp, context, user.display_name)
    if not sent:
        logger.warning(f"OTP for {email} ({context.value}) stored but email delivery failed")

    logger.info(f"OTP issued for {email} ({context.value}) from IP {ip}")

    return OTPResult(
        status=OTPStatus.SUCCESS,
        message="Verification code generated and sent.",
        user=user,
        expires_at=user.otp_expires_at,
    )


async def verify(
    db: AsyncSession,
    email: str,
    code: str,
    context: OTPContext = OTPContext.VERIFICATION,
    ip: str = "unknown",
) -> OTPResult:
    """
    Check a candidate code against the account's active OTP.

    Checks run in order: account exists, not locked, a code is active, the
    code has not expired, the code matches. A mismatch consumes an attempt;
    the attempt that reaches OTP_MAX_ATTEMPTS locks the account and returns
    LOCKED. A match leaves the OTP fields untouched: clearing them is up to
    the caller since it depends on the context.

    Args:
        db: Database session.
        email: Account email.
        code: Candidate code.
        context: Context the caller is verifying for (logged).
        ip: Origin of the request (logged).

    Returns:
        OTPResult: SUCCESS with ``user``, or NOT_FOUND / LOCKED / NO_ACTIVE_CODE /
        EXPIRED / INVALID_CODE (with ``attempts_left``) / INTERNAL.
    """
    context = _coerce_context(context)
    now = utcnow()

    try:
        user = await _get_user_for_update(db, email)
        if user is None:
            return OTPResult(status=OTPStatus.NOT_FOUND, message="User not found.")

        state = user.otp
        if state.is_locked(now):
            return _locked_result(state, now)

        if not state.has_code:
            return OTPResult(
                status=OTPStatus.NO_ACTIVE_CODE,
                message="No verification code found. Please request a new code.",
            )

        if state.is_expired(now):
            logger.info(f"OTP verification failed (expired) for {email} ({context.value}) from IP {ip}")
            return OTPResult(status=OTPStatus.EXPIRED, message="Verification code has expired.")

        if not verify_password(code, state.code_hash):
            state = state.record_failure(
                now,
                max_attempts=settings.OTP_MAX_ATTEMPTS,
                lock_duration=timedelta(minutes=settings.OTP_LOCK_MINUTES),
            )
            user.otp = state
            await db.commit()

            if state.is_locked(now):
                logger.warning(
                    f"Account locked for {email} after {settings.OTP_MAX_ATTEMPTS} failed OTP attempts from IP {ip}"
                )
                return _locked_result(
                    state,
                    now,
                    message=(
                        "Too many failed attempts. Your account is temporarily locked "
                        f"for {settings.OTP_LOCK_MINUTES} minutes."
                    ),
                )

            attempts_left = settings.OTP_MAX_ATTEMPTS - state.attempts
            logger.info(
                f"OTP verification failed ({state.attempts}/{settings.OTP_MAX_ATTEMPTS}) "
                f"for {email} ({context.value}) from IP {ip}"
            )
            return OTPResult(
                status=OTPStatus.INVALID_CODE,
                message=f"Invalid verification code. {attempts_left} attempt(s) left.",
                attempts_left=attempts_left,
            )
    except SQLAlchemyError:
        await db.rollback()
        logger.exception(f"Failed to verify OTP for {email} ({context.value})")
        return OTPResult(status=OTPStatus.INTERNAL, message=INTERNAL_ERROR_MESSAGE)

    logger.info(f"OTP verification succeeded for {email} ({context.value}) from IP {ip}")
    return OTPResult(status=OTPStatus.SUCCESS, message="Verification code is valid.", user=user)
