"""
OTP State

The OTP fields embedded in an account row, as one owned value object.
Transitions return new instances; the OTP service writes them back
through ``User.otp``.
"""

import math
from dataclasses import dataclass, replace
from datetime import datetime, timedelta, timezone
from typing import Optional


def utcnow() -> datetime:
    """Single clock source for every OTP timestamp comparison."""
    return datetime.now(timezone.utc)


def as_aware(value: Optional[datetime]) -> Optional[datetime]:
    """Treat naive timestamps coming back from the database as UTC."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


@dataclass(frozen=True)
class OTPState:
    """
    Current one-time code of an account.

    Attributes:
        code_hash: bcrypt digest of the active code, or None.
        expires_at: When the active code stops being valid.
        attempts: Consecutive failed verifications against the active code.
        lock_until: Until when every verification is rejected, or None.
        last_action: Context of the most recently issued code.
        last_ip: Origin of the most recent issuing request.
    """

    code_hash: Optional[str] = None
    expires_at: Optional[datetime] = None
    attempts: int = 0
    lock_until: Optional[datetime] = None
    last_action: Optional[str] = None
    last_ip: Optional[str] = None

    @property
    def has_code(self) -> bool:
        return bool(self.code_hash)

    def is_locked(self, now: datetime) -> bool:
        lock_until = as_aware(self.lock_until)
        return lock_until is not None and lock_until > now

    def is_expired(self, now: datetime) -> bool:
        expires_at = as_aware(self.expires_at)
        return expires_at is None or now > expires_at

    def lock_minutes_remaining(self, now: datetime) -> int:
        """Whole minutes left on the lock, rounded up."""
        lock_until = as_aware(self.lock_until)
        if lock_until is None:
            return 0
        return max(0, math.ceil((lock_until - now).total_seconds() / 60))

    def issued(
        self,
        code_hash: str,
        context: str,
        ip: str,
        now: datetime,
        ttl: timedelta,
    ) -> "OTPState":
        """Overwrite with a freshly issued code; attempts and lock are reset."""
        return OTPState(
            code_hash=code_hash,
            expires_at=now + ttl,
            attempts=0,
            lock_until=None,
            last_action=context,
            last_ip=ip,
        )

    def record_failure(
        self,
        now: datetime,
        max_attempts: int,
        lock_duration: timedelta,
    ) -> "OTPState":
        """
        Count one failed verification.

        Reaching ``max_attempts`` sets the lock and resets the counter in
        the same transition, so ``attempts`` always stays below the limit.
        """
        attempts = self.attempts + 1
        if attempts >= max_attempts:
            return replace(self, attempts=0, lock_until=now + lock_duration)
        return replace(self, attempts=attempts)

    def cleared(self) -> "OTPState":
        """Drop the active code once it has been consumed."""
        return replace(
            self,
            code_hash=None,
            expires_at=None,
            attempts=0,
            lock_until=None,
        )
