"""
Database Enums

Python Enums that map to PostgreSQL ENUM types, plus OTP domain enums.
"""

import enum


class UserRole(str, enum.Enum):
    """User role enumeration."""
    CLIENT = "CLIENT"
    ADMIN = "ADMIN"


class OTPContext(str, enum.Enum):
    """Business reason an OTP was issued."""
    REGISTRATION = "registration"
    LOGIN = "login"
    PASSWORD_RESET = "password_reset"
    VERIFICATION = "verification"

    @property
    def code_length(self) -> int:
        """Password reset codes are 6 digits, everything else 4."""
        return 6 if self is OTPContext.PASSWORD_RESET else 4

    @property
    def consumes_on_verify(self) -> bool:
        """
        Whether a successful verification clears the code and verifies the account.

        Password reset codes survive verification so the follow-up
        reset-password step can verify them again.
        """
        return self is not OTPContext.PASSWORD_RESET


class OTPStatus(str, enum.Enum):
    """Outcome of an OTP engine call."""
    SUCCESS = "SUCCESS"
    NOT_FOUND = "NOT_FOUND"
    LOCKED = "LOCKED"
    NO_ACTIVE_CODE = "NO_ACTIVE_CODE"
    EXPIRED = "EXPIRED"
    INVALID_CODE = "INVALID_CODE"
    INTERNAL = "INTERNAL"
