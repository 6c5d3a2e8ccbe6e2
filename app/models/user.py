"""
User Model

Account entity with credentials, profile data and the embedded OTP state.
"""

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import String, Enum, DateTime, Integer, func
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database import Base
from app.models.enums import UserRole
from app.models.otp_state import OTPState


class User(Base):
    """
    User account.

    Attributes:
        id: UUID primary key for public-facing identification.
        email: Unique email address, indexed for fast lookups.
        password_hash: bcrypt hash of the login password.
        first_name / last_name / phone / city / country: Profile fields.
        profile_url: Public URL of the profile picture, if any.
        role: User role (CLIENT, ADMIN).
        is_verified: True once an OTP has been verified outside password reset.
        refresh_token: Currently valid refresh token, cleared on logout.
        otp_*: Columns backing the ``otp`` value object.
    """

    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    email: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        index=True,
        nullable=False,
    )
    password_hash: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )
    first_name: Mapped[str] = mapped_column(String(255), default="", nullable=False)
    last_name: Mapped[str] = mapped_column(String(255), default="", nullable=False)
    phone: Mapped[str] = mapped_column(String(50), default="", nullable=False)
    city: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    country: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    profile_url: Mapped[Optional[str]] = mapped_column(String(512), nullable=True)
    role: Mapped[UserRole] = mapped_column(
        Enum(UserRole, name="user_role", create_constraint=True),
        default=UserRole.CLIENT,
        nullable=False,
    )
    is_verified: Mapped[bool] = mapped_column(
        default=False,
        nullable=False,
    )
    refresh_token: Mapped[Optional[str]] = mapped_column(String(1024), nullable=True)

    # OTP state, read and written only through the ``otp`` property
    otp_code_hash: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    otp_expires_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    otp_attempts: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    otp_lock_until: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    otp_last_action: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    otp_last_ip: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    @property
    def otp(self) -> OTPState:
        return OTPState(
            code_hash=self.otp_code_hash,
            expires_at=self.otp_expires_at,
            attempts=self.otp_attempts or 0,
            lock_until=self.otp_lock_until,
            last_action=self.otp_last_action,
            last_ip=self.otp_last_ip,
        )

    @otp.setter
    def otp(self, state: OTPState) -> None:
        self.otp_code_hash = state.code_hash
        self.otp_expires_at = state.expires_at
        self.otp_attempts = state.attempts
        self.otp_lock_until = state.lock_until
        self.otp_last_action = state.last_action
        self.otp_last_ip = state.last_ip

    @property
    def display_name(self) -> str:
        return self.last_name or self.first_name or ""

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email}, role={self.role})>"
