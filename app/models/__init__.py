"""
Account Service - Models Module

This module exports all SQLAlchemy models for the application.
Import Base for Alembic migrations.
"""

from app.core.database import Base

# Enums
from app.models.enums import (
    UserRole,
    OTPContext,
    OTPStatus,
)

# Value objects
from app.models.otp_state import OTPState

# Models
from app.models.user import User

__all__ = [
    # Base
    "Base",
    # Enums
    "UserRole",
    "OTPContext",
    "OTPStatus",
    # Value objects
    "OTPState",
    # Models
    "User",
]
