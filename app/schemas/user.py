"""
User Schemas

Pydantic models for user request/response validation.
"""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, EmailStr, Field

from app.models.enums import UserRole


class UserCreate(BaseModel):
    """Schema for registering a new user."""

    email: EmailStr = Field(..., description="User's email address")
    password: str = Field(..., min_length=6, max_length=72, description="Password (6 to 72 characters)")
    first_name: str = Field(default="", max_length=255, description="First name")
    last_name: str = Field(default="", max_length=255, description="Last name")
    phone: str = Field(default="", max_length=50, description="Phone number")


class UserSummary(BaseModel):
    """Minimal user representation returned by auth endpoints."""

    id: uuid.UUID
    email: str
    first_name: str
    last_name: str

    model_config = {"from_attributes": True}


class UserResponse(BaseModel):
    """Schema for user response (excludes password and OTP state)."""

    id: uuid.UUID
    email: str
    first_name: str
    last_name: str
    phone: str
    city: Optional[str] = None
    country: Optional[str] = None
    profile_url: Optional[str] = None
    role: UserRole
    is_verified: bool
    created_at: datetime

    model_config = {"from_attributes": True}


class UserUpdate(BaseModel):
    """Schema for updating the user profile. Only provided fields change."""

    email: Optional[EmailStr] = Field(None, description="New email address")
    first_name: Optional[str] = Field(None, max_length=255)
    last_name: Optional[str] = Field(None, max_length=255)
    phone: Optional[str] = Field(None, max_length=50)
    city: Optional[str] = Field(None, max_length=255)
    country: Optional[str] = Field(None, max_length=255)
    profile_url: Optional[str] = Field(None, max_length=512, description="Public URL of the profile picture")


class PasswordUpdate(BaseModel):
    """Schema for changing the password of an authenticated user."""

    current_password: str = Field(..., description="Current password")
    new_password: str = Field(..., min_length=6, max_length=72, description="New password (6 to 72 characters)")
