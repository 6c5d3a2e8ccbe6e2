"""
Token Schemas

Pydantic models for JWT token handling.
"""

from typing import Optional

from pydantic import BaseModel


class Token(BaseModel):
    """Schema for access token response."""

    success: bool = True
    access_token: str
    token_type: str = "bearer"


class RefreshRequest(BaseModel):
    """Refresh token in the body, for clients that cannot send cookies."""

    refresh_token: Optional[str] = None
