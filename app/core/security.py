"""
Security Utilities

Credential hashing and JWT token management.
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Optional

import bcrypt
from jose import JWTError, jwt

from app.core.config import settings


# bcrypt only hashes the first 72 bytes of a secret
MAX_PASSWORD_BYTES = 72


def hash_password(password: str, rounds: Optional[int] = None) -> str:
    """
    Hash a plain text secret using bcrypt.

    Used for login passwords and for OTP codes alike.

    Args:
        password: Plain text secret to hash.
        rounds: bcrypt work factor (defaults to PASSWORD_HASH_ROUNDS).

    Returns:
        str: Hashed secret.
    """
    password_bytes = password.encode('utf-8')
    salt = bcrypt.gensalt(rounds=rounds or settings.PASSWORD_HASH_ROUNDS)
    hashed = bcrypt.hashpw(password_bytes, salt)
    return hashed.decode('utf-8')


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """
    Verify a plain text secret against a bcrypt hash.

    Args:
        plain_password: Plain text secret to verify.
        hashed_password: Hash to compare against.

    Returns:
        bool: True if they match, False otherwise (including malformed hashes).
    """
    try:
        password_bytes = plain_password.encode('utf-8')
        hashed_bytes = hashed_password.encode('utf-8')
        return bcrypt.checkpw(password_bytes, hashed_bytes)
    except ValueError:
        return False


def _encode(claims: dict, secret: str, expire: datetime) -> str:
    to_encode = {
        **claims,
        "exp": expire,
        "iat": datetime.now(timezone.utc),
    }
    return jwt.encode(to_encode, secret, algorithm=settings.ALGORITHM)


def create_access_token(
    subject: str | Any,
    email: str | None = None,
    role: str | None = None,
    expires_delta: timedelta | None = None,
) -> str:
    """
    Create a short-lived JWT access token.

    Args:
        subject: The subject of the token (user ID).
        email: Optional email claim.
        role: Optional role claim.
        expires_delta: Optional custom expiration time.

    Returns:
        str: Encoded JWT token.
    """
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    )
    claims: dict[str, Any] = {"sub": str(subject), "type": "access"}
    if email:
        claims["email"] = email
    if role:
        claims["role"] = role
    return _encode(claims, settings.SECRET_KEY, expire)


def create_refresh_token(subject: str | Any) -> str:
    """Create a long-lived JWT refresh token signed with the refresh secret."""
    expire = datetime.now(timezone.utc) + timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS)
    return _encode({"sub": str(subject), "type": "refresh"}, settings.REFRESH_SECRET_KEY, expire)


def decode_access_token(token: str) -> dict | None:
    """
    Decode and validate a JWT access token.

    Args:
        token: JWT token string to decode.

    Returns:
        dict: Decoded token payload if valid, None otherwise.
    """
    try:
        payload = jwt.decode(
            token,
            settings.SECRET_KEY,
            algorithms=[settings.ALGORITHM],
        )
    except JWTError:
        return None
    if payload.get("type") != "access":
        return None
    return payload


def decode_refresh_token(token: str) -> dict | None:
    """Decode a refresh token; None if invalid, expired or not a refresh token."""
    try:
        payload = jwt.decode(
            token,
            settings.REFRESH_SECRET_KEY,
            algorithms=[settings.ALGORITHM],
        )
    except JWTError:
        return None
    if payload.get("type") != "refresh":
        return None
    return payload
