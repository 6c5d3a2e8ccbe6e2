"""
Application Exceptions

Account errors carry the HTTP status, the user-facing message and the
optional lockout/attempt fields. ``account_error_handler`` renders them as
``{"success": false, "message": ...}`` payloads.
"""

from datetime import datetime
from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.models.enums import OTPStatus


class AccountError(Exception):
    """Base class for errors surfaced to API callers."""

    status_code: int = status.HTTP_400_BAD_REQUEST

    def __init__(
        self,
        message: str,
        lock_until: Optional[datetime] = None,
        attempts_left: Optional[int] = None,
    ):
        super().__init__(message)
        self.message = message
        self.lock_until = lock_until
        self.attempts_left = attempts_left

    def to_payload(self) -> dict:
        payload: dict = {"success": False, "message": self.message}
        if self.lock_until is not None:
            payload["lock_until"] = self.lock_until.isoformat()
        if self.attempts_left is not None:
            payload["attempts_left"] = self.attempts_left
        return payload


class BadRequestError(AccountError):
    status_code = status.HTTP_400_BAD_REQUEST


class UnauthorizedError(AccountError):
    status_code = status.HTTP_401_UNAUTHORIZED


class ForbiddenError(AccountError):
    status_code = status.HTTP_403_FORBIDDEN


class NotFoundError(AccountError):
    status_code = status.HTTP_404_NOT_FOUND


class ConflictError(AccountError):
    status_code = status.HTTP_409_CONFLICT


class LockedError(AccountError):
    status_code = status.HTTP_429_TOO_MANY_REQUESTS


class InternalError(AccountError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


_OTP_STATUS_ERRORS = {
    OTPStatus.NOT_FOUND: NotFoundError,
    OTPStatus.LOCKED: LockedError,
    OTPStatus.NO_ACTIVE_CODE: BadRequestError,
    OTPStatus.EXPIRED: BadRequestError,
    OTPStatus.INVALID_CODE: BadRequestError,
    OTPStatus.INTERNAL: InternalError,
}


def from_otp_result(result) -> AccountError:
    """Build the error matching a failed OTP result."""
    error_class = _OTP_STATUS_ERRORS.get(result.status, InternalError)
    return error_class(
        result.message,
        lock_until=result.lock_until,
        attempts_left=result.attempts_left,
    )


async def account_error_handler(request: Request, exc: AccountError) -> JSONResponse:
    """Render an AccountError as a JSON response."""
    return JSONResponse(status_code=exc.status_code, content=exc.to_payload())


async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Render framework HTTP errors (auth dependencies, 404 routes) in the same shape."""
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "message": str(exc.detail)},
        headers=getattr(exc, "headers", None),
    )


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Missing or malformed request fields are a 400 BadRequest."""
    errors = exc.errors()
    fields = ", ".join(
        ".".join(str(part) for part in error.get("loc", ())[1:]) or "body"
        for error in errors
    )
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"success": False, "message": f"Missing or invalid fields: {fields}"},
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AccountError, account_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
