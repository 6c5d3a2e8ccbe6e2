"""
Account Service Unit Tests

Tests for the account flows on top of the OTP service, including the
registration and password reset scenarios end to end.
"""

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, patch

import pytest

from app.core.exceptions import (
    BadRequestError,
    ConflictError,
    ForbiddenError,
    InternalError,
    LockedError,
    NotFoundError,
    UnauthorizedError,
)
from app.core.security import (
    create_refresh_token,
    decode_access_token,
    decode_refresh_token,
    verify_password,
)
from app.models.enums import OTPContext, OTPStatus, UserRole
from app.schemas.user import UserCreate, UserUpdate
from app.services import account_service
from app.services.otp_service import OTPResult, hash_otp


def _now() -> datetime:
    return datetime.now(timezone.utc)


class TestRegister:
    """Tests for registration."""

    @pytest.mark.asyncio
    async def test_duplicate_email_is_conflict_without_code(self, make_user, session_with_user):
        db = session_with_user(make_user())

        with patch("app.services.otp_service.generate_and_send", new=AsyncMock()) as mock_issue:
            with pytest.raises(ConflictError):
                await account_service.register(
                    db, UserCreate(email="a@x.com", password="secret123")
                )

        mock_issue.assert_not_awaited()
        db.add.assert_not_called()

    @pytest.mark.asyncio
    async def test_password_over_bcrypt_limit_is_bad_request(self, session_with_user):
        db = session_with_user(None)
        # 40 characters pass the schema but encode to 80 bytes
        data = UserCreate(email="a@x.com", password="\u00e9" * 40)

        with patch("app.services.otp_service.generate_and_send", new=AsyncMock()) as mock_issue:
            with pytest.raises(BadRequestError):
                await account_service.register(db, data)

        mock_issue.assert_not_awaited()
        db.add.assert_not_called()

    @pytest.mark.asyncio
    async def test_creates_unverified_user_and_issues_registration_code(self, session_with_user):
        db = session_with_user(None)
        issued = OTPResult(status=OTPStatus.SUCCESS, message="ok")

        with patch("app.services.otp_service.generate_and_send", new=AsyncMock(return_value=issued)) as mock_issue:
            user = await account_service.register(
                db,
                UserCreate(email="New@X.com", password="secret123", first_name="Ada"),
                "10.0.0.1",
            )

        db.add.assert_called_once_with(user)
        assert user.email == "new@x.com"
        assert user.is_verified is False
        assert user.role is UserRole.CLIENT
        assert verify_password("secret123", user.password_hash)
        mock_issue.assert_awaited_once_with(db, "new@x.com", OTPContext.REGISTRATION, "10.0.0.1")

    @pytest.mark.asyncio
    async def test_code_failure_is_internal_error(self, session_with_user):
        db = session_with_user(None)
        failed = OTPResult(status=OTPStatus.INTERNAL, message="boom")

        with patch("app.services.otp_service.generate_and_send", new=AsyncMock(return_value=failed)):
            with pytest.raises(InternalError):
                await account_service.register(
                    db, UserCreate(email="a@x.com", password="secret123")
                )

    @pytest.mark.asyncio
    async def test_registration_scenario(self, make_user, session_with_user, sent_emails):
        """Register, receive a 4-digit code, verify it, end up verified with no code stored."""
        db = session_with_user(None)
        # Once added, lookups find the stored account
        db.add.side_effect = session_with_user

        user = await account_service.register(
            db, UserCreate(email="a@x.com", password="secret123")
        )

        assert user.is_verified is False
        assert sent_emails.messages[-1]["subject"] == "Verify your account"
        code = sent_emails.last_code()
        assert len(code) == 4
        expires_in = user.otp_expires_at - _now()
        assert timedelta(minutes=9) < expires_in <= timedelta(minutes=10)

        verified_user, tokens = await account_service.verify_otp(db, "a@x.com", code, "registration")

        assert verified_user.is_verified is True
        assert verified_user.otp_code_hash is None
        assert verified_user.otp_expires_at is None
        assert tokens is not None
        assert decode_access_token(tokens.access_token)["sub"] == str(user.id)
        assert verified_user.refresh_token == tokens.refresh_token


class TestLogin:
    """Tests for login."""

    @pytest.mark.asyncio
    async def test_unknown_email(self, session_with_user):
        db = session_with_user(None)

        with pytest.raises(NotFoundError):
            await account_service.login(db, "nobody@x.com", "secret123")

    @pytest.mark.asyncio
    async def test_wrong_password(self, make_user, session_with_user):
        db = session_with_user(make_user(is_verified=True))

        with pytest.raises(UnauthorizedError):
            await account_service.login(db, "a@x.com", "wrong-password")

    @pytest.mark.asyncio
    async def test_unverified_gets_login_code_and_no_session(self, make_user, session_with_user, sent_emails):
        user = make_user(is_verified=False)
        db = session_with_user(user)

        with pytest.raises(ForbiddenError) as exc_info:
            await account_service.login(db, "a@x.com", "secret123", "10.0.0.1")

        assert "new verification code" in exc_info.value.message
        assert user.otp_last_action == "login"
        assert sent_emails.messages[-1]["subject"] == "Verify your account to sign in"
        assert user.refresh_token is None

    @pytest.mark.asyncio
    async def test_unverified_and_locked_reports_lock(self, make_user, session_with_user, sent_emails):
        lock_until = _now() + timedelta(minutes=6)
        user = make_user(is_verified=False, otp_lock_until=lock_until)
        db = session_with_user(user)

        with pytest.raises(LockedError) as exc_info:
            await account_service.login(db, "a@x.com", "secret123")

        assert exc_info.value.lock_until == lock_until
        assert "sent" not in exc_info.value.message
        assert sent_emails.messages == []

    @pytest.mark.asyncio
    async def test_verified_login_issues_tokens(self, make_user, session_with_user):
        user = make_user(is_verified=True)
        db = session_with_user(user)

        logged_in, tokens = await account_service.login(db, "a@x.com", "secret123")

        assert logged_in is user
        payload = decode_access_token(tokens.access_token)
        assert payload["sub"] == str(user.id)
        assert payload["email"] == "a@x.com"
        assert decode_refresh_token(tokens.refresh_token)["sub"] == str(user.id)
        assert user.refresh_token == tokens.refresh_token


class TestOtpFlows:
    """Tests for resend, verify and context handling."""

    @pytest.mark.asyncio
    async def test_resend_rejects_unknown_context(self, mock_async_session):
        with patch("app.services.otp_service.generate_and_send", new=AsyncMock()) as mock_issue:
            with pytest.raises(BadRequestError) as exc_info:
                await account_service.resend_otp(mock_async_session, "a@x.com", "sms")

        assert "registration, login, password_reset, verification" in exc_info.value.message
        mock_issue.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_resend_maps_locked_to_locked_error(self, make_user, session_with_user, sent_emails):
        lock_until = _now() + timedelta(minutes=5)
        db = session_with_user(make_user(otp_lock_until=lock_until))

        with pytest.raises(LockedError) as exc_info:
            await account_service.resend_otp(db, "a@x.com", "verification")

        assert exc_info.value.lock_until == lock_until
        assert exc_info.value.status_code == 429

    @pytest.mark.asyncio
    async def test_request_code_unknown_email(self, session_with_user, sent_emails):
        db = session_with_user(None)

        with pytest.raises(NotFoundError):
            await account_service.request_code(db, "nobody@x.com")

    @pytest.mark.asyncio
    async def test_verify_rejects_unknown_context(self, mock_async_session):
        with pytest.raises(BadRequestError):
            await account_service.verify_otp(mock_async_session, "a@x.com", "1234", "reset")

    @pytest.mark.asyncio
    async def test_wrong_code_reports_attempts_left(self, make_user, session_with_user):
        user = make_user(otp_code_hash=hash_otp("1234"), otp_expires_at=_now() + timedelta(minutes=10))
        db = session_with_user(user)

        with pytest.raises(BadRequestError) as exc_info:
            await account_service.verify_otp(db, "a@x.com", "4321", "login")

        assert exc_info.value.attempts_left == 4
        assert exc_info.value.to_payload()["attempts_left"] == 4

    @pytest.mark.asyncio
    async def test_password_reset_verify_keeps_code(self, make_user, session_with_user):
        code_hash = hash_otp("123456")
        expires_at = _now() + timedelta(minutes=10)
        user = make_user(otp_code_hash=code_hash, otp_expires_at=expires_at)
        db = session_with_user(user)

        verified_user, tokens = await account_service.verify_otp(db, "a@x.com", "123456", "password_reset")

        assert tokens is None
        assert verified_user.otp_code_hash == code_hash
        assert verified_user.otp_expires_at == expires_at
        assert verified_user.is_verified is False

    @pytest.mark.asyncio
    async def test_login_context_verify_clears_code(self, make_user, session_with_user):
        user = make_user(otp_code_hash=hash_otp("1234"), otp_expires_at=_now() + timedelta(minutes=10))
        db = session_with_user(user)

        _, tokens = await account_service.verify_otp(db, "a@x.com", "1234", "login")

        assert tokens is not None
        assert user.is_verified is True
        assert user.otp_code_hash is None


class TestResetPassword:
    """Tests for the password reset flow."""

    @pytest.mark.asyncio
    async def test_reset_scenario(self, make_user, session_with_user, sent_emails):
        """Request a code, verify it, then apply the new password with the same code."""
        user = make_user(is_verified=True)
        db = session_with_user(user)

        result = await account_service.request_code(db, "a@x.com", "10.0.0.1")
        code = sent_emails.last_code()
        assert len(code) == 6
        assert result.expires_at == user.otp_expires_at

        await account_service.verify_otp(db, "a@x.com", code, "password_reset")
        await account_service.reset_password(db, "a@x.com", code, "new-secret")

        assert verify_password("new-secret", user.password_hash)
        assert user.otp_code_hash is None
        assert user.otp_expires_at is None
        assert user.otp_attempts == 0
        assert user.otp_lock_until is None
        assert sent_emails.messages[-1]["subject"] == "Your password was changed"

        # The consumed code cannot be replayed
        with pytest.raises(BadRequestError):
            await account_service.reset_password(db, "a@x.com", code, "another-secret")

    @pytest.mark.asyncio
    async def test_five_wrong_codes_lock_reset(self, make_user, session_with_user, sent_emails):
        """The fifth miss locks for 10 minutes; even the right code is then refused."""
        user = make_user(is_verified=True)
        db = session_with_user(user)
        await account_service.request_code(db, "a@x.com")
        code = sent_emails.last_code()
        wrong = "000000" if code != "000000" else "111111"

        for _ in range(4):
            with pytest.raises(BadRequestError):
                await account_service.verify_otp(db, "a@x.com", wrong, "password_reset")
        with pytest.raises(LockedError):
            await account_service.verify_otp(db, "a@x.com", wrong, "password_reset")

        with pytest.raises(LockedError) as exc_info:
            await account_service.reset_password(db, "a@x.com", code, "new-secret")

        remaining = exc_info.value.lock_until - _now()
        assert timedelta(minutes=9) < remaining <= timedelta(minutes=10)
        assert verify_password("secret123", user.password_hash)

    @pytest.mark.asyncio
    async def test_overlong_new_password_keeps_code_usable(self, make_user, session_with_user, sent_emails):
        user = make_user(is_verified=True)
        db = session_with_user(user)
        await account_service.request_code(db, "a@x.com")
        code = sent_emails.last_code()

        with pytest.raises(BadRequestError):
            await account_service.reset_password(db, "a@x.com", code, "p" * 80)

        assert user.otp_code_hash is not None
        assert user.otp_attempts == 0
        assert verify_password("secret123", user.password_hash)

        await account_service.reset_password(db, "a@x.com", code, "new-secret")

        assert verify_password("new-secret", user.password_hash)


class TestSession:
    """Tests for refresh and logout."""

    @pytest.mark.asyncio
    async def test_refresh_without_token(self, mock_async_session):
        with pytest.raises(UnauthorizedError):
            await account_service.refresh_access_token(mock_async_session, None)

    @pytest.mark.asyncio
    async def test_refresh_with_stored_token(self, make_user, session_with_user):
        user = make_user(is_verified=True)
        user.refresh_token = create_refresh_token(user.id)
        db = session_with_user(user)

        access_token = await account_service.refresh_access_token(db, user.refresh_token)

        assert decode_access_token(access_token)["sub"] == str(user.id)

    @pytest.mark.asyncio
    async def test_refresh_with_revoked_token(self, make_user, session_with_user):
        user = make_user(is_verified=True)
        token = create_refresh_token(user.id)
        db = session_with_user(user)

        with pytest.raises(ForbiddenError):
            await account_service.refresh_access_token(db, token)

    @pytest.mark.asyncio
    async def test_access_token_is_not_a_refresh_token(self, make_user, session_with_user):
        user = make_user(is_verified=True)
        db = session_with_user(user)
        _, tokens = await account_service.login(db, "a@x.com", "secret123")

        with pytest.raises(ForbiddenError):
            await account_service.refresh_access_token(db, tokens.access_token)

    @pytest.mark.asyncio
    async def test_logout_forgets_refresh_token(self, make_user, mock_async_session):
        user = make_user(is_verified=True, refresh_token="stored")

        await account_service.logout(mock_async_session, user)

        assert user.refresh_token is None
        mock_async_session.commit.assert_awaited_once()


class TestProfile:
    """Tests for profile management."""

    @pytest.mark.asyncio
    async def test_update_profile_applies_provided_fields(self, make_user, session_with_user):
        user = make_user(is_verified=True)
        db = session_with_user(None)

        await account_service.update_profile(db, user, UserUpdate(city="Paris", email="New@X.com"))

        assert user.city == "Paris"
        assert user.email == "new@x.com"
        assert user.first_name == "Ada"

    @pytest.mark.asyncio
    async def test_update_profile_email_taken(self, make_user, session_with_user):
        user = make_user(is_verified=True)
        db = session_with_user(make_user(email="b@x.com"))

        with pytest.raises(ConflictError):
            await account_service.update_profile(db, user, UserUpdate(email="b@x.com"))

    @pytest.mark.asyncio
    async def test_update_password_requires_current(self, make_user, mock_async_session, sent_emails):
        user = make_user(is_verified=True)

        with pytest.raises(UnauthorizedError):
            await account_service.update_password(mock_async_session, user, "nope", "new-secret")

        await account_service.update_password(mock_async_session, user, "secret123", "new-secret")

        assert verify_password("new-secret", user.password_hash)
        assert sent_emails.messages[-1]["subject"] == "Your password was changed"

    @pytest.mark.asyncio
    async def test_update_password_rejects_overlong(self, make_user, mock_async_session, sent_emails):
        user = make_user(is_verified=True)
        old_hash = user.password_hash

        with pytest.raises(BadRequestError):
            await account_service.update_password(mock_async_session, user, "secret123", "p" * 80)

        assert user.password_hash == old_hash
        assert sent_emails.messages == []

    @pytest.mark.asyncio
    async def test_list_profiles_requires_admin(self, make_user, mock_async_session):
        with pytest.raises(ForbiddenError):
            await account_service.list_profiles(mock_async_session, make_user(is_verified=True))

    @pytest.mark.asyncio
    async def test_list_profiles_for_admin(self, make_user, mock_async_session):
        admin = make_user(is_verified=True, role=UserRole.ADMIN)
        mock_async_session.execute.return_value.scalars.return_value.all.return_value = [admin]

        profiles = await account_service.list_profiles(mock_async_session, admin)

        assert profiles == [admin]
