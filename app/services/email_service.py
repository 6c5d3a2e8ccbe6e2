"""
Email Service

Builds OTP and account-notice emails and delivers them over SMTP.
Delivery never raises into the caller: failures are logged and reported
as a False return value.
"""

import smtplib
import logging
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart
from typing import Tuple

from app.core.config import settings
from app.models.enums import OTPContext


logger = logging.getLogger(__name__)


# Subject and lead sentence per OTP context
_OTP_TEMPLATES = {
    OTPContext.REGISTRATION: (
        "Verify your account",
        "Thanks for signing up. Your verification code is:",
    ),
    OTPContext.LOGIN: (
        "Verify your account to sign in",
        "Your account is not verified yet. Your verification code is:",
    ),
    OTPContext.PASSWORD_RESET: (
        "Reset your password",
        "You asked to reset your password. Your verification code is:",
    ),
    OTPContext.VERIFICATION: (
        "Your verification code",
        "Your verification code is:",
    ),
}


def build_otp_email(context: OTPContext | str, otp_code: str, name: str = "") -> Tuple[str, str]:
    """
    Select the subject and HTML body for an OTP email.

    Unknown contexts fall back to the generic verification template.

    Args:
        context: Reason the code was issued.
        otp_code: Plaintext code to embed.
        name: Recipient's display name.

    Returns:
        Tuple of (subject, html_body).
    """
    try:
        context = OTPContext(context)
    except ValueError:
        context = OTPContext.VERIFICATION
    subject, lead = _OTP_TEMPLATES[context]

    html = f"""
        <p>Hello {name},</p>
        <p>{lead} <b>{otp_code}</b></p>
        <p>This code expires in {settings.OTP_EXPIRE_MINUTES} minutes.</p>
    """
    return subject, html


def build_password_changed_email(name: str = "") -> Tuple[str, str]:
    """Subject and body of the notice sent after a password change."""
    subject = "Your password was changed"
    html = f"""
        <p>Hello {name},</p>
        <p>Your password has been changed successfully.</p>
        <p>If you did not make this change, contact support immediately.</p>
    """
    return subject, html


def wrap_html(subject: str, content: str) -> str:
    """Wrap message content in the shared email layout."""
    return f"""
    <div style="font-family: Arial, sans-serif; color: #333; padding: 20px;">
        <div style="max-width: 600px; margin: auto; border: 1px solid #ddd; border-radius: 8px; padding: 20px;">
            <h2 style="color: #007bff; text-align: center; margin-bottom: 20px;">{subject}</h2>
            <div style="font-size: 15px; line-height: 1.6;">
                {content}
            </div>
            <p style="margin-top: 30px; font-size: 13px; color: #777; text-align: center;">
                Thank you for your trust.<br/>The {settings.EMAIL_FROM_NAME}
            </p>
        </div>
    </div>
    """


async def send_email(to_email: str, subject: str, html: str) -> bool:
    """
    Send an HTML email.

    Args:
        to_email: Recipient email address.
        subject: Email subject.
        html: Message content (wrapped in the shared layout).

    Returns:
        bool: True if the email was sent (or logged in development), False otherwise.
    """
    # In development without SMTP credentials, just log the message
    if settings.is_development and not settings.SMTP_USER:
        logger.info(f"[DEV MODE] Email to {to_email} - {subject}\n{html}")
        return True

    try:
        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = f"{settings.EMAIL_FROM_NAME} <{settings.EMAIL_FROM_ADDRESS}>"
        msg["To"] = to_email
        msg.attach(MIMEText(wrap_html(subject, html), "html"))

        with smtplib.SMTP(settings.SMTP_HOST, settings.SMTP_PORT) as server:
            server.starttls()
            server.login(settings.SMTP_USER, settings.SMTP_PASSWORD)
            server.sendmail(
                settings.EMAIL_FROM_ADDRESS,
                to_email,
                msg.as_string()
            )

        logger.info(f"Email '{subject}' sent to {to_email}")
        return True

    except Exception as e:
        logger.error(f"Failed to send email '{subject}' to {to_email}: {e}")
        return False


async def send_otp_email(
    to_email: str,
    otp_code: str,
    context: OTPContext | str,
    name: str = "",
) -> bool:
    """Send the OTP email matching ``context``."""
    subject, html = build_otp_email(context, otp_code, name)
    return await send_email(to_email, subject, html)


async def send_password_changed_email(to_email: str, name: str = "") -> bool:
    """Send the password-changed notice."""
    subject, html = build_password_changed_email(name)
    return await send_email(to_email, subject, html)
