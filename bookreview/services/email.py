import logging
import aiosmtplib
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart

from bookreview.core.config import settings

logger = logging.getLogger(__name__)


def smtp_configured() -> bool:
    return all([
        settings.smtp_host,
        settings.smtp_port,
        settings.smtp_user,
        settings.smtp_password,
        settings.smtp_from_email,
    ])


def build_password_reset_message(email: str, reset_token: str) -> MIMEMultipart:
    """Build the multipart reset email for ``email`` carrying ``reset_token``."""
    message = MIMEMultipart("alternative")
    message["Subject"] = "Reset your Book Review password"
    message["From"] = settings.smtp_from_email or ""
    message["To"] = email

    minutes = settings.password_reset_token_expire_minutes
    if settings.frontend_url:
        reset_link = f"{settings.frontend_url.rstrip('/')}/reset-password/{reset_token}"
        text = (
            "You requested a password reset for your Book Review account.\n\n"
            f"Open the following link to choose a new password:\n{reset_link}\n\n"
            f"This link expires in {minutes} minutes.\n\n"
            "If you did not request this, you can ignore this email.\n"
        )
        html = (
            "<html><body>"
            "<p>You requested a password reset for your Book Review account.</p>"
            f'<p><a href="{reset_link}">Choose a new password</a></p>'
            f"<p>This link expires in {minutes} minutes.</p>"
            "<p>If you did not request this, you can ignore this email.</p>"
            "</body></html>"
        )
    else:
        text = (
            "You requested a password reset for your Book Review account.\n\n"
            f"Your password reset token is:\n{reset_token}\n\n"
            f"This token expires in {minutes} minutes.\n\n"
            "If you did not request this, you can ignore this email.\n"
        )
        html = (
            "<html><body>"
            "<p>You requested a password reset for your Book Review account.</p>"
            f"<p>Your password reset token is: <code>{reset_token}</code></p>"
            f"<p>This token expires in {minutes} minutes.</p>"
            "<p>If you did not request this, you can ignore this email.</p>"
            "</body></html>"
        )

    message.attach(MIMEText(text, "plain"))
    message.attach(MIMEText(html, "html"))
    return message


async def send_password_reset_email(email: str, reset_token: str) -> None:
    """
    Send password reset email to user.

    Args:
        email: User's email address
        reset_token: Plaintext reset token (only its hash is stored)

    Raises:
        ValueError: If SMTP settings are incomplete.
    """
    if not smtp_configured():
        logger.warning("SMTP not configured - cannot send password reset email")
        raise ValueError("SMTP is not configured. Please configure SMTP settings in .env file.")

    message = build_password_reset_message(email, reset_token)

    send_kwargs = {
        "hostname": settings.smtp_host,
        "port": settings.smtp_port,
        "username": settings.smtp_user,
        "password": settings.smtp_password,
    }

    # Port 465 uses direct TLS, anything else STARTTLS
    if settings.smtp_use_tls:
        if settings.smtp_port == 465:
            send_kwargs["use_tls"] = True
        else:
            send_kwargs["start_tls"] = True

    await aiosmtplib.send(message, **send_kwargs)
