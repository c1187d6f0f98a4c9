"""Auth service: registration, login, password change, and password reset."""

import logging
from datetime import datetime, timezone

import aiosmtplib
from sqlalchemy.exc import IntegrityError
from starlette.concurrency import run_in_threadpool
from sqlalchemy.orm import Session

from bookreview.core.config import settings
from bookreview.core.security import (
    create_access_token,
    generate_password_reset_token,
    get_password_hash,
    hash_reset_token,
    validate_password,
    verify_password,
)
from bookreview.core.transport import decode_password
from bookreview.db.models import User as UserModel
from bookreview.errors import (
    DomainValidationError,
    DuplicateResourceError,
    InvalidCredentialsError,
    InvalidOrExpiredTokenError,
)
from bookreview.repositories.user import (
    create_user,
    get_user_by_email,
    get_user_by_reset_token,
    set_password_reset_token,
    update_user_password,
)
from bookreview.schemas.user import ForgotPasswordResponse, Token, User
from bookreview.services.email import send_password_reset_email

logger = logging.getLogger(__name__)

FORGOT_PASSWORD_MESSAGE = "If the email exists, a password reset link has been sent."


def _issue_token(user: UserModel) -> Token:
    access_token = create_access_token(data={"sub": user.id})
    return Token(
        access_token=access_token,
        token_type="bearer",
        user=User.model_validate(user),
    )


def _checked_password(password: str, confirm_password: str | None = None) -> str:
    """Decode a submitted password and apply the password policy."""
    plain = decode_password(password)

    is_valid, error_message = validate_password(plain)
    if not is_valid:
        raise DomainValidationError(error_message)

    if confirm_password is not None and decode_password(confirm_password) != plain:
        raise DomainValidationError("Passwords do not match")
    return plain


def register(
    db: Session,
    name: str,
    email: str,
    password: str,
    confirm_password: str | None = None,
) -> Token:
    """
    Register a new user and log them in.

    Raises:
        DomainValidationError: If name is blank or the password fails policy.
        DuplicateResourceError: If the email is already registered.
    """
    name = name.strip()
    if not name:
        raise DomainValidationError("Name is required")
    email = email.strip().lower()

    plain = _checked_password(password, confirm_password)

    if get_user_by_email(db, email):
        raise DuplicateResourceError("User already exists")

    try:
        user = create_user(
            db,
            name=name,
            email=email,
            password_hash=get_password_hash(plain),
        )
    except IntegrityError:
        # Lost a race against a concurrent registration for the same email
        db.rollback()
        raise DuplicateResourceError("User already exists")

    logger.info("Registered user %s", user.id)
    return _issue_token(user)


def login(db: Session, email: str, password: str) -> Token:
    """
    Authenticate user by email and password, return JWT access token.

    Raises:
        InvalidCredentialsError: If email not found or password incorrect.
    """
    plain = decode_password(password)
    user = get_user_by_email(db, email)
    if not user or not verify_password(plain, user.password_hash):
        logger.info("Failed login attempt for %s", email)
        raise InvalidCredentialsError("Invalid credentials")

    logger.info("User %s logged in", user.id)
    return _issue_token(user)


def change_password(
    db: Session, user: UserModel, current_password: str, new_password: str
) -> dict[str, str]:
    """
    Change the password of an authenticated user.

    Sessions issued before the change stay valid until they expire.

    Raises:
        DomainValidationError: If the current password is wrong, or the new one
            fails policy or equals the current one.
    """
    current = decode_password(current_password)
    if not verify_password(current, user.password_hash):
        raise DomainValidationError("Current password is incorrect")

    new = _checked_password(new_password)
    if new == current:
        raise DomainValidationError(
            "New password must be different from current password"
        )

    update_user_password(db, user.id, get_password_hash(new))
    logger.info("User %s changed password", user.id)
    return {"message": "Password changed successfully"}


def _store_reset_token(db: Session, email: str) -> tuple[str, str] | None:
    """Store a fresh reset token hash for ``email``; return (address, plaintext token)."""
    user = get_user_by_email(db, email)
    if not user:
        return None

    reset = generate_password_reset_token()
    set_password_reset_token(db, user.id, reset.token_hash, reset.expires_at)
    logger.info("Password reset requested for user %s", user.id)
    return user.email, reset.token


async def forgot_password(db: Session, email: str) -> ForgotPasswordResponse:
    """
    Request password reset: create token, store its hash, send email.

    Always returns the same success message (no user enumeration).
    Delivery failures are logged, never raised. Database work runs in the
    threadpool so only the email send is awaited on the event loop.
    """
    response = ForgotPasswordResponse(message=FORGOT_PASSWORD_MESSAGE)

    stored = await run_in_threadpool(_store_reset_token, db, email)
    if stored is None:
        return response
    address, token = stored

    try:
        await send_password_reset_email(address, token)
    except (ValueError, aiosmtplib.SMTPException, OSError):
        logger.exception("Failed to send password reset email")

    if not settings.is_production:
        response.reset_token = token
    return response


def reset_password(
    db: Session,
    token: str,
    password: str,
    confirm_password: str | None = None,
) -> Token:
    """
    Reset password using the token from the reset email and log the user in.

    Raises:
        InvalidOrExpiredTokenError: If no user holds this token or it has expired.
        DomainValidationError: If the new password fails policy.
    """
    user = get_user_by_reset_token(
        db, hash_reset_token(token), datetime.now(timezone.utc)
    )
    if not user:
        raise InvalidOrExpiredTokenError("Invalid or expired token")

    plain = _checked_password(password, confirm_password)

    # Clears the reset token, so it cannot be used twice
    user = update_user_password(db, user.id, get_password_hash(plain))
    logger.info("User %s reset password", user.id)
    return _issue_token(user)
