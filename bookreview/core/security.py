import hashlib
import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any

import jwt
from passlib.context import CryptContext

from bookreview.core.config import settings

logger = logging.getLogger(__name__)

# Password hashing context
pwd_context = CryptContext(
    schemes=["bcrypt"],
    deprecated="auto",
    bcrypt__rounds=settings.bcrypt_rounds,
)

ACCESS_TOKEN_TYPE = "access"


def verify_password(plain_password: str, hashed_password: str | None) -> bool:
    """
    Verify a plain password against a hashed password.

    Fails closed: a malformed or missing hash is a mismatch, never a match.
    """
    if not plain_password or not hashed_password:
        return False
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except Exception:
        logger.warning("Password verification failed on an unreadable hash", exc_info=True)
        return False


def get_password_hash(password: str) -> str:
    """Hash a password."""
    return pwd_context.hash(password)


def validate_password(password: str) -> tuple[bool, str | None]:
    """
    Validate password meets the minimum length policy.

    Returns: (is_valid, error_message)
    """
    if not password or len(password) < settings.password_min_length:
        return (
            False,
            f"Password must be at least {settings.password_min_length} characters",
        )
    return True, None


def create_access_token(data: dict[str, Any], expires_delta: timedelta | None = None) -> str:
    """Create a JWT access token."""
    to_encode = data.copy()
    now = datetime.now(timezone.utc)

    if expires_delta:
        expire = now + expires_delta
    else:
        expire = now + timedelta(minutes=settings.access_token_expire_minutes)

    if "sub" in to_encode:
        to_encode["sub"] = str(to_encode["sub"])
    to_encode.update({"iat": now, "exp": expire, "type": ACCESS_TOKEN_TYPE})
    encoded_jwt = jwt.encode(to_encode, settings.secret_key, algorithm=settings.algorithm)
    return encoded_jwt


def decode_token(token: str) -> dict[str, Any] | None:
    """Decode and verify a JWT token."""
    try:
        payload = jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
        return payload
    except jwt.ExpiredSignatureError:
        return None
    except jwt.InvalidTokenError:
        return None


@dataclass(frozen=True, slots=True)
class ResetToken:
    """A freshly generated password reset token.

    ``token`` is handed to the user exactly once; only ``token_hash`` and
    ``expires_at`` are persisted.
    """

    token: str
    token_hash: str
    expires_at: datetime


def hash_reset_token(token: str) -> str:
    """SHA-256 digest of a reset token, used as the stored lookup key."""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def generate_password_reset_token(now: datetime | None = None) -> ResetToken:
    """Create a random reset token with its hash and expiry."""
    issued_at = now or datetime.now(timezone.utc)
    token = secrets.token_hex(20)
    return ResetToken(
        token=token,
        token_hash=hash_reset_token(token),
        expires_at=issued_at
        + timedelta(minutes=settings.password_reset_token_expire_minutes),
    )
