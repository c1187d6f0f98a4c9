from datetime import datetime
from sqlalchemy.orm import Session

from bookreview.db.models import User as UserModel
from bookreview.errors import NotFoundError


def get_user_by_email(db: Session, email: str) -> UserModel | None:
    """Get a user by email. Emails are stored lower-cased."""
    return (
        db.query(UserModel)
        .filter(UserModel.email == email.strip().lower())
        .first()
    )


def get_user_by_id(db: Session, user_id: int) -> UserModel | None:
    """Get a user by ID."""
    return db.query(UserModel).filter(UserModel.id == user_id).first()


def get_user_by_reset_token(
    db: Session, token_hash: str, now: datetime
) -> UserModel | None:
    """Get the user holding an unexpired password reset token with this hash."""
    return (
        db.query(UserModel)
        .filter(
            UserModel.password_reset_token == token_hash,
            UserModel.password_reset_expires > now,
        )
        .first()
    )


def create_user(
    db: Session,
    name: str,
    email: str,
    password_hash: str,
) -> UserModel:
    """Create a new user in the database. Pure data access - no business logic."""
    db_user = UserModel(
        name=name,
        email=email,
        password_hash=password_hash,
    )
    db.add(db_user)
    db.commit()
    db.refresh(db_user)
    return db_user


def update_user_password(db: Session, user_id: int, password_hash: str) -> UserModel:
    """Update a user's password. Any pending reset token is cleared."""
    user = get_user_by_id(db, user_id)
    if not user:
        raise NotFoundError("User not found")

    user.password_hash = password_hash
    user.password_reset_token = None
    user.password_reset_expires = None
    db.commit()
    db.refresh(user)
    return user


def set_password_reset_token(
    db: Session, user_id: int, token_hash: str, expires: datetime
) -> UserModel:
    """Store a password reset token hash, replacing any previous one."""
    user = get_user_by_id(db, user_id)
    if not user:
        raise NotFoundError("User not found")

    user.password_reset_token = token_hash
    user.password_reset_expires = expires
    db.commit()
    db.refresh(user)
    return user
