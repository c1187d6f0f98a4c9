from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from bookreview.core.security import ACCESS_TOKEN_TYPE, decode_token
from bookreview.db import SessionLocal
from bookreview.db.models import User
from bookreview.errors import UnauthorizedError
from bookreview.repositories.user import get_user_by_id

bearer_scheme = HTTPBearer(auto_error=False)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    db: Session = Depends(get_db),
) -> User:
    """
    Resolve the user behind the request's bearer token.

    Runs before any handler logic, so an unauthenticated request never
    reaches a service.
    """
    if credentials is None or not credentials.credentials:
        raise UnauthorizedError("Not authorized, no token")

    payload = decode_token(credentials.credentials)
    if payload is None:
        raise UnauthorizedError("Could not validate credentials")

    # Only session tokens are accepted here
    if payload.get("type") != ACCESS_TOKEN_TYPE:
        raise UnauthorizedError("Could not validate credentials")

    subject = payload.get("sub")
    try:
        user_id = int(subject)
    except (TypeError, ValueError):
        raise UnauthorizedError("Could not validate credentials")

    user = get_user_by_id(db, user_id)
    if user is None:
        raise UnauthorizedError("Not authorized, user not found")

    return user
