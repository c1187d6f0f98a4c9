from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from bookreview.api.deps import get_current_user, get_db
from bookreview.db.models import User as UserModel
from bookreview.schemas.user import (
    ForgotPasswordResponse,
    Message,
    PasswordChange,
    PasswordReset,
    PasswordResetRequest,
    Token,
    User,
    UserLogin,
    UserRegister,
)
from bookreview.services import auth as auth_service

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/register", response_model=Token, status_code=status.HTTP_201_CREATED)
def register(data: UserRegister, db: Session = Depends(get_db)):
    """Create an account and return a session token for it."""
    return auth_service.register(
        db,
        name=data.name,
        email=data.email,
        password=data.password,
        confirm_password=data.confirm_password,
    )


@router.post("/login", response_model=Token)
def login(credentials: UserLogin, db: Session = Depends(get_db)):
    """
    Login endpoint - returns JWT token.

    Unknown email and wrong password give the same 401 response.
    """
    return auth_service.login(db, credentials.email, credentials.password)


@router.put("/change-password", response_model=Message)
def change_password(
    data: PasswordChange,
    db: Session = Depends(get_db),
    current_user: UserModel = Depends(get_current_user),
):
    """Change the current user's password. Existing sessions stay valid."""
    return auth_service.change_password(
        db, current_user, data.current_password, data.new_password
    )


@router.post(
    "/forgot-password",
    response_model=ForgotPasswordResponse,
    response_model_exclude_none=True,
)
async def forgot_password(
    request: PasswordResetRequest,
    db: Session = Depends(get_db),
):
    """Request password reset - sends email with reset token."""
    return await auth_service.forgot_password(db, request.email)


@router.put("/reset-password/{token}", response_model=Token)
def reset_password(token: str, data: PasswordReset, db: Session = Depends(get_db)):
    """Reset password using token from email and log the user in."""
    return auth_service.reset_password(
        db, token, data.password, data.confirm_password
    )


@router.get("/me", response_model=User)
def get_current_user_info(current_user: UserModel = Depends(get_current_user)):
    """Get current authenticated user information."""
    return User.model_validate(current_user)
