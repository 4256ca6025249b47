import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from tontine.core.audit import write_audit_log
from tontine.core.dependencies import get_current_user
from tontine.core.errors import handle_service_errors
from tontine.db.base import get_db
from tontine.models.user import Profile
from tontine.schemas.auth import (
    PasswordChange, Token, UserLogin, UserProfileUpdate, UserRegister, UserResponse,
)
from tontine.services.auth import (
    authenticate_user, change_password, create_access_token_for_user, create_user, update_profile,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])


@router.post("/register", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
def register(user_data: UserRegister, db: Session = Depends(get_db)):
    """Register a new user."""
    with handle_service_errors(db, "register"):
        user = create_user(
            db=db,
            email=user_data.email,
            password=user_data.password,
            name=user_data.name,
            avatar_url=user_data.avatar_url,
        )
    return user


@router.post("/login", response_model=Token)
def login(credentials: UserLogin, db: Session = Depends(get_db)):
    """Login and get JWT token."""
    user = authenticate_user(db, credentials.email, credentials.password)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect email or password"
        )

    access_token = create_access_token_for_user(user)
    write_audit_log(user_name=user.name, action="Login", details=f"email={user.email}")
    return {"access_token": access_token, "token_type": "bearer"}


@router.post("/logout")
def logout(current_user: Profile = Depends(get_current_user)):
    """Record logout in audit log (token invalidation is handled client-side)."""
    write_audit_log(user_name=current_user.name, action="Logout", details=f"email={current_user.email}")
    return {"message": "Logged out"}


@router.get("/me", response_model=UserResponse)
def get_current_user_info(current_user: Profile = Depends(get_current_user)):
    """Get current user information."""
    return current_user


@router.put("/profile", response_model=UserResponse)
def update_current_profile(
    profile_data: UserProfileUpdate,
    current_user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Update current user's profile information."""
    with handle_service_errors(db, "update profile"):
        user = update_profile(db, current_user, name=profile_data.name, avatar_url=profile_data.avatar_url)
    return user


@router.post("/change-password")
def change_current_password(
    password_data: PasswordChange,
    current_user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Change the current user's password."""
    with handle_service_errors(db, "change password"):
        change_password(db, current_user, password_data.current_password, password_data.new_password)
    return {"message": "Password changed successfully"}
