import logging
from typing import Optional
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from tontine.core.errors import NotFoundError, ValidationError
from tontine.core.security import create_access_token, get_password_hash, verify_password
from tontine.models.user import Profile

logger = logging.getLogger(__name__)


def authenticate_user(db: Session, email: str, password: str) -> Optional[Profile]:
    """Return the user when the email/password pair is valid, None otherwise."""
    user = db.query(Profile).filter(Profile.email == email.lower()).first()
    if not user:
        logger.debug("User not found: %s", email)
        return None

    if not verify_password(password, user.password_hash):
        logger.debug("Password verification failed for user: %s", email)
        return None

    return user


def create_user(db: Session, email: str, password: str, name: str, avatar_url: str = None) -> Profile:
    """Register a new user profile."""
    email = email.lower()
    logger.info("Starting user registration for email: %s", email)

    if get_user_by_email(db, email):
        logger.warning("Registration attempt with existing email: %s", email)
        raise ValidationError("Email already registered")

    user = Profile(
        email=email,
        name=name.strip(),
        avatar_url=avatar_url,
        password_hash=get_password_hash(password),
    )
    db.add(user)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        logger.warning("IntegrityError creating user %s", email, exc_info=True)
        raise ValidationError("Email already registered")

    db.refresh(user)
    logger.info("User registration completed successfully for %s", email)
    return user


def get_user(db: Session, user_id: UUID) -> Profile:
    user = db.query(Profile).filter(Profile.id == user_id).first()
    if not user:
        raise NotFoundError("User not found")
    return user


def get_user_by_email(db: Session, email: str) -> Optional[Profile]:
    return db.query(Profile).filter(Profile.email == email.lower()).first()


def update_profile(db: Session, user: Profile, name: str = None, avatar_url: str = None) -> Profile:
    if name is not None:
        if not name.strip():
            raise ValidationError("Name cannot be empty")
        user.name = name.strip()
    if avatar_url is not None:
        user.avatar_url = avatar_url
    db.commit()
    db.refresh(user)
    return user


def change_password(db: Session, user: Profile, current_password: str, new_password: str) -> None:
    if not verify_password(current_password, user.password_hash):
        raise ValidationError("Current password is incorrect")
    user.password_hash = get_password_hash(new_password)
    db.commit()


def create_access_token_for_user(user: Profile) -> str:
    """Create access token for user."""
    return create_access_token(user.id, email=user.email)
