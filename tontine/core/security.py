from datetime import datetime, timedelta, timezone
from typing import Optional, Union
from uuid import UUID

import bcrypt
from jose import JWTError, jwt

from tontine.core.config import settings


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Check a password against the bcrypt hash stored on a profile."""
    if not plain_password or not hashed_password:
        return False

    try:
        return bcrypt.checkpw(plain_password.encode('utf-8'), hashed_password.encode('utf-8'))
    except ValueError:
        # Malformed hash
        return False


def get_password_hash(password: str) -> str:
    return bcrypt.hashpw(password.encode('utf-8'), bcrypt.gensalt()).decode('utf-8')


def create_access_token(
    profile_id: Union[UUID, str],
    email: Optional[str] = None,
    expires_delta: Optional[timedelta] = None
) -> str:
    """Sign a bearer token for a profile.

    The profile id goes in "sub"; the email rides along for clients that want
    to show who is signed in without another request.
    """
    issued_at = datetime.now(timezone.utc)
    claims = {
        "sub": str(profile_id),
        "iat": issued_at,
        "exp": issued_at + (expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)),
    }
    if email:
        claims["email"] = email
    return jwt.encode(claims, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_access_token(token: str) -> Optional[dict]:
    """Claims of a valid, unexpired token, or None."""
    try:
        return jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError:
        return None
