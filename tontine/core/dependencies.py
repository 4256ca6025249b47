import uuid
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session

from tontine.core.security import decode_access_token
from tontine.db.base import get_db
from tontine.models.user import Profile

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login")


def _profile_id_from_token(token: str) -> Optional[uuid.UUID]:
    """Profile id carried in the token's "sub" claim, or None if the token is unusable."""
    payload = decode_access_token(token)
    if not payload or not payload.get("sub"):
        return None
    try:
        return uuid.UUID(payload["sub"])
    except (ValueError, TypeError):
        return None


async def get_current_user(
    token: str = Depends(oauth2_scheme),
    db: Session = Depends(get_db)
) -> Profile:
    """Profile of the caller identified by the bearer token."""
    profile_id = _profile_id_from_token(token)
    user = db.query(Profile).filter(Profile.id == profile_id).first() if profile_id else None
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user
