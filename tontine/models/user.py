from sqlalchemy import Column, String, DateTime, Uuid, text, func
from sqlalchemy.orm import relationship
import uuid
from tontine.db.base import Base


class Profile(Base):
    """Registered user and their public profile."""
    __tablename__ = "profiles"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String(150), nullable=False)
    email = Column(String(255), nullable=False, unique=True, index=True)
    avatar_url = Column(String(500), nullable=True)
    password_hash = Column(String(255), nullable=False)
    created_at = Column(DateTime, nullable=False, server_default=text("CURRENT_TIMESTAMP"))
    updated_at = Column(DateTime, nullable=True, onupdate=func.now())

    # Relationships
    memberships = relationship("GroupMember", back_populates="user")
