from sqlalchemy import (
    Column, String, ForeignKey, DateTime, Enum as SQLEnum, Boolean, Integer, Numeric, Text,
    UniqueConstraint, Uuid, text, func,
)
from sqlalchemy.orm import relationship
from datetime import datetime, timedelta
import uuid
from tontine.db.base import Base
import enum


class ContributionFrequency(str, enum.Enum):
    """How often members contribute (one cycle per period)."""
    WEEKLY = "weekly"
    BIWEEKLY = "biweekly"
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"

    @property
    def period(self) -> timedelta:
        return _PERIODS[self]


_PERIODS = {
    ContributionFrequency.WEEKLY: timedelta(days=7),
    ContributionFrequency.BIWEEKLY: timedelta(days=14),
    ContributionFrequency.MONTHLY: timedelta(days=30),
    ContributionFrequency.QUARTERLY: timedelta(days=91),
}


class Group(Base):
    """Rotating savings group. Root of memberships, cycles, payments and notifications."""
    __tablename__ = "groups"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String(150), nullable=False)
    description = Column(Text, nullable=True)
    contribution_amount = Column(Numeric(12, 2), nullable=False)
    contribution_frequency = Column(
        SQLEnum(ContributionFrequency, native_enum=False, values_callable=lambda obj: [e.value for e in obj]),
        default=ContributionFrequency.MONTHLY,
        nullable=False,
    )
    max_members = Column(Integer, nullable=False)
    current_cycle = Column(Integer, nullable=False, default=0)  # number of the active cycle, 0 before the first
    total_cycles = Column(Integer, nullable=False)
    is_public = Column(Boolean, nullable=False, default=False)
    allow_join_requests = Column(Boolean, nullable=False, default=False)
    created_by = Column(Uuid(as_uuid=True), ForeignKey("profiles.id"), nullable=True)
    created_at = Column(DateTime, nullable=False, server_default=text("CURRENT_TIMESTAMP"))
    updated_at = Column(DateTime, nullable=True, onupdate=func.now())

    # Relationships
    members = relationship("GroupMember", back_populates="group", order_by="GroupMember.joined_at")
    cycles = relationship("Cycle", back_populates="group", order_by="Cycle.cycle_number")


class GroupMember(Base):
    """Membership of a user in a group."""
    __tablename__ = "group_members"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    group_id = Column(Uuid(as_uuid=True), ForeignKey("groups.id"), nullable=False, index=True)
    user_id = Column(Uuid(as_uuid=True), ForeignKey("profiles.id"), nullable=False, index=True)
    is_admin = Column(Boolean, nullable=False, default=False)
    joined_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    # Relationships
    group = relationship("Group", back_populates="members")
    user = relationship("Profile", back_populates="memberships")

    __table_args__ = (
        UniqueConstraint("group_id", "user_id", name="uq_group_member"),
    )
