from sqlalchemy import (
    Column, ForeignKey, DateTime, Enum as SQLEnum, Integer, Index, UniqueConstraint, Uuid, text,
)
from sqlalchemy.orm import relationship
import uuid
from tontine.db.base import Base
import enum


class CycleStatus(str, enum.Enum):
    """Cycle status. Transitions only move forward."""
    UPCOMING = "upcoming"
    ACTIVE = "active"
    COMPLETED = "completed"


class Cycle(Base):
    """One payout round of a group."""
    __tablename__ = "cycles"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    group_id = Column(Uuid(as_uuid=True), ForeignKey("groups.id"), nullable=False, index=True)
    cycle_number = Column(Integer, nullable=False)
    recipient_id = Column(Uuid(as_uuid=True), ForeignKey("profiles.id"), nullable=False)
    start_date = Column(DateTime, nullable=False)
    end_date = Column(DateTime, nullable=True)
    status = Column(
        SQLEnum(CycleStatus, native_enum=False, values_callable=lambda obj: [e.value for e in obj]),
        default=CycleStatus.UPCOMING,
        nullable=False,
    )
    started_at = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True)
    first_reminder_date = Column(DateTime, nullable=True)
    second_reminder_date = Column(DateTime, nullable=True)
    first_reminder_sent_at = Column(DateTime, nullable=True)
    second_reminder_sent_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False, server_default=text("CURRENT_TIMESTAMP"))

    # Relationships
    group = relationship("Group", back_populates="cycles")
    recipient = relationship("Profile", foreign_keys=[recipient_id])
    payments = relationship("Payment", back_populates="cycle")

    __table_args__ = (
        UniqueConstraint("group_id", "cycle_number", name="uq_cycle_group_number"),
        # At most one active cycle per group
        Index(
            "uq_cycle_one_active_per_group",
            "group_id",
            unique=True,
            postgresql_where=text("status = 'active'"),
            sqlite_where=text("status = 'active'"),
        ),
    )
