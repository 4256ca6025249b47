from sqlalchemy import (
    Column, ForeignKey, DateTime, Enum as SQLEnum, Numeric, UniqueConstraint, Uuid, text, func,
)
from sqlalchemy.orm import relationship
import uuid
from tontine.db.base import Base
import enum


class PaymentStatus(str, enum.Enum):
    """A contribution is either outstanding or paid; there are no partial payments."""
    PENDING = "pending"
    PAID = "paid"


class Payment(Base):
    """One member's contribution to one cycle."""
    __tablename__ = "payments"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    cycle_id = Column(Uuid(as_uuid=True), ForeignKey("cycles.id"), nullable=False, index=True)
    group_id = Column(Uuid(as_uuid=True), ForeignKey("groups.id"), nullable=False, index=True)
    payer_id = Column(Uuid(as_uuid=True), ForeignKey("profiles.id"), nullable=False, index=True)
    amount = Column(Numeric(12, 2), nullable=False)
    status = Column(
        SQLEnum(PaymentStatus, native_enum=False, values_callable=lambda obj: [e.value for e in obj]),
        default=PaymentStatus.PENDING,
        nullable=False,
    )
    paid_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False, server_default=text("CURRENT_TIMESTAMP"))
    updated_at = Column(DateTime, nullable=True, onupdate=func.now())

    # Relationships
    cycle = relationship("Cycle", back_populates="payments")
    payer = relationship("Profile", foreign_keys=[payer_id])

    __table_args__ = (
        UniqueConstraint("cycle_id", "payer_id", name="uq_payment_cycle_payer"),
    )
