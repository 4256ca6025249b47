from sqlalchemy import (
    Column, String, ForeignKey, DateTime, Enum as SQLEnum, Boolean, UniqueConstraint, Uuid,
)
from sqlalchemy.orm import relationship
from datetime import datetime
import uuid
from tontine.db.base import Base
import enum


class NotificationType(str, enum.Enum):
    PAYMENT_REMINDER = "payment_reminder"
    CYCLE_STARTED = "cycle_started"
    CYCLE_COMPLETED = "cycle_completed"


class NotificationAudience(str, enum.Enum):
    """Who a notification is addressed to."""
    USER = "user"    # the single user in user_id
    GROUP = "group"  # every member of group_id; read state lives in NotificationReceipt


class Notification(Base):
    """Immutable message produced by a lifecycle transition or a reminder request."""
    __tablename__ = "notifications"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    audience = Column(
        SQLEnum(NotificationAudience, native_enum=False, values_callable=lambda obj: [e.value for e in obj]),
        default=NotificationAudience.USER,
        nullable=False,
    )
    user_id = Column(Uuid(as_uuid=True), ForeignKey("profiles.id"), nullable=True, index=True)
    group_id = Column(Uuid(as_uuid=True), ForeignKey("groups.id"), nullable=False, index=True)
    cycle_id = Column(Uuid(as_uuid=True), ForeignKey("cycles.id"), nullable=True, index=True)
    message = Column(String(500), nullable=False)
    type = Column(
        SQLEnum(NotificationType, native_enum=False, values_callable=lambda obj: [e.value for e in obj]),
        nullable=False,
    )
    is_read = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)

    # Relationships
    receipts = relationship("NotificationReceipt", back_populates="notification")


class NotificationReceipt(Base):
    """Per-member read/dismiss state of a group broadcast."""
    __tablename__ = "notification_receipts"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    notification_id = Column(Uuid(as_uuid=True), ForeignKey("notifications.id"), nullable=False, index=True)
    user_id = Column(Uuid(as_uuid=True), ForeignKey("profiles.id"), nullable=False, index=True)
    is_read = Column(Boolean, nullable=False, default=False)
    dismissed_at = Column(DateTime, nullable=True)

    # Relationships
    notification = relationship("Notification", back_populates="receipts")

    __table_args__ = (
        UniqueConstraint("notification_id", "user_id", name="uq_receipt_notification_user"),
    )
