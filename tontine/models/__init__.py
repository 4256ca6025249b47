from tontine.db.base import Base

# Import all models so Alembic can detect them
from tontine.models.user import Profile
from tontine.models.group import Group, GroupMember, ContributionFrequency
from tontine.models.cycle import Cycle, CycleStatus
from tontine.models.payment import Payment, PaymentStatus
from tontine.models.notification import (
    Notification,
    NotificationReceipt,
    NotificationType,
    NotificationAudience,
)

__all__ = [
    "Base",
    "Profile",
    "Group",
    "GroupMember",
    "ContributionFrequency",
    "Cycle",
    "CycleStatus",
    "Payment",
    "PaymentStatus",
    "Notification",
    "NotificationReceipt",
    "NotificationType",
    "NotificationAudience",
]
