from pydantic import BaseModel
from typing import Optional
from datetime import datetime
from uuid import UUID
from tontine.models.notification import Notification, NotificationAudience, NotificationType


class NotificationResponse(BaseModel):
    id: UUID
    audience: NotificationAudience
    user_id: Optional[UUID] = None
    group_id: UUID
    cycle_id: Optional[UUID] = None
    message: str
    type: NotificationType
    is_read: bool
    created_at: datetime

    @classmethod
    def from_row(cls, notification: Notification, is_read: bool) -> "NotificationResponse":
        """Build from a notification and the reading user's read flag."""
        return cls(
            id=notification.id,
            audience=notification.audience,
            user_id=notification.user_id,
            group_id=notification.group_id,
            cycle_id=notification.cycle_id,
            message=notification.message,
            type=notification.type,
            is_read=is_read,
            created_at=notification.created_at,
        )
