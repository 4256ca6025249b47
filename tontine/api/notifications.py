from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from tontine.core.dependencies import get_current_user
from tontine.core.errors import handle_service_errors
from tontine.db.base import get_db
from tontine.models.user import Profile
from tontine.schemas.notification import NotificationResponse
from tontine.services.notification import (
    delete_notification, list_notifications, mark_all_read, mark_notification_read,
)

router = APIRouter(prefix="/api/notifications", tags=["notifications"])


@router.get("", response_model=List[NotificationResponse])
def get_notifications(
    unread_only: bool = Query(False),
    limit: int = Query(50, ge=1, le=200),
    current_user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Personal and group notifications of the current user, newest first."""
    with handle_service_errors(db, "load notifications"):
        rows = list_notifications(db, current_user.id, unread_only=unread_only, limit=limit)
    return [NotificationResponse.from_row(notification, is_read) for notification, is_read in rows]


@router.post("/read-all")
def read_all(
    current_user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    with handle_service_errors(db, "mark notifications as read"):
        count = mark_all_read(db, current_user.id)
    return {"message": "All notifications marked as read", "updated": count}


@router.post("/{notification_id}/read", response_model=NotificationResponse)
def read_notification(
    notification_id: UUID,
    current_user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    with handle_service_errors(db, "mark notification as read"):
        notification = mark_notification_read(db, notification_id, current_user.id)
    return NotificationResponse.from_row(notification, True)


@router.delete("/{notification_id}")
def remove_notification(
    notification_id: UUID,
    current_user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Delete a personal notification, or dismiss a group notification."""
    with handle_service_errors(db, "delete notification"):
        delete_notification(db, notification_id, current_user.id)
    return {"message": "Notification removed", "notification_id": str(notification_id)}
