import logging
from datetime import datetime
from typing import List, Optional, Tuple
from uuid import UUID

from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from tontine.core.errors import NotFoundError, PermissionDeniedError
from tontine.models.group import GroupMember
from tontine.models.notification import (
    Notification, NotificationAudience, NotificationReceipt, NotificationType,
)
from tontine.services.permissions import is_group_admin

logger = logging.getLogger(__name__)


def notify_group(
    db: Session,
    group_id: UUID,
    notification_type: NotificationType,
    message: str,
    cycle_id: Optional[UUID] = None,
) -> Notification:
    """Queue one broadcast for every member of the group. Caller commits."""
    notification = Notification(
        audience=NotificationAudience.GROUP,
        group_id=group_id,
        cycle_id=cycle_id,
        type=notification_type,
        message=message,
    )
    db.add(notification)
    return notification


def notify_user(
    db: Session,
    user_id: UUID,
    group_id: UUID,
    notification_type: NotificationType,
    message: str,
    cycle_id: Optional[UUID] = None,
) -> Notification:
    """Queue a notification for a single user. Caller commits."""
    notification = Notification(
        audience=NotificationAudience.USER,
        user_id=user_id,
        group_id=group_id,
        cycle_id=cycle_id,
        type=notification_type,
        message=message,
    )
    db.add(notification)
    return notification


def _visible_to(db: Session, user_id: UUID):
    group_ids = select(GroupMember.group_id).where(GroupMember.user_id == user_id)
    return or_(
        (Notification.audience == NotificationAudience.USER) & (Notification.user_id == user_id),
        (Notification.audience == NotificationAudience.GROUP) & (Notification.group_id.in_(group_ids)),
    )


def _receipts_for(db: Session, user_id: UUID, notification_ids) -> dict:
    if not notification_ids:
        return {}
    receipts = db.query(NotificationReceipt).filter(
        NotificationReceipt.user_id == user_id,
        NotificationReceipt.notification_id.in_(notification_ids)
    ).all()
    return {r.notification_id: r for r in receipts}


def list_notifications(
    db: Session,
    user_id: UUID,
    unread_only: bool = False,
    limit: Optional[int] = None,
) -> List[Tuple[Notification, bool]]:
    """Notifications addressed to the user, newest first, paired with the user's read flag."""
    notifications = db.query(Notification).filter(
        _visible_to(db, user_id)
    ).order_by(Notification.created_at.desc()).all()

    receipts = _receipts_for(db, user_id, [n.id for n in notifications if n.audience == NotificationAudience.GROUP])

    result = []
    for notification in notifications:
        if notification.audience == NotificationAudience.GROUP:
            receipt = receipts.get(notification.id)
            if receipt and receipt.dismissed_at:
                continue
            is_read = bool(receipt and receipt.is_read)
        else:
            is_read = notification.is_read
        if unread_only and is_read:
            continue
        result.append((notification, is_read))
        if limit is not None and len(result) >= limit:
            break
    return result


def _get_visible(db: Session, notification_id: UUID, user_id: UUID) -> Notification:
    notification = db.query(Notification).filter(
        Notification.id == notification_id,
        _visible_to(db, user_id)
    ).first()
    if not notification:
        raise NotFoundError("Notification not found")
    return notification


def _get_or_create_receipt(db: Session, notification_id: UUID, user_id: UUID) -> NotificationReceipt:
    receipt = db.query(NotificationReceipt).filter(
        NotificationReceipt.notification_id == notification_id,
        NotificationReceipt.user_id == user_id
    ).first()
    if not receipt:
        receipt = NotificationReceipt(notification_id=notification_id, user_id=user_id, is_read=False)
        db.add(receipt)
    return receipt


def mark_notification_read(db: Session, notification_id: UUID, user_id: UUID) -> Notification:
    notification = _get_visible(db, notification_id, user_id)
    if notification.audience == NotificationAudience.GROUP:
        _get_or_create_receipt(db, notification.id, user_id).is_read = True
    else:
        notification.is_read = True
    db.commit()
    db.refresh(notification)
    return notification


def mark_all_read(db: Session, user_id: UUID) -> int:
    """Mark every unread notification of the user as read. Returns how many changed."""
    unread = list_notifications(db, user_id, unread_only=True)
    for notification, _ in unread:
        if notification.audience == NotificationAudience.GROUP:
            _get_or_create_receipt(db, notification.id, user_id).is_read = True
        else:
            notification.is_read = True
    db.commit()
    return len(unread)


def delete_notification(db: Session, notification_id: UUID, user_id: UUID) -> None:
    """
    Remove a notification from the user's feed.

    Personal notifications are deleted. A broadcast is only hidden for this user,
    unless the user administers the group, in which case it is deleted for everyone.
    There is no undo.
    """
    notification = _get_visible(db, notification_id, user_id)

    if notification.audience == NotificationAudience.USER:
        if notification.user_id != user_id:
            raise PermissionDeniedError("You can only delete your own notifications")
        db.delete(notification)
    elif is_group_admin(db, notification.group_id, user_id):
        for receipt in notification.receipts:
            db.delete(receipt)
        db.delete(notification)
    else:
        _get_or_create_receipt(db, notification.id, user_id).dismissed_at = datetime.utcnow()

    db.commit()
    logger.info("Notification %s removed for user %s", notification_id, user_id)
