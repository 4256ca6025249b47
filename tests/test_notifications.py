"""
Tests for the notification feed: broadcasts, read state, dismissal and deletion.
"""

import uuid

import pytest

from tontine.core.errors import NotFoundError
from tontine.models import Notification, NotificationReceipt, NotificationType
from tontine.services.cycle import create_cycle, send_reminder
from tontine.services.notification import (
    delete_notification, list_notifications, mark_all_read, mark_notification_read,
    notify_group, notify_user,
)


@pytest.fixture(autouse=True)
def _no_email(monkeypatch):
    monkeypatch.setattr("tontine.services.cycle.send_payment_reminder_email", lambda *args: None)


@pytest.fixture
def broadcast(db, group, admin):
    """The cycle_started broadcast of the group's first cycle."""
    create_cycle(db, group.id, created_by=admin.id)
    return db.query(Notification).filter(Notification.type == NotificationType.CYCLE_STARTED).one()


def test_broadcast_is_one_row_seen_by_every_member(db, broadcast, members) -> None:
    assert db.query(Notification).count() == 1
    for member in members:
        feed = list_notifications(db, member.id)
        assert [(n.id, is_read) for n, is_read in feed] == [(broadcast.id, False)]


def test_outsiders_do_not_see_group_notifications(db, broadcast, make_user) -> None:
    outsider = make_user()
    assert list_notifications(db, outsider.id) == []
    with pytest.raises(NotFoundError):
        mark_notification_read(db, broadcast.id, outsider.id)


def test_personal_notification_only_reaches_its_user(db, group, members) -> None:
    notify_user(db, members[1].id, group.id, NotificationType.PAYMENT_REMINDER, "Pay up")
    db.commit()
    assert len(list_notifications(db, members[1].id)) == 1
    assert list_notifications(db, members[2].id) == []


def test_reading_a_broadcast_is_per_member(db, broadcast, members) -> None:
    mark_notification_read(db, broadcast.id, members[1].id)

    assert list_notifications(db, members[1].id)[0][1] is True
    assert list_notifications(db, members[2].id)[0][1] is False
    assert list_notifications(db, members[1].id, unread_only=True) == []
    db.refresh(broadcast)
    assert broadcast.is_read is False


def test_mark_all_read(db, broadcast, group, cycle_member_reminder, members) -> None:
    assert mark_all_read(db, members[2].id) == 2
    assert list_notifications(db, members[2].id, unread_only=True) == []
    assert mark_all_read(db, members[2].id) == 0
    # Other members keep their unread broadcast
    assert len(list_notifications(db, members[1].id, unread_only=True)) == 1


@pytest.fixture
def cycle_member_reminder(db, broadcast, admin, members):
    return send_reminder(db, broadcast.cycle_id, members[2].id, admin.id)


def test_feed_is_newest_first_and_limited(db, broadcast, cycle_member_reminder, members) -> None:
    feed = list_notifications(db, members[2].id)
    assert [n.id for n, _ in feed] == [cycle_member_reminder.id, broadcast.id]
    assert len(list_notifications(db, members[2].id, limit=1)) == 1


def test_member_deleting_broadcast_only_dismisses_it(db, broadcast, members) -> None:
    delete_notification(db, broadcast.id, members[1].id)

    assert list_notifications(db, members[1].id) == []
    assert len(list_notifications(db, members[2].id)) == 1
    assert db.query(Notification).filter(Notification.id == broadcast.id).count() == 1


def test_admin_deleting_broadcast_removes_it_for_all(db, broadcast, admin, members) -> None:
    mark_notification_read(db, broadcast.id, members[1].id)
    broadcast_id = broadcast.id
    delete_notification(db, broadcast_id, admin.id)

    assert db.query(Notification).filter(Notification.id == broadcast_id).count() == 0
    assert db.query(NotificationReceipt).count() == 0
    for member in members:
        assert list_notifications(db, member.id) == []


def test_deleting_personal_notification(db, cycle_member_reminder, members) -> None:
    reminder_id = cycle_member_reminder.id
    with pytest.raises(NotFoundError):
        delete_notification(db, reminder_id, members[1].id)

    delete_notification(db, reminder_id, members[2].id)
    assert db.query(Notification).filter(Notification.id == reminder_id).count() == 0


def test_unknown_notification(db, admin) -> None:
    with pytest.raises(NotFoundError):
        mark_notification_read(db, uuid.uuid4(), admin.id)


def test_notify_group_leaves_commit_to_caller(db, group) -> None:
    notify_group(db, group.id, NotificationType.CYCLE_COMPLETED, "Done")
    db.rollback()
    assert db.query(Notification).count() == 0
