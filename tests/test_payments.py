"""
Tests for payment marking, history filters, CSV export and reminders.
"""

import uuid

import pytest

from tontine.core.errors import NotFoundError, PermissionDeniedError, ValidationError
from tontine.models import Notification, NotificationAudience, NotificationType, PaymentStatus
from tontine.services.cycle import (
    complete_cycle, create_cycle, get_cycle_payments, mark_payment, send_reminder,
)
from tontine.services.payment import CSV_HEADERS, export_payments_csv, list_payments


@pytest.fixture
def cycle(db, group, admin):
    return create_cycle(db, group.id, created_by=admin.id)


@pytest.fixture
def sent_emails(monkeypatch):
    sent = []
    monkeypatch.setattr(
        "tontine.services.cycle.send_payment_reminder_email",
        lambda *args: sent.append(args),
    )
    return sent


def test_mark_paid_and_back_to_pending(db, cycle, members, admin) -> None:
    payment = mark_payment(db, cycle.id, members[1].id, PaymentStatus.PAID, admin.id)
    assert payment.status == PaymentStatus.PAID
    assert payment.paid_at is not None

    payment = mark_payment(db, cycle.id, members[1].id, PaymentStatus.PENDING, admin.id)
    assert payment.status == PaymentStatus.PENDING
    assert payment.paid_at is None


def test_marking_same_status_keeps_paid_date(db, cycle, members, admin) -> None:
    first = mark_payment(db, cycle.id, members[1].id, PaymentStatus.PAID, admin.id)
    paid_at = first.paid_at
    again = mark_payment(db, cycle.id, members[1].id, PaymentStatus.PAID, admin.id)
    assert again.paid_at == paid_at


def test_unknown_member_has_no_payment(db, cycle, admin) -> None:
    with pytest.raises(NotFoundError):
        mark_payment(db, cycle.id, uuid.uuid4(), PaymentStatus.PAID, admin.id)


def test_completed_cycle_payments_are_frozen(db, cycle, members, admin) -> None:
    for member in members:
        mark_payment(db, cycle.id, member.id, PaymentStatus.PAID, admin.id)
    complete_cycle(db, cycle.id, admin.id)

    with pytest.raises(ValidationError):
        mark_payment(db, cycle.id, members[1].id, PaymentStatus.PENDING, admin.id)


def test_history_filters(db, group, cycle, members, admin) -> None:
    mark_payment(db, cycle.id, members[2].id, PaymentStatus.PAID, admin.id)

    rows = list_payments(db, members[1].id, group_id=group.id)
    assert len(rows) == 4

    paid = list_payments(db, admin.id, group_id=group.id, status=PaymentStatus.PAID)
    assert [name for _, _, name in paid] == ["Cleo"]

    by_payer = list_payments(db, admin.id, cycle_id=cycle.id, payer_id=members[3].id)
    assert [name for _, _, name in by_payer] == ["Dev"]


def test_history_search_matches_name_or_cycle_number(db, group, cycle, admin) -> None:
    assert [name for _, _, name in list_payments(db, admin.id, group_id=group.id, search="ben")] == ["Ben"]
    assert len(list_payments(db, admin.id, group_id=group.id, search="1")) == 4
    assert list_payments(db, admin.id, group_id=group.id, search="zzz") == []


def test_history_requires_membership(db, group, cycle, make_user) -> None:
    outsider = make_user()
    with pytest.raises(PermissionDeniedError):
        list_payments(db, outsider.id, group_id=group.id)


def test_history_requires_a_scope(db, admin) -> None:
    with pytest.raises(ValidationError):
        list_payments(db, admin.id)


def test_csv_export(db, group, cycle, members, admin) -> None:
    mark_payment(db, cycle.id, members[0].id, PaymentStatus.PAID, admin.id)
    rows = list_payments(db, admin.id, group_id=group.id)

    lines = export_payments_csv(rows).strip().split("\n")
    assert lines[0] == ",".join(CSV_HEADERS)
    assert len(lines) == 5
    ada = next(line for line in lines if ",Ada," in line)
    assert ada.startswith("1,Ada,50.00,paid,")
    ben = next(line for line in lines if ",Ben," in line)
    assert ben == "1,Ben,50.00,pending,N/A"


def test_reminder_notifies_pending_member(db, cycle, members, admin, sent_emails) -> None:
    notification = send_reminder(db, cycle.id, members[2].id, admin.id)

    assert notification.audience == NotificationAudience.USER
    assert notification.user_id == members[2].id
    assert notification.type == NotificationType.PAYMENT_REMINDER
    assert notification.cycle_id == cycle.id
    assert len(sent_emails) == 1
    assert sent_emails[0][0] == members[2].email


def test_reminder_refused_for_paid_member(db, cycle, members, admin, sent_emails) -> None:
    mark_payment(db, cycle.id, members[2].id, PaymentStatus.PAID, admin.id)
    with pytest.raises(ValidationError):
        send_reminder(db, cycle.id, members[2].id, admin.id)
    assert sent_emails == []


def test_reminder_refused_on_completed_cycle(db, cycle, members, admin, sent_emails) -> None:
    for payment in get_cycle_payments(db, cycle.id):
        mark_payment(db, cycle.id, payment.payer_id, PaymentStatus.PAID, admin.id)
    complete_cycle(db, cycle.id, admin.id)
    with pytest.raises(ValidationError):
        send_reminder(db, cycle.id, members[2].id, admin.id)


def test_reminder_needs_admin_or_recipient(db, cycle, members, sent_emails) -> None:
    with pytest.raises(PermissionDeniedError):
        send_reminder(db, cycle.id, members[3].id, members[2].id)
    assert db.query(Notification).filter(Notification.type == NotificationType.PAYMENT_REMINDER).count() == 0
