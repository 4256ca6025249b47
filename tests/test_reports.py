"""
Tests for the payment and payout calendar.
"""

from datetime import datetime, timedelta
from decimal import Decimal

import pytest

from tontine.core.errors import PermissionDeniedError
from tontine.models import PaymentStatus
from tontine.services.cycle import complete_cycle, create_cycle, get_cycle_payments, mark_payment
from tontine.services.group import create_group
from tontine.services.report import calendar_events

START = datetime(2026, 6, 1, 9, 0)


def _summary(events):
    return [(e["type"], e["cycle_number"], e["date"], e["amount"]) for e in events]


def test_payment_and_payout_per_open_cycle(db, group, members, admin) -> None:
    create_cycle(db, group.id, created_by=admin.id, start_date=START, end_date=START + timedelta(days=30))
    create_cycle(db, group.id, created_by=admin.id,
                 start_date=START + timedelta(days=30), end_date=START + timedelta(days=60))

    events = calendar_events(db, members[2])
    assert _summary(events) == [
        ("payment", 1, START + timedelta(days=30), Decimal("50.00")),
        ("payout", 1, START + timedelta(days=30), Decimal("200.00")),
        ("payment", 2, START + timedelta(days=60), Decimal("50.00")),
        ("payout", 2, START + timedelta(days=60), Decimal("200.00")),
    ]
    assert [e["cycle_status"] for e in events[::2]] == ["active", "upcoming"]
    assert events[0]["recipient_id"] == members[0].id


def test_completed_cycles_drop_off(db, group, admin) -> None:
    first = create_cycle(db, group.id, created_by=admin.id, start_date=START, end_date=START + timedelta(days=30))
    create_cycle(db, group.id, created_by=admin.id,
                 start_date=START + timedelta(days=30), end_date=START + timedelta(days=60))
    for payment in get_cycle_payments(db, first.id):
        mark_payment(db, first.id, payment.payer_id, PaymentStatus.PAID, admin.id)
    complete_cycle(db, first.id, admin.id)

    assert {e["cycle_number"] for e in calendar_events(db, admin)} == {2}


def test_filter_by_group(db, group, members, admin) -> None:
    other = create_group(db, created_by=admin.id, name="Side Pot", contribution_amount=Decimal("10.00"), max_members=3)
    create_cycle(db, group.id, created_by=admin.id, start_date=START, end_date=START + timedelta(days=30))
    create_cycle(db, other.id, created_by=admin.id, start_date=START, end_date=START + timedelta(days=7))

    assert [e["group_name"] for e in calendar_events(db, admin)] == ["Side Pot", "Side Pot", "Savers", "Savers"]
    only_other = calendar_events(db, admin, group_id=other.id)
    assert _summary(only_other) == [
        ("payment", 1, START + timedelta(days=7), Decimal("10.00")),
        ("payout", 1, START + timedelta(days=7), Decimal("10.00")),
    ]

    with pytest.raises(PermissionDeniedError):
        calendar_events(db, members[1], group_id=other.id)


def test_no_groups_no_events(db, make_user) -> None:
    assert calendar_events(db, make_user()) == []
