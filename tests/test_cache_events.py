"""
Tests for committed-change events and the query cache they invalidate.
"""

import pytest

from tontine.db.events import DELETE, INSERT, UPDATE, ChangeBus, ChangeEvent, bus
from tontine.models import PaymentStatus
from tontine.services.cache import QueryCache, query_cache
from tontine.services.cycle import complete_cycle, create_cycle, get_cycle_payments, mark_payment
from tontine.services.group import add_member, remove_member
from tontine.services.report import cycle_overview, group_report


@pytest.fixture
def recorded():
    events = []
    subscription = bus.subscribe("*", events.append)
    yield events
    bus.unsubscribe(subscription)


def test_events_published_only_after_commit(db, group, members, admin, recorded) -> None:
    cycle = create_cycle(db, group.id, created_by=admin.id)
    recorded.clear()

    payment = get_cycle_payments(db, cycle.id)[0]
    payment.status = PaymentStatus.PAID
    db.flush()
    assert recorded == []

    db.commit()
    assert [(e.table, e.type) for e in recorded] == [("payments", UPDATE)]
    assert recorded[0].row_id == payment.id
    assert recorded[0].row["cycle_id"] == cycle.id


def test_rollback_discards_events(db, group, admin, recorded) -> None:
    cycle = create_cycle(db, group.id, created_by=admin.id)
    recorded.clear()

    get_cycle_payments(db, cycle.id)[0].status = PaymentStatus.PAID
    db.flush()
    db.rollback()
    db.commit()
    assert recorded == []


def test_membership_insert_and_delete_events(db, group, admin, make_user) -> None:
    newcomer = make_user()
    seen = []
    subscription = bus.subscribe(
        "group_members", seen.append, predicate=lambda e: e.row.get("user_id") == newcomer.id
    )
    try:
        add_member(db, group.id, added_by=admin.id, user_id=newcomer.id)
        remove_member(db, group.id, newcomer.id, admin.id)
    finally:
        bus.unsubscribe(subscription)
    assert [e.type for e in seen] == [INSERT, DELETE]


def test_conditional_updates_are_reported(db, group, admin, recorded) -> None:
    cycle = create_cycle(db, group.id, created_by=admin.id)
    nxt = create_cycle(db, group.id, created_by=admin.id)
    for payment in get_cycle_payments(db, cycle.id):
        mark_payment(db, cycle.id, payment.payer_id, PaymentStatus.PAID, admin.id)
    recorded.clear()

    complete_cycle(db, cycle.id, admin.id)
    cycle_updates = {e.row_id: e.row["status"] for e in recorded if e.table == "cycles" and e.type == UPDATE}
    assert cycle_updates == {cycle.id: "completed", nxt.id: "active"}


def test_failing_subscriber_does_not_stop_delivery() -> None:
    change_bus = ChangeBus()
    delivered = []

    def broken(change):
        raise RuntimeError("boom")

    change_bus.subscribe("cycles", broken)
    change_bus.subscribe("cycles", delivered.append)
    change_bus.publish(ChangeEvent("cycles", INSERT, {"id": 1}))
    assert len(delivered) == 1


def test_subscription_filters() -> None:
    change_bus = ChangeBus()
    delivered = []
    change_bus.subscribe("payments", delivered.append, event=DELETE)
    change_bus.publish(ChangeEvent("payments", INSERT, {"id": 1}))
    change_bus.publish(ChangeEvent("cycles", DELETE, {"id": 2}))
    change_bus.publish(ChangeEvent("payments", DELETE, {"id": 3}))
    assert [e.row_id for e in delivered] == [3]


def test_invalidation_is_row_targeted() -> None:
    change_bus = ChangeBus()
    cache = QueryCache(change_bus)
    cache.get_or_load("cycles", {"id": 1}, lambda: {"id": 1}, row_ids=lambda v: [v["id"]])
    cache.get_or_load("cycles", {"id": 2}, lambda: {"id": 2}, row_ids=lambda v: [v["id"]])
    cache.get_or_load("cycles", {"group_id": 9}, lambda: [1, 2], row_ids=lambda v: v, is_list=True)

    change_bus.publish(ChangeEvent("cycles", UPDATE, {"id": 1, "group_id": 9}))
    assert QueryCache.make_key("cycles", {"id": 1}) not in cache
    assert QueryCache.make_key("cycles", {"id": 2}) in cache
    assert QueryCache.make_key("cycles", {"group_id": 9}) not in cache


def test_insert_drops_lists_and_missing_id_drops_table() -> None:
    change_bus = ChangeBus()
    cache = QueryCache(change_bus)
    cache.get_or_load("cycles", {"id": 1}, lambda: 1, row_ids=lambda v: [v])
    cache.get_or_load("cycles", {"group_id": 9}, lambda: [1], row_ids=lambda v: v, is_list=True)

    change_bus.publish(ChangeEvent("cycles", INSERT, {"id": 3, "group_id": 9}))
    assert len(cache) == 1

    change_bus.publish(ChangeEvent("cycles", DELETE, {}))
    assert len(cache) == 0


def test_result_invalidated_during_load_is_not_stored() -> None:
    change_bus = ChangeBus()
    cache = QueryCache(change_bus)
    stored = {"status": "active"}

    def load_then_change():
        value = dict(stored)
        stored["status"] = "completed"
        change_bus.publish(ChangeEvent("cycles", UPDATE, {"id": 1}))
        return value

    first = cache.get_or_load("cycles", {"id": 1}, load_then_change, row_ids=lambda v: [1])
    assert first["status"] == "active"
    assert QueryCache.make_key("cycles", {"id": 1}) not in cache

    again = cache.get_or_load("cycles", {"id": 1}, lambda: dict(stored), row_ids=lambda v: [1])
    assert again["status"] == "completed"
    assert QueryCache.make_key("cycles", {"id": 1}) in cache


def test_overview_served_from_cache_until_a_payment_changes(db, group, members, admin) -> None:
    cycle = create_cycle(db, group.id, created_by=admin.id)

    first = cycle_overview(db, group.id, admin.id)
    misses = query_cache.misses
    assert cycle_overview(db, group.id, admin.id) is first
    assert query_cache.misses == misses

    mark_payment(db, cycle.id, members[1].id, PaymentStatus.PAID, admin.id)
    fresh = cycle_overview(db, group.id, admin.id)
    assert fresh is not first
    assert fresh[0]["payments_made"] == 1


def test_group_report_refreshes_after_new_member(db, group, admin, make_user) -> None:
    assert group_report(db, group.id, admin.id)["member_count"] == 4
    add_member(db, group.id, added_by=admin.id, user_id=make_user().id)
    assert group_report(db, group.id, admin.id)["member_count"] == 5
