"""Dashboard and analytics views.

Group-level views are served through the query cache; committed writes to
cycles and payments drop the affected entries.
"""
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.orm import Session

from tontine.models.cycle import Cycle, CycleStatus
from tontine.models.group import Group, GroupMember
from tontine.models.payment import Payment, PaymentStatus
from tontine.models.user import Profile
from tontine.services.cache import QueryCache, query_cache
from tontine.services.notification import list_notifications
from tontine.services.permissions import get_group_or_404, require_member


def _collection_rate(paid: int, total: int) -> float:
    return round(paid / total * 100, 1) if total else 0.0


def _load_cycle_overview(db: Session, group_id: UUID) -> List[dict]:
    cycles = db.query(Cycle).filter(Cycle.group_id == group_id).order_by(Cycle.cycle_number).all()
    counts = {}
    payments = db.query(Payment).filter(Payment.group_id == group_id).all()
    for payment in payments:
        total, paid, collected = counts.get(payment.cycle_id, (0, 0, Decimal("0.00")))
        if payment.status == PaymentStatus.PAID:
            paid += 1
            collected += payment.amount
        counts[payment.cycle_id] = (total + 1, paid, collected)

    names = dict(db.query(Profile.id, Profile.name).filter(
        Profile.id.in_([c.recipient_id for c in cycles])
    ).all()) if cycles else {}

    overview = []
    for cycle in cycles:
        total, paid, collected = counts.get(cycle.id, (0, 0, Decimal("0.00")))
        overview.append({
            "id": cycle.id,
            "cycle_number": cycle.cycle_number,
            "status": cycle.status.value,
            "recipient_id": cycle.recipient_id,
            "recipient_name": names.get(cycle.recipient_id),
            "start_date": cycle.start_date,
            "end_date": cycle.end_date,
            "completed_at": cycle.completed_at,
            "payments_made": paid,
            "total_payments": total,
            "amount_collected": collected,
            "collection_rate": _collection_rate(paid, total),
        })
    return overview


def cycle_overview(db: Session, group_id: UUID, user_id: UUID, cache: QueryCache = query_cache) -> List[dict]:
    """Cycles of a group with payment progress, in sequence order."""
    get_group_or_404(db, group_id)
    require_member(db, group_id, user_id)
    return cache.get_or_load(
        "cycles",
        {"group_id": group_id},
        lambda: _load_cycle_overview(db, group_id),
        row_ids=lambda rows: [row["id"] for row in rows],
        is_list=True,
    )


def group_report(db: Session, group_id: UUID, user_id: UUID, cache: QueryCache = query_cache) -> dict:
    """Collection statistics for a group."""
    group = get_group_or_404(db, group_id)
    require_member(db, group_id, user_id)

    def load():
        cycles = _load_cycle_overview(db, group_id)
        total_payments = sum(c["total_payments"] for c in cycles)
        paid_payments = sum(c["payments_made"] for c in cycles)
        return {
            "group_id": group.id,
            "group_name": group.name,
            "member_count": db.query(GroupMember).filter(GroupMember.group_id == group_id).count(),
            "current_cycle": group.current_cycle,
            "total_cycles": group.total_cycles,
            "completed_cycles": sum(1 for c in cycles if c["status"] == CycleStatus.COMPLETED.value),
            "total_collected": sum((c["amount_collected"] for c in cycles), Decimal("0.00")),
            "collection_rate": _collection_rate(paid_payments, total_payments),
            "cycles": cycles,
        }

    return cache.get_or_load(
        "groups",
        {"report": group_id},
        load,
        row_ids=lambda report: [report["group_id"]] + [c["id"] for c in report["cycles"]],
    )


def user_dashboard(db: Session, user: Profile) -> dict:
    """Summary of the user's groups, dues and payouts."""
    group_ids = [row[0] for row in db.query(GroupMember.group_id).filter(GroupMember.user_id == user.id).all()]

    completed_cycles = 0
    is_current_recipient = False
    upcoming_payments = []
    if group_ids:
        completed_cycles = db.query(Cycle).filter(
            Cycle.group_id.in_(group_ids),
            Cycle.status == CycleStatus.COMPLETED
        ).count()
        is_current_recipient = db.query(Cycle).filter(
            Cycle.group_id.in_(group_ids),
            Cycle.status == CycleStatus.ACTIVE,
            Cycle.recipient_id == user.id
        ).first() is not None

        dues = db.query(Payment, Cycle, Group).join(
            Cycle, Cycle.id == Payment.cycle_id
        ).join(
            Group, Group.id == Payment.group_id
        ).filter(
            Payment.payer_id == user.id,
            Payment.status == PaymentStatus.PENDING,
            Cycle.status == CycleStatus.ACTIVE
        ).order_by(Cycle.end_date).all()
        for payment, cycle, group in dues:
            upcoming_payments.append({
                "group_id": group.id,
                "group_name": group.name,
                "cycle_id": cycle.id,
                "cycle_number": cycle.cycle_number,
                "amount": payment.amount,
                "due_date": cycle.end_date,
            })

    total_contributed = db.query(func.coalesce(func.sum(Payment.amount), 0)).filter(
        Payment.payer_id == user.id,
        Payment.status == PaymentStatus.PAID
    ).scalar()

    return {
        "active_groups": len(group_ids),
        "completed_cycles": completed_cycles,
        "total_contributed": Decimal(total_contributed),
        "is_current_recipient": is_current_recipient,
        "upcoming_payments": upcoming_payments,
        "recent_notifications": list_notifications(db, user.id, limit=5),
    }


def calendar_events(db: Session, user: Profile, group_id: Optional[UUID] = None) -> List[dict]:
    """Contribution and payout dates of the active and upcoming cycles in the user's groups.

    Each cycle yields a "payment" event for the per-member contribution and a
    "payout" event for the pooled amount, both on the cycle's end date.
    Cycles without an end date have nothing to place and are skipped.
    """
    if group_id is not None:
        get_group_or_404(db, group_id)
        require_member(db, group_id, user.id)
        group_ids = [group_id]
    else:
        group_ids = [row[0] for row in db.query(GroupMember.group_id).filter(GroupMember.user_id == user.id).all()]
    if not group_ids:
        return []

    member_counts = dict(db.query(GroupMember.group_id, func.count(GroupMember.id)).filter(
        GroupMember.group_id.in_(group_ids)
    ).group_by(GroupMember.group_id).all())

    rows = db.query(Cycle, Group).join(Group, Group.id == Cycle.group_id).filter(
        Cycle.group_id.in_(group_ids),
        Cycle.status.in_([CycleStatus.ACTIVE, CycleStatus.UPCOMING]),
        Cycle.end_date.isnot(None)
    ).order_by(Cycle.end_date, Group.name, Cycle.cycle_number).all()

    events = []
    for cycle, group in rows:
        common = {
            "date": cycle.end_date,
            "group_id": group.id,
            "group_name": group.name,
            "cycle_id": cycle.id,
            "cycle_number": cycle.cycle_number,
            "cycle_status": cycle.status.value,
            "recipient_id": cycle.recipient_id,
        }
        events.append({**common, "type": "payment", "amount": group.contribution_amount})
        events.append({
            **common,
            "type": "payout",
            "amount": group.contribution_amount * member_counts.get(group.id, 0),
        })
    return events
