"""Cycle and payment lifecycle.

A group's cycles move upcoming -> active -> completed, one active at a time.
The first cycle of a group starts active; later ones wait as upcoming until the
active cycle is completed with every contribution paid.
"""
import logging
from datetime import datetime, timedelta, timezone
from typing import List, Optional
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from tontine.core.config import settings
from tontine.core.email import send_payment_reminder_email
from tontine.core.errors import ConflictError, NotFoundError, ValidationError
from tontine.db.events import UPDATE, record_change
from tontine.models.cycle import Cycle, CycleStatus
from tontine.models.group import Group
from tontine.models.notification import Notification, NotificationType
from tontine.models.payment import Payment, PaymentStatus
from tontine.models.user import Profile
from tontine.services.notification import notify_group, notify_user
from tontine.services.permissions import (
    get_active_cycle, get_group_or_404, require_admin, require_cycle_actor,
)
from tontine.services.rotation import list_member_ids, pick_next_recipient

logger = logging.getLogger(__name__)


def get_cycle(db: Session, cycle_id: UUID) -> Cycle:
    cycle = db.query(Cycle).filter(Cycle.id == cycle_id).first()
    if not cycle:
        raise NotFoundError("Cycle not found")
    return cycle


def get_cycle_payments(db: Session, cycle_id: UUID) -> List[Payment]:
    return db.query(Payment).filter(Payment.cycle_id == cycle_id).order_by(Payment.created_at, Payment.id).all()


def _recipient_name(db: Session, cycle: Cycle) -> str:
    recipient = db.query(Profile).filter(Profile.id == cycle.recipient_id).first()
    return recipient.name if recipient else "the recipient"


def to_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Stored datetimes are naive UTC; convert aware ones, leave naive ones alone."""
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def _reminder_dates(start: datetime, end: datetime):
    first = max(start, end - timedelta(days=settings.FIRST_REMINDER_DAYS_BEFORE))
    second = max(start, end - timedelta(days=settings.SECOND_REMINDER_DAYS_BEFORE))
    return first, second


def _announce_start(db: Session, group: Group, cycle: Cycle) -> Notification:
    return notify_group(
        db,
        group.id,
        NotificationType.CYCLE_STARTED,
        f"Cycle {cycle.cycle_number} of {group.name} has started. "
        f"{_recipient_name(db, cycle)} receives the payout this round.",
        cycle_id=cycle.id,
    )


def create_cycle(
    db: Session,
    group_id: UUID,
    created_by: UUID,
    recipient_id: Optional[UUID] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
) -> Cycle:
    """
    Create the next cycle of a group.

    - The recipient defaults to the rotation suggestion and must be a member.
    - The group's first cycle is created active; later ones are upcoming.
    - One pending payment of the group's contribution amount is seeded for
      every current member.
    """
    group = get_group_or_404(db, group_id)
    require_admin(db, group.id, created_by, "create cycles")

    member_ids = list_member_ids(db, group.id)
    if not member_ids:
        raise ValidationError("Group has no members to receive a payout")

    existing = db.query(Cycle).filter(Cycle.group_id == group.id).all()
    if recipient_id is None:
        recipient_id = pick_next_recipient(member_ids, existing)
    elif recipient_id not in member_ids:
        raise ValidationError("Recipient must be a member of the group")

    start = to_naive_utc(start_date) or datetime.utcnow()
    end = to_naive_utc(end_date) or start + group.contribution_frequency.period
    if end <= start:
        raise ValidationError("Cycle end date must be after its start date")

    cycle_number = max((c.cycle_number for c in existing), default=0) + 1
    is_first = not existing
    first_reminder, second_reminder = _reminder_dates(start, end)

    cycle = Cycle(
        group_id=group.id,
        cycle_number=cycle_number,
        recipient_id=recipient_id,
        start_date=start,
        end_date=end,
        status=CycleStatus.ACTIVE if is_first else CycleStatus.UPCOMING,
        started_at=datetime.utcnow() if is_first else None,
        first_reminder_date=first_reminder,
        second_reminder_date=second_reminder,
    )
    db.add(cycle)
    db.flush()  # Get cycle.id

    for member_id in member_ids:
        db.add(Payment(
            cycle_id=cycle.id,
            group_id=group.id,
            payer_id=member_id,
            amount=group.contribution_amount,
            status=PaymentStatus.PENDING,
        ))

    if cycle_number > group.total_cycles:
        group.total_cycles = cycle_number
    if is_first:
        group.current_cycle = cycle_number
        _announce_start(db, group, cycle)

    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        logger.warning("Concurrent cycle creation for group %s", group_id)
        raise ConflictError("Another cycle was created for this group at the same time")
    db.refresh(cycle)
    logger.info(
        "Created cycle %d (%s) for group %s with %d pending payments",
        cycle.cycle_number, cycle.status.value, group.id, len(member_ids)
    )
    return cycle


def _activate(db: Session, group: Group, cycle: Cycle, now: datetime) -> bool:
    """Conditionally move an upcoming cycle to active. Caller commits, or rolls back on False."""
    try:
        updated = db.query(Cycle).filter(
            Cycle.id == cycle.id,
            Cycle.status == CycleStatus.UPCOMING
        ).update({Cycle.status: CycleStatus.ACTIVE, Cycle.started_at: now}, synchronize_session=False)
    except IntegrityError:
        # Another cycle of the group is already active
        logger.warning("Could not activate cycle %s of group %s", cycle.id, group.id)
        return False
    if updated != 1:
        return False
    record_change(db, "cycles", UPDATE, {"id": cycle.id, "group_id": group.id, "status": CycleStatus.ACTIVE})
    group.current_cycle = cycle.cycle_number
    _announce_start(db, group, cycle)
    return True


def _next_upcoming(db: Session, group_id: UUID) -> Optional[Cycle]:
    return db.query(Cycle).filter(
        Cycle.group_id == group_id,
        Cycle.status == CycleStatus.UPCOMING
    ).order_by(Cycle.cycle_number).first()


def complete_cycle(db: Session, cycle_id: UUID, completed_by: UUID) -> Cycle:
    """
    Complete the active cycle once every contribution is paid.

    The earliest upcoming cycle of the group then becomes active. Emits one
    cycle_completed broadcast and, when a cycle was activated, one
    cycle_started broadcast. Nothing changes if any payment is still pending.

    The status change is conditional on the cycle still being active, so of two
    concurrent completions only one succeeds; the other gets a ConflictError.
    """
    cycle = get_cycle(db, cycle_id)
    group = get_group_or_404(db, cycle.group_id)
    require_cycle_actor(db, completed_by, group, "complete cycles")

    if cycle.status != CycleStatus.ACTIVE:
        raise ValidationError("Only the active cycle can be completed")

    payments = get_cycle_payments(db, cycle.id)
    pending = [p for p in payments if p.status != PaymentStatus.PAID]
    if not payments or pending:
        raise ValidationError(
            f"All payments must be collected first: {len(pending)} of {len(payments)} still pending"
        )

    now = datetime.utcnow()
    updated = db.query(Cycle).filter(
        Cycle.id == cycle.id,
        Cycle.status == CycleStatus.ACTIVE
    ).update({Cycle.status: CycleStatus.COMPLETED, Cycle.completed_at: now}, synchronize_session=False)
    if updated != 1:
        db.rollback()
        raise ConflictError("Cycle was already completed by another request")
    record_change(db, "cycles", UPDATE, {"id": cycle.id, "group_id": group.id, "status": CycleStatus.COMPLETED})

    notify_group(
        db,
        group.id,
        NotificationType.CYCLE_COMPLETED,
        f"Cycle {cycle.cycle_number} of {group.name} has been completed. "
        f"{_recipient_name(db, cycle)} receives the payout.",
        cycle_id=cycle.id,
    )

    next_cycle = _next_upcoming(db, group.id)
    if next_cycle is not None and not _activate(db, group, next_cycle, now):
        db.rollback()
        raise ConflictError("Next cycle was activated by another request")

    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ConflictError("Another cycle of this group became active at the same time")

    db.refresh(cycle)
    logger.info(
        "Completed cycle %d of group %s; next active cycle: %s",
        cycle.cycle_number, group.id, next_cycle.cycle_number if next_cycle else None
    )
    return cycle


def start_cycle(db: Session, cycle_id: UUID, started_by: UUID) -> Cycle:
    """Activate an upcoming cycle when the group has no active cycle.

    Needed after the last cycle completed with nothing queued, since cycles
    created afterwards start out upcoming.
    """
    cycle = get_cycle(db, cycle_id)
    group = get_group_or_404(db, cycle.group_id)
    require_admin(db, group.id, started_by, "start cycles")

    if cycle.status != CycleStatus.UPCOMING:
        raise ValidationError("Only an upcoming cycle can be started")
    if get_active_cycle(db, group.id) is not None:
        raise ValidationError("Please complete the current active cycle before starting a new one")
    next_cycle = _next_upcoming(db, group.id)
    if next_cycle is None or next_cycle.id != cycle.id:
        raise ValidationError("Cycles must be started in order")

    if not _activate(db, group, cycle, datetime.utcnow()):
        db.rollback()
        raise ConflictError("Cycle was started by another request")
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ConflictError("Another cycle of this group became active at the same time")

    db.refresh(cycle)
    logger.info("Started cycle %d of group %s", cycle.cycle_number, group.id)
    return cycle


def delete_cycle(db: Session, cycle_id: UUID, deleted_by: UUID) -> None:
    """Delete the group's last cycle while it is still upcoming."""
    cycle = get_cycle(db, cycle_id)
    require_admin(db, cycle.group_id, deleted_by, "delete cycles")

    if cycle.status != CycleStatus.UPCOMING:
        raise ValidationError("Only upcoming cycles can be deleted")
    last_number = db.query(Cycle.cycle_number).filter(
        Cycle.group_id == cycle.group_id
    ).order_by(Cycle.cycle_number.desc()).first()[0]
    if cycle.cycle_number != last_number:
        raise ValidationError("Only the last cycle can be deleted")

    for payment in get_cycle_payments(db, cycle.id):
        db.delete(payment)
    for notification in db.query(Notification).filter(Notification.cycle_id == cycle.id).all():
        for receipt in notification.receipts:
            db.delete(receipt)
        db.delete(notification)
    db.flush()  # Dependents go first
    db.delete(cycle)
    db.commit()
    logger.info("Deleted upcoming cycle %s", cycle_id)


def _get_payment(db: Session, cycle_id: UUID, member_id: UUID) -> Payment:
    payment = db.query(Payment).filter(
        Payment.cycle_id == cycle_id,
        Payment.payer_id == member_id
    ).first()
    if not payment:
        raise NotFoundError("No payment for this member in the cycle")
    return payment


def mark_payment(
    db: Session,
    cycle_id: UUID,
    member_id: UUID,
    status: PaymentStatus,
    marked_by: UUID,
) -> Payment:
    """Set one member's contribution to paid or back to pending."""
    cycle = get_cycle(db, cycle_id)
    group = get_group_or_404(db, cycle.group_id)
    require_cycle_actor(db, marked_by, group, "update payments")

    if cycle.status == CycleStatus.COMPLETED:
        raise ValidationError("Payments of a completed cycle cannot be changed")

    payment = _get_payment(db, cycle.id, member_id)
    if payment.status == status:
        return payment

    payment.status = status
    payment.paid_at = datetime.utcnow() if status == PaymentStatus.PAID else None
    db.commit()
    db.refresh(payment)
    logger.info(
        "Payment of %s in cycle %d of group %s marked %s",
        member_id, cycle.cycle_number, group.id, status.value
    )
    return payment


def _queue_reminder(db: Session, group: Group, cycle: Cycle, payment: Payment) -> Notification:
    notification = notify_user(
        db,
        payment.payer_id,
        group.id,
        NotificationType.PAYMENT_REMINDER,
        f"Reminder: your contribution of {payment.amount:,.2f} for cycle {cycle.cycle_number} "
        f"of {group.name} is due.",
        cycle_id=cycle.id,
    )
    payer = db.query(Profile).filter(Profile.id == payment.payer_id).first()
    if payer:
        send_payment_reminder_email(payer.email, payer.name, group.name, cycle.cycle_number, payment.amount)
    return notification


def send_reminder(db: Session, cycle_id: UUID, member_id: UUID, sent_by: UUID) -> Notification:
    """Remind one member with a pending payment to pay."""
    cycle = get_cycle(db, cycle_id)
    group = get_group_or_404(db, cycle.group_id)
    require_cycle_actor(db, sent_by, group, "send reminders")

    if cycle.status == CycleStatus.COMPLETED:
        raise ValidationError("Cannot send reminders for a completed cycle")
    payment = _get_payment(db, cycle.id, member_id)
    if payment.status != PaymentStatus.PENDING:
        raise ValidationError("This member has already paid")

    notification = _queue_reminder(db, group, cycle, payment)
    db.commit()
    db.refresh(notification)
    logger.info("Payment reminder sent to %s for cycle %d of group %s", member_id, cycle.cycle_number, group.id)
    return notification


def remind_pending_members(db: Session, cycle: Cycle) -> int:
    """Queue a reminder for every member still owing in the cycle. Caller commits."""
    group = get_group_or_404(db, cycle.group_id)
    pending = db.query(Payment).filter(
        Payment.cycle_id == cycle.id,
        Payment.status == PaymentStatus.PENDING
    ).all()
    for payment in pending:
        _queue_reminder(db, group, cycle, payment)
    return len(pending)
