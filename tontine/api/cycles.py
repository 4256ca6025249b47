import logging
from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from tontine.core.audit import write_audit_log
from tontine.core.dependencies import get_current_user
from tontine.core.errors import handle_service_errors
from tontine.db.base import get_db
from tontine.models.user import Profile
from tontine.schemas.cycle import CycleResponse, PaymentMark, PaymentResponse
from tontine.schemas.notification import NotificationResponse
from tontine.services.cycle import (
    complete_cycle, delete_cycle, get_cycle, get_cycle_payments, mark_payment, send_reminder, start_cycle,
)
from tontine.services.permissions import get_group_or_404, require_member

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/cycles", tags=["cycles"])


@router.get("/{cycle_id}", response_model=CycleResponse)
def read_cycle(
    cycle_id: UUID,
    current_user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    with handle_service_errors(db, "load cycle"):
        cycle = get_cycle(db, cycle_id)
        require_member(db, cycle.group_id, current_user.id)
    return cycle


@router.get("/{cycle_id}/payments", response_model=List[PaymentResponse])
def read_cycle_payments(
    cycle_id: UUID,
    current_user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Contribution status of every member for the cycle."""
    with handle_service_errors(db, "load payments"):
        cycle = get_cycle(db, cycle_id)
        require_member(db, cycle.group_id, current_user.id)
        payments = get_cycle_payments(db, cycle.id)
    return payments


@router.post("/{cycle_id}/complete", response_model=CycleResponse)
def complete(
    cycle_id: UUID,
    current_user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Complete the active cycle once every contribution is paid.

    Allowed for group admins and the cycle's recipient. The next upcoming
    cycle, if any, becomes active.
    """
    with handle_service_errors(db, "complete cycle"):
        cycle = complete_cycle(db, cycle_id, current_user.id)
        group = get_group_or_404(db, cycle.group_id)
    write_audit_log(
        user_name=current_user.name,
        action="Cycle completed",
        details=f"cycle={cycle.cycle_number}",
        group_name=group.name,
    )
    return cycle


@router.post("/{cycle_id}/start", response_model=CycleResponse)
def start(
    cycle_id: UUID,
    current_user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Start the next upcoming cycle of a group with no active cycle (admins only)."""
    with handle_service_errors(db, "start cycle"):
        cycle = start_cycle(db, cycle_id, current_user.id)
    return cycle


@router.delete("/{cycle_id}")
def remove_cycle(
    cycle_id: UUID,
    current_user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    with handle_service_errors(db, "delete cycle"):
        delete_cycle(db, cycle_id, current_user.id)
    return {"message": "Cycle deleted", "cycle_id": str(cycle_id)}


@router.put("/{cycle_id}/payments/{member_id}", response_model=PaymentResponse)
def update_payment_status(
    cycle_id: UUID,
    member_id: UUID,
    payment_data: PaymentMark,
    current_user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Mark a member's contribution paid or pending (admins and the recipient)."""
    with handle_service_errors(db, "update payment status"):
        payment = mark_payment(db, cycle_id, member_id, payment_data.status, current_user.id)
    return payment


@router.post("/{cycle_id}/payments/{member_id}/remind", response_model=NotificationResponse)
def remind_member(
    cycle_id: UUID,
    member_id: UUID,
    current_user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Send a payment reminder to a member who has not paid yet."""
    with handle_service_errors(db, "send reminder"):
        notification = send_reminder(db, cycle_id, member_id, current_user.id)
    return NotificationResponse.from_row(notification, False)
