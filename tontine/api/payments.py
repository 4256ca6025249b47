import logging
from datetime import datetime
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from fastapi.responses import Response
from sqlalchemy.orm import Session

from tontine.core.dependencies import get_current_user
from tontine.core.errors import handle_service_errors
from tontine.db.base import get_db
from tontine.models.payment import PaymentStatus
from tontine.models.user import Profile
from tontine.schemas.cycle import PaymentHistoryItem
from tontine.services.payment import export_payments_csv, list_payments

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/payments", tags=["payments"])


@router.get("", response_model=List[PaymentHistoryItem])
def payment_history(
    group_id: Optional[UUID] = Query(None),
    cycle_id: Optional[UUID] = Query(None),
    payer_id: Optional[UUID] = Query(None),
    status: Optional[PaymentStatus] = Query(None),
    search: Optional[str] = Query(None, description="Member name or cycle number"),
    current_user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Payment history of a group or cycle, newest cycle first."""
    with handle_service_errors(db, "load payment history"):
        rows = list_payments(
            db, current_user.id,
            group_id=group_id, cycle_id=cycle_id, payer_id=payer_id, status=status, search=search,
        )
    return [
        PaymentHistoryItem(
            id=payment.id,
            cycle_id=payment.cycle_id,
            group_id=payment.group_id,
            payer_id=payment.payer_id,
            amount=payment.amount,
            status=payment.status,
            paid_at=payment.paid_at,
            cycle_number=cycle_number,
            member_name=member_name,
        )
        for payment, cycle_number, member_name in rows
    ]


@router.get("/export")
def export_payment_history(
    group_id: Optional[UUID] = Query(None),
    cycle_id: Optional[UUID] = Query(None),
    payer_id: Optional[UUID] = Query(None),
    status: Optional[PaymentStatus] = Query(None),
    search: Optional[str] = Query(None),
    current_user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Download the filtered payment history as CSV."""
    with handle_service_errors(db, "export payments"):
        rows = list_payments(
            db, current_user.id,
            group_id=group_id, cycle_id=cycle_id, payer_id=payer_id, status=status, search=search,
        )
    filename = f"payments-{datetime.utcnow().strftime('%Y-%m-%d')}.csv"
    return Response(
        content=export_payments_csv(rows),
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
