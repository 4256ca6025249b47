import csv
import io
from typing import List, Optional, Tuple
from uuid import UUID

from sqlalchemy.orm import Session

from tontine.core.errors import ValidationError
from tontine.models.cycle import Cycle
from tontine.models.payment import Payment, PaymentStatus
from tontine.models.user import Profile
from tontine.services.permissions import get_group_or_404, require_member

PaymentRow = Tuple[Payment, int, str]

CSV_HEADERS = ["Cycle", "Member", "Amount", "Status", "Date"]


def list_payments(
    db: Session,
    user_id: UUID,
    group_id: Optional[UUID] = None,
    cycle_id: Optional[UUID] = None,
    payer_id: Optional[UUID] = None,
    status: Optional[PaymentStatus] = None,
    search: Optional[str] = None,
) -> List[PaymentRow]:
    """
    Payment history rows as (payment, cycle number, member name).

    Scoped to one group (directly or through a cycle) the caller belongs to.
    ``search`` matches the member name (case-insensitive) or the cycle number.
    """
    if cycle_id is not None:
        cycle = db.query(Cycle).filter(Cycle.id == cycle_id).first()
        if cycle is None:
            return []
        group_id = cycle.group_id
    if group_id is None:
        raise ValidationError("A group or cycle is required")

    get_group_or_404(db, group_id)
    require_member(db, group_id, user_id)

    query = db.query(Payment, Cycle.cycle_number, Profile.name).join(
        Cycle, Cycle.id == Payment.cycle_id
    ).join(
        Profile, Profile.id == Payment.payer_id
    ).filter(Payment.group_id == group_id)

    if cycle_id is not None:
        query = query.filter(Payment.cycle_id == cycle_id)
    if payer_id is not None:
        query = query.filter(Payment.payer_id == payer_id)
    if status is not None:
        query = query.filter(Payment.status == status)

    rows = query.order_by(Cycle.cycle_number.desc(), Profile.name).all()

    if search and search.strip():
        needle = search.strip().lower()
        rows = [
            row for row in rows
            if needle in row[2].lower() or needle in str(row[1])
        ]
    return rows


def export_payments_csv(rows: List[PaymentRow]) -> str:
    """Render payment history rows as CSV text."""
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(CSV_HEADERS)
    for payment, cycle_number, member_name in rows:
        writer.writerow([
            cycle_number,
            member_name,
            f"{payment.amount:.2f}",
            payment.status.value,
            payment.paid_at.strftime("%Y-%m-%d") if payment.paid_at else "N/A",
        ])
    return buffer.getvalue()
