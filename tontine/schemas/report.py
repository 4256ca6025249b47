from pydantic import BaseModel
from typing import List, Optional
from datetime import datetime
from decimal import Decimal
from uuid import UUID
from tontine.schemas.cycle import CycleOverview
from tontine.schemas.notification import NotificationResponse


class UpcomingPayment(BaseModel):
    group_id: UUID
    group_name: str
    cycle_id: UUID
    cycle_number: int
    amount: Decimal
    due_date: Optional[datetime] = None


class DashboardResponse(BaseModel):
    active_groups: int
    completed_cycles: int
    total_contributed: Decimal
    is_current_recipient: bool
    upcoming_payments: List[UpcomingPayment]
    recent_notifications: List[NotificationResponse]


class GroupReport(BaseModel):
    group_id: UUID
    group_name: str
    member_count: int
    current_cycle: int
    total_cycles: int
    completed_cycles: int
    total_collected: Decimal
    collection_rate: float
    cycles: List[CycleOverview]


class CalendarEvent(BaseModel):
    """A dated contribution or payout of an active or upcoming cycle."""
    date: datetime
    type: str
    group_id: UUID
    group_name: str
    cycle_id: UUID
    cycle_number: int
    cycle_status: str
    recipient_id: UUID
    amount: Decimal
