from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime
from decimal import Decimal
from uuid import UUID
from tontine.models.cycle import CycleStatus
from tontine.models.payment import PaymentStatus


class CycleCreate(BaseModel):
    """Schema for creating the next cycle of a group."""
    recipient_id: Optional[UUID] = Field(None, description="Payout recipient; defaults to the rotation suggestion")
    start_date: Optional[datetime] = Field(None, description="Cycle start; defaults to now")
    end_date: Optional[datetime] = Field(None, description="Cycle end; defaults to one contribution period after start")


class CycleResponse(BaseModel):
    """Schema for cycle response."""
    id: UUID
    group_id: UUID
    cycle_number: int
    recipient_id: UUID
    start_date: datetime
    end_date: Optional[datetime] = None
    status: CycleStatus
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class CycleOverview(BaseModel):
    """Cycle with payment progress."""
    id: UUID
    cycle_number: int
    status: CycleStatus
    recipient_id: UUID
    recipient_name: Optional[str] = None
    start_date: datetime
    end_date: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    payments_made: int
    total_payments: int
    amount_collected: Decimal
    collection_rate: float


class PaymentMark(BaseModel):
    status: PaymentStatus


class PaymentResponse(BaseModel):
    id: UUID
    cycle_id: UUID
    group_id: UUID
    payer_id: UUID
    amount: Decimal
    status: PaymentStatus
    paid_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class PaymentHistoryItem(PaymentResponse):
    cycle_number: int
    member_name: str
