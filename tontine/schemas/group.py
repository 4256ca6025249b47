from pydantic import BaseModel, EmailStr, Field
from typing import Optional
from datetime import datetime
from decimal import Decimal
from uuid import UUID
from tontine.models.group import ContributionFrequency


class GroupCreate(BaseModel):
    """Schema for creating a new group."""
    name: str = Field(..., min_length=1, max_length=150, description="Group name")
    description: Optional[str] = Field(None, description="Group description")
    contribution_amount: Decimal = Field(..., gt=0, description="Amount each member contributes per cycle")
    contribution_frequency: ContributionFrequency = Field(ContributionFrequency.MONTHLY, description="Contribution schedule")
    max_members: int = Field(..., ge=1, le=500, description="Maximum number of members")
    is_public: bool = Field(False, description="Listed for anyone to find")
    allow_join_requests: bool = Field(False, description="Let users join without an invitation")


class GroupUpdate(BaseModel):
    """Schema for updating group settings."""
    name: Optional[str] = Field(None, min_length=1, max_length=150)
    description: Optional[str] = None
    contribution_amount: Optional[Decimal] = Field(None, gt=0)
    contribution_frequency: Optional[ContributionFrequency] = None
    max_members: Optional[int] = Field(None, ge=1, le=500)
    total_cycles: Optional[int] = Field(None, ge=1)
    is_public: Optional[bool] = None
    allow_join_requests: Optional[bool] = None


class GroupResponse(BaseModel):
    """Schema for group response."""
    id: UUID
    name: str
    description: Optional[str] = None
    contribution_amount: Decimal
    contribution_frequency: ContributionFrequency
    max_members: int
    current_cycle: int
    total_cycles: int
    is_public: bool
    allow_join_requests: bool
    created_by: Optional[UUID] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class MemberAdd(BaseModel):
    """Add a registered user by id or email."""
    user_id: Optional[UUID] = None
    email: Optional[EmailStr] = None
    is_admin: bool = False


class MemberRoleUpdate(BaseModel):
    is_admin: bool


class MemberResponse(BaseModel):
    id: UUID
    group_id: UUID
    user_id: UUID
    name: Optional[str] = None
    email: Optional[str] = None
    is_admin: bool
    joined_at: datetime


class RecipientSuggestion(BaseModel):
    user_id: UUID
    name: Optional[str] = None
