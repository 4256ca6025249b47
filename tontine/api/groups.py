import logging
from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from tontine.core.dependencies import get_current_user
from tontine.core.errors import handle_service_errors
from tontine.db.base import get_db
from tontine.models.user import Profile
from tontine.schemas.cycle import CycleCreate, CycleOverview, CycleResponse
from tontine.schemas.group import (
    GroupCreate, GroupResponse, GroupUpdate, MemberAdd, MemberResponse, MemberRoleUpdate,
    RecipientSuggestion,
)
from tontine.services import group as group_service
from tontine.services.auth import get_user
from tontine.services.cycle import create_cycle
from tontine.services.permissions import require_member
from tontine.services.report import cycle_overview
from tontine.services.rotation import suggest_next_recipient

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/groups", tags=["groups"])


def _member_response(membership) -> MemberResponse:
    return MemberResponse(
        id=membership.id,
        group_id=membership.group_id,
        user_id=membership.user_id,
        name=membership.user.name if membership.user else None,
        email=membership.user.email if membership.user else None,
        is_admin=membership.is_admin,
        joined_at=membership.joined_at,
    )


@router.get("", response_model=List[GroupResponse])
def list_my_groups(
    current_user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Groups the current user belongs to."""
    with handle_service_errors(db, "load groups"):
        groups = group_service.list_groups(db, current_user.id)
    return groups


@router.get("/public", response_model=List[GroupResponse])
def list_public_groups(
    current_user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Public groups that accept join requests."""
    with handle_service_errors(db, "load public groups"):
        groups = group_service.list_public_groups(db)
    return groups


@router.post("", response_model=GroupResponse, status_code=status.HTTP_201_CREATED)
def create_group(
    group_data: GroupCreate,
    current_user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Create a group; the creator becomes its first admin."""
    with handle_service_errors(db, "create group"):
        group = group_service.create_group(
            db,
            created_by=current_user.id,
            name=group_data.name,
            description=group_data.description,
            contribution_amount=group_data.contribution_amount,
            contribution_frequency=group_data.contribution_frequency,
            max_members=group_data.max_members,
            is_public=group_data.is_public,
            allow_join_requests=group_data.allow_join_requests,
        )
    return group


@router.get("/{group_id}", response_model=GroupResponse)
def get_group(
    group_id: UUID,
    current_user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    with handle_service_errors(db, "load group"):
        group = group_service.get_group(db, group_id, current_user.id)
    return group


@router.put("/{group_id}", response_model=GroupResponse)
def update_group(
    group_id: UUID,
    group_data: GroupUpdate,
    current_user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Update group settings (admins only)."""
    with handle_service_errors(db, "update group settings"):
        group = group_service.update_group(
            db, group_id, current_user.id, **group_data.model_dump(exclude_unset=True)
        )
    return group


@router.delete("/{group_id}")
def delete_group(
    group_id: UUID,
    confirm_name: str = Query(..., description="Group name, typed exactly, to confirm deletion"),
    current_user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Permanently delete a group and all of its cycles, payments and notifications."""
    with handle_service_errors(db, "delete group"):
        group_service.delete_group(db, group_id, current_user.id, confirm_name)
    return {"message": "Group deleted", "group_id": str(group_id)}


@router.get("/{group_id}/members", response_model=List[MemberResponse])
def list_members(
    group_id: UUID,
    current_user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    with handle_service_errors(db, "load members"):
        members = group_service.list_members(db, group_id, current_user.id)
    return [_member_response(m) for m in members]


@router.post("/{group_id}/members", response_model=MemberResponse, status_code=status.HTTP_201_CREATED)
def add_member(
    group_id: UUID,
    member_data: MemberAdd,
    current_user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Add a registered user to the group by id or email (admins only)."""
    with handle_service_errors(db, "add member"):
        membership = group_service.add_member(
            db,
            group_id,
            added_by=current_user.id,
            user_id=member_data.user_id,
            email=member_data.email,
            is_admin=member_data.is_admin,
        )
    return _member_response(membership)


@router.post("/{group_id}/join", response_model=MemberResponse, status_code=status.HTTP_201_CREATED)
def join_group(
    group_id: UUID,
    current_user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    with handle_service_errors(db, "join group"):
        membership = group_service.join_group(db, group_id, current_user.id)
    return _member_response(membership)


@router.delete("/{group_id}/members/{user_id}")
def remove_member(
    group_id: UUID,
    user_id: UUID,
    current_user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Remove a member, or leave the group when removing yourself."""
    with handle_service_errors(db, "remove member"):
        group_service.remove_member(db, group_id, user_id, current_user.id)
    return {"message": "Member removed", "user_id": str(user_id)}


@router.put("/{group_id}/members/{user_id}/role", response_model=MemberResponse)
def update_member_role(
    group_id: UUID,
    user_id: UUID,
    role_data: MemberRoleUpdate,
    current_user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    with handle_service_errors(db, "update member role"):
        membership = group_service.set_admin(db, group_id, user_id, role_data.is_admin, current_user.id)
    return _member_response(membership)


@router.get("/{group_id}/cycles", response_model=List[CycleOverview])
def list_group_cycles(
    group_id: UUID,
    current_user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Cycles of the group with payment progress."""
    with handle_service_errors(db, "load cycles"):
        cycles = cycle_overview(db, group_id, current_user.id)
    return cycles


@router.post("/{group_id}/cycles", response_model=CycleResponse, status_code=status.HTTP_201_CREATED)
def create_group_cycle(
    group_id: UUID,
    cycle_data: CycleCreate,
    current_user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Create the group's next cycle (admins only)."""
    with handle_service_errors(db, "create cycle"):
        cycle = create_cycle(
            db,
            group_id,
            created_by=current_user.id,
            recipient_id=cycle_data.recipient_id,
            start_date=cycle_data.start_date,
            end_date=cycle_data.end_date,
        )
    return cycle


@router.get("/{group_id}/next-recipient", response_model=RecipientSuggestion)
def get_next_recipient(
    group_id: UUID,
    current_user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Suggested recipient for the group's next cycle."""
    with handle_service_errors(db, "suggest next recipient"):
        require_member(db, group_id, current_user.id)
        user_id = suggest_next_recipient(db, group_id)
        recipient = get_user(db, user_id)
    return RecipientSuggestion(user_id=recipient.id, name=recipient.name)
