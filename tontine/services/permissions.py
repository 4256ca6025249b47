from typing import Optional
from uuid import UUID

from sqlalchemy.orm import Session

from tontine.core.errors import NotFoundError, PermissionDeniedError
from tontine.models.cycle import Cycle, CycleStatus
from tontine.models.group import Group, GroupMember


def get_membership(db: Session, group_id: UUID, user_id: UUID) -> Optional[GroupMember]:
    return db.query(GroupMember).filter(
        GroupMember.group_id == group_id,
        GroupMember.user_id == user_id
    ).first()


def is_group_admin(db: Session, group_id: UUID, user_id: UUID) -> bool:
    membership = get_membership(db, group_id, user_id)
    return bool(membership and membership.is_admin)


def get_active_cycle(db: Session, group_id: UUID) -> Optional[Cycle]:
    return db.query(Cycle).filter(
        Cycle.group_id == group_id,
        Cycle.status == CycleStatus.ACTIVE
    ).first()


def can_act_on_cycle(db: Session, caller_id: UUID, group: Group) -> bool:
    """Whether caller may mark payments, complete cycles or send reminders in this group.

    Allowed for admin members of the group and for the recipient of the group's
    currently active cycle.
    """
    if is_group_admin(db, group.id, caller_id):
        return True
    active_cycle = get_active_cycle(db, group.id)
    return active_cycle is not None and active_cycle.recipient_id == caller_id


def require_admin(db: Session, group_id: UUID, user_id: UUID, action: str) -> GroupMember:
    membership = get_membership(db, group_id, user_id)
    if not membership or not membership.is_admin:
        raise PermissionDeniedError(f"Only group administrators can {action}")
    return membership


def require_member(db: Session, group_id: UUID, user_id: UUID) -> GroupMember:
    membership = get_membership(db, group_id, user_id)
    if not membership:
        raise PermissionDeniedError("You are not a member of this group")
    return membership


def require_cycle_actor(db: Session, caller_id: UUID, group: Group, action: str) -> None:
    if not can_act_on_cycle(db, caller_id, group):
        raise PermissionDeniedError(
            f"Only group administrators or the current recipient can {action}"
        )


def get_group_or_404(db: Session, group_id: UUID) -> Group:
    group = db.query(Group).filter(Group.id == group_id).first()
    if not group:
        raise NotFoundError("Group not found")
    return group
