import logging
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from tontine.core.audit import write_audit_log
from tontine.core.errors import NotFoundError, PermissionDeniedError, ValidationError
from tontine.models.cycle import Cycle
from tontine.models.group import ContributionFrequency, Group, GroupMember
from tontine.models.notification import Notification, NotificationReceipt
from tontine.models.payment import Payment
from tontine.models.user import Profile
from tontine.services.permissions import (
    get_group_or_404, get_membership, require_admin, require_member,
)

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = (
    "name",
    "description",
    "contribution_amount",
    "contribution_frequency",
    "max_members",
    "total_cycles",
    "is_public",
    "allow_join_requests",
)


def create_group(
    db: Session,
    created_by: UUID,
    name: str,
    contribution_amount: Decimal,
    max_members: int,
    contribution_frequency: ContributionFrequency = ContributionFrequency.MONTHLY,
    description: Optional[str] = None,
    is_public: bool = False,
    allow_join_requests: bool = False,
) -> Group:
    """Create a group with its creator as the first admin member.

    A full rotation pays every member once, so total_cycles starts at max_members.
    """
    if not name or not name.strip():
        raise ValidationError("Group name is required")
    if contribution_amount is None or contribution_amount <= 0:
        raise ValidationError("Valid contribution amount required")
    if max_members < 1:
        raise ValidationError("A group needs room for at least one member")

    group = Group(
        name=name.strip(),
        description=description,
        contribution_amount=contribution_amount,
        contribution_frequency=contribution_frequency,
        max_members=max_members,
        current_cycle=0,
        total_cycles=max_members,
        is_public=is_public,
        allow_join_requests=allow_join_requests,
        created_by=created_by,
    )
    db.add(group)
    db.flush()  # Get group.id

    db.add(GroupMember(group_id=group.id, user_id=created_by, is_admin=True))
    db.commit()
    db.refresh(group)
    logger.info("Group %s (%s) created by %s", group.id, group.name, created_by)
    return group


def get_group(db: Session, group_id: UUID, user_id: UUID) -> Group:
    """Group details. Public groups are visible to anyone, private ones to members."""
    group = get_group_or_404(db, group_id)
    if not group.is_public:
        require_member(db, group.id, user_id)
    return group


def list_groups(db: Session, user_id: UUID) -> List[Group]:
    """Groups the user belongs to."""
    return db.query(Group).join(GroupMember, GroupMember.group_id == Group.id).filter(
        GroupMember.user_id == user_id
    ).order_by(Group.created_at.desc(), Group.name).all()


def list_public_groups(db: Session) -> List[Group]:
    return db.query(Group).filter(
        Group.is_public == True,
        Group.allow_join_requests == True
    ).order_by(Group.name).all()


def list_members(db: Session, group_id: UUID, user_id: UUID) -> List[GroupMember]:
    get_group_or_404(db, group_id)
    require_member(db, group_id, user_id)
    return db.query(GroupMember).filter(
        GroupMember.group_id == group_id
    ).order_by(GroupMember.joined_at, GroupMember.id).all()


def count_members(db: Session, group_id: UUID) -> int:
    return db.query(GroupMember).filter(GroupMember.group_id == group_id).count()


def update_group(db: Session, group_id: UUID, updated_by: UUID, **changes) -> Group:
    """Update group settings (admins only). Unset values are left untouched."""
    group = get_group_or_404(db, group_id)
    require_admin(db, group.id, updated_by, "update settings")

    proposed = {
        field: changes[field] if changes.get(field) is not None else getattr(group, field)
        for field in UPDATABLE_FIELDS
    }

    if not proposed["name"] or not proposed["name"].strip():
        raise ValidationError("Group name is required")
    if proposed["contribution_amount"] <= 0:
        raise ValidationError("Valid contribution amount required")
    if proposed["max_members"] < count_members(db, group.id):
        raise ValidationError("Maximum members cannot be lower than the current member count")
    highest_cycle = db.query(Cycle.cycle_number).filter(
        Cycle.group_id == group.id
    ).order_by(Cycle.cycle_number.desc()).first()
    if proposed["total_cycles"] < max(group.current_cycle, highest_cycle[0] if highest_cycle else 0):
        raise ValidationError("Total cycles cannot be lower than the cycles already scheduled")

    for field, value in proposed.items():
        setattr(group, field, value)
    db.commit()
    db.refresh(group)
    logger.info("Group %s settings updated by %s", group.id, updated_by)
    return group


def delete_group(db: Session, group_id: UUID, deleted_by: UUID, confirm_name: str) -> None:
    """
    Permanently delete a group and everything under it.

    Dependents are removed explicitly, children first: notification receipts,
    notifications, payments, cycles, memberships, then the group itself.
    """
    group = get_group_or_404(db, group_id)
    require_admin(db, group.id, deleted_by, "delete the group")
    if confirm_name != group.name:
        raise ValidationError("Please type the group name exactly to confirm deletion")

    notifications = db.query(Notification).filter(Notification.group_id == group.id).all()
    for notification in notifications:
        for receipt in notification.receipts:
            db.delete(receipt)
    db.flush()
    for notification in notifications:
        db.delete(notification)
    db.flush()
    for payment in db.query(Payment).filter(Payment.group_id == group.id).all():
        db.delete(payment)
    db.flush()
    for cycle in db.query(Cycle).filter(Cycle.group_id == group.id).all():
        db.delete(cycle)
    db.flush()
    for membership in db.query(GroupMember).filter(GroupMember.group_id == group.id).all():
        db.delete(membership)
    db.flush()

    group_name = group.name
    db.delete(group)
    db.commit()

    actor = db.query(Profile).filter(Profile.id == deleted_by).first()
    write_audit_log(
        user_name=actor.name if actor else str(deleted_by),
        action="Delete group",
        details=f"group_id={group_id}",
        group_name=group_name,
    )
    logger.info("Group %s deleted by %s", group_id, deleted_by)


def _resolve_user(db: Session, user_id: Optional[UUID], email: Optional[str]) -> Profile:
    if user_id is not None:
        user = db.query(Profile).filter(Profile.id == user_id).first()
    elif email:
        user = db.query(Profile).filter(Profile.email == email.lower()).first()
    else:
        raise ValidationError("Provide a user id or an email address")
    if not user:
        raise NotFoundError("User not found")
    return user


def _insert_member(db: Session, group: Group, user: Profile, is_admin: bool) -> GroupMember:
    if get_membership(db, group.id, user.id):
        raise ValidationError("User is already a member of this group")
    if count_members(db, group.id) >= group.max_members:
        raise ValidationError("This group is full")

    membership = GroupMember(group_id=group.id, user_id=user.id, is_admin=is_admin)
    db.add(membership)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ValidationError("User is already a member of this group")
    db.refresh(membership)
    logger.info("User %s joined group %s (admin=%s)", user.id, group.id, is_admin)
    return membership


def add_member(
    db: Session,
    group_id: UUID,
    added_by: UUID,
    user_id: Optional[UUID] = None,
    email: Optional[str] = None,
    is_admin: bool = False,
) -> GroupMember:
    """Add a registered user to the group (admins only), by id or email."""
    group = get_group_or_404(db, group_id)
    require_admin(db, group.id, added_by, "add members")
    user = _resolve_user(db, user_id, email)
    return _insert_member(db, group, user, is_admin)


def join_group(db: Session, group_id: UUID, user_id: UUID) -> GroupMember:
    """Join a public group that accepts join requests."""
    group = get_group_or_404(db, group_id)
    if not (group.is_public and group.allow_join_requests):
        raise PermissionDeniedError("This group does not accept join requests")
    user = _resolve_user(db, user_id, None)
    return _insert_member(db, group, user, False)


def _other_admins(db: Session, group_id: UUID, user_id: UUID) -> int:
    return db.query(GroupMember).filter(
        GroupMember.group_id == group_id,
        GroupMember.user_id != user_id,
        GroupMember.is_admin == True
    ).count()


def remove_member(db: Session, group_id: UUID, user_id: UUID, removed_by: UUID) -> None:
    """Remove a member. Admins may remove anyone; members may leave themselves."""
    get_group_or_404(db, group_id)
    if user_id != removed_by:
        require_admin(db, group_id, removed_by, "remove members")

    membership = get_membership(db, group_id, user_id)
    if not membership:
        raise NotFoundError("Member not found")
    if membership.is_admin and _other_admins(db, group_id, user_id) == 0:
        raise ValidationError("A group must keep at least one administrator")

    db.delete(membership)
    db.commit()
    logger.info("User %s removed from group %s by %s", user_id, group_id, removed_by)


def set_admin(db: Session, group_id: UUID, user_id: UUID, is_admin: bool, changed_by: UUID) -> GroupMember:
    """Grant or revoke the admin flag of a member."""
    get_group_or_404(db, group_id)
    require_admin(db, group_id, changed_by, "change member roles")

    membership = get_membership(db, group_id, user_id)
    if not membership:
        raise NotFoundError("Member not found")
    if membership.is_admin and not is_admin and _other_admins(db, group_id, user_id) == 0:
        raise ValidationError("A group must keep at least one administrator")

    membership.is_admin = is_admin
    db.commit()
    db.refresh(membership)
    return membership
