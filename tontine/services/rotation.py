from typing import List
from uuid import UUID

from sqlalchemy.orm import Session

from tontine.core.errors import ValidationError
from tontine.models.cycle import Cycle
from tontine.models.group import GroupMember
from tontine.services.permissions import get_group_or_404


def list_member_ids(db: Session, group_id: UUID) -> List[UUID]:
    """User ids of the group's members in membership-list order."""
    rows = db.query(GroupMember.user_id).filter(
        GroupMember.group_id == group_id
    ).order_by(GroupMember.joined_at, GroupMember.id).all()
    return [row[0] for row in rows]


def pick_next_recipient(member_ids: List[UUID], cycles: List[Cycle]) -> UUID:
    """
    Choose the next payout recipient.

    The first member (in list order) who has never received a payout wins. Once
    everybody has been paid out the rotation restarts with the recipient of the
    earliest cycle.
    """
    if not member_ids:
        raise ValidationError("Group has no members to receive a payout")

    past_recipients = {cycle.recipient_id for cycle in cycles}
    for member_id in member_ids:
        if member_id not in past_recipients:
            return member_id

    # Skip recipients who have since left the group
    current_members = set(member_ids)
    for cycle in sorted(cycles, key=lambda cycle: cycle.cycle_number):
        if cycle.recipient_id in current_members:
            return cycle.recipient_id
    return member_ids[0]


def suggest_next_recipient(db: Session, group_id: UUID) -> UUID:
    """Suggest a recipient for the group's next cycle. Admins may pick someone else."""
    get_group_or_404(db, group_id)
    member_ids = list_member_ids(db, group_id)
    cycles = db.query(Cycle).filter(Cycle.group_id == group_id).all()
    return pick_next_recipient(member_ids, cycles)
