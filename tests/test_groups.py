"""
Tests for groups and membership: creation, settings, joining, roles and deletion.
"""

from decimal import Decimal

import pytest

from tontine.core.errors import NotFoundError, PermissionDeniedError, ValidationError
from tontine.models import Cycle, GroupMember, Notification, Payment
from tontine.services.cycle import create_cycle
from tontine.services.group import (
    add_member, count_members, create_group, delete_group, get_group, join_group,
    list_groups, list_public_groups, remove_member, set_admin, update_group,
)
from tontine.services.permissions import is_group_admin


def test_creator_becomes_admin(db, make_user) -> None:
    owner = make_user()
    group = create_group(db, owner.id, "  Circle ", contribution_amount=Decimal("20"), max_members=6)

    assert group.name == "Circle"
    assert group.current_cycle == 0
    assert group.total_cycles == 6
    assert is_group_admin(db, group.id, owner.id)
    assert [g.id for g in list_groups(db, owner.id)] == [group.id]


@pytest.mark.parametrize("name, amount, max_members", [
    ("", Decimal("10"), 3),
    ("Circle", Decimal("0"), 3),
    ("Circle", Decimal("10"), 0),
])
def test_create_validation(db, make_user, name, amount, max_members) -> None:
    owner = make_user()
    with pytest.raises(ValidationError):
        create_group(db, owner.id, name, contribution_amount=amount, max_members=max_members)


def test_private_group_hidden_from_outsiders(db, group, make_user) -> None:
    outsider = make_user()
    with pytest.raises(PermissionDeniedError):
        get_group(db, group.id, outsider.id)


def test_join_public_group(db, group, admin, make_user) -> None:
    newcomer = make_user()
    with pytest.raises(PermissionDeniedError):
        join_group(db, group.id, newcomer.id)

    update_group(db, group.id, admin.id, is_public=True, allow_join_requests=True)
    assert [g.id for g in list_public_groups(db)] == [group.id]
    assert get_group(db, group.id, newcomer.id).id == group.id

    membership = join_group(db, group.id, newcomer.id)
    assert membership.is_admin is False
    assert count_members(db, group.id) == 5


def test_full_group_rejects_members(db, group, admin, make_user) -> None:
    add_member(db, group.id, added_by=admin.id, user_id=make_user().id)
    with pytest.raises(ValidationError, match="full"):
        add_member(db, group.id, added_by=admin.id, user_id=make_user().id)


def test_add_member_by_email(db, group, admin, make_user) -> None:
    user = make_user(email="Zed@Example.com")
    membership = add_member(db, group.id, added_by=admin.id, email="ZED@example.com")
    assert membership.user_id == user.id


def test_add_member_twice(db, group, admin, members) -> None:
    with pytest.raises(ValidationError, match="already a member"):
        add_member(db, group.id, added_by=admin.id, user_id=members[1].id)


def test_add_unknown_user(db, group, admin) -> None:
    with pytest.raises(NotFoundError):
        add_member(db, group.id, added_by=admin.id, email="nobody@example.com")


def test_only_admins_add_members(db, group, members, make_user) -> None:
    with pytest.raises(PermissionDeniedError):
        add_member(db, group.id, added_by=members[1].id, user_id=make_user().id)


def test_update_settings_validates_before_applying(db, group, admin) -> None:
    with pytest.raises(ValidationError):
        update_group(db, group.id, admin.id, name="Renamed", max_members=2)
    db.refresh(group)
    assert group.name == "Savers"

    updated = update_group(db, group.id, admin.id, name="Renamed", contribution_amount=Decimal("75"))
    assert updated.name == "Renamed"
    assert updated.contribution_amount == Decimal("75")
    assert updated.max_members == 5


def test_total_cycles_cannot_drop_below_scheduled(db, group, admin) -> None:
    create_cycle(db, group.id, created_by=admin.id)
    create_cycle(db, group.id, created_by=admin.id)
    with pytest.raises(ValidationError):
        update_group(db, group.id, admin.id, total_cycles=1)
    assert update_group(db, group.id, admin.id, total_cycles=2).total_cycles == 2


def test_member_may_leave_but_not_remove_others(db, group, members) -> None:
    with pytest.raises(PermissionDeniedError):
        remove_member(db, group.id, members[2].id, members[1].id)
    remove_member(db, group.id, members[1].id, members[1].id)
    assert count_members(db, group.id) == 3


def test_last_admin_is_protected(db, group, admin, members) -> None:
    with pytest.raises(ValidationError):
        remove_member(db, group.id, admin.id, admin.id)
    with pytest.raises(ValidationError):
        set_admin(db, group.id, admin.id, False, admin.id)

    set_admin(db, group.id, members[1].id, True, admin.id)
    set_admin(db, group.id, admin.id, False, admin.id)
    assert not is_group_admin(db, group.id, admin.id)
    assert is_group_admin(db, group.id, members[1].id)


def test_delete_group_requires_exact_name(db, group, admin, members) -> None:
    with pytest.raises(ValidationError):
        delete_group(db, group.id, admin.id, "savers")
    with pytest.raises(PermissionDeniedError):
        delete_group(db, group.id, members[1].id, "Savers")


def test_delete_group_removes_everything(db, group, admin, _audit_logs) -> None:
    create_cycle(db, group.id, created_by=admin.id)
    create_cycle(db, group.id, created_by=admin.id)
    group_id = group.id

    delete_group(db, group_id, admin.id, "Savers")

    for model in (Cycle, Payment, Notification, GroupMember):
        assert db.query(model).filter(model.group_id == group_id).count() == 0
    with pytest.raises(NotFoundError):
        get_group(db, group_id, admin.id)
    audit = next(_audit_logs.glob("audit_*.log")).read_text()
    assert "Delete group" in audit
    assert "Savers" in audit
