"""
Tests for recipient rotation: first-never-paid wins, restart after a full round.
"""

import uuid
from types import SimpleNamespace

import pytest

from tontine.core.errors import ValidationError
from tontine.services.cycle import create_cycle
from tontine.services.group import remove_member
from tontine.services.rotation import list_member_ids, pick_next_recipient, suggest_next_recipient


def _cycles(*recipients):
    return [
        SimpleNamespace(cycle_number=n, recipient_id=recipient)
        for n, recipient in enumerate(recipients, start=1)
    ]


def test_first_member_when_no_cycles() -> None:
    a, b, c = uuid.uuid4(), uuid.uuid4(), uuid.uuid4()
    assert pick_next_recipient([a, b, c], []) == a


def test_first_member_never_paid_out() -> None:
    a, b, c = uuid.uuid4(), uuid.uuid4(), uuid.uuid4()
    assert pick_next_recipient([a, b, c], _cycles(a)) == b
    assert pick_next_recipient([a, b, c], _cycles(b, a)) == c


def test_restarts_with_earliest_recipient_after_full_round() -> None:
    a, b, c = uuid.uuid4(), uuid.uuid4(), uuid.uuid4()
    assert pick_next_recipient([a, b, c], _cycles(b, c, a)) == b


def test_restart_skips_recipients_who_left() -> None:
    a, b, c = uuid.uuid4(), uuid.uuid4(), uuid.uuid4()
    gone = uuid.uuid4()
    assert pick_next_recipient([a, b, c], _cycles(gone, c, a, b)) == c


def test_single_member_always_suggested() -> None:
    only = uuid.uuid4()
    assert pick_next_recipient([only], []) == only
    assert pick_next_recipient([only], _cycles(only, only)) == only


def test_no_members_raises() -> None:
    with pytest.raises(ValidationError):
        pick_next_recipient([], [])


def test_member_ids_follow_joining_order(db, group, members) -> None:
    assert list_member_ids(db, group.id) == [m.id for m in members]


def test_suggestion_advances_with_each_cycle(db, group, members, admin) -> None:
    assert suggest_next_recipient(db, group.id) == members[0].id
    create_cycle(db, group.id, created_by=admin.id)
    assert suggest_next_recipient(db, group.id) == members[1].id
    create_cycle(db, group.id, created_by=admin.id)
    assert suggest_next_recipient(db, group.id) == members[2].id


def test_suggestion_ignores_removed_member(db, group, members, admin) -> None:
    create_cycle(db, group.id, created_by=admin.id)
    remove_member(db, group.id, members[1].id, admin.id)
    assert suggest_next_recipient(db, group.id) == members[2].id
