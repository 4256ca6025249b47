"""
Seed a demo group: users, memberships and the first cycle with a couple of payments in.
Usage: python scripts/seed_data.py [--password demo1234]
"""
import sys
from pathlib import Path

# Add project root to Python path
project_root = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(project_root))

from decimal import Decimal

from tontine.db.base import SessionLocal
from tontine.models.group import ContributionFrequency, Group
from tontine.models.payment import PaymentStatus
from tontine.services.auth import create_user, get_user_by_email
from tontine.services.cycle import create_cycle, mark_payment
from tontine.services.group import add_member, create_group

DEMO_GROUP = "Demo Savings Circle"

DEMO_USERS = [
    {"email": "amara@example.com", "name": "Amara Okafor"},
    {"email": "kwame@example.com", "name": "Kwame Mensah"},
    {"email": "lina@example.com", "name": "Lina Haddad"},
    {"email": "tomas@example.com", "name": "Tomas Silva"},
]


def seed_users(db, password: str):
    """Seed demo users."""
    print("Seeding users...")
    users = []
    for user_data in DEMO_USERS:
        user = get_user_by_email(db, user_data["email"])
        if not user:
            user = create_user(db, user_data["email"], password, user_data["name"])
        users.append(user)
    print("Users seeded")
    return users


def seed_group(db, users):
    """Seed the demo group, its members and the first cycle."""
    print("Seeding group...")
    existing = db.query(Group).filter(Group.name == DEMO_GROUP).first()
    if existing:
        print(f"Group '{DEMO_GROUP}' already exists, skipping")
        return existing

    admin = users[0]
    group = create_group(
        db,
        created_by=admin.id,
        name=DEMO_GROUP,
        description="Four friends pooling a monthly contribution",
        contribution_amount=Decimal("100.00"),
        max_members=len(users),
        contribution_frequency=ContributionFrequency.MONTHLY,
        is_public=True,
        allow_join_requests=False,
    )
    for user in users[1:]:
        add_member(db, group.id, added_by=admin.id, user_id=user.id)

    cycle = create_cycle(db, group.id, created_by=admin.id)
    for user in users[:2]:
        mark_payment(db, cycle.id, user.id, PaymentStatus.PAID, admin.id)
    print("Group seeded")
    return group


if __name__ == "__main__":
    import argparse

    parser = argparse.ArgumentParser(description="Seed a demo tontine group")
    parser.add_argument("--password", default="demo1234", help="Password for every demo user")
    args = parser.parse_args()

    db = SessionLocal()
    try:
        users = seed_users(db, args.password)
        seed_group(db, users)
        print("\nSeed data complete!")
        print(f"Log in as {DEMO_USERS[0]['email']} / {args.password}")
    except Exception as e:
        db.rollback()
        print(f"Error seeding data: {e}")
        raise
    finally:
        db.close()
