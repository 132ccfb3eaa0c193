"""
Seed Admin User

Creates the first school admin so that the provisioning endpoints can be
used to create everyone else. Run this script once per deployment.

Usage:
    cd apps/api
    python scripts/seed_admin.py admin@school.edu.pk "Principal Name" --password 'S3cret!'
"""

import argparse
import asyncio
import sys
from pathlib import Path

# Add the src directory to the path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from portal.core.config import settings
from portal.core.database import async_session_maker, engine
from portal.modules.users.auth_provider import AuthProvider, DuplicateIdentifierError
from portal.modules.users.models import UserRole
from portal.modules.users.repository import ProfileRepository, RoleGrantRepository


async def seed_admin(email: str, full_name: str, password: str) -> None:
    """Create the admin account, profile and role grant if missing."""
    auth = AuthProvider()

    try:
        account = await auth.create_account(
            login_identifier=email,
            password=password,
            full_name=full_name,
        )
    except DuplicateIdentifierError:
        print(f"Admin already exists: {email}")
        return

    async with async_session_maker() as db:
        await ProfileRepository.upsert(db, account_id=account.id, full_name=full_name, email=email)
        await RoleGrantRepository.upsert(db, account_id=account.id, role=UserRole.ADMIN)
        await db.commit()

    print("Admin created successfully!")
    print(f"  Email: {account.login_identifier}")
    print(f"  Name: {full_name}")
    print(f"  ID: {account.id}")

    await engine.dispose()


def main() -> None:
    parser = argparse.ArgumentParser(description="Create the first school admin.")
    parser.add_argument("email")
    parser.add_argument("full_name")
    parser.add_argument("--password", default=settings.default_account_password)
    args = parser.parse_args()

    asyncio.run(seed_admin(args.email, args.full_name, args.password))


if __name__ == "__main__":
    main()
