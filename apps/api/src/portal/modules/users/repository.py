"""
User Repository

Database operations for accounts, profiles and role grants.
"""

import logging
from collections.abc import Collection

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession

from portal.modules.users.models import Account, Profile, RoleGrant, UserRole

logger = logging.getLogger(__name__)


class AccountRepository:
    """Repository for account lookups."""

    @staticmethod
    async def get_by_login_identifier(db: AsyncSession, login_identifier: str) -> Account | None:
        """Get an account by its login identifier (case-insensitive)."""
        result = await db.execute(
            select(Account).where(Account.login_identifier == login_identifier.lower())
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def identifier_exists(db: AsyncSession, login_identifier: str) -> bool:
        """
        Check if a login identifier is already taken.

        Args:
            db: Database session
            login_identifier: Identifier to check

        Returns:
            True if an account already uses the identifier
        """
        account = await AccountRepository.get_by_login_identifier(db, login_identifier)
        return account is not None


class ProfileRepository:
    """Repository for profile records."""

    @staticmethod
    async def upsert(
        db: AsyncSession,
        *,
        account_id: str,
        full_name: str,
        email: str | None = None,
        phone: str | None = None,
    ) -> None:
        """
        Create or update the profile for an account.

        Keyed by account_id, so calling it again with the same account is safe.
        """
        values = {
            "account_id": account_id,
            "full_name": full_name,
            "email": email,
            "phone": phone,
        }
        stmt = insert(Profile).values(**values)
        stmt = stmt.on_conflict_do_update(
            index_elements=[Profile.account_id],
            set_={"full_name": full_name, "email": email, "phone": phone},
        )
        await db.execute(stmt)
        logger.debug(f"Upserted profile for account {account_id}")

    @staticmethod
    async def get_by_account_id(db: AsyncSession, account_id: str) -> Profile | None:
        """Get the profile for an account."""
        result = await db.execute(select(Profile).where(Profile.account_id == account_id))
        return result.scalar_one_or_none()

    @staticmethod
    async def get_many(db: AsyncSession, account_ids: Collection[str]) -> dict[str, Profile]:
        """
        Load profiles for a set of accounts in one query.

        Returns:
            Mapping of account_id to Profile. Accounts without a profile are absent.
        """
        if not account_ids:
            return {}
        result = await db.execute(select(Profile).where(Profile.account_id.in_(list(account_ids))))
        return {profile.account_id: profile for profile in result.scalars().all()}


class RoleGrantRepository:
    """Repository for role grants."""

    @staticmethod
    async def upsert(db: AsyncSession, *, account_id: str, role: UserRole) -> None:
        """
        Grant a role to an account.

        An account holds exactly one role; the unique account_id makes a
        retried grant overwrite instead of inserting a duplicate row.
        """
        stmt = insert(RoleGrant).values(account_id=account_id, role=role)
        stmt = stmt.on_conflict_do_update(
            index_elements=[RoleGrant.account_id],
            set_={"role": role},
        )
        await db.execute(stmt)
        logger.debug(f"Granted role {role.value} to account {account_id}")

    @staticmethod
    async def get_role(db: AsyncSession, account_id: str) -> UserRole | None:
        """Return the role granted to an account, or None."""
        result = await db.execute(
            select(RoleGrant.role).where(RoleGrant.account_id == str(account_id))
        )
        return result.scalar_one_or_none()
