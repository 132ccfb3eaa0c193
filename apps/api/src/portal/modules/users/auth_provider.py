"""
Auth Provider

Owns the `accounts` table: account creation, credential checks, token
resolution and ban/unban/delete.

The provider opens its own sessions from a session factory and commits
each write on its own. Account writes are therefore independent of the
request's data-store transaction, which is why provisioning registers an
explicit compensation (delete the account) for them.
"""

import logging
from datetime import UTC, datetime, timedelta

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from portal.core.database import async_session_maker
from portal.core.security import decode_token, hash_password, verify_password
from portal.modules.users.models import Account

logger = logging.getLogger(__name__)

# A ban with no practical end (100 years)
BAN_DURATION = timedelta(hours=876600)


class AuthProviderError(Exception):
    """Base error for auth provider failures."""


class DuplicateIdentifierError(AuthProviderError):
    """Raised when the login identifier is already registered."""

    def __init__(self, login_identifier: str):
        self.login_identifier = login_identifier
        super().__init__(f"A user with identifier {login_identifier} has already been registered")


class AccountNotFoundError(AuthProviderError):
    """Raised when an account id does not exist."""

    def __init__(self, account_id: str):
        self.account_id = account_id
        super().__init__(f"Account {account_id} not found")


class AuthProvider:
    """Account store backed by the `accounts` table."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession] = async_session_maker):
        self._session_factory = session_factory

    async def create_account(
        self,
        *,
        login_identifier: str,
        password: str,
        full_name: str,
    ) -> Account:
        """
        Create a pre-confirmed account.

        Args:
            login_identifier: Unique login identifier
            password: Plain-text password (hashed before storage)
            full_name: Stored in the account metadata

        Returns:
            The created Account

        Raises:
            DuplicateIdentifierError: If the identifier is already taken
            AuthProviderError: On any other storage failure
        """
        account = Account(
            login_identifier=login_identifier.lower(),
            password_hash=hash_password(password),
            is_confirmed=True,
            confirmed_at=datetime.now(UTC),
            user_metadata={"full_name": full_name},
        )

        async with self._session_factory() as session:
            session.add(account)
            try:
                await session.commit()
            except IntegrityError as e:
                await session.rollback()
                raise DuplicateIdentifierError(login_identifier) from e
            except SQLAlchemyError as e:
                await session.rollback()
                raise AuthProviderError(str(e)) from e
            await session.refresh(account)

        logger.info(f"Created account: {account.id} - {account.login_identifier}")
        return account

    async def get_account(self, account_id: str) -> Account | None:
        """Get an account by id."""
        async with self._session_factory() as session:
            return await session.get(Account, str(account_id))

    async def get_user(self, token: str) -> Account | None:
        """
        Resolve a bearer token to its account.

        Returns None if the token is invalid, is not an access token, or
        refers to an account that no longer exists.
        """
        payload = decode_token(token)
        if payload is None:
            return None
        if payload.get("type", "access") != "access":
            logger.warning(f"Rejected token of type {payload.get('type')}")
            return None

        account_id = payload.get("sub")
        if not account_id:
            return None
        return await self.get_account(account_id)

    async def authenticate(self, login_identifier: str, password: str) -> Account | None:
        """Return the account if the credentials match, otherwise None."""
        async with self._session_factory() as session:
            result = await session.execute(
                select(Account).where(Account.login_identifier == login_identifier.lower())
            )
            account = result.scalar_one_or_none()

        if account is None or not verify_password(password, account.password_hash):
            return None
        return account

    async def _set_banned_until(self, account_id: str, banned_until: datetime | None) -> None:
        async with self._session_factory() as session:
            try:
                result = await session.execute(
                    update(Account)
                    .where(Account.id == str(account_id))
                    .values(banned_until=banned_until)
                )
            except SQLAlchemyError as e:
                await session.rollback()
                raise AuthProviderError(f"Could not update account {account_id}") from e
            if result.rowcount == 0:
                await session.rollback()
                raise AccountNotFoundError(str(account_id))
            await session.commit()

    async def ban_account(self, account_id: str) -> None:
        """Ban an account indefinitely."""
        await self._set_banned_until(account_id, datetime.now(UTC) + BAN_DURATION)
        logger.info(f"Banned account {account_id}")

    async def unban_account(self, account_id: str) -> None:
        """Lift a ban."""
        await self._set_banned_until(account_id, None)
        logger.info(f"Unbanned account {account_id}")

    async def delete_account(self, account_id: str) -> None:
        """
        Delete an account.

        Profile, role grant and role-specific records are removed by the
        ON DELETE CASCADE foreign keys.
        """
        async with self._session_factory() as session:
            try:
                result = await session.execute(
                    delete(Account).where(Account.id == str(account_id))
                )
            except SQLAlchemyError as e:
                await session.rollback()
                raise AuthProviderError(f"Could not delete account {account_id}") from e
            if result.rowcount == 0:
                await session.rollback()
                raise AccountNotFoundError(str(account_id))
            await session.commit()
        logger.info(f"Deleted account {account_id}")


_auth_provider: AuthProvider | None = None


def get_auth_provider() -> AuthProvider:
    """FastAPI dependency returning the process-wide auth provider."""
    global _auth_provider
    if _auth_provider is None:
        _auth_provider = AuthProvider()
    return _auth_provider
