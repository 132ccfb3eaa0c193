"""
Authentication and Authorization Module

Provides authentication dependencies for FastAPI endpoints.

Every privileged endpoint resolves the caller the same way:
1. Read the bearer token from the Authorization header
2. Resolve it to an account through the auth provider
3. Look up the account's role grant in the data store
4. Compare the role against the endpoint's allowed roles

Missing, invalid or expired credentials (or an unknown or banned account)
produce 401 UNAUTHENTICATED. A valid caller whose role is not allowed
produces 403 FORBIDDEN.
"""

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from portal.core.database import get_db
from portal.modules.users.auth_provider import AuthProvider, get_auth_provider
from portal.modules.users.models import UserRole
from portal.modules.users.repository import RoleGrantRepository

logger = logging.getLogger(__name__)

# auto_error=False so a missing header is reported as 401 rather than 403
security = HTTPBearer(
    auto_error=False,
    description="JWT Bearer token for authentication",
)


@dataclass
class CurrentUser:
    """
    Represents an authenticated caller.

    Attributes:
        id: Account id
        login_identifier: Account login identifier
        role: Granted role, or None if the account has no grant
        name: Display name from the account metadata (optional)
    """

    id: str
    login_identifier: str
    role: UserRole | None
    name: str | None = None

    def __str__(self) -> str:
        role = self.role.value if self.role else None
        return f"CurrentUser(id={self.id}, login_identifier={self.login_identifier}, role={role})"


def _unauthenticated(message: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail={
            "error": "UNAUTHENTICATED",
            "message": message,
        },
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
    db: AsyncSession = Depends(get_db),
    auth: AuthProvider = Depends(get_auth_provider),
) -> CurrentUser:
    """
    FastAPI dependency that authenticates the caller.

    Args:
        credentials: HTTP Bearer token from Authorization header
        db: Database session used for the role lookup
        auth: Auth provider used to resolve the token

    Returns:
        CurrentUser with the caller's role

    Raises:
        HTTPException 401: If the token is missing or invalid, or the
            account is unknown or banned
    """
    if credentials is None or not credentials.credentials:
        raise _unauthenticated("Authentication is required.")

    account = await auth.get_user(credentials.credentials)
    if account is None:
        logger.warning("Rejected request with invalid or expired token")
        raise _unauthenticated("Invalid or expired authentication token.")

    if account.is_banned:
        logger.warning(f"Rejected request from banned account {account.id}")
        raise _unauthenticated("This account has been disabled.")

    role = await RoleGrantRepository.get_role(db, account.id)

    return CurrentUser(
        id=account.id,
        login_identifier=account.login_identifier,
        role=role,
        name=(account.user_metadata or {}).get("full_name"),
    )


def require_roles(*roles: UserRole) -> Callable[..., Awaitable[CurrentUser]]:
    """
    Build a dependency that only admits callers holding one of `roles`.

    Usage:
        @router.post("/endpoint")
        async def endpoint(user: CurrentUser = Depends(require_roles(UserRole.ADMIN))):
            ...

    Args:
        roles: Roles allowed to call the endpoint

    Returns:
        FastAPI dependency returning the CurrentUser
    """
    allowed = frozenset(roles)

    async def dependency(user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
        if user.role not in allowed:
            logger.warning(
                f"Access denied: account {user.id} has role "
                f"'{user.role.value if user.role else None}', "
                f"requires one of {sorted(r.value for r in allowed)}"
            )
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail={
                    "error": "FORBIDDEN",
                    "message": "You do not have permission to perform this action.",
                },
            )
        logger.debug(f"Authorized {user}")
        return user

    return dependency


# Provisioning and user status changes
require_admin = require_roles(UserRole.ADMIN)

# Notification endpoints
require_staff = require_roles(UserRole.ADMIN, UserRole.TEACHER)


__all__ = [
    "CurrentUser",
    "get_current_user",
    "require_admin",
    "require_roles",
    "require_staff",
]
