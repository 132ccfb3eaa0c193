"""
Users module - Accounts, profiles, role grants and the auth provider.
"""

from portal.modules.users.auth_provider import AuthProvider, get_auth_provider
from portal.modules.users.models import Account, Profile, RoleGrant, UserRole
from portal.modules.users.repository import (
    AccountRepository,
    ProfileRepository,
    RoleGrantRepository,
)

__all__ = [
    "Account",
    "AccountRepository",
    "AuthProvider",
    "Profile",
    "ProfileRepository",
    "RoleGrant",
    "RoleGrantRepository",
    "UserRole",
    "get_auth_provider",
]
