"""
Unit tests for the caller-authentication dependencies.
"""

from types import SimpleNamespace
from unittest.mock import AsyncMock, patch

import pytest
from fastapi import HTTPException
from fastapi.security import HTTPAuthorizationCredentials

from portal.core.auth import CurrentUser, get_current_user, require_roles
from portal.modules.users.models import UserRole


def bearer(token: str) -> HTTPAuthorizationCredentials:
    return HTTPAuthorizationCredentials(scheme="Bearer", credentials=token)


def account(**overrides):
    values = {
        "id": "acc-1",
        "login_identifier": "office@school.edu.pk",
        "is_banned": False,
        "user_metadata": {"full_name": "Office Admin"},
    }
    values.update(overrides)
    return SimpleNamespace(**values)


class TestGetCurrentUser:
    """Tests for get_current_user."""

    @pytest.mark.asyncio
    async def test_missing_credentials(self, mock_db):
        auth = AsyncMock()

        with pytest.raises(HTTPException) as exc_info:
            await get_current_user(None, mock_db, auth)

        assert exc_info.value.status_code == 401
        assert exc_info.value.detail["error"] == "UNAUTHENTICATED"
        auth.get_user.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unknown_token(self, mock_db):
        auth = AsyncMock()
        auth.get_user.return_value = None

        with pytest.raises(HTTPException) as exc_info:
            await get_current_user(bearer("expired"), mock_db, auth)

        assert exc_info.value.status_code == 401

    @pytest.mark.asyncio
    async def test_banned_account(self, mock_db):
        auth = AsyncMock()
        auth.get_user.return_value = account(is_banned=True)

        with pytest.raises(HTTPException) as exc_info:
            await get_current_user(bearer("token"), mock_db, auth)

        assert exc_info.value.status_code == 401

    @pytest.mark.asyncio
    async def test_role_comes_from_role_grant(self, mock_db):
        auth = AsyncMock()
        auth.get_user.return_value = account()

        with patch("portal.core.auth.RoleGrantRepository") as grants:
            grants.get_role = AsyncMock(return_value=UserRole.ADMIN)
            user = await get_current_user(bearer("token"), mock_db, auth)

        grants.get_role.assert_awaited_once_with(mock_db, "acc-1")
        assert user == CurrentUser(
            id="acc-1",
            login_identifier="office@school.edu.pk",
            role=UserRole.ADMIN,
            name="Office Admin",
        )

    @pytest.mark.asyncio
    async def test_account_without_role_grant(self, mock_db):
        auth = AsyncMock()
        auth.get_user.return_value = account(user_metadata=None)

        with patch("portal.core.auth.RoleGrantRepository") as grants:
            grants.get_role = AsyncMock(return_value=None)
            user = await get_current_user(bearer("token"), mock_db, auth)

        assert user.role is None
        assert user.name is None


class TestRequireRoles:
    """Tests for require_roles."""

    @pytest.mark.asyncio
    async def test_allowed_role_passes(self):
        dependency = require_roles(UserRole.ADMIN, UserRole.TEACHER)
        user = CurrentUser(id="t-1", login_identifier="t@school.edu.pk", role=UserRole.TEACHER)

        assert await dependency(user) is user

    @pytest.mark.asyncio
    @pytest.mark.parametrize("role", [UserRole.STUDENT, UserRole.PARENT, None])
    async def test_other_roles_are_forbidden(self, role):
        dependency = require_roles(UserRole.ADMIN, UserRole.TEACHER)
        user = CurrentUser(id="u-1", login_identifier="u", role=role)

        with pytest.raises(HTTPException) as exc_info:
            await dependency(user)

        assert exc_info.value.status_code == 403
        assert exc_info.value.detail["error"] == "FORBIDDEN"
