"""
Unit tests for the provisioning service.

These tests cover:
- Successful provisioning per role
- Auth provider failures
- Compensation when record creation fails
- Ban / unban / delete
"""

from types import SimpleNamespace
from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy.exc import IntegrityError

from portal.core.config import settings
from portal.modules.provisioning.exceptions import (
    AccountActionFailedError,
    AccountCreateFailedError,
    IdentifierConflictError,
    InvalidReferenceError,
    RoleRecordFailedError,
)
from portal.modules.provisioning.identifiers import AllocatedIdentifier
from portal.modules.provisioning.schemas import ManageUserStatusRequest
from portal.modules.provisioning.service import create_user, manage_user_status
from portal.modules.users.auth_provider import (
    AccountNotFoundError,
    AuthProviderError,
    DuplicateIdentifierError,
)
from portal.modules.users.models import UserRole

STUDENT_ALLOCATION = AllocatedIdentifier(
    login_identifier="stu20260001@suffah.local",
    conflict_message='Student ID "STU20260001" already exists. Please enter a different ID.',
    student_id="STU20260001",
)


@pytest.fixture
def auth():
    provider = AsyncMock()
    provider.create_account = AsyncMock(return_value=SimpleNamespace(id="account-1"))
    provider.delete_account = AsyncMock()
    return provider


@pytest.fixture
def allocate():
    with patch(
        "portal.modules.provisioning.service.allocate_identifier",
        new=AsyncMock(return_value=STUDENT_ALLOCATION),
    ) as mock_allocate:
        yield mock_allocate


class TestCreateUser:
    """Tests for create_user."""

    @pytest.mark.asyncio
    async def test_student_success(self, mock_db, student_request, auth, allocate, record_repos):
        result = await create_user(mock_db, student_request, auth=auth, created_by="admin-1")

        assert result.success is True
        assert result.user.id == "account-1"
        assert result.user.email == "stu20260001@suffah.local"
        assert result.student_id == "STU20260001"

        auth.create_account.assert_awaited_once_with(
            login_identifier="stu20260001@suffah.local",
            password=settings.default_account_password,
            full_name="Ayesha Khan",
        )
        record_repos.grants.upsert.assert_awaited_once_with(
            mock_db, account_id="account-1", role=UserRole.STUDENT
        )
        record_repos.students.create.assert_awaited_once_with(
            mock_db, account_id="account-1", student_id="STU20260001", class_id="class-1"
        )
        mock_db.commit.assert_awaited_once()
        auth.delete_account.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_profile_email_falls_back_to_login_identifier(
        self, mock_db, student_request, auth, allocate, record_repos
    ):
        await create_user(mock_db, student_request, auth=auth, created_by="admin-1")

        kwargs = record_repos.profiles.upsert.await_args.kwargs
        assert kwargs["email"] == "stu20260001@suffah.local"
        assert kwargs["full_name"] == "Ayesha Khan"

    @pytest.mark.asyncio
    async def test_admin_has_no_role_record(self, mock_db, admin_request, auth, record_repos):
        allocation = AllocatedIdentifier(
            login_identifier="office@school.edu.pk",
            conflict_message="A user with email office@school.edu.pk already exists.",
        )
        with patch(
            "portal.modules.provisioning.service.allocate_identifier",
            new=AsyncMock(return_value=allocation),
        ):
            result = await create_user(mock_db, admin_request, auth=auth, created_by="admin-1")

        assert result.student_id is None
        record_repos.students.create.assert_not_awaited()
        record_repos.teachers.create.assert_not_awaited()
        record_repos.parents.create.assert_not_awaited()
        record_repos.grants.upsert.assert_awaited_once_with(
            mock_db, account_id="account-1", role=UserRole.ADMIN
        )

    @pytest.mark.asyncio
    async def test_supplied_password_is_used(
        self, mock_db, student_request, auth, allocate, record_repos
    ):
        student_request.password = "s3cret-pass"

        await create_user(mock_db, student_request, auth=auth, created_by="admin-1")

        assert auth.create_account.await_args.kwargs["password"] == "s3cret-pass"

    @pytest.mark.asyncio
    async def test_provider_duplicate_is_identifier_conflict(
        self, mock_db, student_request, auth, allocate, record_repos
    ):
        auth.create_account = AsyncMock(
            side_effect=DuplicateIdentifierError("stu20260001@suffah.local")
        )

        with pytest.raises(IdentifierConflictError) as exc_info:
            await create_user(mock_db, student_request, auth=auth, created_by="admin-1")

        assert exc_info.value.message == STUDENT_ALLOCATION.conflict_message
        record_repos.profiles.upsert.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_provider_error_is_account_create_failed(
        self, mock_db, student_request, auth, allocate, record_repos
    ):
        auth.create_account = AsyncMock(side_effect=AuthProviderError("provider unavailable"))

        with pytest.raises(AccountCreateFailedError) as exc_info:
            await create_user(mock_db, student_request, auth=auth, created_by="admin-1")

        assert exc_info.value.message == "provider unavailable"
        assert exc_info.value.status_code == 400

    @pytest.mark.asyncio
    async def test_role_record_failure_deletes_account(
        self, mock_db, student_request, auth, allocate, record_repos
    ):
        """No account is left behind when its records cannot be written."""
        record_repos.students.create = AsyncMock(side_effect=RuntimeError("insert failed"))

        with pytest.raises(RoleRecordFailedError) as exc_info:
            await create_user(mock_db, student_request, auth=auth, created_by="admin-1")

        assert exc_info.value.status_code == 500
        auth.delete_account.assert_awaited_once_with("account-1")
        mock_db.rollback.assert_awaited()
        mock_db.commit.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unique_violation_is_identifier_conflict(
        self, mock_db, student_request, auth, allocate, record_repos
    ):
        record_repos.students.create = AsyncMock(
            side_effect=IntegrityError("INSERT INTO students", {}, Exception("duplicate key"))
        )

        with pytest.raises(IdentifierConflictError) as exc_info:
            await create_user(mock_db, student_request, auth=auth, created_by="admin-1")

        assert "already exists" in exc_info.value.message
        auth.delete_account.assert_awaited_once_with("account-1")

    @pytest.mark.asyncio
    async def test_unknown_class_is_invalid_reference(
        self, mock_db, student_request, auth, allocate, record_repos
    ):
        """A foreign-key violation names the class instead of reporting a conflict."""
        record_repos.students.create = AsyncMock(
            side_effect=IntegrityError(
                "INSERT INTO students",
                {},
                Exception(
                    'insert or update on table "students" violates foreign key constraint '
                    '"students_class_id_fkey"'
                ),
            )
        )

        with pytest.raises(InvalidReferenceError) as exc_info:
            await create_user(mock_db, student_request, auth=auth, created_by="admin-1")

        assert exc_info.value.status_code == 400
        assert exc_info.value.error_code == "INVALID_REFERENCE"
        assert exc_info.value.message == 'Class "class-1" does not exist.'
        auth.delete_account.assert_awaited_once_with("account-1")

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "sqlstate,expected",
        [
            ("23505", IdentifierConflictError),
            ("23503", InvalidReferenceError),
            ("23502", RoleRecordFailedError),
        ],
    )
    async def test_integrity_errors_mapped_by_sqlstate(
        self, mock_db, student_request, auth, allocate, record_repos, sqlstate, expected
    ):
        driver_error = Exception("integrity violation")
        driver_error.sqlstate = sqlstate
        record_repos.students.create = AsyncMock(
            side_effect=IntegrityError("INSERT INTO students", {}, driver_error)
        )

        with pytest.raises(expected):
            await create_user(mock_db, student_request, auth=auth, created_by="admin-1")

        auth.delete_account.assert_awaited_once_with("account-1")

    @pytest.mark.asyncio
    async def test_failed_compensation_still_reports_failure(
        self, mock_db, student_request, auth, allocate, record_repos
    ):
        record_repos.grants.upsert = AsyncMock(side_effect=RuntimeError("grant failed"))
        auth.delete_account = AsyncMock(side_effect=AuthProviderError("delete failed"))

        with pytest.raises(RoleRecordFailedError):
            await create_user(mock_db, student_request, auth=auth, created_by="admin-1")

        auth.delete_account.assert_awaited_once()


class TestManageUserStatus:
    """Tests for manage_user_status."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "action,method",
        [("ban", "ban_account"), ("unban", "unban_account"), ("delete", "delete_account")],
    )
    async def test_action_calls_provider(self, auth, action, method):
        request = ManageUserStatusRequest(user_id="account-9", action=action)

        result = await manage_user_status(request, auth=auth, performed_by="admin-1")

        assert result.success is True
        assert result.action == action
        getattr(auth, method).assert_awaited_once_with("account-9")

    @pytest.mark.asyncio
    async def test_unknown_account(self, auth):
        auth.ban_account = AsyncMock(side_effect=AccountNotFoundError("missing"))
        request = ManageUserStatusRequest(user_id="missing", action="ban")

        with pytest.raises(AccountActionFailedError) as exc_info:
            await manage_user_status(request, auth=auth, performed_by="admin-1")

        assert exc_info.value.status_code == 400
        assert "missing" in exc_info.value.message
