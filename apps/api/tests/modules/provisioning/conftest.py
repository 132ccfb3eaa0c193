"""
Fixtures for provisioning tests.
"""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from portal.modules.provisioning.schemas import (
    AdminCreateRequest,
    ParentCreateRequest,
    ParentData,
    StudentCreateRequest,
    StudentData,
    TeacherCreateRequest,
    TeacherData,
)


@pytest.fixture
def student_request():
    return StudentCreateRequest(
        role="student",
        full_name="Ayesha Khan",
        role_specific_data=StudentData(student_id="STU20260001", class_id="class-1"),
    )


@pytest.fixture
def parent_request():
    return ParentCreateRequest(
        role="parent",
        full_name="Imran Khan",
        phone="03001234567",
        role_specific_data=ParentData(father_cnic="12345-6789012-3", occupation="Engineer"),
    )


@pytest.fixture
def teacher_request():
    return TeacherCreateRequest(
        role="teacher",
        full_name="Sana Malik",
        email="sana.malik@school.edu.pk",
        role_specific_data=TeacherData(qualification="MSc Physics"),
    )


@pytest.fixture
def admin_request():
    return AdminCreateRequest(
        role="admin",
        full_name="Office Admin",
        email="office@school.edu.pk",
    )


@pytest.fixture
def identifier_repos():
    """Patch the repositories used by identifier allocation; nothing is taken."""
    with (
        patch("portal.modules.provisioning.identifiers.AccountRepository") as accounts,
        patch("portal.modules.provisioning.identifiers.StudentRepository") as students,
        patch("portal.modules.provisioning.identifiers.TeacherRepository") as teachers,
        patch("portal.modules.provisioning.identifiers.ParentRepository") as parents,
    ):
        accounts.identifier_exists = AsyncMock(return_value=False)
        students.student_id_exists = AsyncMock(return_value=False)
        teachers.employee_id_exists = AsyncMock(return_value=False)
        parents.cnic_exists = AsyncMock(return_value=False)
        yield MagicMock(accounts=accounts, students=students, teachers=teachers, parents=parents)


@pytest.fixture
def record_repos():
    """Patch the repositories the provisioning service writes through."""
    with (
        patch("portal.modules.provisioning.service.ProfileRepository") as profiles,
        patch("portal.modules.provisioning.service.RoleGrantRepository") as grants,
        patch("portal.modules.provisioning.service.StudentRepository") as students,
        patch("portal.modules.provisioning.service.TeacherRepository") as teachers,
        patch("portal.modules.provisioning.service.ParentRepository") as parents,
    ):
        profiles.upsert = AsyncMock()
        grants.upsert = AsyncMock()
        students.create = AsyncMock()
        teachers.create = AsyncMock()
        parents.create = AsyncMock()
        yield MagicMock(
            profiles=profiles,
            grants=grants,
            students=students,
            teachers=teachers,
            parents=parents,
        )
