"""
Provisioning Schemas

Pydantic schemas for the user management endpoints.

The create-user payload is a tagged union keyed by `role`: each variant
carries exactly the role-specific fields that role needs. Request fields
are camelCase on the wire; role-specific fields also accept snake_case.
"""

from typing import Annotated, Literal

from pydantic import BaseModel, EmailStr, Field, RootModel

from portal.modules.shared.schemas import CamelModel
from portal.modules.users.models import UserRole


# ============================================
# Role-specific data
# ============================================


class StudentData(CamelModel):
    student_id: str | None = Field(None, min_length=1, max_length=50)
    class_id: str | None = None


class TeacherData(CamelModel):
    employee_id: str | None = Field(None, min_length=1, max_length=50)
    department_id: str | None = Field(None, max_length=100)
    qualification: str | None = None
    specialization: str | None = None


class ParentData(CamelModel):
    # Optional here so that a missing CNIC is reported as MISSING_REQUIRED_FIELD
    father_cnic: str | None = Field(None, max_length=20)
    occupation: str | None = Field(None, max_length=100)
    relationship: str = Field("father", max_length=20)


class AdminData(CamelModel):
    pass


# ============================================
# Create user requests
# ============================================


class _CreateUserBase(CamelModel):
    full_name: str = Field(..., min_length=1, max_length=200)
    password: str | None = Field(None, min_length=6, max_length=128)
    phone: str | None = Field(None, max_length=20)
    email: EmailStr | None = None

    @property
    def user_role(self) -> UserRole:
        return UserRole(self.role)


class StudentCreateRequest(_CreateUserBase):
    """Create a student. The login identifier is derived from the student id."""

    role: Literal["student"]
    role_specific_data: StudentData = Field(default_factory=StudentData)


class TeacherCreateRequest(_CreateUserBase):
    """Create a teacher. The caller's email is the login identifier."""

    role: Literal["teacher"]
    role_specific_data: TeacherData = Field(default_factory=TeacherData)


class ParentCreateRequest(_CreateUserBase):
    """Create a parent. The login identifier is derived from the father's CNIC."""

    role: Literal["parent"]
    role_specific_data: ParentData = Field(default_factory=ParentData)


class AdminCreateRequest(_CreateUserBase):
    """Create an admin. The caller's email is the login identifier."""

    role: Literal["admin"]
    role_specific_data: AdminData = Field(default_factory=AdminData)


CreateUserRequest = Annotated[
    StudentCreateRequest | TeacherCreateRequest | ParentCreateRequest | AdminCreateRequest,
    Field(discriminator="role"),
]


class CreateUserBody(RootModel[CreateUserRequest]):
    """Request body for POST /users."""


class CreatedUser(BaseModel):
    id: str
    email: str


class CreateUserResponse(BaseModel):
    """Response for POST /users."""

    success: bool = True
    user: CreatedUser
    student_id: str | None = None


# ============================================
# User status
# ============================================


class ManageUserStatusRequest(CamelModel):
    """Request body for POST /users/manage-status."""

    user_id: str = Field(..., min_length=1)
    action: Literal["ban", "unban", "delete"]


class ManageUserStatusResponse(BaseModel):
    success: bool = True
    action: str
