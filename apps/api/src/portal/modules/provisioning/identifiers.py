"""
Identifier Allocation

Derives the unique login identifier (and, where the role has one, the
school-facing id) for a new account:

- student: `{student_id}@{domain}`; the id is supplied or generated as
  STU{year}{4 digits}
- parent:  `{cnic digits}@{domain}`; the CNIC is required
- teacher/admin: the supplied email

A supplied identifier that is already taken is a conflict and is never
replaced by a generated one. These checks only short-circuit the common
case: the unique constraints on accounts, students, teachers and parents
remain the authoritative guard against concurrent duplicates.
"""

import logging
import re
import secrets
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import UTC, datetime

from sqlalchemy.ext.asyncio import AsyncSession

from portal.modules.provisioning.exceptions import (
    AllocationExhaustedError,
    IdentifierConflictError,
    MissingRequiredFieldError,
)
from portal.modules.provisioning.schemas import (
    AdminCreateRequest,
    ParentCreateRequest,
    StudentCreateRequest,
    TeacherCreateRequest,
)
from portal.modules.school.repository import (
    ParentRepository,
    StudentRepository,
    TeacherRepository,
)
from portal.modules.users.repository import AccountRepository

logger = logging.getLogger(__name__)

MAX_GENERATION_ATTEMPTS = 10

_CNIC_SEPARATORS = re.compile(r"[\s\-]")


@dataclass
class AllocatedIdentifier:
    """Result of identifier allocation."""

    login_identifier: str
    conflict_message: str
    student_id: str | None = None
    employee_id: str | None = None
    father_cnic: str | None = None


# ============================================
# Derivation helpers (shared with login)
# ============================================


def build_login_identifier(local_part: str, domain: str) -> str:
    """Build an email-shaped login identifier on the internal login domain."""
    return f"{local_part.strip().lower()}@{domain}"


def clean_cnic(cnic: str) -> str:
    """Strip hyphens and whitespace from a CNIC."""
    return _CNIC_SEPARATORS.sub("", cnic)


def student_login_identifier(student_id: str, domain: str) -> str:
    return build_login_identifier(student_id, domain)


def parent_login_identifier(cnic: str, domain: str) -> str:
    return build_login_identifier(clean_cnic(cnic), domain)


def _random_suffix() -> str:
    return f"{secrets.randbelow(10000):04d}"


def generate_student_id(year: int | None = None) -> str:
    """Generate a candidate student id, e.g. STU20260042."""
    return f"STU{year or datetime.now(UTC).year}{_random_suffix()}"


def generate_employee_id(year: int | None = None) -> str:
    """Generate a candidate employee id, e.g. EMP20260042."""
    return f"EMP{year or datetime.now(UTC).year}{_random_suffix()}"


async def _generate_unique(
    generate: Callable[[], str],
    is_taken: Callable[[str], Awaitable[bool]],
    kind: str,
) -> str:
    for attempt in range(1, MAX_GENERATION_ATTEMPTS + 1):
        candidate = generate()
        if not await is_taken(candidate):
            logger.debug(f"Generated {kind} {candidate} on attempt {attempt}")
            return candidate
        logger.info(f"Generated {kind} {candidate} already taken (attempt {attempt})")

    logger.warning(f"Could not generate a unique {kind} in {MAX_GENERATION_ATTEMPTS} attempts")
    raise AllocationExhaustedError(kind)


# ============================================
# Per-role allocation
# ============================================


async def _allocate_student(
    db: AsyncSession,
    request: StudentCreateRequest,
    domain: str,
) -> AllocatedIdentifier:
    supplied = request.role_specific_data.student_id

    async def is_taken(student_id: str) -> bool:
        login = student_login_identifier(student_id, domain)
        if await AccountRepository.identifier_exists(db, login):
            return True
        return await StudentRepository.student_id_exists(db, student_id)

    if supplied:
        if await is_taken(supplied):
            raise IdentifierConflictError(
                f'Student ID "{supplied}" already exists. Please enter a different ID.'
            )
        student_id = supplied
    else:
        student_id = await _generate_unique(generate_student_id, is_taken, "student ID")

    return AllocatedIdentifier(
        login_identifier=student_login_identifier(student_id, domain),
        conflict_message=f'Student ID "{student_id}" already exists. Please enter a different ID.',
        student_id=student_id,
    )


async def _allocate_parent(
    db: AsyncSession,
    request: ParentCreateRequest,
    domain: str,
) -> AllocatedIdentifier:
    raw_cnic = request.role_specific_data.father_cnic
    cnic = clean_cnic(raw_cnic) if raw_cnic else ""
    if not cnic:
        raise MissingRequiredFieldError("Father's CNIC is required for parent accounts.")

    conflict_message = (
        "A parent account with this CNIC already exists. "
        "Please use a different CNIC or edit the existing parent."
    )
    login = build_login_identifier(cnic, domain)
    taken = await AccountRepository.identifier_exists(db, login)
    if taken or await ParentRepository.cnic_exists(db, cnic):
        raise IdentifierConflictError(conflict_message)

    return AllocatedIdentifier(
        login_identifier=login,
        conflict_message=conflict_message,
        father_cnic=cnic,
    )


async def _allocate_staff(
    db: AsyncSession,
    request: TeacherCreateRequest | AdminCreateRequest,
) -> AllocatedIdentifier:
    if not request.email:
        raise MissingRequiredFieldError("Email is required for staff users.")

    login = request.email.lower()
    conflict_message = f"A user with email {login} already exists."
    if await AccountRepository.identifier_exists(db, login):
        raise IdentifierConflictError(conflict_message)

    employee_id = None
    if isinstance(request, TeacherCreateRequest):
        employee_id = await _allocate_employee_id(db, request.role_specific_data.employee_id)

    return AllocatedIdentifier(
        login_identifier=login,
        conflict_message=conflict_message,
        employee_id=employee_id,
    )


async def _allocate_employee_id(db: AsyncSession, supplied: str | None) -> str:
    async def is_taken(employee_id: str) -> bool:
        return await TeacherRepository.employee_id_exists(db, employee_id)

    if supplied:
        if await is_taken(supplied):
            raise IdentifierConflictError(f'Employee ID "{supplied}" already exists.')
        return supplied
    return await _generate_unique(generate_employee_id, is_taken, "employee ID")


async def allocate_identifier(db: AsyncSession, request, *, domain: str) -> AllocatedIdentifier:
    """
    Allocate the login identifier for a create-user request.

    Args:
        db: Database session used for uniqueness checks
        request: One of the create-user request variants
        domain: Internal login domain for synthetic identifiers

    Returns:
        AllocatedIdentifier

    Raises:
        MissingRequiredFieldError: CNIC missing for a parent, email missing for staff
        IdentifierConflictError: A supplied identifier is already taken
        AllocationExhaustedError: No unique id generated within the attempt bound
    """
    if isinstance(request, StudentCreateRequest):
        return await _allocate_student(db, request, domain)
    if isinstance(request, ParentCreateRequest):
        return await _allocate_parent(db, request, domain)
    return await _allocate_staff(db, request)
