"""
Provisioning Service

Business logic for creating accounts and changing their status.

Creating a user touches two stores: the auth provider (which commits the
account on its own) and the data store (profile, role grant and role
record, committed together). The account is therefore a saga step with a
registered compensation: if anything in the data-store transaction fails,
the transaction is rolled back and the account is deleted, so no account
is ever left without its profile, grant and role record.
"""

import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from portal.core.config import settings
from portal.core.exceptions import ServiceError
from portal.modules.provisioning.exceptions import (
    AccountActionFailedError,
    AccountCreateFailedError,
    IdentifierConflictError,
    InvalidReferenceError,
    RoleRecordFailedError,
)
from portal.modules.provisioning.identifiers import AllocatedIdentifier, allocate_identifier
from portal.modules.provisioning.saga import ProvisioningSaga
from portal.modules.provisioning.schemas import (
    CreatedUser,
    CreateUserResponse,
    ManageUserStatusRequest,
    ManageUserStatusResponse,
    ParentCreateRequest,
    StudentCreateRequest,
    TeacherCreateRequest,
)
from portal.modules.school.repository import (
    ParentRepository,
    StudentRepository,
    TeacherRepository,
)
from portal.modules.users.auth_provider import (
    AccountNotFoundError,
    AuthProvider,
    AuthProviderError,
    DuplicateIdentifierError,
)
from portal.modules.users.repository import ProfileRepository, RoleGrantRepository

logger = logging.getLogger(__name__)

# PostgreSQL SQLSTATE codes
UNIQUE_VIOLATION = "23505"
FOREIGN_KEY_VIOLATION = "23503"


def _integrity_sqlstate(e: IntegrityError) -> str | None:
    """SQLSTATE of the driver error, inferred from the message if the driver has none."""
    state = getattr(e.orig, "sqlstate", None) or getattr(e.orig, "pgcode", None)
    if state:
        return state
    text = str(e.orig).lower()
    if "foreign key" in text:
        return FOREIGN_KEY_VIOLATION
    if "duplicate key" in text or "unique" in text:
        return UNIQUE_VIOLATION
    return None


def _invalid_reference_message(request) -> str:
    if isinstance(request, StudentCreateRequest):
        return f'Class "{request.role_specific_data.class_id}" does not exist.'
    return "A referenced record does not exist."


async def _create_role_record(
    db: AsyncSession,
    request,
    account_id: str,
    allocated: AllocatedIdentifier,
) -> None:
    """Insert the student, teacher or parent record. Admins have none."""
    if isinstance(request, StudentCreateRequest):
        await StudentRepository.create(
            db,
            account_id=account_id,
            student_id=allocated.student_id,
            class_id=request.role_specific_data.class_id,
        )
    elif isinstance(request, TeacherCreateRequest):
        data = request.role_specific_data
        await TeacherRepository.create(
            db,
            account_id=account_id,
            employee_id=allocated.employee_id,
            department_id=data.department_id,
            qualification=data.qualification,
            specialization=data.specialization,
        )
    elif isinstance(request, ParentCreateRequest):
        data = request.role_specific_data
        await ParentRepository.create(
            db,
            account_id=account_id,
            father_cnic=allocated.father_cnic,
            occupation=data.occupation,
            relationship=data.relationship,
        )


async def create_user(
    db: AsyncSession,
    request,
    *,
    auth: AuthProvider,
    created_by: str,
) -> CreateUserResponse:
    """
    Provision a complete user: account, profile, role grant and role record.

    Steps:
    1. Allocate the login identifier
    2. Create the account in the auth provider (compensation: delete it)
    3. Upsert the profile
    4. Upsert the role grant
    5. Insert the role-specific record
    Steps 3-5 are committed together.

    Args:
        db: Database session
        request: One of the create-user request variants
        auth: Auth provider owning the accounts
        created_by: Account id of the admin making the request

    Returns:
        CreateUserResponse with the new account id and login identifier

    Raises:
        MissingRequiredFieldError: Required role field missing
        IdentifierConflictError: Identifier already taken
        InvalidReferenceError: Role data references a missing record (e.g. class)
        AllocationExhaustedError: No unique id could be generated
        AccountCreateFailedError: Auth provider rejected the account
        RoleRecordFailedError: Data-store writes failed (account removed)
    """
    role = request.user_role
    logger.info(f"Admin {created_by} creating {role.value} user")

    allocated = await allocate_identifier(db, request, domain=settings.login_domain)
    # End the read transaction used by the uniqueness checks
    await db.rollback()

    saga = ProvisioningSaga("create_user")

    try:
        account = await auth.create_account(
            login_identifier=allocated.login_identifier,
            password=request.password or settings.default_account_password,
            full_name=request.full_name,
        )
    except DuplicateIdentifierError as e:
        logger.warning(f"Auth provider reports duplicate identifier {allocated.login_identifier}")
        raise IdentifierConflictError(allocated.conflict_message) from e
    except AuthProviderError as e:
        logger.error(f"Auth provider failed to create account: {e}")
        raise AccountCreateFailedError(str(e)) from e

    saga.add_compensation("create_account", lambda: auth.delete_account(account.id))

    try:
        await ProfileRepository.upsert(
            db,
            account_id=account.id,
            full_name=request.full_name,
            email=request.email or allocated.login_identifier,
            phone=request.phone,
        )
        await RoleGrantRepository.upsert(db, account_id=account.id, role=role)
        await _create_role_record(db, request, account.id, allocated)
        await db.commit()
    except Exception as e:
        await db.rollback()
        failed = await saga.compensate()
        if failed:
            logger.error(f"Account {account.id} could not be removed after failure: {failed}")

        if isinstance(e, IntegrityError):
            state = _integrity_sqlstate(e)
            if state == UNIQUE_VIOLATION:
                logger.warning(f"Unique constraint violated while provisioning {role.value}: {e}")
                raise IdentifierConflictError(allocated.conflict_message) from e
            if state == FOREIGN_KEY_VIOLATION:
                logger.warning(f"Foreign key violated while provisioning {role.value}: {e}")
                raise InvalidReferenceError(_invalid_reference_message(request)) from e
        if isinstance(e, ServiceError):
            raise
        logger.exception(f"Failed to create records for account {account.id}: {e}")
        raise RoleRecordFailedError() from e

    logger.info(f"Provisioned {role.value} {account.id} ({allocated.login_identifier})")

    return CreateUserResponse(
        success=True,
        user=CreatedUser(id=account.id, email=allocated.login_identifier),
        student_id=allocated.student_id,
    )


async def manage_user_status(
    request: ManageUserStatusRequest,
    *,
    auth: AuthProvider,
    performed_by: str,
) -> ManageUserStatusResponse:
    """
    Ban, unban or delete an account.

    Args:
        request: Target account and action
        auth: Auth provider owning the accounts
        performed_by: Account id of the admin making the request

    Returns:
        ManageUserStatusResponse echoing the action

    Raises:
        AccountActionFailedError: Unknown account or provider failure
    """
    actions = {
        "ban": auth.ban_account,
        "unban": auth.unban_account,
        "delete": auth.delete_account,
    }

    try:
        await actions[request.action](request.user_id)
    except AccountNotFoundError as e:
        logger.warning(f"Admin {performed_by} tried to {request.action} unknown account")
        raise AccountActionFailedError(str(e)) from e
    except AuthProviderError as e:
        logger.error(f"Failed to {request.action} account {request.user_id}: {e}")
        raise AccountActionFailedError(str(e)) from e

    logger.info(f"Admin {performed_by} applied '{request.action}' to account {request.user_id}")
    return ManageUserStatusResponse(success=True, action=request.action)
