"""
User Provisioning Router

API endpoints for administrators to create accounts and change their status.

Endpoints:
- POST /users - Create an account with profile, role grant and role record
- POST /users/manage-status - Ban, unban or delete an account

Security:
- All endpoints require a valid bearer token with the admin role
- Rate limited per admin
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from portal.core.auth import CurrentUser, require_admin
from portal.core.database import get_db
from portal.core.exceptions import ServiceError, to_http_exception
from portal.core.rate_limit import enforce_rate_limit
from portal.modules.provisioning import service
from portal.modules.provisioning.schemas import (
    CreateUserBody,
    CreateUserResponse,
    ManageUserStatusRequest,
    ManageUserStatusResponse,
)
from portal.modules.users.auth_provider import AuthProvider, get_auth_provider

logger = logging.getLogger(__name__)

router = APIRouter()


# ============================================
# Rate Limiting Configuration
# ============================================

RATE_LIMIT_CREATE_USER = (60, 60)  # 60 accounts per minute
RATE_LIMIT_MANAGE_STATUS = (30, 60)  # 30 status changes per minute


@router.post(
    "",
    response_model=CreateUserResponse,
    response_model_exclude_none=True,
    summary="Create User",
    description="""
Create a user account with its profile, role grant and role-specific record.

The login identifier depends on the role:
- **student**: `{studentId}@{login domain}`; a student id is generated when none is given
- **parent**: `{CNIC without hyphens}@{login domain}`; `fatherCnic` is required
- **teacher / admin**: the supplied `email`

A supplied identifier that is already taken is rejected; it is never replaced.

**Access:** Admin only
""",
    responses={
        400: {"description": "Validation error, missing field or identifier conflict"},
        401: {"description": "Unauthenticated - invalid or missing token"},
        403: {"description": "Forbidden - not an admin"},
        500: {"description": "Record creation failed; the account was rolled back"},
    },
)
async def create_user(
    body: CreateUserBody,
    db: AsyncSession = Depends(get_db),
    admin: CurrentUser = Depends(require_admin),
    auth: AuthProvider = Depends(get_auth_provider),
) -> CreateUserResponse:
    """Create a user account."""
    await enforce_rate_limit(admin.id, "create_user", *RATE_LIMIT_CREATE_USER)

    try:
        return await service.create_user(db, body.root, auth=auth, created_by=admin.id)
    except ServiceError as e:
        logger.warning(f"Create user failed: {e.error_code} - {e.message}")
        raise to_http_exception(e) from e
    except Exception as e:
        logger.exception(f"Error creating user: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={
                "error": "INTERNAL_ERROR",
                "message": "An unexpected error occurred.",
            },
        ) from e


@router.post(
    "/manage-status",
    response_model=ManageUserStatusResponse,
    summary="Ban, Unban or Delete User",
    description="""
Change the status of an account.

- **ban**: the account can no longer sign in or call the API
- **unban**: lifts a ban
- **delete**: removes the account with its profile, role grant and role record

**Access:** Admin only
""",
    responses={
        400: {"description": "Invalid action or the action could not be applied"},
        401: {"description": "Unauthenticated - invalid or missing token"},
        403: {"description": "Forbidden - not an admin"},
    },
)
async def manage_user_status(
    request: ManageUserStatusRequest,
    admin: CurrentUser = Depends(require_admin),
    auth: AuthProvider = Depends(get_auth_provider),
) -> ManageUserStatusResponse:
    """Ban, unban or delete an account."""
    await enforce_rate_limit(admin.id, "manage_status", *RATE_LIMIT_MANAGE_STATUS)

    try:
        return await service.manage_user_status(request, auth=auth, performed_by=admin.id)
    except ServiceError as e:
        raise to_http_exception(e) from e
