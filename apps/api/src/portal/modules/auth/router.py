"""Authentication router."""

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from portal.core.config import settings
from portal.core.database import get_db
from portal.core.security import create_access_token, create_refresh_token
from portal.modules.auth.schemas import LoginRequest, LoginResponse, UserResponse
from portal.modules.provisioning.identifiers import (
    parent_login_identifier,
    student_login_identifier,
)
from portal.modules.users.auth_provider import AuthProvider, get_auth_provider
from portal.modules.users.repository import ProfileRepository, RoleGrantRepository

logger = logging.getLogger(__name__)

router = APIRouter()


def resolve_login_identifier(credentials: LoginRequest) -> str:
    """Derive the login identifier the same way provisioning does."""
    if credentials.login_type == "student":
        return student_login_identifier(credentials.identifier, settings.login_domain)
    if credentials.login_type == "parent":
        return parent_login_identifier(credentials.identifier, settings.login_domain)
    return credentials.identifier.strip().lower()


@router.post("/login", response_model=LoginResponse)
async def login(
    credentials: LoginRequest,
    db: AsyncSession = Depends(get_db),
    auth: AuthProvider = Depends(get_auth_provider),
) -> LoginResponse:
    """
    Authenticate user and return JWT tokens.

    Args:
        credentials: Identifier, password and login type
        db: Database session
        auth: Auth provider

    Returns:
        Access token, refresh token, and user info

    Raises:
        HTTPException 401: Invalid credentials
        HTTPException 403: Account banned
    """
    login_identifier = resolve_login_identifier(credentials)

    account = await auth.authenticate(login_identifier, credentials.password)

    if account is None:
        logger.warning(f"Failed {credentials.login_type} login for {login_identifier}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={
                "error": "INVALID_CREDENTIALS",
                "message": "Invalid identifier or password.",
            },
        )

    if account.is_banned:
        logger.warning(f"Login attempt for banned account: {login_identifier}")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={
                "error": "ACCOUNT_BANNED",
                "message": "Your account has been disabled.",
            },
        )

    role = await RoleGrantRepository.get_role(db, account.id)
    profile = await ProfileRepository.get_by_account_id(db, account.id)
    full_name = profile.full_name if profile else account.user_metadata.get("full_name")

    additional_claims = {
        "email": account.login_identifier,
        "role": role.value if role else None,
        "name": full_name,
    }

    access_token = create_access_token(
        subject=str(account.id),
        additional_claims=additional_claims,
    )
    refresh_token = create_refresh_token(subject=str(account.id))

    logger.info(f"User logged in: {account.login_identifier} (role: {additional_claims['role']})")

    return LoginResponse(
        access_token=access_token,
        refresh_token=refresh_token,
        token_type="bearer",
        user=UserResponse(
            id=str(account.id),
            email=account.login_identifier,
            full_name=full_name,
            role=additional_claims["role"],
        ),
    )
