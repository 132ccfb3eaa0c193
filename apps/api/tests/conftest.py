"""
Shared test fixtures.
"""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch
from uuid import uuid4

import pytest
from fastapi.testclient import TestClient

from portal.core.auth import CurrentUser, get_current_user
from portal.core.database import get_db
from portal.main import app as fastapi_app
from portal.modules.users.auth_provider import (
    AccountNotFoundError,
    DuplicateIdentifierError,
    get_auth_provider,
)
from portal.modules.users.models import UserRole


@pytest.fixture
def mock_db():
    """Create a mock database session."""
    db = AsyncMock()
    db.commit = AsyncMock()
    db.rollback = AsyncMock()
    db.flush = AsyncMock()
    db.execute = AsyncMock()
    db.add = MagicMock()
    return db


@pytest.fixture
def make_profile():
    """Build profile-like objects with the notification toggles."""

    def _make(
        account_id: str,
        *,
        full_name: str = "Test User",
        email: str | None = None,
        phone: str | None = None,
        email_enabled: bool = True,
        sms_enabled: bool = False,
        whatsapp_enabled: bool = False,
        push_enabled: bool = True,
    ):
        return SimpleNamespace(
            account_id=account_id,
            full_name=full_name,
            email=email,
            phone=phone,
            email_notifications_enabled=email_enabled,
            sms_notifications_enabled=sms_enabled,
            whatsapp_notifications_enabled=whatsapp_enabled,
            push_notifications_enabled=push_enabled,
        )

    return _make


class FakeAuthProvider:
    """In-memory stand-in for AuthProvider."""

    def __init__(self):
        self.accounts: dict[str, SimpleNamespace] = {}
        self.banned: set[str] = set()
        self.user_for_token: SimpleNamespace | None = None

    def identifier_taken(self, login_identifier: str) -> bool:
        return any(a.login_identifier == login_identifier for a in self.accounts.values())

    async def create_account(self, *, login_identifier: str, password: str, full_name: str):
        if self.identifier_taken(login_identifier.lower()):
            raise DuplicateIdentifierError(login_identifier)
        account = SimpleNamespace(
            id=str(uuid4()),
            login_identifier=login_identifier.lower(),
            password=password,
            is_banned=False,
            user_metadata={"full_name": full_name},
        )
        self.accounts[account.id] = account
        return account

    async def get_user(self, token: str):
        return self.user_for_token

    async def authenticate(self, login_identifier: str, password: str):
        for account in self.accounts.values():
            if account.login_identifier == login_identifier and account.password == password:
                return account
        return None

    async def ban_account(self, account_id: str) -> None:
        if account_id not in self.accounts:
            raise AccountNotFoundError(account_id)
        self.banned.add(account_id)

    async def unban_account(self, account_id: str) -> None:
        if account_id not in self.accounts:
            raise AccountNotFoundError(account_id)
        self.banned.discard(account_id)

    async def delete_account(self, account_id: str) -> None:
        if self.accounts.pop(account_id, None) is None:
            raise AccountNotFoundError(account_id)


@pytest.fixture
def fake_auth():
    """Create an in-memory auth provider."""
    return FakeAuthProvider()


# ============================================
# HTTP fixtures
# ============================================


@pytest.fixture
def app(mock_db, fake_auth):
    """The FastAPI app with database, auth provider and rate limits overridden."""

    async def override_get_db():
        yield mock_db

    fastapi_app.dependency_overrides[get_db] = override_get_db
    fastapi_app.dependency_overrides[get_auth_provider] = lambda: fake_auth

    with (
        patch("portal.modules.provisioning.router.enforce_rate_limit", new=AsyncMock()),
        patch("portal.modules.notifications.router.enforce_rate_limit", new=AsyncMock()),
    ):
        yield fastapi_app

    fastapi_app.dependency_overrides.clear()


@pytest.fixture
def client(app):
    """Test client; the lifespan (Redis, database, scheduler) is not started."""
    return TestClient(app)


@pytest.fixture
def login_as(app):
    """Authenticate every request as a caller holding `role`."""

    def _login(role: UserRole | None, account_id: str = "caller-1") -> CurrentUser:
        user = CurrentUser(id=account_id, login_identifier="caller@school.edu.pk", role=role)
        app.dependency_overrides[get_current_user] = lambda: user
        return user

    return _login
