"""
User Models

Database models for authentication identities, display profiles and role grants.

An Account is the login identity, a Profile holds display and contact
attributes (including per-channel notification toggles), and a RoleGrant
binds the account to exactly one role. Role-specific data (Student,
Teacher, Parent) lives in the school module.
"""

from datetime import UTC, datetime
from enum import Enum
from typing import Any

from sqlalchemy import Boolean, DateTime, ForeignKey, String, Text
from sqlalchemy.dialects.postgresql import ENUM, JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column

from portal.modules.shared import BaseModel


class UserRole(str, Enum):
    """Roles an account can be granted."""

    ADMIN = "admin"
    TEACHER = "teacher"
    STUDENT = "student"
    PARENT = "parent"


class Account(BaseModel):
    """
    Authentication identity.

    `login_identifier` is the unique, email-shaped login key. Students and
    parents get a synthetic identifier on the internal login domain; staff
    use their real email address.
    """

    __tablename__ = "accounts"

    login_identifier: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        index=True,
        nullable=False,
    )
    password_hash: Mapped[str] = mapped_column(
        Text,
        nullable=False,
    )
    is_confirmed: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False,
    )
    confirmed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    banned_until: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    user_metadata: Mapped[dict[str, Any]] = mapped_column(
        JSONB,
        default=dict,
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<Account(id={self.id}, login_identifier={self.login_identifier})>"

    @property
    def is_banned(self) -> bool:
        """Return True while a ban is in effect."""
        return self.banned_until is not None and self.banned_until > datetime.now(UTC)


class Profile(BaseModel):
    """Display attributes and notification preferences, one per account."""

    __tablename__ = "profiles"

    account_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("accounts.id", ondelete="CASCADE"),
        unique=True,
        index=True,
        nullable=False,
    )
    full_name: Mapped[str] = mapped_column(String(200), nullable=False)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(20), nullable=True)
    photo_url: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Per-channel notification toggles
    email_notifications_enabled: Mapped[bool] = mapped_column(
        Boolean,
        default=True,
        nullable=False,
    )
    sms_notifications_enabled: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False,
    )
    whatsapp_notifications_enabled: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False,
    )
    push_notifications_enabled: Mapped[bool] = mapped_column(
        Boolean,
        default=True,
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<Profile(account_id={self.account_id}, full_name={self.full_name})>"


class RoleGrant(BaseModel):
    """Binds an account to exactly one role."""

    __tablename__ = "role_grants"

    account_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("accounts.id", ondelete="CASCADE"),
        unique=True,
        index=True,
        nullable=False,
    )
    role: Mapped[UserRole] = mapped_column(
        ENUM(
            UserRole,
            name="app_role",
            create_type=True,
            values_callable=lambda roles: [role.value for role in roles],
        ),
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<RoleGrant(account_id={self.account_id}, role={self.role.value})>"
