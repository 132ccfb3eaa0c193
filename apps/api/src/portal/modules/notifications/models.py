"""
Notification Models

In-app notifications and browser push subscriptions.
"""

from sqlalchemy import Boolean, ForeignKey, String, Text, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from portal.modules.shared import BaseModel


class Notification(BaseModel):
    """
    In-app notification shown in the recipient's portal.

    Rows are append-only apart from the read flag.
    """

    __tablename__ = "notifications"

    account_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("accounts.id", ondelete="CASCADE"),
        index=True,
        nullable=False,
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    type: Mapped[str] = mapped_column(String(50), nullable=False)
    link: Mapped[str | None] = mapped_column(String(500), nullable=True)
    is_read: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    def __repr__(self) -> str:
        return f"<Notification(account_id={self.account_id}, type={self.type})>"


class PushSubscription(BaseModel):
    """A browser push subscription registered by an account."""

    __tablename__ = "push_subscriptions"
    __table_args__ = (
        UniqueConstraint("account_id", "endpoint", name="uq_push_subscription_endpoint"),
    )

    account_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("accounts.id", ondelete="CASCADE"),
        index=True,
        nullable=False,
    )
    endpoint: Mapped[str] = mapped_column(Text, nullable=False)
    p256dh: Mapped[str] = mapped_column(Text, nullable=False)
    auth: Mapped[str] = mapped_column(Text, nullable=False)
