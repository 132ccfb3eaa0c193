"""
Notification Repository

Database operations for in-app notifications and push subscriptions.
"""

import logging
from collections.abc import Collection
from dataclasses import dataclass

from sqlalchemy import insert, select
from sqlalchemy.ext.asyncio import AsyncSession

from portal.core.push import PushTarget
from portal.modules.notifications.models import Notification, PushSubscription

logger = logging.getLogger(__name__)


@dataclass
class NotificationRow:
    """Values for one in-app notification."""

    account_id: str
    title: str
    message: str
    type: str
    link: str | None = None


class NotificationRepository:
    """Repository for in-app notifications."""

    @staticmethod
    async def bulk_create(db: AsyncSession, rows: list[NotificationRow]) -> int:
        """
        Insert many notifications in one statement.

        The caller owns the transaction.

        Returns:
            Number of rows inserted
        """
        if not rows:
            return 0

        await db.execute(
            insert(Notification),
            [
                {
                    "account_id": row.account_id,
                    "title": row.title,
                    "message": row.message,
                    "type": row.type,
                    "link": row.link,
                }
                for row in rows
            ],
        )
        logger.debug(f"Inserted {len(rows)} in-app notifications")
        return len(rows)


class PushSubscriptionRepository:
    """Repository for push subscriptions."""

    @staticmethod
    async def get_for_accounts(
        db: AsyncSession,
        account_ids: Collection[str],
    ) -> dict[str, list[PushTarget]]:
        """
        Load the push subscriptions of many accounts in one query.

        Returns:
            Mapping of account_id to its subscriptions. Accounts without
            subscriptions are absent.
        """
        if not account_ids:
            return {}

        result = await db.execute(
            select(PushSubscription).where(PushSubscription.account_id.in_(list(account_ids)))
        )

        targets: dict[str, list[PushTarget]] = {}
        for sub in result.scalars().all():
            targets.setdefault(sub.account_id, []).append(
                PushTarget(endpoint=sub.endpoint, p256dh=sub.p256dh, auth=sub.auth)
            )
        return targets
