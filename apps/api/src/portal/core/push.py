"""
Web Push Service

Delivers browser push notifications to stored subscriptions using VAPID.
"""

import asyncio
import json
import logging
from dataclasses import dataclass
from typing import Any

from pywebpush import WebPushException, webpush

from portal.core.config import settings

logger = logging.getLogger(__name__)


@dataclass
class PushTarget:
    """A browser push subscription (endpoint plus encryption keys)."""

    endpoint: str
    p256dh: str
    auth: str

    def as_subscription_info(self) -> dict[str, Any]:
        return {
            "endpoint": self.endpoint,
            "keys": {"p256dh": self.p256dh, "auth": self.auth},
        }


class PushSender:
    """Web Push sender."""

    def __init__(
        self,
        vapid_private_key: str | None,
        claims_email: str,
        timeout: float = 10.0,
    ):
        self.vapid_private_key = vapid_private_key
        self.claims_email = claims_email
        self.timeout = timeout

    @property
    def is_configured(self) -> bool:
        return bool(self.vapid_private_key)

    async def send(self, subscription: PushTarget, payload: dict[str, Any]) -> bool:
        """
        Push a JSON payload to one subscription.

        Args:
            subscription: Target browser subscription
            payload: Notification data (title, body, icon, url)

        Returns:
            True if the push service accepted the message
        """
        if not self.is_configured:
            logger.info(f"VAPID key not configured, skipping push to {subscription.endpoint}")
            return False

        try:
            await asyncio.to_thread(
                webpush,
                subscription_info=subscription.as_subscription_info(),
                data=json.dumps(payload),
                vapid_private_key=self.vapid_private_key,
                vapid_claims={"sub": f"mailto:{self.claims_email}"},
                timeout=self.timeout,
            )
            logger.info(f"Push sent to {subscription.endpoint}")
            return True
        except WebPushException as e:
            logger.error(f"Push failed to {subscription.endpoint}: {e}")
            return False
        except Exception as e:
            logger.error(f"Push error to {subscription.endpoint}: {e}")
            return False


def get_push_sender() -> PushSender:
    """Build a PushSender from settings."""
    return PushSender(
        vapid_private_key=settings.vapid_private_key,
        claims_email=settings.vapid_claims_email,
        timeout=settings.channel_timeout_seconds,
    )
