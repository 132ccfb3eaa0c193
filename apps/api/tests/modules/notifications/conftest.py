"""
Fixtures for notification tests.
"""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from portal.modules.notifications.dispatcher import ChannelSenders, NotificationDispatcher


@pytest.fixture
def senders():
    """Channel senders whose sends all succeed."""
    return ChannelSenders(
        email=MagicMock(send=AsyncMock(return_value=True)),
        sms=MagicMock(send=AsyncMock(return_value=True)),
        whatsapp=MagicMock(send=AsyncMock(return_value=True)),
        push=MagicMock(send=AsyncMock(return_value=True)),
    )


@pytest.fixture
def dispatch_repos():
    """Patch the repositories the dispatcher reads and writes through."""
    with (
        patch("portal.modules.notifications.dispatcher.ProfileRepository") as profiles,
        patch("portal.modules.notifications.dispatcher.PushSubscriptionRepository") as subs,
        patch("portal.modules.notifications.dispatcher.NotificationRepository") as notifications,
    ):
        profiles.get_many = AsyncMock(return_value={})
        subs.get_for_accounts = AsyncMock(return_value={})
        notifications.bulk_create = AsyncMock(side_effect=lambda db, rows: len(rows))
        yield MagicMock(profiles=profiles, subscriptions=subs, notifications=notifications)


@pytest.fixture
def dispatcher(mock_db, senders):
    return NotificationDispatcher(mock_db, senders, max_concurrency=4, timeout=1.0)
