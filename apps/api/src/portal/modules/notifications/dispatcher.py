"""
Notification Fan-out

Delivers one notification to many recipients over several channels and
reports the outcome of every (recipient, channel) pair.

Per dispatch:
1. Duplicate recipients are merged
2. Profiles and push subscriptions are loaded in one query each
3. In-app rows are written and committed in one insert
4. Email goes out as one batch over the unique opted-in addresses
5. SMS, WhatsApp and push go out per recipient, concurrently, bounded by
   a semaphore and a per-call timeout

A channel failure only affects that recipient's result for that channel;
it never fails the dispatch. Database work happens before the external
calls because one AsyncSession must not be used concurrently.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass, field, replace
from enum import Enum
from functools import lru_cache
from typing import Any

from fastapi import Depends
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from portal.core.config import settings
from portal.core.database import get_db
from portal.core.email import EmailSender, get_email_sender
from portal.core.messaging import SmsSender, WhatsAppSender, get_sms_sender, get_whatsapp_sender
from portal.core.push import PushSender, PushTarget, get_push_sender
from portal.modules.notifications.repository import (
    NotificationRepository,
    NotificationRow,
    PushSubscriptionRepository,
)
from portal.modules.users.models import Profile
from portal.modules.users.repository import ProfileRepository

logger = logging.getLogger(__name__)


class Channel(str, Enum):
    EMAIL = "email"
    SMS = "sms"
    WHATSAPP = "whatsapp"
    PUSH = "push"
    IN_APP = "in_app"


class DeliveryOutcome(str, Enum):
    SENT = "sent"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass
class DeliveryResult:
    """Outcome of one channel for one recipient."""

    recipient_id: str
    channel: Channel
    outcome: DeliveryOutcome
    detail: str | None = None


@dataclass(frozen=True)
class ChannelSelection:
    """
    External channels requested for a recipient.

    A requested channel is still subject to the recipient's own toggle and
    contact data. `sms_only_without_whatsapp` sends SMS only to recipients
    who have not enabled WhatsApp.
    """

    email: bool = False
    sms: bool = False
    whatsapp: bool = False
    push: bool = False
    sms_only_without_whatsapp: bool = False

    def merge(self, other: "ChannelSelection") -> "ChannelSelection":
        return ChannelSelection(
            email=self.email or other.email,
            sms=self.sms or other.sms,
            whatsapp=self.whatsapp or other.whatsapp,
            push=self.push or other.push,
            sms_only_without_whatsapp=(
                self.sms_only_without_whatsapp and other.sms_only_without_whatsapp
            ),
        )

    def requested(self) -> list[Channel]:
        channels = []
        if self.email:
            channels.append(Channel.EMAIL)
        if self.sms:
            channels.append(Channel.SMS)
        if self.whatsapp:
            channels.append(Channel.WHATSAPP)
        if self.push:
            channels.append(Channel.PUSH)
        return channels


@dataclass
class Recipient:
    account_id: str
    channels: ChannelSelection = field(default_factory=ChannelSelection)
    in_app: bool = False


@dataclass
class NotificationMessage:
    """
    Content of one notification, with optional per-channel renderings.

    Channel texts default to the title and body.
    """

    title: str
    body: str
    type: str
    link: str | None = None
    email_subject: str | None = None
    email_html: str | None = None
    sms_text: str | None = None
    whatsapp_text: str | None = None
    push_payload: dict[str, Any] | None = None

    def sms(self) -> str:
        return self.sms_text or f"{self.title}: {self.body}"

    def whatsapp(self) -> str:
        return self.whatsapp_text or f"*{self.title}*\n\n{self.body}"

    def push(self) -> dict[str, Any]:
        return self.push_payload or {"title": self.title, "body": self.body, "url": self.link}


@dataclass
class DispatchReport:
    """Per-recipient results of one dispatch, with per-channel counts."""

    results: list[DeliveryResult] = field(default_factory=list)

    def count(self, channel: Channel, outcome: DeliveryOutcome = DeliveryOutcome.SENT) -> int:
        return sum(1 for r in self.results if r.channel == channel and r.outcome == outcome)

    @property
    def emails_sent(self) -> int:
        return self.count(Channel.EMAIL)

    @property
    def sms_sent(self) -> int:
        return self.count(Channel.SMS)

    @property
    def whatsapp_sent(self) -> int:
        return self.count(Channel.WHATSAPP)

    @property
    def push_sent(self) -> int:
        return self.count(Channel.PUSH)

    @property
    def in_app_created(self) -> int:
        return self.count(Channel.IN_APP)


@dataclass
class ChannelSenders:
    """The channel senders a dispatcher delivers through."""

    email: EmailSender
    sms: SmsSender
    whatsapp: WhatsAppSender
    push: PushSender


@lru_cache
def get_channel_senders() -> ChannelSenders:
    """FastAPI dependency returning senders built from settings."""
    return ChannelSenders(
        email=get_email_sender(),
        sms=get_sms_sender(),
        whatsapp=get_whatsapp_sender(),
        push=get_push_sender(),
    )


def merge_recipients(recipients: Iterable[Recipient]) -> dict[str, Recipient]:
    """Merge recipients by account id, combining channels and in-app flags."""
    merged: dict[str, Recipient] = {}
    for recipient in recipients:
        existing = merged.get(recipient.account_id)
        if existing is None:
            merged[recipient.account_id] = replace(recipient)
        else:
            existing.channels = existing.channels.merge(recipient.channels)
            existing.in_app = existing.in_app or recipient.in_app
    return merged


def _is_deliverable_email(address: str | None) -> bool:
    # Synthetic login identifiers live on the internal login domain
    return bool(address) and not address.lower().endswith(f"@{settings.login_domain}")


class NotificationDispatcher:
    """Fans one notification out to many recipients."""

    def __init__(
        self,
        db: AsyncSession,
        senders: ChannelSenders,
        *,
        max_concurrency: int | None = None,
        timeout: float | None = None,
    ):
        self.db = db
        self.senders = senders
        self.timeout = timeout or settings.channel_timeout_seconds
        self._semaphore = asyncio.Semaphore(max_concurrency or settings.notification_max_concurrency)

    async def dispatch(
        self,
        recipients: Iterable[Recipient],
        message: NotificationMessage,
    ) -> DispatchReport:
        """
        Deliver `message` to every recipient on its requested channels.

        Args:
            recipients: Recipients with their channel selections
            message: Notification content

        Returns:
            DispatchReport with one result per (recipient, channel) pair
        """
        merged = merge_recipients(recipients)
        report = DispatchReport()

        if not merged:
            return report

        profiles = await ProfileRepository.get_many(self.db, merged.keys())

        active: list[tuple[Recipient, Profile]] = []
        for account_id, recipient in merged.items():
            profile = profiles.get(account_id)
            if profile is None:
                logger.info(f"No profile found for recipient {account_id}, skipping")
                channels = recipient.channels.requested()
                if recipient.in_app:
                    channels.append(Channel.IN_APP)
                report.results.extend(
                    DeliveryResult(account_id, channel, DeliveryOutcome.SKIPPED, "no profile")
                    for channel in channels
                )
                continue
            active.append((recipient, profile))

        push_wanted = [
            recipient.account_id
            for recipient, profile in active
            if recipient.channels.push and profile.push_notifications_enabled
        ]
        subscriptions = await PushSubscriptionRepository.get_for_accounts(self.db, push_wanted)

        report.results.extend(await self._write_in_app(active, message))
        report.results.extend(await self._send_email(active, message))

        tasks: list[Awaitable[DeliveryResult]] = []
        for recipient, profile in active:
            report.results.extend(
                self._plan_recipient(recipient, profile, message, subscriptions, tasks)
            )

        if tasks:
            report.results.extend(await asyncio.gather(*tasks))

        logger.info(
            f"Dispatched '{message.type}' to {len(merged)} recipients: "
            f"{report.emails_sent} email, {report.sms_sent} SMS, "
            f"{report.whatsapp_sent} WhatsApp, {report.push_sent} push, "
            f"{report.in_app_created} in-app"
        )
        return report

    # ============================================
    # In-app
    # ============================================

    async def _write_in_app(
        self,
        active: list[tuple[Recipient, Profile]],
        message: NotificationMessage,
    ) -> list[DeliveryResult]:
        account_ids = [recipient.account_id for recipient, _ in active if recipient.in_app]
        if not account_ids:
            return []

        rows = [
            NotificationRow(
                account_id=account_id,
                title=message.title,
                message=message.body,
                type=message.type,
                link=message.link,
            )
            for account_id in account_ids
        ]

        try:
            await NotificationRepository.bulk_create(self.db, rows)
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"Failed to create {len(rows)} in-app notifications: {e}")
            return [
                DeliveryResult(account_id, Channel.IN_APP, DeliveryOutcome.FAILED, "database error")
                for account_id in account_ids
            ]

        return [
            DeliveryResult(account_id, Channel.IN_APP, DeliveryOutcome.SENT)
            for account_id in account_ids
        ]

    # ============================================
    # Email (one batch)
    # ============================================

    async def _send_email(
        self,
        active: list[tuple[Recipient, Profile]],
        message: NotificationMessage,
    ) -> list[DeliveryResult]:
        results: list[DeliveryResult] = []
        addresses: dict[str, list[str]] = {}

        for recipient, profile in active:
            if not recipient.channels.email:
                continue
            if not profile.email_notifications_enabled:
                results.append(
                    DeliveryResult(
                        recipient.account_id, Channel.EMAIL, DeliveryOutcome.SKIPPED, "disabled"
                    )
                )
            elif not _is_deliverable_email(profile.email):
                results.append(
                    DeliveryResult(
                        recipient.account_id, Channel.EMAIL, DeliveryOutcome.SKIPPED, "no email"
                    )
                )
            else:
                addresses.setdefault(profile.email.lower(), []).append(recipient.account_id)

        if not addresses:
            return results

        accepted = await self._call(
            lambda: self.senders.email.send(
                list(addresses),
                message.email_subject or message.title,
                message.email_html or f"<p>{message.body}</p>",
            ),
            "email batch",
        )
        outcome = DeliveryOutcome.SENT if accepted else DeliveryOutcome.FAILED

        # One result per unique address; repeated addresses are skipped
        for address, account_ids in addresses.items():
            results.append(DeliveryResult(account_ids[0], Channel.EMAIL, outcome, address))
            results.extend(
                DeliveryResult(account_id, Channel.EMAIL, DeliveryOutcome.SKIPPED, "duplicate email")
                for account_id in account_ids[1:]
            )
        return results

    # ============================================
    # SMS / WhatsApp / push (per recipient)
    # ============================================

    def _plan_recipient(
        self,
        recipient: Recipient,
        profile: Profile,
        message: NotificationMessage,
        subscriptions: dict[str, list[PushTarget]],
        tasks: list[Awaitable[DeliveryResult]],
    ) -> list[DeliveryResult]:
        """Queue this recipient's sends on `tasks`; return results decided up front."""
        account_id = recipient.account_id
        channels = recipient.channels
        skipped: list[DeliveryResult] = []

        def skip(channel: Channel, detail: str) -> None:
            skipped.append(DeliveryResult(account_id, channel, DeliveryOutcome.SKIPPED, detail))

        if channels.whatsapp:
            if not profile.whatsapp_notifications_enabled:
                skip(Channel.WHATSAPP, "disabled")
            elif not profile.phone:
                skip(Channel.WHATSAPP, "no phone")
            else:
                tasks.append(
                    self._deliver(
                        account_id,
                        Channel.WHATSAPP,
                        lambda phone=profile.phone, text=message.whatsapp(): (
                            self.senders.whatsapp.send(phone, text)
                        ),
                    )
                )

        if channels.sms:
            if not profile.sms_notifications_enabled:
                skip(Channel.SMS, "disabled")
            elif channels.sms_only_without_whatsapp and profile.whatsapp_notifications_enabled:
                skip(Channel.SMS, "prefers whatsapp")
            elif not profile.phone:
                skip(Channel.SMS, "no phone")
            else:
                tasks.append(
                    self._deliver(
                        account_id,
                        Channel.SMS,
                        lambda phone=profile.phone, text=message.sms(): (
                            self.senders.sms.send(phone, text)
                        ),
                    )
                )

        if channels.push:
            targets = subscriptions.get(account_id, [])
            if not profile.push_notifications_enabled:
                skip(Channel.PUSH, "disabled")
            elif not targets:
                skip(Channel.PUSH, "no subscriptions")
            else:
                payload = message.push()
                for target in targets:
                    tasks.append(
                        self._deliver(
                            account_id,
                            Channel.PUSH,
                            lambda target=target: self.senders.push.send(target, payload),
                            detail=target.endpoint,
                        )
                    )

        return skipped

    async def _deliver(
        self,
        account_id: str,
        channel: Channel,
        send: Callable[[], Awaitable[bool]],
        detail: str | None = None,
    ) -> DeliveryResult:
        async with self._semaphore:
            ok = await self._call(send, f"{channel.value} to {account_id}")
        outcome = DeliveryOutcome.SENT if ok else DeliveryOutcome.FAILED
        return DeliveryResult(account_id, channel, outcome, detail)

    async def _call(self, send: Callable[[], Awaitable[bool]], label: str) -> bool:
        """Run one provider call under the channel timeout."""
        try:
            return await asyncio.wait_for(send(), timeout=self.timeout)
        except TimeoutError:
            logger.warning(f"Timed out after {self.timeout}s sending {label}")
            return False
        except Exception as e:
            logger.error(f"Error sending {label}: {e}")
            return False


def get_dispatcher(
    db: AsyncSession = Depends(get_db),
    senders: ChannelSenders = Depends(get_channel_senders),
) -> NotificationDispatcher:
    """FastAPI dependency building a dispatcher for the request's session."""
    return NotificationDispatcher(db, senders)
