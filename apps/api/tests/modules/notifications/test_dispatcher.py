"""
Unit tests for the notification dispatcher.

These tests cover:
- Recipient merging and channel selection
- In-app rows written regardless of channel outcomes
- Email batching and address de-duplication
- SMS / WhatsApp / push gating on toggles and contact data
- Timeouts and provider errors recorded per recipient
"""

import asyncio
from unittest.mock import AsyncMock

import pytest
from sqlalchemy.exc import SQLAlchemyError

from portal.core.push import PushTarget
from portal.modules.notifications.dispatcher import (
    Channel,
    ChannelSelection,
    DeliveryOutcome,
    NotificationDispatcher,
    NotificationMessage,
    Recipient,
    merge_recipients,
)

MESSAGE = NotificationMessage(
    title="New Assignment: Algebra",
    body="Chapter 4 exercises",
    type="assignment",
    link="/student/assignments",
    email_subject="New Assignment: Algebra",
    email_html="<p>Chapter 4 exercises</p>",
)


def outcomes(report, channel):
    return {r.recipient_id: (r.outcome, r.detail) for r in report.results if r.channel == channel}


class TestChannelSelection:
    """Tests for ChannelSelection and recipient merging."""

    def test_requested_lists_enabled_channels(self):
        selection = ChannelSelection(email=True, push=True)

        assert selection.requested() == [Channel.EMAIL, Channel.PUSH]

    def test_merge_recipients_combines_duplicates(self):
        merged = merge_recipients(
            [
                Recipient("a", ChannelSelection(email=True)),
                Recipient("a", ChannelSelection(whatsapp=True), in_app=True),
                Recipient("b", ChannelSelection(sms=True)),
            ]
        )

        assert list(merged) == ["a", "b"]
        assert merged["a"].channels.email is True
        assert merged["a"].channels.whatsapp is True
        assert merged["a"].in_app is True

    def test_merge_keeps_sms_only_without_whatsapp_only_if_both_set_it(self):
        merged = merge_recipients(
            [
                Recipient("a", ChannelSelection(sms=True, sms_only_without_whatsapp=True)),
                Recipient("a", ChannelSelection(sms=True)),
            ]
        )

        assert merged["a"].channels.sms_only_without_whatsapp is False


class TestDispatchFanOut:
    """Tests for per-recipient fan-out."""

    @pytest.mark.asyncio
    async def test_whatsapp_count_and_in_app_rows_independent_of_results(
        self, dispatcher, senders, dispatch_repos, make_profile
    ):
        """N students, M with WhatsApp and a phone: M sends and N in-app rows."""
        students = [f"student-{i}" for i in range(5)]
        dispatch_repos.profiles.get_many = AsyncMock(
            return_value={
                "student-0": make_profile("student-0", phone="03001111111", whatsapp_enabled=True),
                "student-1": make_profile("student-1", phone="03002222222", whatsapp_enabled=True),
                "student-2": make_profile("student-2", phone="03003333333", whatsapp_enabled=True),
                "student-3": make_profile("student-3", phone="03004444444"),
                "student-4": make_profile("student-4", whatsapp_enabled=True),
            }
        )
        senders.whatsapp.send = AsyncMock(side_effect=[True, False, RuntimeError("twilio down")])
        recipients = [
            Recipient(account_id, ChannelSelection(whatsapp=True), in_app=True)
            for account_id in students
        ]

        report = await dispatcher.dispatch(recipients, MESSAGE)

        assert senders.whatsapp.send.await_count == 3
        assert report.in_app_created == 5
        assert report.whatsapp_sent == 1
        assert report.count(Channel.WHATSAPP, DeliveryOutcome.FAILED) == 2
        whatsapp = outcomes(report, Channel.WHATSAPP)
        assert whatsapp["student-3"] == (DeliveryOutcome.SKIPPED, "disabled")
        assert whatsapp["student-4"] == (DeliveryOutcome.SKIPPED, "no phone")
        rows = dispatch_repos.notifications.bulk_create.await_args.args[1]
        assert [row.account_id for row in rows] == students

    @pytest.mark.asyncio
    async def test_recipient_without_profile_is_skipped(
        self, dispatcher, senders, dispatch_repos, make_profile
    ):
        dispatch_repos.profiles.get_many = AsyncMock(
            return_value={"known": make_profile("known", email="parent@gmail.com")}
        )
        recipients = [
            Recipient("known", ChannelSelection(email=True), in_app=True),
            Recipient("ghost", ChannelSelection(email=True), in_app=True),
        ]

        report = await dispatcher.dispatch(recipients, MESSAGE)

        assert outcomes(report, Channel.EMAIL)["ghost"] == (DeliveryOutcome.SKIPPED, "no profile")
        assert outcomes(report, Channel.IN_APP)["ghost"] == (DeliveryOutcome.SKIPPED, "no profile")
        assert report.emails_sent == 1
        assert report.in_app_created == 1

    @pytest.mark.asyncio
    async def test_no_recipients(self, dispatcher, dispatch_repos):
        report = await dispatcher.dispatch([], MESSAGE)

        assert report.results == []
        dispatch_repos.profiles.get_many.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_in_app_failure_is_recorded(self, dispatcher, mock_db, dispatch_repos, make_profile):
        dispatch_repos.profiles.get_many = AsyncMock(return_value={"a": make_profile("a")})
        dispatch_repos.notifications.bulk_create = AsyncMock(side_effect=SQLAlchemyError("down"))

        report = await dispatcher.dispatch([Recipient("a", in_app=True)], MESSAGE)

        assert outcomes(report, Channel.IN_APP)["a"] == (DeliveryOutcome.FAILED, "database error")
        mock_db.rollback.assert_awaited_once()


class TestDispatchEmail:
    """Tests for the email batch."""

    @pytest.mark.asyncio
    async def test_one_batch_over_unique_addresses(
        self, dispatcher, senders, dispatch_repos, make_profile
    ):
        dispatch_repos.profiles.get_many = AsyncMock(
            return_value={
                "student": make_profile("student", email="Family@Gmail.com"),
                "parent": make_profile("parent", email="family@gmail.com"),
                "other": make_profile("other", email="other@gmail.com"),
            }
        )
        recipients = [
            Recipient(account_id, ChannelSelection(email=True))
            for account_id in ("student", "parent", "other")
        ]

        report = await dispatcher.dispatch(recipients, MESSAGE)

        senders.email.send.assert_awaited_once()
        to, subject, _html = senders.email.send.await_args.args
        assert sorted(to) == ["family@gmail.com", "other@gmail.com"]
        assert subject == "New Assignment: Algebra"
        assert report.emails_sent == 2
        assert outcomes(report, Channel.EMAIL)["parent"] == (
            DeliveryOutcome.SKIPPED,
            "duplicate email",
        )

    @pytest.mark.asyncio
    async def test_rejected_batch_fails_every_address(
        self, dispatcher, senders, dispatch_repos, make_profile
    ):
        dispatch_repos.profiles.get_many = AsyncMock(
            return_value={
                "a": make_profile("a", email="a@gmail.com"),
                "b": make_profile("b", email="b@gmail.com"),
            }
        )
        senders.email.send = AsyncMock(return_value=False)

        report = await dispatcher.dispatch(
            [Recipient("a", ChannelSelection(email=True)), Recipient("b", ChannelSelection(email=True))],
            MESSAGE,
        )

        assert report.emails_sent == 0
        assert report.count(Channel.EMAIL, DeliveryOutcome.FAILED) == 2

    @pytest.mark.asyncio
    async def test_synthetic_and_disabled_addresses_are_skipped(
        self, dispatcher, senders, dispatch_repos, make_profile
    ):
        dispatch_repos.profiles.get_many = AsyncMock(
            return_value={
                "student": make_profile("student", email="stu20260001@suffah.local"),
                "muted": make_profile("muted", email="muted@gmail.com", email_enabled=False),
            }
        )
        recipients = [
            Recipient("student", ChannelSelection(email=True)),
            Recipient("muted", ChannelSelection(email=True)),
        ]

        report = await dispatcher.dispatch(recipients, MESSAGE)

        senders.email.send.assert_not_awaited()
        email = outcomes(report, Channel.EMAIL)
        assert email["student"] == (DeliveryOutcome.SKIPPED, "no email")
        assert email["muted"] == (DeliveryOutcome.SKIPPED, "disabled")


class TestDispatchSmsAndPush:
    """Tests for SMS preference handling and push subscriptions."""

    @pytest.mark.asyncio
    async def test_sms_only_for_parents_without_whatsapp(
        self, dispatcher, senders, dispatch_repos, make_profile
    ):
        dispatch_repos.profiles.get_many = AsyncMock(
            return_value={
                "wa": make_profile("wa", phone="03001234567", sms_enabled=True, whatsapp_enabled=True),
                "sms": make_profile("sms", phone="03007654321", sms_enabled=True),
            }
        )
        channels = ChannelSelection(whatsapp=True, sms=True, sms_only_without_whatsapp=True)

        report = await dispatcher.dispatch(
            [Recipient("wa", channels), Recipient("sms", channels)], MESSAGE
        )

        senders.whatsapp.send.assert_awaited_once()
        senders.sms.send.assert_awaited_once()
        assert senders.sms.send.await_args.args[0] == "03007654321"
        assert outcomes(report, Channel.SMS)["wa"] == (DeliveryOutcome.SKIPPED, "prefers whatsapp")

    @pytest.mark.asyncio
    async def test_push_sent_per_subscription(
        self, dispatcher, senders, dispatch_repos, make_profile
    ):
        dispatch_repos.profiles.get_many = AsyncMock(
            return_value={"a": make_profile("a"), "b": make_profile("b")}
        )
        dispatch_repos.subscriptions.get_for_accounts = AsyncMock(
            return_value={
                "a": [
                    PushTarget("https://push.example/1", "key1", "auth1"),
                    PushTarget("https://push.example/2", "key2", "auth2"),
                ]
            }
        )

        report = await dispatcher.dispatch(
            [Recipient("a", ChannelSelection(push=True)), Recipient("b", ChannelSelection(push=True))],
            MESSAGE,
        )

        assert senders.push.send.await_count == 2
        assert report.push_sent == 2
        assert outcomes(report, Channel.PUSH)["b"] == (DeliveryOutcome.SKIPPED, "no subscriptions")
        payload = senders.push.send.await_args.args[1]
        assert payload["title"] == MESSAGE.title

    @pytest.mark.asyncio
    async def test_slow_provider_times_out_for_that_recipient_only(
        self, mock_db, senders, dispatch_repos, make_profile
    ):
        async def slow_send(phone, body):
            await asyncio.sleep(5)
            return True

        senders.sms.send = AsyncMock(side_effect=slow_send)
        dispatch_repos.profiles.get_many = AsyncMock(
            return_value={"a": make_profile("a", phone="03001234567", sms_enabled=True)}
        )
        dispatcher = NotificationDispatcher(mock_db, senders, timeout=0.05)

        report = await dispatcher.dispatch(
            [Recipient("a", ChannelSelection(sms=True), in_app=True)], MESSAGE
        )

        assert outcomes(report, Channel.SMS)["a"] == (DeliveryOutcome.FAILED, None)
        assert report.in_app_created == 1
