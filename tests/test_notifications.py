"""
Unit tests for the notification dispatcher.
"""

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

from shared.events import EventType
from shared.models import (
    NotificationPreferences,
    PushDeliveryStatus,
    PushSubscription,
    ReminderPeriod,
    RepoCandidate,
    UserProfile,
)
from services.notifications.dispatcher import NotificationDispatcher
from services.suggestion_engine.scorer import score_repo

NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)
SUBSCRIPTION = PushSubscription(endpoint="https://push.example/abc", p256dh="key", auth="secret")


@pytest.fixture
def user():
    return UserProfile(
        id="user-1", github_username="octo", github_token="t", email="octo@example.com"
    )


@pytest.fixture
def suggestion():
    repo = RepoCandidate(
        full_name="octo/app",
        html_url="https://github.com/octo/app",
        pushed_at=NOW - timedelta(days=9),
    )
    return score_repo(repo, NOW, random_source=lambda: 0.5)


@pytest.fixture
def store():
    store = MagicMock()
    store.get_push_subscription = AsyncMock(return_value=SUBSCRIPTION)
    store.delete_push_subscription = AsyncMock(return_value=True)
    return store


@pytest.fixture
def email_sender():
    sender = MagicMock()
    sender.send_reminder = AsyncMock(return_value=True)
    return sender


@pytest.fixture
def push_sender():
    sender = MagicMock()
    sender.send = AsyncMock(return_value=PushDeliveryStatus.SENT)
    return sender


@pytest.fixture
def publisher():
    publisher = MagicMock()
    publisher.publish = AsyncMock(return_value=True)
    return publisher


@pytest.fixture
def dispatcher(store, email_sender, push_sender, publisher):
    return NotificationDispatcher(store, email_sender, push_sender, publisher)


class TestDispatch:
    @pytest.mark.asyncio
    async def test_both_channels(self, dispatcher, email_sender, push_sender, user, suggestion):
        email_sent, push_status = await dispatcher.dispatch(
            user, NotificationPreferences(), ReminderPeriod.EVENING, 6, suggestion
        )

        assert email_sent is True
        assert push_status == PushDeliveryStatus.SENT
        email_sender.send_reminder.assert_awaited_once_with(
            to="octo@example.com",
            username="octo",
            current_streak=6,
            period=ReminderPeriod.EVENING,
            suggested_repo="octo/app",
        )
        push_sender.send.assert_awaited_once_with(
            SUBSCRIPTION,
            "Don't break your 6-day streak!",
            "Try working on app",
            "https://github.com/octo/app",
        )

    @pytest.mark.asyncio
    async def test_disabled_channels_not_attempted(self, dispatcher, email_sender, push_sender, user):
        prefs = NotificationPreferences(email_enabled=False, push_enabled=False)

        result = await dispatcher.dispatch(user, prefs, ReminderPeriod.MORNING, 0)

        assert result == (None, None)
        email_sender.send_reminder.assert_not_called()
        push_sender.send.assert_not_called()

    @pytest.mark.asyncio
    async def test_no_email_address(self, dispatcher, email_sender, user):
        user.email = None
        email_sent, _ = await dispatcher.dispatch(
            user, NotificationPreferences(), ReminderPeriod.MORNING, 0
        )
        assert email_sent is None
        email_sender.send_reminder.assert_not_called()

    @pytest.mark.asyncio
    async def test_no_subscription(self, dispatcher, store, push_sender, user):
        store.get_push_subscription.return_value = None
        _, push_status = await dispatcher.dispatch(
            user, NotificationPreferences(), ReminderPeriod.MORNING, 0
        )
        assert push_status is None
        push_sender.send.assert_not_called()

    @pytest.mark.asyncio
    async def test_email_failure_does_not_stop_push(self, dispatcher, email_sender, user):
        email_sender.send_reminder.side_effect = RuntimeError("resend exploded")

        email_sent, push_status = await dispatcher.dispatch(
            user, NotificationPreferences(), ReminderPeriod.AFTERNOON, 0
        )

        assert email_sent is False
        assert push_status == PushDeliveryStatus.SENT

    @pytest.mark.asyncio
    async def test_push_failure_does_not_affect_email(self, dispatcher, push_sender, user):
        push_sender.send.side_effect = RuntimeError("push exploded")

        email_sent, push_status = await dispatcher.dispatch(
            user, NotificationPreferences(), ReminderPeriod.AFTERNOON, 0
        )

        assert email_sent is True
        assert push_status == PushDeliveryStatus.FAILED

    @pytest.mark.asyncio
    async def test_gone_subscription_purged(self, dispatcher, store, push_sender, publisher, user):
        push_sender.send.return_value = PushDeliveryStatus.GONE

        _, push_status = await dispatcher.dispatch(
            user, NotificationPreferences(email_enabled=False), ReminderPeriod.EVENING, 0
        )

        assert push_status == PushDeliveryStatus.GONE
        store.delete_push_subscription.assert_awaited_once_with("user-1")
        event_types = [call.args[0].event_type for call in publisher.publish.await_args_list]
        assert EventType.SUBSCRIPTION_PURGED in event_types
        assert EventType.NOTIFICATION_FAILED in event_types

    @pytest.mark.asyncio
    async def test_sent_push_not_purged(self, dispatcher, store, user):
        await dispatcher.dispatch(user, NotificationPreferences(), ReminderPeriod.EVENING, 0)
        store.delete_push_subscription.assert_not_called()

    @pytest.mark.asyncio
    async def test_disabled_push_sender_publishes_nothing_for_push(
        self, dispatcher, push_sender, publisher, user
    ):
        push_sender.send.return_value = PushDeliveryStatus.DISABLED

        _, push_status = await dispatcher.dispatch(
            user, NotificationPreferences(email_enabled=False), ReminderPeriod.EVENING, 0
        )

        assert push_status == PushDeliveryStatus.DISABLED
        publisher.publish.assert_not_called()
