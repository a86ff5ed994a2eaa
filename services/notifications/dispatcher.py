"""
Fan a reminder out to the user's enabled channels.

Email and push are attempted independently; a failure on one never stops the
other. A push subscription reported as gone is deleted from the store.
"""

import logging
from typing import Optional, Tuple

from shared.database import HabitStore
from shared.events import (
    EventFactory,
    EventPublisher,
    EventSource,
    EventType,
    NotificationData,
)
from shared.models import (
    NotificationPreferences,
    PushDeliveryStatus,
    ReminderPeriod,
    RepoSuggestion,
    UserProfile,
)
from services.notifications.email import EmailSender
from services.notifications.push import PushSender, build_push_message

logger = logging.getLogger(__name__)


class NotificationDispatcher:
    """Delivers one reminder to a user over email and push."""

    def __init__(
        self,
        store: HabitStore,
        email_sender: EmailSender,
        push_sender: PushSender,
        publisher: Optional[EventPublisher] = None,
    ):
        self.store = store
        self.email_sender = email_sender
        self.push_sender = push_sender
        self.publisher = publisher or EventPublisher()

    async def dispatch(
        self,
        user: UserProfile,
        preferences: NotificationPreferences,
        period: ReminderPeriod,
        current_streak: int,
        suggestion: Optional[RepoSuggestion] = None,
    ) -> Tuple[Optional[bool], Optional[PushDeliveryStatus]]:
        """Returns (email_sent, push_status); None means the channel was not attempted."""
        email_sent = None
        push_status = None

        if preferences.email_enabled and user.email:
            email_sent = await self._send_email(user, period, current_streak, suggestion)

        if preferences.push_enabled:
            push_status = await self._send_push(user, period, current_streak, suggestion)

        return email_sent, push_status

    async def _send_email(
        self,
        user: UserProfile,
        period: ReminderPeriod,
        current_streak: int,
        suggestion: Optional[RepoSuggestion],
    ) -> bool:
        try:
            sent = await self.email_sender.send_reminder(
                to=user.email,
                username=user.github_username,
                current_streak=current_streak,
                period=period,
                suggested_repo=suggestion.full_name if suggestion else None,
            )
        except Exception as e:
            logger.error(f"[EMAIL] Error sending to {user.github_username}: {e}")
            sent = False

        await self._publish(user, "email", period, sent)
        return sent

    async def _send_push(
        self,
        user: UserProfile,
        period: ReminderPeriod,
        current_streak: int,
        suggestion: Optional[RepoSuggestion],
    ) -> Optional[PushDeliveryStatus]:
        try:
            subscription = await self.store.get_push_subscription(user.id)
            if subscription is None:
                return None

            title, body = build_push_message(current_streak, suggestion)
            url = suggestion.repo.html_url if suggestion else None
            status = await self.push_sender.send(subscription, title, body, url)
        except Exception as e:
            logger.error(f"[PUSH] Error sending to {user.github_username}: {e}")
            status = PushDeliveryStatus.FAILED

        if status == PushDeliveryStatus.GONE:
            await self._purge_subscription(user)
        elif status == PushDeliveryStatus.SENT:
            logger.info(f"[PUSH] Sent notification to user {user.id}")

        if status != PushDeliveryStatus.DISABLED:
            await self._publish(user, "push", period, status == PushDeliveryStatus.SENT, status.value)
        return status

    async def _purge_subscription(self, user: UserProfile):
        try:
            await self.store.delete_push_subscription(user.id)
            logger.info(f"[PUSH] Removed stale subscription for user {user.id}")
            await self.publisher.publish(
                EventFactory.create_event(
                    EventType.SUBSCRIPTION_PURGED,
                    {"user_id": user.id},
                    source=EventSource.NOTIFICATIONS,
                )
            )
        except Exception as e:
            logger.error(f"[PUSH] Could not remove stale subscription for {user.id}: {e}")

    async def _publish(
        self,
        user: UserProfile,
        channel: str,
        period: ReminderPeriod,
        success: bool,
        detail: Optional[str] = None,
    ):
        await self.publisher.publish(
            EventFactory.create_notification_event(
                NotificationData(
                    user_id=user.id,
                    channel=channel,
                    period=period.value,
                    success=success,
                    detail=detail,
                )
            )
        )
