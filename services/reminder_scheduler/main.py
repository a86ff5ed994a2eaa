"""
Reminder Scheduler Service for 1Day1Commit.

Every minute the scheduler loads enabled reminders, finds the ones due in
their own timezone and notifies each affected user:
- weekends are skipped for users with ``weekends_off``
- users who already committed are skipped unless ``email_when_committed``
- a repo suggestion is attached when the user has not committed yet

Users are processed concurrently under a semaphore; one user's failure never
stops the scan, and one scan's failure never stops the loop.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Callable, Optional
from zoneinfo import ZoneInfo

from config.settings import settings
from shared.database import HabitStore
from shared.events import (
    EventFactory,
    EventPublisher,
    EventSource,
    EventType,
    ReminderData,
)
from shared.github_client import GitHubClientFactory, default_client_factory
from shared.models import (
    DueReminder,
    NotificationOutcome,
    RepoSuggestion,
    ScanReport,
    UserProfile,
)
from services.notifications.dispatcher import NotificationDispatcher
from services.notifications.email import EmailSender
from services.notifications.push import PushSender
from services.reminder_scheduler.matcher import due_reminders
from services.suggestion_engine.scorer import compute_suggestion

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ReminderScheduler:
    """Matches reminders against the clock and notifies due users."""

    def __init__(
        self,
        store: HabitStore,
        dispatcher: NotificationDispatcher,
        github_factory: GitHubClientFactory = default_client_factory,
        publisher: Optional[EventPublisher] = None,
        clock: Clock = utc_now,
        max_concurrency: Optional[int] = None,
        tick_seconds: Optional[int] = None,
    ):
        self.store = store
        self.dispatcher = dispatcher
        self.github_factory = github_factory
        self.publisher = publisher or EventPublisher()
        self.clock = clock
        self.max_concurrency = max_concurrency or settings.scheduler.max_concurrent_users
        self.tick_seconds = tick_seconds or settings.scheduler.tick_seconds
        self._running = False
        self._stop_event: Optional[asyncio.Event] = None
        self._last_scanned_minute: Optional[datetime] = None

    async def scan_and_notify(self, now: Optional[datetime] = None) -> ScanReport:
        """Run one scheduler tick at ``now``."""
        now = now or self.clock()
        report = ScanReport(started_at=now)

        reminders = await self.store.list_enabled_reminders()
        report.reminders_checked = len(reminders)

        due = due_reminders(reminders, now)
        report.due = len(due)
        if not due:
            return report

        semaphore = asyncio.Semaphore(self.max_concurrency)

        async def bounded(item: DueReminder) -> NotificationOutcome:
            async with semaphore:
                return await self._notify_safely(item, now)

        report.outcomes = list(await asyncio.gather(*(bounded(item) for item in due)))

        await self.publisher.publish(
            EventFactory.create_event(
                EventType.SCAN_COMPLETED,
                {
                    "reminders_checked": report.reminders_checked,
                    "due": report.due,
                    "notified": report.notified,
                    "failed": report.failed,
                },
                source=EventSource.REMINDER_SCHEDULER,
            )
        )
        logger.info(
            f"Reminder scan at {now.isoformat()}: {report.due} due, "
            f"{report.notified} notified, {report.failed} failed"
        )
        return report

    async def _notify_safely(self, due: DueReminder, now: datetime) -> NotificationOutcome:
        try:
            return await self.notify_user(due, now)
        except Exception as e:
            logger.error(f"Error processing user {due.user_id}: {e}")
            return NotificationOutcome(user_id=due.user_id, period=due.period, error=str(e))

    async def notify_user(self, due: DueReminder, now: datetime) -> NotificationOutcome:
        outcome = NotificationOutcome(user_id=due.user_id, period=due.period)

        user = await self.store.get_user(due.user_id)
        if user is None:
            outcome.skipped_reason = "unknown_user"
            return outcome

        preferences = await self.store.get_preferences(user.id)

        local_weekday = now.astimezone(ZoneInfo(user.timezone or "UTC")).weekday()
        if preferences.weekends_off and local_weekday >= 5:
            logger.info(f"Skipping {user.github_username}: weekends off")
            outcome.skipped_reason = "weekend"
            return outcome

        async with self.github_factory(user.github_token) as github:
            status = await github.has_committed_today(user.github_username, user.timezone, now)
            outcome.has_committed = status["has_committed"]

            if outcome.has_committed and not preferences.email_when_committed:
                logger.info(f"Skipping {user.github_username}: already committed today")
                outcome.skipped_reason = "committed"
                return outcome

            suggestion = None
            if not outcome.has_committed:
                suggestion = await self._suggest(github, user, now)

        if suggestion is not None:
            outcome.suggested_repo = suggestion.full_name

        streak = await self.store.get_streak(user.id)
        current_streak = streak.current_streak if streak else 0

        outcome.email_sent, outcome.push_status = await self.dispatcher.dispatch(
            user, preferences, due.period, current_streak, suggestion
        )

        await self.publisher.publish(
            EventFactory.create_reminder_event(
                ReminderData(
                    user_id=user.id,
                    period=due.period.value,
                    local_time=due.local_time,
                    timezone=due.reminder.timezone,
                )
            )
        )
        return outcome

    async def _suggest(self, github, user: UserProfile, now: datetime) -> Optional[RepoSuggestion]:
        """Suggestion for the reminder body; failures just drop the suggestion."""
        try:
            repos = await github.list_repos()
            excluded = await self.store.get_excluded_repos(user.id)
            notes = await self.store.get_repo_notes(user.id)
        except Exception as e:
            logger.warning(f"Could not compute suggestion for {user.github_username}: {e}")
            return None
        return compute_suggestion(repos, excluded, notes, now)

    def seconds_until_next_tick(self, now: Optional[datetime] = None) -> float:
        now = now or self.clock()
        elapsed = now.second + now.microsecond / 1_000_000
        return self.tick_seconds - (elapsed % self.tick_seconds)

    async def run_forever(self):
        """Tick on minute boundaries until ``stop`` is called.

        A wake-up that lands in a minute already scanned (an early timer, or
        wall clock drift) sleeps again instead of scanning that minute twice.
        """
        self._running = True
        self._stop_event = asyncio.Event()
        logger.info("Reminder scheduler started")

        while self._running:
            try:
                await asyncio.wait_for(
                    self._stop_event.wait(), timeout=self.seconds_until_next_tick()
                )
            except asyncio.TimeoutError:
                pass
            if not self._running:
                break

            now = self.clock()
            minute = now.replace(second=0, microsecond=0)
            if minute == self._last_scanned_minute:
                logger.debug(f"Minute {minute:%H:%M} already scanned, waiting for the next one")
                continue
            self._last_scanned_minute = minute

            try:
                await self.scan_and_notify(now)
            except Exception as e:
                logger.error(f"Reminder scan failed: {e}")

        logger.info("Reminder scheduler stopped")

    def stop(self):
        self._running = False
        if self._stop_event is not None:
            self._stop_event.set()

    async def close(self):
        """Release the email sender's HTTP client."""
        await self.dispatcher.email_sender.close()

    @property
    def running(self) -> bool:
        return self._running


def build_scheduler(
    store: Optional[HabitStore] = None,
    publisher: Optional[EventPublisher] = None,
) -> ReminderScheduler:
    """Scheduler wired with senders and publisher taken from settings."""
    store = store or HabitStore()
    publisher = publisher or EventPublisher.from_settings()
    dispatcher = NotificationDispatcher(
        store,
        EmailSender.from_settings(),
        PushSender.from_settings(),
        publisher=publisher,
    )
    return ReminderScheduler(store, dispatcher, publisher=publisher)
