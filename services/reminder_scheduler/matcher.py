"""
Per-minute reminder matching.

A reminder is due when the current instant, rendered as HH:MM in the
reminder's timezone, equals the configured time exactly.
"""

import logging
from datetime import datetime
from typing import Iterable, List, Set, Tuple
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from shared.models import DueReminder, ReminderPeriod, ReminderSpec

logger = logging.getLogger(__name__)


def localize(now: datetime, tz_name: str) -> datetime:
    """``now`` converted to ``tz_name``; an empty name means UTC."""
    return now.astimezone(ZoneInfo(tz_name or "UTC"))


def classify_period(reminder_time: str) -> ReminderPeriod:
    return ReminderPeriod.from_hour(int(reminder_time.split(":")[0]))


def due_reminders(reminders: Iterable[ReminderSpec], now: datetime) -> List[DueReminder]:
    """Reminders that fire at ``now``, at most one per (user, period).

    Reminders with an unknown timezone are logged and skipped.
    """
    due: List[DueReminder] = []
    seen: Set[Tuple[str, ReminderPeriod]] = set()

    for reminder in reminders:
        if not reminder.enabled or not reminder.user_id:
            continue
        try:
            local = localize(now, reminder.timezone)
        except (ZoneInfoNotFoundError, ValueError) as e:
            logger.error(
                f"Error processing time for user {reminder.user_id} "
                f"(TZ: {reminder.timezone}): {e}"
            )
            continue

        local_time = local.strftime("%H:%M")
        if local_time != reminder.time:
            continue

        period = classify_period(reminder.time)
        key = (reminder.user_id, period)
        if key in seen:
            continue
        seen.add(key)

        logger.info(
            f"Triggering reminder for {reminder.user_id} at {local_time} ({reminder.timezone})"
        )
        due.append(
            DueReminder(
                user_id=reminder.user_id,
                reminder=reminder,
                period=period,
                local_time=local_time,
                local_date=local.date(),
                local_weekday=local.weekday(),
            )
        )

    return due
