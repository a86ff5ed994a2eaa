"""
Streak arithmetic over contribution days.

Everything here is pure: callers pass the evaluation instant and timezone, so
the same inputs always give the same StreakState.
"""

from datetime import date, datetime, timedelta
from typing import Dict, Iterable, Optional
from zoneinfo import ZoneInfo

from shared.models import ContributionDay, StreakState

ONE_DAY = timedelta(days=1)


def local_today(now: datetime, tz_name: str) -> date:
    """Calendar date of ``now`` in the given IANA zone."""
    return now.astimezone(ZoneInfo(tz_name or "UTC")).date()


def normalize_days(days: Iterable[ContributionDay]) -> Dict[date, int]:
    """Collapse a contribution sequence into a date -> count map.

    Duplicate dates are summed.
    """
    counts: Dict[date, int] = {}
    for day in days:
        counts[day.date] = counts.get(day.date, 0) + day.count
    return counts


def compute_current_streak(counts: Dict[date, int], today: date) -> int:
    """Length of the run of counting days ending today or yesterday.

    A day with nothing yet today does not break a streak that ended yesterday.
    Days after ``today`` are ignored.
    """
    counting = sorted((d for d, c in counts.items() if c > 0 and d <= today), reverse=True)
    if not counting:
        return 0

    most_recent = counting[0]
    if most_recent not in (today, today - ONE_DAY):
        return 0

    streak = 1
    previous = most_recent
    for day in counting[1:]:
        if previous - day != ONE_DAY:
            break
        streak += 1
        previous = day
    return streak


def compute_longest_streak(counts: Dict[date, int]) -> int:
    """Longest run of consecutive counting days anywhere in the sequence."""
    longest = 0
    running = 0
    last_counting: Optional[date] = None

    for day in sorted(counts):
        if counts[day] > 0:
            if running > 0 and last_counting is not None and day - last_counting == ONE_DAY:
                running += 1
            else:
                running = 1
            last_counting = day
        else:
            running = 0
        longest = max(longest, running)

    return longest


def last_commit_date(counts: Dict[date, int], today: date) -> Optional[date]:
    counting = [d for d, c in counts.items() if c > 0 and d <= today]
    return max(counting) if counting else None


def compute_streak(
    days: Iterable[ContributionDay],
    tz_name: str,
    now: datetime,
    previous: Optional[StreakState] = None,
) -> StreakState:
    """Derive the streak state for ``days`` as seen at ``now`` in ``tz_name``.

    ``previous`` is the persisted state; its longest streak acts as a floor and
    its last commit date is kept unless the new data has a later one.
    """
    counts = normalize_days(days)
    today = local_today(now, tz_name)

    current = compute_current_streak(counts, today)
    longest = compute_longest_streak(counts)
    if previous is not None:
        longest = max(longest, previous.longest_streak)
    longest = max(longest, current)

    last_date = last_commit_date(counts, today)
    if previous is not None and previous.last_commit_date is not None:
        if last_date is None or previous.last_commit_date > last_date:
            last_date = previous.last_commit_date

    return StreakState(current_streak=current, longest_streak=longest, last_commit_date=last_date)
