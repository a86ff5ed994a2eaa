"""
Streak Tracker Service for 1Day1Commit.

Reconciles GitHub contribution data with the cached streak:
- the GraphQL contribution calendar is the primary source
- recent push events are the degraded fallback
- the cached StreakState is returned when GitHub is unreachable

Nothing in this service raises on GitHub failures.
"""

import logging
from datetime import datetime, timezone
from typing import List, Optional, Tuple

from shared.database import HabitStore
from shared.events import EventFactory, EventPublisher, StreakData
from shared.github_client import (
    GitHubAPIError,
    GitHubClient,
    GitHubClientFactory,
    default_client_factory,
)
from shared.models import ContributionDay, StreakSource, StreakState, TodayStatus, UserProfile
from services.streak_tracker.calculator import compute_streak, local_today, normalize_days

logger = logging.getLogger(__name__)


class StreakTrackerService:
    """Computes and persists a user's streak and today's commit status."""

    def __init__(
        self,
        store: HabitStore,
        github_factory: GitHubClientFactory = default_client_factory,
        publisher: Optional[EventPublisher] = None,
    ):
        self.store = store
        self.github_factory = github_factory
        self.publisher = publisher or EventPublisher()

    async def fetch_contributions(
        self, github: GitHubClient, user: UserProfile
    ) -> Tuple[Optional[List[ContributionDay]], StreakSource]:
        """Best available contribution history, and where it came from."""
        try:
            days = await github.contribution_calendar(user.github_username)
            return days, StreakSource.CALENDAR
        except GitHubAPIError as e:
            logger.warning(
                f"Contribution calendar unavailable for {user.github_username}, "
                f"falling back to events: {e}"
            )

        try:
            days = await github.events_fallback(user.github_username, user.timezone)
            return days, StreakSource.EVENTS
        except GitHubAPIError as e:
            logger.error(f"Events fallback failed for {user.github_username}: {e}")

        return None, StreakSource.CACHE

    async def contributions(self, user: UserProfile) -> List[ContributionDay]:
        """Contribution history for display; empty when GitHub is unreachable."""
        async with self.github_factory(user.github_token) as github:
            days, _ = await self.fetch_contributions(github, user)
        return days or []

    async def check_today(self, user: UserProfile, now: Optional[datetime] = None) -> TodayStatus:
        """Refresh the cached streak and report whether the user committed today."""
        now = now or datetime.now(timezone.utc)
        previous = await self.store.get_streak(user.id)

        async with self.github_factory(user.github_token) as github:
            days, source = await self.fetch_contributions(github, user)

        if days is None:
            state = previous or StreakState()
            logger.info(f"Using cached streak for {user.github_username}")
            return TodayStatus(
                username=user.github_username,
                has_committed=False,
                commit_count=0,
                current_streak=state.current_streak,
                longest_streak=state.longest_streak,
                source=source,
            )

        today = local_today(now, user.timezone)
        commit_count = normalize_days(days).get(today, 0)
        state = compute_streak(days, user.timezone, now, previous)

        await self.store.record_commit_log(user.id, today, commit_count > 0, commit_count)
        await self.store.save_streak(user.id, state)
        await self.publisher.publish(
            EventFactory.create_streak_event(
                StreakData(
                    user_id=user.id,
                    current_streak=state.current_streak,
                    longest_streak=state.longest_streak,
                    source=source.value,
                )
            )
        )

        logger.info(
            f"Streak for {user.github_username}: current={state.current_streak} "
            f"longest={state.longest_streak} ({source.value})"
        )
        return TodayStatus(
            username=user.github_username,
            has_committed=commit_count > 0,
            commit_count=commit_count,
            current_streak=state.current_streak,
            longest_streak=state.longest_streak,
            source=source,
        )
