"""
Unit tests for the Streak Tracker service fallback chain.
"""

from datetime import date, datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

from shared.github_client import GitHubAPIError
from shared.models import ContributionDay, StreakSource, StreakState, UserProfile
from services.streak_tracker.main import StreakTrackerService

NOW = datetime(2024, 1, 3, 15, 0, tzinfo=timezone.utc)

CALENDAR = [
    ContributionDay(date=date(2024, 1, 1), count=1),
    ContributionDay(date=date(2024, 1, 2), count=2),
    ContributionDay(date=date(2024, 1, 3), count=4),
]


class FakeGitHub:
    def __init__(self, calendar=None, events=None):
        self.contribution_calendar = AsyncMock(side_effect=calendar)
        self.events_fallback = AsyncMock(side_effect=events)

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        return False


def calendar_ok():
    return AsyncMock(return_value=CALENDAR)


@pytest.fixture
def user():
    return UserProfile(id="user-1", github_username="octo", github_token="t", timezone="UTC")


@pytest.fixture
def store():
    store = MagicMock()
    store.get_streak = AsyncMock(return_value=None)
    store.save_streak = AsyncMock()
    store.record_commit_log = AsyncMock()
    return store


@pytest.fixture
def publisher():
    publisher = MagicMock()
    publisher.publish = AsyncMock(return_value=False)
    return publisher


def service_with(github, store, publisher):
    return StreakTrackerService(store, github_factory=lambda token: github, publisher=publisher)


class TestFetchContributions:
    @pytest.mark.asyncio
    async def test_calendar_first(self, store, publisher, user):
        github = FakeGitHub()
        github.contribution_calendar = calendar_ok()
        service = service_with(github, store, publisher)

        days, source = await service.fetch_contributions(github, user)

        assert source == StreakSource.CALENDAR
        assert days == CALENDAR
        github.events_fallback.assert_not_called()

    @pytest.mark.asyncio
    async def test_events_when_calendar_fails(self, store, publisher, user):
        events = [ContributionDay(date=date(2024, 1, 3), count=1)]
        github = FakeGitHub(calendar=GitHubAPIError("down"))
        github.events_fallback = AsyncMock(return_value=events)
        service = service_with(github, store, publisher)

        days, source = await service.fetch_contributions(github, user)

        assert source == StreakSource.EVENTS
        assert days == events
        github.events_fallback.assert_awaited_once_with("octo", "UTC")

    @pytest.mark.asyncio
    async def test_cache_when_everything_fails(self, store, publisher, user):
        github = FakeGitHub(calendar=GitHubAPIError("down"), events=GitHubAPIError("down"))
        service = service_with(github, store, publisher)

        days, source = await service.fetch_contributions(github, user)

        assert days is None
        assert source == StreakSource.CACHE


class TestCheckToday:
    @pytest.mark.asyncio
    async def test_computes_and_persists(self, store, publisher, user):
        github = FakeGitHub()
        github.contribution_calendar = calendar_ok()
        service = service_with(github, store, publisher)

        status = await service.check_today(user, NOW)

        assert status.has_committed is True
        assert status.commit_count == 4
        assert status.current_streak == 3
        assert status.longest_streak == 3
        assert status.source == StreakSource.CALENDAR
        store.record_commit_log.assert_awaited_once_with("user-1", date(2024, 1, 3), True, 4)
        saved = store.save_streak.await_args.args[1]
        assert saved == StreakState(current_streak=3, longest_streak=3, last_commit_date=date(2024, 1, 3))
        publisher.publish.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_cached_state_returned_when_github_unreachable(self, store, publisher, user):
        store.get_streak.return_value = StreakState(current_streak=5, longest_streak=9)
        github = FakeGitHub(calendar=GitHubAPIError("down"), events=GitHubAPIError("down"))
        service = service_with(github, store, publisher)

        status = await service.check_today(user, NOW)

        assert status.source == StreakSource.CACHE
        assert status.current_streak == 5
        assert status.longest_streak == 9
        assert status.has_committed is False
        store.save_streak.assert_not_called()
        store.record_commit_log.assert_not_called()

    @pytest.mark.asyncio
    async def test_zeros_without_cache(self, store, publisher, user):
        github = FakeGitHub(calendar=GitHubAPIError("down"), events=GitHubAPIError("down"))
        service = service_with(github, store, publisher)

        status = await service.check_today(user, NOW)

        assert status.current_streak == 0
        assert status.longest_streak == 0

    @pytest.mark.asyncio
    async def test_contributions_empty_when_unreachable(self, store, publisher, user):
        github = FakeGitHub(calendar=GitHubAPIError("down"), events=GitHubAPIError("down"))
        service = service_with(github, store, publisher)

        assert await service.contributions(user) == []
