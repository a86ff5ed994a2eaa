"""
Integration tests for the database layer and HabitStore.

Each test runs against a fresh SQLite file through aiosqlite.
"""

from datetime import date
from unittest.mock import patch

import pytest
import pytest_asyncio

import shared.database as database_module
from config.settings import SchedulerSettings, Settings
from shared.database import DatabaseManager, HabitStore, to_async_url
from shared.models import (
    PreferencesUpdate,
    PushSubscription,
    ReminderCreate,
    ReminderUpdate,
    RepoNoteUpdate,
    StreakState,
    UserProfile,
)


@pytest_asyncio.fixture
async def store(tmp_path):
    db = DatabaseManager(f"sqlite:///{tmp_path / 'habits.sqlite'}")
    await db.create_tables()
    yield HabitStore(db)
    await db.close()


@pytest_asyncio.fixture
async def user(store):
    profile = UserProfile(
        id="user-1",
        github_username="octo",
        github_token="gho_secret",
        email="octo@example.com",
        timezone="Europe/Berlin",
    )
    return await store.create_user(profile)


class TestToAsyncUrl:
    @pytest.mark.parametrize("url,expected", [
        ("postgresql://u:p@h/db", "postgresql+asyncpg://u:p@h/db"),
        ("postgres://u:p@h/db", "postgresql+asyncpg://u:p@h/db"),
        ("sqlite:///data/x.sqlite", "sqlite+aiosqlite:///data/x.sqlite"),
        ("sqlite+aiosqlite:///x", "sqlite+aiosqlite:///x"),
    ])
    def test_mapping(self, url, expected):
        assert to_async_url(url) == expected


class TestDatabaseManager:
    @pytest.mark.asyncio
    async def test_health_check(self, store):
        health = await store.db.health_check()
        assert health["status"] == "healthy"

    @pytest.mark.asyncio
    async def test_creates_parent_directory(self, tmp_path):
        db = DatabaseManager(f"sqlite:///{tmp_path / 'nested' / 'dir' / 'db.sqlite'}")
        await db.create_tables()
        assert (tmp_path / "nested" / "dir").is_dir()
        await db.close()


class TestUsers:
    @pytest.mark.asyncio
    async def test_create_and_get(self, store, user):
        loaded = await store.get_user("user-1")
        assert loaded == user
        assert await store.get_user("missing") is None

    @pytest.mark.asyncio
    async def test_default_reminders_seeded(self, store, user):
        reminders = await store.list_reminders(user.id)
        assert sorted(r.time for r in reminders) == ["09:00", "15:00", "20:00"]
        assert all(r.timezone == "Europe/Berlin" for r in reminders)

    @pytest.mark.asyncio
    async def test_timezone_defaults_from_settings(self, store):
        fresh = Settings(scheduler=SchedulerSettings(default_timezone="Asia/Tokyo"))
        with patch.object(database_module, "settings", fresh):
            created = await store.create_user(UserProfile(github_username="nozone", github_token="t"))

        assert created.timezone == "Asia/Tokyo"
        assert (await store.get_user(created.id)).timezone == "Asia/Tokyo"

    @pytest.mark.asyncio
    async def test_chosen_timezone_kept(self, store):
        fresh = Settings(scheduler=SchedulerSettings(default_timezone="Asia/Tokyo"))
        with patch.object(database_module, "settings", fresh):
            created = await store.create_user(
                UserProfile(github_username="ny", github_token="t", timezone="America/New_York")
            )

        assert created.timezone == "America/New_York"

    @pytest.mark.asyncio
    async def test_invalid_user_rejected(self, store):
        with pytest.raises(ValueError):
            await store.create_user(
                UserProfile(github_username="x", github_token="t", timezone="Nowhere/City")
            )


class TestPreferences:
    @pytest.mark.asyncio
    async def test_defaults(self, store, user):
        prefs = await store.get_preferences(user.id)
        assert prefs.email_enabled is True
        assert prefs.weekends_off is False

    @pytest.mark.asyncio
    async def test_partial_update(self, store, user):
        await store.update_preferences(user.id, PreferencesUpdate(weekends_off=True))
        prefs = await store.get_preferences(user.id)
        assert prefs.weekends_off is True
        assert prefs.push_enabled is True


class TestReminders:
    @pytest.mark.asyncio
    async def test_add_with_own_timezone(self, store, user):
        reminder = await store.add_reminder(
            user.id, ReminderCreate(time="07:30", timezone="Asia/Tokyo")
        )
        listed = {r.id: r for r in await store.list_reminders(user.id)}
        assert listed[reminder.id].timezone == "Asia/Tokyo"

    @pytest.mark.asyncio
    async def test_added_reminder_inherits_user_timezone(self, store, user):
        reminder = await store.add_reminder(user.id, ReminderCreate(time="07:30"))
        assert reminder.timezone == "Europe/Berlin"

    @pytest.mark.asyncio
    async def test_update_and_disable(self, store, user):
        reminder = await store.add_reminder(user.id, ReminderCreate(time="07:30"))

        updated = await store.update_reminder(
            user.id, reminder.id, ReminderUpdate(time="08:15", enabled=False)
        )

        assert updated.time == "08:15"
        assert updated.enabled is False
        enabled_ids = {r.id for r in await store.list_enabled_reminders()}
        assert reminder.id not in enabled_ids

    @pytest.mark.asyncio
    async def test_other_users_reminder_untouched(self, store, user):
        reminder = await store.add_reminder(user.id, ReminderCreate(time="07:30"))
        assert await store.update_reminder("someone-else", reminder.id, ReminderUpdate(time="08:00")) is None
        assert await store.delete_reminder("someone-else", reminder.id) is False
        assert await store.delete_reminder(user.id, reminder.id) is True

    @pytest.mark.asyncio
    async def test_enabled_reminders_span_users(self, store, user):
        other = await store.create_user(
            UserProfile(id="user-2", github_username="hub", github_token="t"),
            reminder_times=["21:00"],
        )
        reminders = await store.list_enabled_reminders()
        assert {r.user_id for r in reminders} == {user.id, other.id}
        assert len(reminders) == 4


class TestRepoPreferences:
    @pytest.mark.asyncio
    async def test_exclusions(self, store, user):
        await store.exclude_repo(user.id, "octo/old")
        await store.exclude_repo(user.id, "octo/old")
        await store.exclude_repo(user.id, "octo/fork")

        assert sorted(await store.get_excluded_repos(user.id)) == ["octo/fork", "octo/old"]
        assert await store.include_repo(user.id, "octo/old") is True
        assert await store.include_repo(user.id, "octo/old") is False
        assert await store.get_excluded_repos(user.id) == ["octo/fork"]

    @pytest.mark.asyncio
    async def test_notes_merge_updates(self, store, user):
        await store.save_repo_note(user.id, "octo/app", RepoNoteUpdate(priority=5))
        note = await store.save_repo_note(user.id, "octo/app", RepoNoteUpdate(notes="ship v2"))

        assert note.priority == 5
        assert note.difficulty == 3
        notes = await store.get_repo_notes(user.id)
        assert notes["octo/app"].notes == "ship v2"

        assert await store.delete_repo_note(user.id, "octo/app") is True
        assert await store.get_repo_notes(user.id) == {}


class TestStreaksAndSubscriptions:
    @pytest.mark.asyncio
    async def test_streak_last_write_wins(self, store, user):
        assert await store.get_streak(user.id) is None

        await store.save_streak(user.id, StreakState(current_streak=2, longest_streak=5))
        await store.save_streak(
            user.id, StreakState(current_streak=3, longest_streak=5, last_commit_date=date(2024, 1, 3))
        )

        state = await store.get_streak(user.id)
        assert state.current_streak == 3
        assert state.last_commit_date == date(2024, 1, 3)

    @pytest.mark.asyncio
    async def test_commit_log_upsert(self, store, user):
        await store.record_commit_log(user.id, date(2024, 1, 3), False, 0)
        await store.record_commit_log(user.id, date(2024, 1, 3), True, 2)

        row = await store.commit_log.get((user.id, date(2024, 1, 3)))
        assert row.committed is True
        assert row.commit_count == 2

    @pytest.mark.asyncio
    async def test_push_subscription_lifecycle(self, store, user):
        sub = PushSubscription(endpoint="https://push.example/1", p256dh="k", auth="a")

        await store.save_push_subscription(user.id, sub)
        assert await store.get_push_subscription(user.id) == sub

        assert await store.delete_push_subscription(user.id) is True
        assert await store.get_push_subscription(user.id) is None
