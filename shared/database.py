"""
Database layer for 1Day1Commit.

This module provides:
- Async engine and session management (asyncpg for PostgreSQL, aiosqlite for SQLite)
- Repository pattern implementation per table
- Transaction management
- HabitStore, the per-user store used by the streak tracker, scheduler and API
"""

import logging
from contextlib import asynccontextmanager
from datetime import date, datetime, timezone
from functools import wraps
from pathlib import Path
from typing import Optional, List, Dict, Any, AsyncGenerator, Tuple

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError, IntegrityError
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.sql import select

from config.settings import get_database_url, settings
from shared.models import (
    Base,
    UserModel,
    PreferencesModel,
    ReminderModel,
    ExcludedRepoModel,
    RepoNoteModel,
    StreakModel,
    CommitLogModel,
    PushSubscriptionModel,
    UserProfile,
    NotificationPreferences,
    PreferencesUpdate,
    ReminderSpec,
    ReminderCreate,
    ReminderUpdate,
    RepoNote,
    RepoNoteUpdate,
    StreakState,
    PushSubscription,
    ModelConverter,
    ModelValidator,
)

logger = logging.getLogger(__name__)


def to_async_url(url: str) -> str:
    """Map a plain database URL onto its async driver."""
    for prefix, driver in (
        ("postgresql://", "postgresql+asyncpg://"),
        ("postgres://", "postgresql+asyncpg://"),
        ("sqlite://", "sqlite+aiosqlite://"),
    ):
        if url.startswith(prefix):
            return driver + url[len(prefix):]
    return url


class DatabaseManager:
    """Database connection and session management."""

    def __init__(self, url: Optional[str] = None):
        self.url = url
        self.async_engine = None
        self.AsyncSessionLocal = None
        self._initialized = False

    def initialize(self):
        """Initialize database connections."""
        if self._initialized:
            return

        async_url = to_async_url(self.url or get_database_url())
        engine_kwargs: Dict[str, Any] = {"echo": settings.database.echo}

        if async_url.startswith("sqlite"):
            db_path = async_url.split(":///", 1)[-1]
            if db_path and db_path != ":memory:":
                Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        else:
            engine_kwargs.update(
                pool_size=settings.database.pool_size,
                max_overflow=settings.database.max_overflow,
                pool_timeout=settings.database.pool_timeout,
                pool_recycle=settings.database.pool_recycle,
            )

        self.async_engine = create_async_engine(async_url, **engine_kwargs)
        self.AsyncSessionLocal = async_sessionmaker(
            self.async_engine, class_=AsyncSession, expire_on_commit=False
        )

        self._initialized = True
        logger.info("Database manager initialized successfully")

    async def create_tables(self):
        """Create all database tables."""
        if not self._initialized:
            self.initialize()

        async with self.async_engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database tables created successfully")

    @asynccontextmanager
    async def get_async_session(self) -> AsyncGenerator[AsyncSession, None]:
        """Get an asynchronous database session."""
        if not self._initialized:
            self.initialize()

        async with self.AsyncSessionLocal() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    async def health_check(self) -> Dict[str, Any]:
        """Perform database health check."""
        try:
            async with self.get_async_session() as session:
                result = await session.execute(text("SELECT 1"))
                result.fetchone()

            return {"status": "healthy", "timestamp": datetime.now(timezone.utc)}
        except Exception as e:
            logger.error(f"Database health check failed: {e}")
            return {"status": "unhealthy", "error": str(e), "timestamp": datetime.now(timezone.utc)}

    async def close(self):
        """Close database connections."""
        if self.async_engine is not None:
            await self.async_engine.dispose()
        logger.info("Database connections closed")


def database_transaction(func):
    """Run a repository method inside its own session and transaction."""

    @wraps(func)
    async def wrapper(self, *args, **kwargs):
        async with self.db.get_async_session() as session:
            try:
                return await func(self, *args, session=session, **kwargs)
            except SQLAlchemyError as e:
                logger.error(f"Database transaction failed in {func.__name__}: {e}")
                raise

    return wrapper


class BaseRepository:
    """Base repository class with common database operations."""

    def __init__(self, db: DatabaseManager, model_class):
        self.db = db
        self.model_class = model_class

    @database_transaction
    async def get(self, key: Any, session: AsyncSession) -> Optional[Any]:
        """Get record by primary key."""
        return await session.get(self.model_class, key)

    @database_transaction
    async def create(self, data: Dict[str, Any], session: AsyncSession) -> Any:
        """Create a new record."""
        try:
            instance = self.model_class(**data)
            session.add(instance)
            await session.flush()
            return instance
        except IntegrityError as e:
            logger.error(f"Integrity error creating {self.model_class.__name__}: {e}")
            raise

    @database_transaction
    async def upsert(self, key: Any, data: Dict[str, Any], session: AsyncSession) -> Any:
        """Insert or update a record by primary key; last write wins."""
        instance = await session.get(self.model_class, key)
        if instance is None:
            instance = self.model_class(**data)
            session.add(instance)
        else:
            for field, value in data.items():
                setattr(instance, field, value)
        await session.flush()
        return instance

    @database_transaction
    async def delete(self, key: Any, session: AsyncSession) -> bool:
        """Delete a record by primary key."""
        instance = await session.get(self.model_class, key)
        if instance is None:
            return False
        await session.delete(instance)
        return True


class UserRepository(BaseRepository):
    """Repository for users."""

    def __init__(self, db: DatabaseManager):
        super().__init__(db, UserModel)


class PreferencesRepository(BaseRepository):
    """Repository for notification preferences."""

    def __init__(self, db: DatabaseManager):
        super().__init__(db, PreferencesModel)


class ReminderRepository(BaseRepository):
    """Repository for reminder times."""

    def __init__(self, db: DatabaseManager):
        super().__init__(db, ReminderModel)

    @database_transaction
    async def list_for_user(
        self, user_id: str, session: AsyncSession
    ) -> List[Tuple[ReminderModel, str]]:
        result = await session.execute(
            select(ReminderModel, UserModel.timezone)
            .join(UserModel, ReminderModel.user_id == UserModel.id)
            .where(ReminderModel.user_id == user_id)
            .order_by(ReminderModel.time)
        )
        return [(row[0], row[1]) for row in result.all()]

    @database_transaction
    async def list_enabled(self, session: AsyncSession) -> List[Tuple[ReminderModel, str]]:
        """All enabled reminders with their owner's timezone."""
        result = await session.execute(
            select(ReminderModel, UserModel.timezone)
            .join(UserModel, ReminderModel.user_id == UserModel.id)
            .where(ReminderModel.enabled == True)
        )
        return [(row[0], row[1]) for row in result.all()]


class ExcludedRepoRepository(BaseRepository):
    """Repository for excluded repositories."""

    def __init__(self, db: DatabaseManager):
        super().__init__(db, ExcludedRepoModel)

    @database_transaction
    async def list_names(self, user_id: str, session: AsyncSession) -> List[str]:
        result = await session.execute(
            select(ExcludedRepoModel.repo_full_name).where(ExcludedRepoModel.user_id == user_id)
        )
        return list(result.scalars().all())


class RepoNoteRepository(BaseRepository):
    """Repository for repo notes."""

    def __init__(self, db: DatabaseManager):
        super().__init__(db, RepoNoteModel)

    @database_transaction
    async def list_for_user(self, user_id: str, session: AsyncSession) -> List[RepoNoteModel]:
        result = await session.execute(
            select(RepoNoteModel).where(RepoNoteModel.user_id == user_id)
        )
        return list(result.scalars().all())


class StreakRepository(BaseRepository):
    """Repository for cached streaks."""

    def __init__(self, db: DatabaseManager):
        super().__init__(db, StreakModel)


class CommitLogRepository(BaseRepository):
    """Repository for the daily commit log."""

    def __init__(self, db: DatabaseManager):
        super().__init__(db, CommitLogModel)


class PushSubscriptionRepository(BaseRepository):
    """Repository for web push subscriptions."""

    def __init__(self, db: DatabaseManager):
        super().__init__(db, PushSubscriptionModel)


class HabitStore:
    """Per-user reads and writes, keyed by user id, returning API models."""

    def __init__(self, db: Optional[DatabaseManager] = None):
        self.db = db or DatabaseManager()
        self.users = UserRepository(self.db)
        self.preferences = PreferencesRepository(self.db)
        self.reminders = ReminderRepository(self.db)
        self.excluded = ExcludedRepoRepository(self.db)
        self.notes = RepoNoteRepository(self.db)
        self.streaks = StreakRepository(self.db)
        self.commit_log = CommitLogRepository(self.db)
        self.subscriptions = PushSubscriptionRepository(self.db)

    # Users
    async def get_user(self, user_id: str) -> Optional[UserProfile]:
        model = await self.users.get(user_id)
        return ModelConverter.model_to_user(model) if model else None

    async def create_user(
        self, profile: UserProfile, reminder_times: Optional[List[str]] = None
    ) -> UserProfile:
        """Store a new user with default preferences and reminder times."""
        if "timezone" not in profile.model_fields_set:
            profile = profile.model_copy(update={"timezone": settings.scheduler.default_timezone})

        errors = ModelValidator.validate_user_data(profile.model_dump())
        if errors:
            raise ValueError(f"Invalid user data: {errors}")

        await self.users.create(profile.model_dump())
        await self.preferences.upsert(profile.id, {"user_id": profile.id})

        times = settings.scheduler.default_reminder_times if reminder_times is None else reminder_times
        for reminder_time in times:
            await self.add_reminder(profile.id, ReminderCreate(time=reminder_time))

        logger.info(f"Created user {profile.github_username} with {len(times)} reminders")
        return profile

    # Preferences
    async def get_preferences(self, user_id: str) -> NotificationPreferences:
        return ModelConverter.model_to_preferences(await self.preferences.get(user_id))

    async def update_preferences(
        self, user_id: str, update: PreferencesUpdate
    ) -> NotificationPreferences:
        current = await self.get_preferences(user_id)
        merged = current.model_copy(update=update.model_dump(exclude_none=True))
        await self.preferences.upsert(user_id, {"user_id": user_id, **merged.model_dump()})
        return merged

    # Reminders
    async def list_reminders(self, user_id: str) -> List[ReminderSpec]:
        rows = await self.reminders.list_for_user(user_id)
        return [ModelConverter.model_to_reminder(model, tz) for model, tz in rows]

    async def list_enabled_reminders(self) -> List[ReminderSpec]:
        rows = await self.reminders.list_enabled()
        return [ModelConverter.model_to_reminder(model, tz) for model, tz in rows]

    async def add_reminder(self, user_id: str, reminder: ReminderCreate) -> ReminderSpec:
        spec = ReminderSpec(
            user_id=user_id,
            time=reminder.time,
            enabled=reminder.enabled,
            timezone=reminder.timezone or "UTC",
        )
        await self.reminders.create(
            {
                "id": spec.id,
                "user_id": user_id,
                "time": spec.time,
                "enabled": spec.enabled,
                "timezone": reminder.timezone,
            }
        )
        if reminder.timezone is None:
            user = await self.get_user(user_id)
            if user is not None:
                spec.timezone = user.timezone
        return spec

    async def update_reminder(
        self, user_id: str, reminder_id: str, update: ReminderUpdate
    ) -> Optional[ReminderSpec]:
        model = await self.reminders.get(reminder_id)
        if model is None or model.user_id != user_id:
            return None
        await self.reminders.upsert(reminder_id, update.model_dump(exclude_none=True))
        for reminder in await self.list_reminders(user_id):
            if reminder.id == reminder_id:
                return reminder
        return None

    async def delete_reminder(self, user_id: str, reminder_id: str) -> bool:
        model = await self.reminders.get(reminder_id)
        if model is None or model.user_id != user_id:
            return False
        return await self.reminders.delete(reminder_id)

    # Excluded repos
    async def get_excluded_repos(self, user_id: str) -> List[str]:
        return await self.excluded.list_names(user_id)

    async def exclude_repo(self, user_id: str, repo_full_name: str):
        await self.excluded.upsert(
            (user_id, repo_full_name), {"user_id": user_id, "repo_full_name": repo_full_name}
        )

    async def include_repo(self, user_id: str, repo_full_name: str) -> bool:
        return await self.excluded.delete((user_id, repo_full_name))

    # Repo notes
    async def get_repo_notes(self, user_id: str) -> Dict[str, RepoNote]:
        models = await self.notes.list_for_user(user_id)
        return {m.repo_full_name: ModelConverter.model_to_note(m) for m in models}

    async def save_repo_note(
        self, user_id: str, repo_full_name: str, update: RepoNoteUpdate
    ) -> RepoNote:
        existing = (await self.get_repo_notes(user_id)).get(repo_full_name)
        note = existing or RepoNote(repo_full_name=repo_full_name)
        note = note.model_copy(update=update.model_dump(exclude_none=True))
        await self.notes.upsert(
            (user_id, repo_full_name), {"user_id": user_id, **note.model_dump()}
        )
        return note

    async def delete_repo_note(self, user_id: str, repo_full_name: str) -> bool:
        return await self.notes.delete((user_id, repo_full_name))

    # Streaks
    async def get_streak(self, user_id: str) -> Optional[StreakState]:
        return ModelConverter.model_to_streak(await self.streaks.get(user_id))

    async def save_streak(self, user_id: str, state: StreakState):
        await self.streaks.upsert(user_id, {"user_id": user_id, **state.model_dump()})

    async def record_commit_log(self, user_id: str, day: date, committed: bool, commit_count: int):
        await self.commit_log.upsert(
            (user_id, day),
            {"user_id": user_id, "date": day, "committed": committed, "commit_count": commit_count},
        )

    # Push subscriptions
    async def get_push_subscription(self, user_id: str) -> Optional[PushSubscription]:
        return ModelConverter.model_to_subscription(await self.subscriptions.get(user_id))

    async def save_push_subscription(self, user_id: str, subscription: PushSubscription):
        await self.subscriptions.upsert(user_id, {"user_id": user_id, **subscription.model_dump()})

    async def delete_push_subscription(self, user_id: str) -> bool:
        return await self.subscriptions.delete(user_id)


__all__ = [
    "DatabaseManager",
    "BaseRepository",
    "UserRepository",
    "PreferencesRepository",
    "ReminderRepository",
    "ExcludedRepoRepository",
    "RepoNoteRepository",
    "StreakRepository",
    "CommitLogRepository",
    "PushSubscriptionRepository",
    "HabitStore",
    "database_transaction",
    "to_async_url",
]
