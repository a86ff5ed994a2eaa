"""
Data models for 1Day1Commit.

This module provides:
- Pydantic models for GitHub data, streaks, reminders and notifications
- SQLAlchemy table mappings for the per-user store
- Conversion helpers between the two
- Reusable validation rules
"""

import re
import uuid
from datetime import date, datetime, timezone
from enum import Enum
from typing import List, Optional, Dict, Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, Field, field_validator, model_validator, computed_field
from sqlalchemy import (
    Column, String, DateTime, Date, Text, Integer, Boolean, ForeignKey, Index,
)
from sqlalchemy.orm import declarative_base
from sqlalchemy.sql import func

Base = declarative_base()

TIME_PATTERN = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")
DEFAULT_TIMEZONE = "America/New_York"


class ReminderPeriod(Enum):
    """Coarse time-of-day bucket a reminder falls into."""
    MORNING = "morning"
    AFTERNOON = "afternoon"
    EVENING = "evening"

    @classmethod
    def from_hour(cls, hour: int) -> "ReminderPeriod":
        if hour < 12:
            return cls.MORNING
        if hour < 17:
            return cls.AFTERNOON
        return cls.EVENING


class StreakSource(Enum):
    """Where the numbers in a status check came from."""
    CALENDAR = "calendar"
    EVENTS = "events"
    CACHE = "cache"


class PushDeliveryStatus(Enum):
    """Outcome of a single web push attempt."""
    SENT = "sent"
    FAILED = "failed"
    GONE = "gone"
    DISABLED = "disabled"


# GitHub data
class ContributionDay(BaseModel):
    """Commit activity summary for one calendar day."""

    date: date
    count: int = Field(default=0, ge=0, description="Contributions on that day")


class RepoCandidate(BaseModel):
    """A repository the user could work on today."""

    full_name: str = Field(..., min_length=3, description="owner/name")
    name: Optional[str] = Field(default=None, validate_default=True, description="Repository name")
    html_url: Optional[str] = None
    description: Optional[str] = None
    language: Optional[str] = None
    stargazers_count: int = Field(default=0, ge=0)
    private: bool = False
    pushed_at: datetime = Field(..., description="Last push timestamp")
    open_issues_count: int = Field(default=0, ge=0)

    model_config = {"extra": "ignore"}

    @field_validator("full_name")
    @classmethod
    def validate_full_name(cls, v):
        if "/" not in v:
            raise ValueError("full_name must look like owner/name")
        return v

    @field_validator("name")
    @classmethod
    def default_name(cls, v, info):
        if v:
            return v
        full_name = info.data.get("full_name") or ""
        return full_name.split("/", 1)[-1]

    @field_validator("pushed_at")
    @classmethod
    def ensure_aware(cls, v):
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v


class RepoNote(BaseModel):
    """User-authored priority/difficulty for a repository."""

    repo_full_name: str = Field(..., min_length=3)
    priority: int = Field(default=3, ge=1, le=5, description="1 (low) to 5 (high)")
    difficulty: int = Field(default=3, ge=1, le=5, description="1 (easy) to 5 (hard)")
    notes: Optional[str] = Field(default=None, max_length=2000)


class RepoNoteUpdate(BaseModel):
    priority: Optional[int] = Field(None, ge=1, le=5)
    difficulty: Optional[int] = Field(None, ge=1, le=5)
    notes: Optional[str] = Field(None, max_length=2000)


class ScoreBreakdown(BaseModel):
    """Weighted components that add up to a suggestion score."""

    day_score: float
    issue_score: float
    priority_score: float
    difficulty_score: float
    random_score: float


class RepoSuggestion(BaseModel):
    """The repository picked for today, with its score for display."""

    repo: RepoCandidate
    days_since_push: int
    score: float
    breakdown: ScoreBreakdown

    @computed_field
    @property
    def full_name(self) -> str:
        return self.repo.full_name


# Streaks
class StreakState(BaseModel):
    """Cached streak numbers for a user."""

    current_streak: int = Field(default=0, ge=0)
    longest_streak: int = Field(default=0, ge=0)
    last_commit_date: Optional[date] = None

    @model_validator(mode="after")
    def check_longest(self):
        if self.longest_streak < self.current_streak:
            raise ValueError("longest_streak cannot be shorter than current_streak")
        return self


class TodayStatus(BaseModel):
    """Result of checking whether the user has committed today."""

    username: str
    has_committed: bool
    commit_count: int = Field(default=0, ge=0)
    current_streak: int = Field(default=0, ge=0)
    longest_streak: int = Field(default=0, ge=0)
    source: StreakSource = StreakSource.CALENDAR


# Users and preferences
class UserProfile(BaseModel):
    """A GitHub-linked user."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    github_id: Optional[str] = None
    github_username: str = Field(..., min_length=1)
    github_token: str = Field(..., repr=False)
    github_avatar: Optional[str] = None
    email: Optional[str] = None
    timezone: str = Field(default=DEFAULT_TIMEZONE)

    model_config = {"from_attributes": True}

    def public_dict(self) -> Dict[str, Any]:
        return self.model_dump(exclude={"github_token"})


class NotificationPreferences(BaseModel):
    """Per-user notification switches."""

    email_enabled: bool = True
    push_enabled: bool = True
    weekends_off: bool = False
    email_when_committed: bool = False

    model_config = {"from_attributes": True}


class PreferencesUpdate(BaseModel):
    email_enabled: Optional[bool] = None
    push_enabled: Optional[bool] = None
    weekends_off: Optional[bool] = None
    email_when_committed: Optional[bool] = None


class PushSubscription(BaseModel):
    """A browser push endpoint with its encryption keys."""

    endpoint: str = Field(..., min_length=1)
    p256dh: str = Field(..., min_length=1)
    auth: str = Field(..., min_length=1)

    def to_subscription_info(self) -> Dict[str, Any]:
        return {"endpoint": self.endpoint, "keys": {"p256dh": self.p256dh, "auth": self.auth}}


# Reminders
class ReminderSpec(BaseModel):
    """One "remind me at HH:MM" entry.

    ``timezone`` is the zone the time is expressed in; the store fills it from
    the owning user when the reminder has no zone of its own.
    """

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    user_id: Optional[str] = None
    time: str = Field(..., description="HH:MM, 24 hour")
    enabled: bool = True
    timezone: str = Field(default="UTC")

    model_config = {"from_attributes": True}

    @field_validator("time")
    @classmethod
    def validate_time(cls, v):
        if not ModelValidator.is_valid_time(v):
            raise ValueError("Reminder time must be HH:MM (24 hour)")
        return v

    @computed_field
    @property
    def period(self) -> ReminderPeriod:
        return ReminderPeriod.from_hour(int(self.time.split(":")[0]))


class ReminderCreate(BaseModel):
    time: str
    enabled: bool = True
    timezone: Optional[str] = None

    @field_validator("time")
    @classmethod
    def validate_time(cls, v):
        if not ModelValidator.is_valid_time(v):
            raise ValueError("Reminder time must be HH:MM (24 hour)")
        return v

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, v):
        if v is not None and not ModelValidator.is_valid_timezone(v):
            raise ValueError(f"Unknown timezone: {v}")
        return v


class ReminderUpdate(ReminderCreate):
    time: Optional[str] = None
    enabled: Optional[bool] = None

    @field_validator("time")
    @classmethod
    def validate_time(cls, v):
        if v is not None and not ModelValidator.is_valid_time(v):
            raise ValueError("Reminder time must be HH:MM (24 hour)")
        return v


class DueReminder(BaseModel):
    """A reminder whose time matches the current minute."""

    user_id: str
    reminder: ReminderSpec
    period: ReminderPeriod
    local_time: str
    local_date: date
    local_weekday: int = Field(..., ge=0, le=6, description="Monday is 0")


# Scheduler reporting
class NotificationOutcome(BaseModel):
    """What happened when a user was processed for a reminder."""

    user_id: str
    period: ReminderPeriod
    skipped_reason: Optional[str] = None
    has_committed: Optional[bool] = None
    suggested_repo: Optional[str] = None
    email_sent: Optional[bool] = None
    push_status: Optional[PushDeliveryStatus] = None
    error: Optional[str] = None

    @computed_field
    @property
    def notified(self) -> bool:
        return bool(self.email_sent) or self.push_status == PushDeliveryStatus.SENT


class ScanReport(BaseModel):
    """Summary of a single scheduler tick."""

    started_at: datetime
    reminders_checked: int = 0
    due: int = 0
    outcomes: List[NotificationOutcome] = Field(default_factory=list)

    @computed_field
    @property
    def notified(self) -> int:
        return sum(1 for o in self.outcomes if o.notified)

    @computed_field
    @property
    def failed(self) -> int:
        return sum(1 for o in self.outcomes if o.error)


# SQLAlchemy Models for Database
class UserModel(Base):
    """SQLAlchemy model for users."""

    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    github_id = Column(String(64), unique=True, nullable=True)
    github_username = Column(String(255), nullable=False, index=True)
    github_token = Column(Text, nullable=False)
    github_avatar = Column(Text, nullable=True)
    email = Column(String(320), nullable=True)
    timezone = Column(String(64), nullable=False, default=DEFAULT_TIMEZONE)
    created_at = Column(DateTime(timezone=True), nullable=False, default=func.now())


class PreferencesModel(Base):
    """SQLAlchemy model for notification preferences."""

    __tablename__ = "preferences"

    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    email_enabled = Column(Boolean, nullable=False, default=True)
    push_enabled = Column(Boolean, nullable=False, default=True)
    weekends_off = Column(Boolean, nullable=False, default=False)
    email_when_committed = Column(Boolean, nullable=False, default=False)


class ReminderModel(Base):
    """SQLAlchemy model for reminder times."""

    __tablename__ = "reminder_times"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    time = Column(String(5), nullable=False)
    enabled = Column(Boolean, nullable=False, default=True)
    timezone = Column(String(64), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=func.now())

    __table_args__ = (
        Index("idx_reminder_times_user_id", "user_id"),
        Index("idx_reminder_times_enabled", "enabled"),
    )


class ExcludedRepoModel(Base):
    """SQLAlchemy model for repositories the user never wants suggested."""

    __tablename__ = "excluded_repos"

    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    repo_full_name = Column(String(255), primary_key=True)


class RepoNoteModel(Base):
    """SQLAlchemy model for per-repo notes."""

    __tablename__ = "repo_notes"

    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    repo_full_name = Column(String(255), primary_key=True)
    priority = Column(Integer, nullable=False, default=3)
    difficulty = Column(Integer, nullable=False, default=3)
    notes = Column(Text, nullable=True)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=func.now(), onupdate=func.now())


class StreakModel(Base):
    """SQLAlchemy model for cached streaks."""

    __tablename__ = "streaks"

    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    current_streak = Column(Integer, nullable=False, default=0)
    longest_streak = Column(Integer, nullable=False, default=0)
    last_commit_date = Column(Date, nullable=True)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=func.now(), onupdate=func.now())


class CommitLogModel(Base):
    """SQLAlchemy model for the daily commit log."""

    __tablename__ = "commit_log"

    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    date = Column(Date, primary_key=True)
    committed = Column(Boolean, nullable=False, default=False)
    commit_count = Column(Integer, nullable=False, default=0)


class PushSubscriptionModel(Base):
    """SQLAlchemy model for web push subscriptions."""

    __tablename__ = "push_subscriptions"

    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    endpoint = Column(Text, nullable=False)
    p256dh = Column(Text, nullable=False)
    auth = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=func.now())


# Model conversion utilities
class ModelConverter:
    """Utility class for converting between Pydantic and SQLAlchemy models."""

    @staticmethod
    def model_to_user(model: UserModel) -> UserProfile:
        return UserProfile(
            id=model.id,
            github_id=model.github_id,
            github_username=model.github_username,
            github_token=model.github_token,
            github_avatar=model.github_avatar,
            email=model.email,
            timezone=model.timezone or DEFAULT_TIMEZONE,
        )

    @staticmethod
    def model_to_preferences(model: Optional[PreferencesModel]) -> NotificationPreferences:
        if model is None:
            return NotificationPreferences()
        return NotificationPreferences(
            email_enabled=bool(model.email_enabled),
            push_enabled=bool(model.push_enabled),
            weekends_off=bool(model.weekends_off),
            email_when_committed=bool(model.email_when_committed),
        )

    @staticmethod
    def model_to_reminder(model: ReminderModel, user_timezone: Optional[str] = None) -> ReminderSpec:
        """Convert a reminder row, inheriting the owner's zone when it has none."""
        return ReminderSpec(
            id=model.id,
            user_id=model.user_id,
            time=model.time,
            enabled=bool(model.enabled),
            timezone=model.timezone or user_timezone or "UTC",
        )

    @staticmethod
    def model_to_streak(model: Optional[StreakModel]) -> Optional[StreakState]:
        if model is None:
            return None
        current = model.current_streak or 0
        return StreakState(
            current_streak=current,
            longest_streak=max(model.longest_streak or 0, current),
            last_commit_date=model.last_commit_date,
        )

    @staticmethod
    def model_to_note(model: RepoNoteModel) -> RepoNote:
        return RepoNote(
            repo_full_name=model.repo_full_name,
            priority=model.priority,
            difficulty=model.difficulty,
            notes=model.notes,
        )

    @staticmethod
    def model_to_subscription(model: Optional[PushSubscriptionModel]) -> Optional[PushSubscription]:
        if model is None:
            return None
        return PushSubscription(endpoint=model.endpoint, p256dh=model.p256dh, auth=model.auth)


# Model validation utilities
class ModelValidator:
    """Utility class for model validation."""

    @staticmethod
    def is_valid_time(value: str) -> bool:
        return bool(value) and TIME_PATTERN.match(value) is not None

    @staticmethod
    def is_valid_timezone(value: str) -> bool:
        if not value:
            return False
        try:
            ZoneInfo(value)
            return True
        except (ZoneInfoNotFoundError, ValueError):
            return False

    @staticmethod
    def validate_user_data(data: Dict[str, Any]) -> List[str]:
        """Validate user data and return list of errors."""
        errors = []

        for field in ("github_username", "github_token"):
            if not data.get(field):
                errors.append(f"Missing required field: {field}")

        tz = data.get("timezone")
        if tz and not ModelValidator.is_valid_timezone(tz):
            errors.append(f"Unknown timezone: {tz}")

        return errors


__all__ = [
    'ReminderPeriod', 'StreakSource', 'PushDeliveryStatus',
    'ContributionDay', 'RepoCandidate', 'RepoNote', 'RepoNoteUpdate',
    'ScoreBreakdown', 'RepoSuggestion', 'StreakState', 'TodayStatus',
    'UserProfile', 'NotificationPreferences', 'PreferencesUpdate', 'PushSubscription',
    'ReminderSpec', 'ReminderCreate', 'ReminderUpdate', 'DueReminder',
    'NotificationOutcome', 'ScanReport',
    'Base', 'UserModel', 'PreferencesModel', 'ReminderModel', 'ExcludedRepoModel',
    'RepoNoteModel', 'StreakModel', 'CommitLogModel', 'PushSubscriptionModel',
    'ModelConverter', 'ModelValidator',
]
