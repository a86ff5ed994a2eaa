"""
Domain events for 1Day1Commit.

This module provides:
- Type-safe event definitions for streak and reminder activity
- Event validation and serialization
- A Redis pub/sub publisher that never blocks the caller on failure
"""

import logging
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, Any, Optional, List

from pydantic import BaseModel, Field, field_validator
import redis.asyncio as redis

from config.settings import settings

logger = logging.getLogger(__name__)


class EventType(Enum):
    """Event types for the 1Day1Commit system."""

    # Streak events
    STREAK_UPDATED = "streak.updated"

    # Reminder events
    REMINDER_TRIGGERED = "reminder.triggered"
    SCAN_COMPLETED = "reminder.scan_completed"

    # Notification events
    NOTIFICATION_SENT = "notification.sent"
    NOTIFICATION_FAILED = "notification.failed"
    SUBSCRIPTION_PURGED = "notification.subscription_purged"


class EventPriority(Enum):
    """Event priority levels."""
    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"


class EventSource(Enum):
    """Event source systems."""
    STREAK_TRACKER = "streak_tracker"
    REMINDER_SCHEDULER = "reminder_scheduler"
    NOTIFICATIONS = "notifications"
    SYSTEM = "system"


class EventMetadata(BaseModel):
    """Event metadata for tracking and auditing."""

    event_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    correlation_id: Optional[str] = None
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    source: EventSource = EventSource.SYSTEM
    version: str = "1.0.0"
    priority: EventPriority = EventPriority.NORMAL


class BaseEvent(BaseModel):
    """Base event class with common functionality."""

    metadata: EventMetadata = Field(default_factory=EventMetadata)
    event_type: EventType
    data: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("data")
    @classmethod
    def validate_data(cls, v):
        """Validate event data."""
        if not isinstance(v, dict):
            raise ValueError("Event data must be a dictionary")
        return v

    def to_json(self) -> str:
        """Serialize event to JSON."""
        return self.model_dump_json()

    @classmethod
    def from_json(cls, json_str: str) -> "BaseEvent":
        """Deserialize event from JSON."""
        return cls.model_validate_json(json_str)

    def get_correlation_id(self) -> str:
        """Get correlation ID for event tracing."""
        return self.metadata.correlation_id or self.metadata.event_id


# Specific event data models
class StreakData(BaseModel):
    """Streak event data."""

    user_id: str
    current_streak: int = Field(..., ge=0)
    longest_streak: int = Field(..., ge=0)
    source: str = Field(..., description="calendar, events or cache")


class ReminderData(BaseModel):
    """Reminder event data."""

    user_id: str
    period: str
    local_time: str
    timezone: str


class NotificationData(BaseModel):
    """Notification event data."""

    user_id: str
    channel: str = Field(..., description="email or push")
    period: Optional[str] = None
    success: bool
    detail: Optional[str] = None

    @field_validator("channel")
    @classmethod
    def validate_channel(cls, v):
        if v not in ("email", "push"):
            raise ValueError("Channel must be email or push")
        return v


class EventFactory:
    """Factory for creating events with proper metadata."""

    @staticmethod
    def create_event(
        event_type: EventType,
        data: Dict[str, Any],
        source: EventSource = EventSource.SYSTEM,
        correlation_id: Optional[str] = None,
        priority: EventPriority = EventPriority.NORMAL,
    ) -> BaseEvent:
        """Create an event with proper metadata."""
        metadata = EventMetadata(
            correlation_id=correlation_id,
            source=source,
            priority=priority,
        )
        return BaseEvent(metadata=metadata, event_type=event_type, data=data)

    @staticmethod
    def create_streak_event(streak_data: StreakData, **kwargs) -> BaseEvent:
        return EventFactory.create_event(
            EventType.STREAK_UPDATED,
            streak_data.model_dump(),
            source=EventSource.STREAK_TRACKER,
            **kwargs,
        )

    @staticmethod
    def create_reminder_event(reminder_data: ReminderData, **kwargs) -> BaseEvent:
        return EventFactory.create_event(
            EventType.REMINDER_TRIGGERED,
            reminder_data.model_dump(),
            source=EventSource.REMINDER_SCHEDULER,
            **kwargs,
        )

    @staticmethod
    def create_notification_event(notification_data: NotificationData, **kwargs) -> BaseEvent:
        event_type = (
            EventType.NOTIFICATION_SENT if notification_data.success
            else EventType.NOTIFICATION_FAILED
        )
        return EventFactory.create_event(
            event_type,
            notification_data.model_dump(),
            source=EventSource.NOTIFICATIONS,
            **kwargs,
        )


class EventSerializer:
    """Helper for event serialization and deserialization."""

    @staticmethod
    def serialize(event: BaseEvent) -> str:
        return event.to_json()

    @staticmethod
    def deserialize(json_str: str) -> BaseEvent:
        return BaseEvent.from_json(json_str)


class EventValidator:
    """Validator for events."""

    @staticmethod
    def validate_event(event: BaseEvent) -> List[str]:
        """Validate an event and return list of errors."""
        errors = []

        if not event.metadata.event_id:
            errors.append("Event ID is required")

        if not event.metadata.timestamp:
            errors.append("Event timestamp is required")

        if not event.event_type:
            errors.append("Event type is required")

        if event.metadata.correlation_id and not EventValidator._is_valid_uuid(
            event.metadata.correlation_id
        ):
            errors.append("Invalid correlation ID format")

        return errors

    @staticmethod
    def _is_valid_uuid(uuid_str: str) -> bool:
        try:
            uuid.UUID(uuid_str)
            return True
        except ValueError:
            return False

    @staticmethod
    def is_valid(event: BaseEvent) -> bool:
        return len(EventValidator.validate_event(event)) == 0


class EventPublisher:
    """Publishes domain events to a Redis channel.

    Publishing is best effort: an unreachable Redis is logged and the caller
    carries on. A publisher built without a client is a no-op.
    """

    def __init__(self, redis_client: Optional[redis.Redis] = None, channel: Optional[str] = None):
        self.redis_client = redis_client
        self.channel = channel or settings.redis.channel

    @classmethod
    def from_settings(cls) -> "EventPublisher":
        if not settings.redis.enabled:
            return cls()
        client = redis.from_url(
            settings.redis.url,
            decode_responses=True,
            socket_connect_timeout=settings.redis.socket_connect_timeout,
            socket_timeout=settings.redis.socket_timeout,
            retry_on_timeout=settings.redis.retry_on_timeout,
        )
        return cls(client, settings.redis.channel)

    @property
    def enabled(self) -> bool:
        return self.redis_client is not None

    async def publish(self, event: BaseEvent) -> bool:
        if self.redis_client is None:
            return False
        try:
            if not EventValidator.is_valid(event):
                raise ValueError(f"Invalid event: {EventValidator.validate_event(event)}")
            await self.redis_client.publish(self.channel, EventSerializer.serialize(event))
            logger.debug(f"Published {event.event_type.value} event")
            return True
        except Exception as e:
            logger.error(f"Error publishing {event.event_type.value} event: {e}")
            return False

    async def close(self):
        if self.redis_client is not None:
            await self.redis_client.aclose()


__all__ = [
    'EventType', 'EventPriority', 'EventSource',
    'EventMetadata', 'BaseEvent',
    'StreakData', 'ReminderData', 'NotificationData',
    'EventFactory', 'EventSerializer', 'EventValidator', 'EventPublisher',
]
