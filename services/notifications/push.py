"""
Web push delivery with VAPID authentication.
"""

import asyncio
import json
import logging
from typing import Optional, Tuple

from pywebpush import webpush, WebPushException

from config.settings import settings
from shared.models import PushDeliveryStatus, PushSubscription, RepoSuggestion

logger = logging.getLogger(__name__)

# Push services answer 404/410 once a subscription has been revoked
GONE_STATUS_CODES = (404, 410)


def build_push_message(
    current_streak: int, suggestion: Optional[RepoSuggestion] = None
) -> Tuple[str, str]:
    title = (
        f"Don't break your {current_streak}-day streak!"
        if current_streak > 0
        else "Time to commit"
    )
    body = f"Try working on {suggestion.repo.name}" if suggestion else "Make your daily commit"
    return title, body


class PushSender:
    """Sends browser push notifications to a stored subscription."""

    def __init__(
        self,
        vapid_private_key: Optional[str] = None,
        vapid_subject: Optional[str] = None,
        icon: Optional[str] = None,
        app_url: Optional[str] = None,
        ttl: Optional[int] = None,
        timeout: Optional[float] = None,
    ):
        self.vapid_private_key = vapid_private_key
        self.vapid_subject = vapid_subject or settings.push.vapid_subject
        self.icon = icon or settings.push.icon
        self.app_url = app_url or settings.service.app_url
        self.ttl = ttl if ttl is not None else settings.push.ttl
        self.timeout = timeout or settings.service.request_timeout

    @classmethod
    def from_settings(cls) -> "PushSender":
        key = None
        if settings.push.vapid_public_key and settings.push.vapid_private_key:
            key = settings.push.vapid_private_key.get_secret_value()
        else:
            logger.warning("VAPID keys not configured - push notifications disabled")
        return cls(vapid_private_key=key)

    @property
    def configured(self) -> bool:
        return bool(self.vapid_private_key)

    def build_payload(self, title: str, body: str, url: Optional[str] = None) -> str:
        return json.dumps(
            {
                "title": title,
                "body": body,
                "icon": self.icon,
                "badge": self.icon,
                "url": url or self.app_url,
            }
        )

    async def send(
        self,
        subscription: PushSubscription,
        title: str,
        body: str,
        url: Optional[str] = None,
    ) -> PushDeliveryStatus:
        if not self.configured:
            return PushDeliveryStatus.DISABLED

        try:
            await asyncio.to_thread(
                webpush,
                subscription_info=subscription.to_subscription_info(),
                data=self.build_payload(title, body, url),
                vapid_private_key=self.vapid_private_key,
                vapid_claims={"sub": self.vapid_subject},
                ttl=self.ttl,
                timeout=self.timeout,
            )
        except WebPushException as e:
            status_code = getattr(e.response, "status_code", None)
            logger.error(f"Failed to send push notification: {e}")
            if status_code in GONE_STATUS_CODES:
                return PushDeliveryStatus.GONE
            return PushDeliveryStatus.FAILED

        return PushDeliveryStatus.SENT
