"""
Reminder emails delivered through the Resend HTTP API.
"""

import html
import logging
from typing import Optional

import httpx

from config.settings import settings
from shared.models import ReminderPeriod

logger = logging.getLogger(__name__)

TIME_MESSAGES = {
    ReminderPeriod.MORNING: "Start your day with a commit.",
    ReminderPeriod.AFTERNOON: "There's still time to code today.",
}


def build_subject(period: ReminderPeriod, current_streak: int) -> str:
    if period == ReminderPeriod.MORNING:
        return "Daily reminder: No commits yet today"
    if period == ReminderPeriod.AFTERNOON:
        return "Reminder: You haven't pushed today"
    if current_streak > 0:
        return f"Your {current_streak}-day streak is at risk"
    return "End of day reminder: No commits today"


def build_html(
    username: str,
    current_streak: int,
    period: ReminderPeriod,
    suggested_repo: Optional[str] = None,
    app_url: Optional[str] = None,
) -> str:
    app_url = app_url or settings.service.app_url

    if period == ReminderPeriod.EVENING:
        headline = "Don't let your streak break." if current_streak > 0 else "One commit is all it takes."
    else:
        headline = TIME_MESSAGES[period]

    streak_section = ""
    if current_streak > 0:
        streak_section = (
            '<div style="text-align: center; margin: 24px 0;">'
            f'<div style="font-size: 48px; font-weight: 700; color: #f0f6fc;">{current_streak}</div>'
            '<div style="font-size: 12px; color: #8b949e; text-transform: uppercase;">day streak</div>'
            "</div>"
        )

    repo_section = ""
    if suggested_repo:
        repo = html.escape(suggested_repo)
        repo_section = (
            '<p style="margin: 16px 0; padding: 12px; background: #21262d; border-radius: 6px;">'
            '<strong style="color: #8b949e;">Suggested:</strong> '
            f'<a href="https://github.com/{repo}" style="color: #58a6ff;">{repo}</a>'
            "</p>"
        )

    return f"""<!DOCTYPE html>
<html>
<head><meta charset="utf-8"></head>
<body style="margin: 0; padding: 0; font-family: -apple-system, sans-serif; background: #0d1117;">
  <div style="max-width: 480px; margin: 0 auto; padding: 40px 20px;">
    <div style="background: #161b22; border: 1px solid #30363d; border-radius: 6px; padding: 32px;">
      {streak_section}
      <h1 style="color: #f0f6fc; font-size: 20px; margin: 0 0 12px 0;">{headline}</h1>
      <p style="color: #8b949e; font-size: 14px;">Hi {html.escape(username)}, you haven't pushed any commits today.</p>
      {repo_section}
      <a href="https://github.com" style="background: #238636; color: #ffffff; padding: 10px 20px; border-radius: 6px;">Open GitHub</a>
      <p style="color: #484f58; font-size: 12px; margin-top: 24px;">Sent by <a href="{app_url}">1Day1Commit</a></p>
    </div>
  </div>
</body>
</html>"""


class EmailSender:
    """Sends reminder emails; unconfigured senders skip quietly."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        sender: Optional[str] = None,
        api_url: Optional[str] = None,
    ):
        self.api_key = api_key
        self.sender = sender or settings.email.sender
        self.api_url = api_url or settings.email.api_url
        self.client = http_client or httpx.AsyncClient(timeout=settings.email.timeout)

    @classmethod
    def from_settings(cls) -> "EmailSender":
        key = settings.email.api_key.get_secret_value() if settings.email.api_key else None
        return cls(api_key=key)

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    async def close(self):
        await self.client.aclose()

    async def send_reminder(
        self,
        to: str,
        username: str,
        current_streak: int,
        period: ReminderPeriod,
        suggested_repo: Optional[str] = None,
    ) -> bool:
        if not self.configured:
            logger.info("Email service not configured, skipping email")
            return False

        try:
            response = await self.client.post(
                self.api_url,
                headers={"Authorization": f"Bearer {self.api_key}"},
                json={
                    "from": self.sender,
                    "to": to,
                    "subject": build_subject(period, current_streak),
                    "html": build_html(username, current_streak, period, suggested_repo),
                },
            )
        except httpx.HTTPError as e:
            logger.error(f"Failed to send email to {username}: {e}")
            return False

        if response.status_code >= 400:
            logger.error(f"Failed to send email to {username}: HTTP {response.status_code}")
            return False

        logger.info(f"Sent {period.value} reminder email to {username}")
        return True
