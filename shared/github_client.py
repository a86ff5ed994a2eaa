"""
GitHub API client for 1Day1Commit.

Thin async wrapper over the REST and GraphQL APIs. Every request is bounded by
``settings.github.timeout``; any transport or HTTP failure surfaces as
``GitHubAPIError`` so callers can fall back.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional
from zoneinfo import ZoneInfo

import httpx

from config.settings import settings
from shared.models import ContributionDay, RepoCandidate

logger = logging.getLogger(__name__)

CONTRIBUTIONS_QUERY = """
query($login: String!) {
  user(login: $login) {
    contributionsCollection {
      contributionCalendar {
        totalContributions
        weeks {
          contributionDays {
            date
            contributionCount
          }
        }
      }
    }
  }
}
"""


class GitHubAPIError(Exception):
    """Raised when GitHub cannot be reached or answers with an error."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class GitHubClient:
    """GitHub client bound to one user's OAuth token."""

    def __init__(
        self,
        token: str,
        http_client: Optional[httpx.AsyncClient] = None,
        api_url: Optional[str] = None,
        graphql_url: Optional[str] = None,
    ):
        self.token = token
        self.api_url = (api_url or settings.github.api_url).rstrip("/")
        self.graphql_url = graphql_url or settings.github.graphql_url
        self._owns_client = http_client is None
        self.client = http_client or httpx.AsyncClient(timeout=settings.github.timeout)

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def close(self):
        if self._owns_client:
            await self.client.aclose()

    @property
    def headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.token}",
            "Accept": "application/vnd.github.v3+json",
            "User-Agent": settings.github.user_agent,
        }

    async def _request(self, method: str, url: str, **kwargs) -> Any:
        try:
            response = await self.client.request(method, url, headers=self.headers, **kwargs)
        except httpx.HTTPError as e:
            raise GitHubAPIError(f"GitHub request failed: {e}") from e

        if response.status_code >= 400:
            raise GitHubAPIError(
                f"GitHub API error: {response.status_code}", status_code=response.status_code
            )
        return response.json()

    async def list_repos(self) -> List[RepoCandidate]:
        """Repositories the user owns or collaborates on, most recently pushed first."""
        data = await self._request(
            "GET",
            f"{self.api_url}/user/repos",
            params={
                "sort": "pushed",
                "per_page": settings.github.repos_per_page,
                "affiliation": "owner,collaborator",
            },
        )
        repos = []
        for item in data:
            # Empty repositories have no pushed_at
            pushed_at = item.get("pushed_at") or item.get("created_at") or item.get("updated_at")
            if not pushed_at:
                continue
            repos.append(RepoCandidate.model_validate({**item, "pushed_at": pushed_at}))
        return repos

    async def contribution_calendar(self, username: str) -> List[ContributionDay]:
        """Daily contribution counts for roughly the last year, oldest first."""
        payload = await self._request(
            "POST",
            self.graphql_url,
            json={"query": CONTRIBUTIONS_QUERY, "variables": {"login": username}},
        )

        if payload.get("errors"):
            raise GitHubAPIError(f"GraphQL error: {payload['errors'][0].get('message')}")

        try:
            calendar = payload["data"]["user"]["contributionsCollection"]["contributionCalendar"]
        except (KeyError, TypeError) as e:
            raise GitHubAPIError(f"Unexpected GraphQL response shape: {e}") from e

        days = [
            ContributionDay(date=day["date"], count=day["contributionCount"])
            for week in calendar.get("weeks", [])
            for day in week.get("contributionDays", [])
        ]
        days.sort(key=lambda d: d.date)
        return days

    async def events_fallback(self, username: str, tz_name: str = "UTC") -> List[ContributionDay]:
        """Approximate recent contribution days from public push events.

        Covers only the most recent page of events, so it is a degraded
        substitute for the calendar.
        """
        events = await self._request(
            "GET",
            f"{self.api_url}/users/{username}/events",
            params={"per_page": settings.github.events_per_page},
        )
        zone = ZoneInfo(tz_name or "UTC")

        counts: Dict[Any, int] = {}
        for event in events:
            if event.get("type") != "PushEvent":
                continue
            created = datetime.fromisoformat(event["created_at"].replace("Z", "+00:00"))
            day = created.astimezone(zone).date()
            counts[day] = counts.get(day, 0) + _push_commit_count(event)

        return [ContributionDay(date=day, count=count) for day, count in sorted(counts.items())]

    async def has_committed_today(
        self, username: str, tz_name: str = "UTC", now: Optional[datetime] = None
    ) -> Dict[str, Any]:
        """Whether any push landed today in the user's timezone.

        Fails soft: an unreachable API reports no commits.
        """
        now = now or datetime.now(timezone.utc)
        today = now.astimezone(ZoneInfo(tz_name or "UTC")).date()
        try:
            days = await self.events_fallback(username, tz_name)
        except GitHubAPIError as e:
            logger.error(f"Error checking today's commits for {username}: {e}")
            return {"has_committed": False, "commit_count": 0}

        count = sum(d.count for d in days if d.date == today)
        return {"has_committed": count > 0, "commit_count": count}


def _push_commit_count(event: Dict[str, Any]) -> int:
    payload = event.get("payload") or {}
    commits = payload.get("commits")
    if commits is not None:
        return len(commits)
    return int(payload.get("size") or payload.get("distinct_size") or 1)


GitHubClientFactory = Callable[[str], GitHubClient]


def default_client_factory(token: str) -> GitHubClient:
    return GitHubClient(token)
