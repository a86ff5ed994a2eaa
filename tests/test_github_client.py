"""
Unit tests for the GitHub API client.

Requests are answered by an httpx.MockTransport so nothing leaves the process.
"""

import json
from datetime import date, datetime, timezone

import httpx
import pytest

from shared.github_client import GitHubAPIError, GitHubClient


def make_client(handler) -> GitHubClient:
    http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return GitHubClient(
        "token-123",
        http_client=http,
        api_url="https://api.github.test",
        graphql_url="https://api.github.test/graphql",
    )


def calendar_payload(days):
    return {
        "data": {
            "user": {
                "contributionsCollection": {
                    "contributionCalendar": {
                        "totalContributions": sum(c for _, c in days),
                        "weeks": [
                            {"contributionDays": [{"date": d, "contributionCount": c} for d, c in days]}
                        ],
                    }
                }
            }
        }
    }


class TestListRepos:
    @pytest.mark.asyncio
    async def test_parses_repos_and_sends_token(self):
        seen = {}

        def handler(request: httpx.Request):
            seen["auth"] = request.headers["Authorization"]
            seen["params"] = dict(request.url.params)
            return httpx.Response(200, json=[
                {
                    "full_name": "octo/app",
                    "name": "app",
                    "html_url": "https://github.com/octo/app",
                    "pushed_at": "2024-05-01T10:00:00Z",
                    "open_issues_count": 3,
                    "owner": {"login": "octo"},
                },
                {
                    "full_name": "octo/empty",
                    "pushed_at": None,
                    "created_at": "2024-04-01T00:00:00Z",
                },
            ])

        async with make_client(handler) as client:
            repos = await client.list_repos()

        assert seen["auth"] == "Bearer token-123"
        assert seen["params"]["sort"] == "pushed"
        assert seen["params"]["affiliation"] == "owner,collaborator"
        assert [r.full_name for r in repos] == ["octo/app", "octo/empty"]
        assert repos[0].open_issues_count == 3
        assert repos[1].name == "empty"
        assert repos[1].pushed_at == datetime(2024, 4, 1, tzinfo=timezone.utc)

    @pytest.mark.asyncio
    async def test_http_error_raises(self):
        client = make_client(lambda request: httpx.Response(401, json={"message": "Bad credentials"}))

        with pytest.raises(GitHubAPIError) as exc_info:
            await client.list_repos()

        assert exc_info.value.status_code == 401

    @pytest.mark.asyncio
    async def test_transport_error_raises(self):
        def handler(request):
            raise httpx.ConnectTimeout("timed out", request=request)

        with pytest.raises(GitHubAPIError):
            await make_client(handler).list_repos()


class TestContributionCalendar:
    @pytest.mark.asyncio
    async def test_days_sorted_oldest_first(self):
        def handler(request: httpx.Request):
            body = json.loads(request.content)
            assert body["variables"] == {"login": "octo"}
            return httpx.Response(200, json=calendar_payload([("2024-01-02", 0), ("2024-01-01", 4)]))

        days = await make_client(handler).contribution_calendar("octo")

        assert [(d.date, d.count) for d in days] == [(date(2024, 1, 1), 4), (date(2024, 1, 2), 0)]

    @pytest.mark.asyncio
    async def test_graphql_errors_raise(self):
        client = make_client(
            lambda request: httpx.Response(200, json={"errors": [{"message": "rate limited"}]})
        )
        with pytest.raises(GitHubAPIError, match="rate limited"):
            await client.contribution_calendar("octo")

    @pytest.mark.asyncio
    async def test_missing_user_raises(self):
        client = make_client(lambda request: httpx.Response(200, json={"data": {"user": None}}))
        with pytest.raises(GitHubAPIError):
            await client.contribution_calendar("ghost")


class TestEventsFallback:
    EVENTS = [
        {"type": "PushEvent", "created_at": "2024-01-03T03:00:00Z", "payload": {"commits": [{}, {}]}},
        {"type": "PushEvent", "created_at": "2024-01-03T15:00:00Z", "payload": {"size": 1}},
        {"type": "WatchEvent", "created_at": "2024-01-03T16:00:00Z", "payload": {}},
        {"type": "PushEvent", "created_at": "2024-01-01T12:00:00Z", "payload": {}},
    ]

    @pytest.mark.asyncio
    async def test_groups_push_events_by_local_date(self):
        client = make_client(lambda request: httpx.Response(200, json=self.EVENTS))

        days = await client.events_fallback("octo", "America/New_York")

        # 03:00 UTC on the 3rd is the evening of the 2nd in New York
        assert {d.date: d.count for d in days} == {
            date(2024, 1, 1): 1,
            date(2024, 1, 2): 2,
            date(2024, 1, 3): 1,
        }

    @pytest.mark.asyncio
    async def test_has_committed_today(self):
        client = make_client(lambda request: httpx.Response(200, json=self.EVENTS))
        now = datetime(2024, 1, 3, 20, 0, tzinfo=timezone.utc)

        result = await client.has_committed_today("octo", "UTC", now)

        assert result == {"has_committed": True, "commit_count": 3}

    @pytest.mark.asyncio
    async def test_has_committed_today_fails_soft(self):
        client = make_client(lambda request: httpx.Response(502))

        result = await client.has_committed_today("octo", "UTC")

        assert result == {"has_committed": False, "commit_count": 0}


@pytest.mark.asyncio
async def test_injected_client_is_not_closed():
    http = httpx.AsyncClient(transport=httpx.MockTransport(lambda r: httpx.Response(200, json=[])))
    async with GitHubClient("t", http_client=http) as client:
        await client.list_repos()
    assert not http.is_closed
    await http.aclose()
