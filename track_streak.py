#!/usr/bin/env python3
"""
1Day1Commit CLI

Command line access to the streak calculator, the repo suggestion engine and
the reminder scheduler.

Usage:
    python track_streak.py COMMAND [OPTIONS]

Examples:
    python track_streak.py streak octocat --token $GITHUB_TOKEN
    python track_streak.py suggest --exclude octocat/old-project
    python track_streak.py scan                  # Run a single reminder tick
    python track_streak.py scheduler             # Run the reminder loop
"""

import asyncio
import logging
import sys
from datetime import datetime, timezone
from typing import Tuple

import click
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from config.settings import settings
from shared.database import HabitStore
from shared.github_client import GitHubClient
from shared.models import ScanReport, UserProfile
from services.reminder_scheduler.main import build_scheduler
from services.streak_tracker.calculator import compute_streak, local_today, normalize_days
from services.streak_tracker.main import StreakTrackerService
from services.suggestion_engine.scorer import rank_repos

logging.basicConfig(
    level=getattr(logging, settings.monitoring.log_level),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

console = Console()


def display_error_message(error: str, suggestion: str = ""):
    body = f"[red]{error}[/red]"
    if suggestion:
        body += f"\n\n[yellow]{suggestion}[/yellow]"
    console.print(Panel(body, title="Error", border_style="red"))


async def _streak(username: str, token: str, tz_name: str):
    user = UserProfile(github_username=username, github_token=token, timezone=tz_name)
    service = StreakTrackerService(HabitStore())
    async with GitHubClient(token) as github:
        days, source = await service.fetch_contributions(github, user)
    return days, source


async def _suggest(token: str):
    async with GitHubClient(token) as github:
        return await github.list_repos()


async def _scan() -> ScanReport:
    scheduler = build_scheduler()
    await scheduler.store.db.create_tables()
    try:
        return await scheduler.scan_and_notify()
    finally:
        await scheduler.close()
        await scheduler.publisher.close()
        await scheduler.store.db.close()


async def _run_scheduler():
    scheduler = build_scheduler()
    await scheduler.store.db.create_tables()
    try:
        await scheduler.run_forever()
    finally:
        await scheduler.close()
        await scheduler.publisher.close()
        await scheduler.store.db.close()


@click.group()
def cli():
    """Track your daily GitHub commit habit."""


@cli.command()
@click.argument("username")
@click.option("--token", envvar="GITHUB_TOKEN", required=True, help="GitHub access token")
@click.option(
    "--timezone", "tz_name",
    default=settings.scheduler.default_timezone,
    show_default=True,
    help="IANA timezone used to decide what 'today' is",
)
def streak(username: str, token: str, tz_name: str):
    """Compute the current and longest streak for USERNAME."""
    try:
        days, source = asyncio.run(_streak(username, token, tz_name))
    except Exception as e:
        display_error_message(str(e), "Check the token and username")
        sys.exit(1)

    if days is None:
        display_error_message("GitHub is unreachable", "Try again in a few minutes")
        sys.exit(1)

    now = datetime.now(timezone.utc)
    state = compute_streak(days, tz_name, now)
    today_count = normalize_days(days).get(local_today(now, tz_name), 0)

    table = Table(title=f"Streak for {username}")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="green")
    table.add_row("Current streak", f"{state.current_streak} days")
    table.add_row("Longest streak", f"{state.longest_streak} days")
    table.add_row("Last commit", str(state.last_commit_date or "-"))
    table.add_row("Commits today", str(today_count))
    table.add_row("Source", source.value)
    console.print(table)


@cli.command()
@click.option("--token", envvar="GITHUB_TOKEN", required=True, help="GitHub access token")
@click.option("--exclude", multiple=True, help="owner/name of a repo to leave out (repeatable)")
@click.option("--limit", default=10, show_default=True, help="Number of scored repos to list")
def suggest(token: str, exclude: Tuple[str, ...], limit: int):
    """Score your repositories and pick one to work on today."""
    try:
        repos = asyncio.run(_suggest(token))
    except Exception as e:
        display_error_message(str(e), "Check the token")
        sys.exit(1)

    now = datetime.now(timezone.utc)
    scored = rank_repos(repos, exclude, now=now)
    if not scored:
        console.print("[yellow]No eligible repositories[/yellow]")
        return
    suggestion = scored[0]

    table = Table(title="Repository scores")
    table.add_column("Repository", style="cyan")
    table.add_column("Days idle", justify="right")
    table.add_column("Open issues", justify="right")
    table.add_column("Score", justify="right", style="green")
    for item in scored[:limit]:
        table.add_row(
            item.full_name,
            str(item.days_since_push),
            str(item.repo.open_issues_count),
            f"{item.score:.3f}",
        )
    console.print(table)

    console.print(Panel(
        f"[bold]{suggestion.full_name}[/bold]\n"
        f"{suggestion.repo.description or 'No description'}\n"
        f"Last push {suggestion.days_since_push} days ago",
        title="Today's suggestion",
        border_style="green",
    ))


@cli.command()
def scan():
    """Run a single reminder scheduler tick now."""
    report = asyncio.run(_scan())

    table = Table(title=f"Reminder scan at {report.started_at:%Y-%m-%d %H:%M} UTC")
    table.add_column("User", style="cyan")
    table.add_column("Period")
    table.add_column("Result")
    for outcome in report.outcomes:
        if outcome.error:
            result = f"[red]error: {outcome.error}[/red]"
        elif outcome.skipped_reason:
            result = f"[yellow]skipped ({outcome.skipped_reason})[/yellow]"
        else:
            result = "[green]notified[/green]" if outcome.notified else "nothing delivered"
        table.add_row(outcome.user_id, outcome.period.value, result)

    console.print(table)
    console.print(
        f"{report.reminders_checked} reminders checked, {report.due} due, "
        f"{report.notified} notified, {report.failed} failed"
    )


@cli.command()
def scheduler():
    """Run the reminder scheduler loop until interrupted."""
    console.print("[green]Reminder scheduler running, press Ctrl+C to stop[/green]")
    try:
        asyncio.run(_run_scheduler())
    except KeyboardInterrupt:
        console.print("[yellow]Scheduler stopped[/yellow]")


if __name__ == "__main__":
    cli()
