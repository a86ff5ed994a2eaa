"""
1Day1Commit HTTP API

Thin FastAPI layer over the streak tracker, suggestion engine and per-user
store. Callers identify themselves with the ``X-User-Id`` header. On startup
the database is initialised and, when enabled, the reminder scheduler loop is
started in the background.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from fastapi import Depends, FastAPI, Header, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field, field_validator

from config.settings import get_settings, is_testing
from shared.database import HabitStore
from shared.events import EventPublisher
from shared.github_client import (
    GitHubAPIError,
    GitHubClientFactory,
    default_client_factory,
)
from shared.models import (
    ContributionDay,
    NotificationPreferences,
    PreferencesUpdate,
    RepoNote,
    RepoNoteUpdate,
    ReminderCreate,
    ReminderSpec,
    ReminderUpdate,
    TodayStatus,
    UserProfile,
)
from services.reminder_scheduler.main import ReminderScheduler, build_scheduler
from services.streak_tracker.main import StreakTrackerService
from services.suggestion_engine.scorer import compute_suggestion

settings = get_settings()

logging.basicConfig(
    level=getattr(logging, settings.monitoring.log_level),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="1Day1Commit API",
    description="Daily commit streaks, repo suggestions and reminders",
    version="1.0.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.security.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


class ServiceState:
    """Long-lived collaborators owned by the API process."""

    def __init__(self):
        self.store = HabitStore()
        self.publisher = EventPublisher()
        self.scheduler: Optional[ReminderScheduler] = None
        self.scheduler_task: Optional[asyncio.Task] = None


state = ServiceState()


# Request models
class ExcludeRepoRequest(BaseModel):
    repo_full_name: str = Field(..., description="owner/name of the repository")

    @field_validator("repo_full_name")
    @classmethod
    def validate_full_name(cls, v):
        if "/" not in v:
            raise ValueError("Repository must be given as owner/name")
        return v


# Dependencies
def get_store() -> HabitStore:
    return state.store


def get_publisher() -> EventPublisher:
    return state.publisher


def get_github_factory() -> GitHubClientFactory:
    return default_client_factory


def get_streak_service(
    store: HabitStore = Depends(get_store),
    github_factory: GitHubClientFactory = Depends(get_github_factory),
    publisher: EventPublisher = Depends(get_publisher),
) -> StreakTrackerService:
    return StreakTrackerService(store, github_factory, publisher)


async def get_current_user(
    x_user_id: Optional[str] = Header(None),
    store: HabitStore = Depends(get_store),
) -> UserProfile:
    if not x_user_id:
        raise HTTPException(status_code=401, detail="Missing X-User-Id header")
    user = await store.get_user(x_user_id)
    if user is None:
        raise HTTPException(status_code=404, detail="User not found")
    return user


# Lifecycle
@app.on_event("startup")
async def startup_event():
    """Initialize service on startup."""
    await state.store.db.create_tables()
    state.publisher = EventPublisher.from_settings()

    if settings.scheduler.enabled and not is_testing():
        state.scheduler = build_scheduler(state.store, state.publisher)
        state.scheduler_task = asyncio.create_task(state.scheduler.run_forever())
    logger.info("1Day1Commit API started")


@app.on_event("shutdown")
async def shutdown_event():
    """Cleanup on shutdown."""
    if state.scheduler is not None:
        state.scheduler.stop()
        await state.scheduler_task
        await state.scheduler.close()
    await state.publisher.close()
    await state.store.db.close()


@app.get("/health")
async def health_check(store: HabitStore = Depends(get_store)):
    """Health check endpoint."""
    db_health = await store.db.health_check()
    body = {
        "status": db_health["status"],
        "service": "1day1commit-api",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "database": db_health["status"],
        "scheduler": "running" if state.scheduler and state.scheduler.running else "stopped",
        "version": "1.0.0",
    }
    if db_health["status"] != "healthy":
        return JSONResponse(status_code=503, content=body)
    return body


# GitHub-backed routes
@app.get("/github/repos")
async def list_repos(
    user: UserProfile = Depends(get_current_user),
    store: HabitStore = Depends(get_store),
    github_factory: GitHubClientFactory = Depends(get_github_factory),
) -> List[Dict[str, Any]]:
    try:
        async with github_factory(user.github_token) as github:
            repos = await github.list_repos()
        excluded = set(await store.get_excluded_repos(user.id))
        return [
            {**repo.model_dump(mode="json"), "excluded": repo.full_name in excluded}
            for repo in repos
        ]
    except GitHubAPIError as e:
        logger.error(f"Error fetching repos for {user.github_username}: {e}")
        raise HTTPException(status_code=502, detail="Failed to fetch repos")


@app.get("/github/today", response_model=TodayStatus)
async def today_status(
    user: UserProfile = Depends(get_current_user),
    streaks: StreakTrackerService = Depends(get_streak_service),
):
    try:
        return await streaks.check_today(user)
    except Exception as e:
        logger.error(f"Error checking today's status for {user.github_username}: {e}")
        raise HTTPException(status_code=500, detail="Internal server error")


@app.get("/github/suggestion")
async def repo_suggestion(
    user: UserProfile = Depends(get_current_user),
    store: HabitStore = Depends(get_store),
    github_factory: GitHubClientFactory = Depends(get_github_factory),
) -> Dict[str, Any]:
    try:
        async with github_factory(user.github_token) as github:
            repos = await github.list_repos()
    except GitHubAPIError as e:
        logger.error(f"Error fetching repos for {user.github_username}: {e}")
        raise HTTPException(status_code=502, detail="Failed to fetch repos")

    excluded = await store.get_excluded_repos(user.id)
    notes = await store.get_repo_notes(user.id)
    suggestion = compute_suggestion(repos, excluded, notes)
    return {"suggestion": suggestion.model_dump(mode="json") if suggestion else None}


@app.get("/github/contributions", response_model=List[ContributionDay])
async def contributions(
    user: UserProfile = Depends(get_current_user),
    streaks: StreakTrackerService = Depends(get_streak_service),
):
    return await streaks.contributions(user)


# User routes
@app.get("/user/me")
async def current_user(
    user: UserProfile = Depends(get_current_user),
    store: HabitStore = Depends(get_store),
) -> Dict[str, Any]:
    streak = await store.get_streak(user.id)
    return {
        **user.public_dict(),
        "streak": streak.model_dump(mode="json") if streak else None,
    }


@app.get("/user/preferences", response_model=NotificationPreferences)
async def get_preferences(
    user: UserProfile = Depends(get_current_user),
    store: HabitStore = Depends(get_store),
):
    return await store.get_preferences(user.id)


@app.put("/user/preferences", response_model=NotificationPreferences)
async def update_preferences(
    update: PreferencesUpdate,
    user: UserProfile = Depends(get_current_user),
    store: HabitStore = Depends(get_store),
):
    return await store.update_preferences(user.id, update)


@app.get("/user/excluded-repos", response_model=List[str])
async def get_excluded_repos(
    user: UserProfile = Depends(get_current_user),
    store: HabitStore = Depends(get_store),
):
    return await store.get_excluded_repos(user.id)


@app.post("/user/excluded-repos", status_code=201)
async def exclude_repo(
    request: ExcludeRepoRequest,
    user: UserProfile = Depends(get_current_user),
    store: HabitStore = Depends(get_store),
):
    await store.exclude_repo(user.id, request.repo_full_name)
    return {"success": True, "repo_full_name": request.repo_full_name}


@app.delete("/user/excluded-repos/{repo:path}")
async def include_repo(
    repo: str,
    user: UserProfile = Depends(get_current_user),
    store: HabitStore = Depends(get_store),
):
    if not await store.include_repo(user.id, repo):
        raise HTTPException(status_code=404, detail="Repository is not excluded")
    return {"success": True}


@app.get("/user/repo-notes", response_model=Dict[str, RepoNote])
async def get_repo_notes(
    user: UserProfile = Depends(get_current_user),
    store: HabitStore = Depends(get_store),
):
    return await store.get_repo_notes(user.id)


@app.put("/user/repo-notes/{repo:path}", response_model=RepoNote)
async def save_repo_note(
    repo: str,
    update: RepoNoteUpdate,
    user: UserProfile = Depends(get_current_user),
    store: HabitStore = Depends(get_store),
):
    if "/" not in repo:
        raise HTTPException(status_code=400, detail="Repository must be given as owner/name")
    return await store.save_repo_note(user.id, repo, update)


@app.delete("/user/repo-notes/{repo:path}")
async def delete_repo_note(
    repo: str,
    user: UserProfile = Depends(get_current_user),
    store: HabitStore = Depends(get_store),
):
    if not await store.delete_repo_note(user.id, repo):
        raise HTTPException(status_code=404, detail="Note not found")
    return {"success": True}


@app.get("/user/reminders", response_model=List[ReminderSpec])
async def list_reminders(
    user: UserProfile = Depends(get_current_user),
    store: HabitStore = Depends(get_store),
):
    return await store.list_reminders(user.id)


@app.post("/user/reminders", response_model=ReminderSpec, status_code=201)
async def add_reminder(
    reminder: ReminderCreate,
    user: UserProfile = Depends(get_current_user),
    store: HabitStore = Depends(get_store),
):
    try:
        return await store.add_reminder(user.id, reminder)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@app.put("/user/reminders/{reminder_id}", response_model=ReminderSpec)
async def update_reminder(
    reminder_id: str,
    update: ReminderUpdate,
    user: UserProfile = Depends(get_current_user),
    store: HabitStore = Depends(get_store),
):
    try:
        reminder = await store.update_reminder(user.id, reminder_id, update)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if reminder is None:
        raise HTTPException(status_code=404, detail="Reminder not found")
    return reminder


@app.delete("/user/reminders/{reminder_id}")
async def delete_reminder(
    reminder_id: str,
    user: UserProfile = Depends(get_current_user),
    store: HabitStore = Depends(get_store),
):
    if not await store.delete_reminder(user.id, reminder_id):
        raise HTTPException(status_code=404, detail="Reminder not found")
    return {"success": True}
