"""
Weighted repository suggestion.

Each eligible repository gets a score out of 100 built from five parts:
neglect (days since the last push), open issues, the user's priority, the
user's difficulty rating (easier scores higher) and a small random nudge so the
same repository is not suggested forever.
"""

import logging
import random
from datetime import datetime, timezone
from typing import Callable, Iterable, List, Mapping, Optional

from shared.models import RepoCandidate, RepoNote, RepoSuggestion, ScoreBreakdown

logger = logging.getLogger(__name__)

DAY_WEIGHT = 0.30
ISSUE_WEIGHT = 0.20
PRIORITY_WEIGHT = 0.25
DIFFICULTY_WEIGHT = 0.15
RANDOM_WEIGHT = 0.10

DAYS_SATURATION = 365
ISSUES_SATURATION = 50
DEFAULT_PRIORITY = 3
DEFAULT_DIFFICULTY = 3

RandomSource = Callable[[], float]


def days_since_push(repo: RepoCandidate, now: datetime) -> int:
    """Whole days between the last push and ``now``; a push in the future counts as 0."""
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return max((now - repo.pushed_at).days, 0)


def score_repo(
    repo: RepoCandidate,
    now: datetime,
    note: Optional[RepoNote] = None,
    random_source: RandomSource = random.random,
) -> RepoSuggestion:
    days = days_since_push(repo, now)
    priority = note.priority if note else DEFAULT_PRIORITY
    difficulty = note.difficulty if note else DEFAULT_DIFFICULTY

    breakdown = ScoreBreakdown(
        day_score=min(days / DAYS_SATURATION, 1) * 100 * DAY_WEIGHT,
        issue_score=min(repo.open_issues_count / ISSUES_SATURATION, 1) * 100 * ISSUE_WEIGHT,
        priority_score=(priority / 5) * 100 * PRIORITY_WEIGHT,
        difficulty_score=((6 - difficulty) / 5) * 100 * DIFFICULTY_WEIGHT,
        random_score=random_source() * 100 * RANDOM_WEIGHT,
    )
    score = (
        breakdown.day_score
        + breakdown.issue_score
        + breakdown.priority_score
        + breakdown.difficulty_score
        + breakdown.random_score
    )
    return RepoSuggestion(repo=repo, days_since_push=days, score=round(score, 4), breakdown=breakdown)


def eligible_repos(repos: Iterable[RepoCandidate], excluded: Iterable[str]) -> List[RepoCandidate]:
    blocked = set(excluded)
    return [repo for repo in repos if repo.full_name not in blocked]


def rank_repos(
    repos: Iterable[RepoCandidate],
    excluded: Iterable[str] = (),
    notes: Optional[Mapping[str, RepoNote]] = None,
    now: Optional[datetime] = None,
    random_source: RandomSource = random.random,
) -> List[RepoSuggestion]:
    """Every eligible repository scored once, best first.

    Equal scores keep their input order, so the first entry is always what
    ``compute_suggestion`` would pick for the same draws.
    """
    now = now or datetime.now(timezone.utc)
    notes = notes or {}
    scored = [
        score_repo(repo, now, notes.get(repo.full_name), random_source)
        for repo in eligible_repos(repos, excluded)
    ]
    return sorted(scored, key=lambda s: s.score, reverse=True)


def compute_suggestion(
    repos: Iterable[RepoCandidate],
    excluded: Iterable[str] = (),
    notes: Optional[Mapping[str, RepoNote]] = None,
    now: Optional[datetime] = None,
    random_source: RandomSource = random.random,
) -> Optional[RepoSuggestion]:
    """Pick the highest-scoring repository the user has not excluded.

    Returns None when nothing is eligible.
    """
    candidates = eligible_repos(repos, excluded)
    if not candidates:
        return None

    now = now or datetime.now(timezone.utc)
    notes = notes or {}

    best: Optional[RepoSuggestion] = None
    for repo in candidates:
        scored = score_repo(repo, now, notes.get(repo.full_name), random_source)
        if best is None or scored.score > best.score:
            best = scored

    logger.debug(f"Suggesting {best.repo.full_name} with score {best.score}")
    return best
