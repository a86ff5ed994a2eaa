"""
HTTP API for 1Day1Commit.

Exposes today's status, streaks, repo suggestions and per-user settings.
"""

__version__ = "1.0.0"
__author__ = "1Day1Commit Team"
__description__ = "FastAPI service for 1Day1Commit"
