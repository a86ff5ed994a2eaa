"""
Reminder Scheduler Service for 1Day1Commit.

This service is responsible for:
- Matching every enabled reminder against the current minute in its timezone
- Applying weekend and already-committed gating
- Dispatching email and push reminders with a repo suggestion
"""

__version__ = "1.0.0"
__author__ = "1Day1Commit Team"
__description__ = "Per-minute commit reminder scheduling"
