"""
Streak Tracker Service for 1Day1Commit.

This service is responsible for:
- Computing current and longest streaks from contribution days
- Reconciling GitHub data with the cached streak when GitHub is unavailable
- Recording today's commit status
"""

__version__ = "1.0.0"
__author__ = "1Day1Commit Team"
__description__ = "Commit streak tracking service"
