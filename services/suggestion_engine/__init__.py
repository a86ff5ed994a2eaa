"""
Suggestion Engine for 1Day1Commit.

Ranks a user's repositories by neglect, open issues and the user's own
priority/difficulty notes, and picks one to work on today.
"""

__version__ = "1.0.0"
__author__ = "1Day1Commit Team"
__description__ = "Weighted repository suggestion"
