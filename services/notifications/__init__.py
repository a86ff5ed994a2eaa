"""
Notification delivery for 1Day1Commit.

Email reminders go through Resend, browser notifications through web push.
"""

__version__ = "1.0.0"
__author__ = "1Day1Commit Team"
__description__ = "Email and web push reminder delivery"
