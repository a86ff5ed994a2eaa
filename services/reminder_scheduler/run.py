#!/usr/bin/env python3
"""
Reminder Scheduler Entry Point

Runs the per-minute reminder loop without the HTTP API.
"""

import asyncio
import logging

from config.settings import get_settings
from services.reminder_scheduler.main import build_scheduler


async def run():
    scheduler = build_scheduler()
    await scheduler.store.db.create_tables()
    try:
        await scheduler.run_forever()
    finally:
        await scheduler.close()
        await scheduler.publisher.close()
        await scheduler.store.db.close()


def main():
    """Start the reminder scheduler."""
    settings = get_settings()
    logging.basicConfig(
        level=getattr(logging, settings.monitoring.log_level),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    try:
        asyncio.run(run())
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
