#!/usr/bin/env python3
"""
1Day1Commit API Entry Point

This script starts the API service together with the reminder scheduler loop.
"""

import uvicorn

from config.settings import get_settings


def main():
    """Start the API service."""
    settings = get_settings()

    uvicorn.run(
        "services.api.main:app",
        host=settings.service.api_host,
        port=settings.service.api_port,
        reload=settings.debug,
        log_level="info" if settings.debug else "warning",
    )


if __name__ == "__main__":
    main()
