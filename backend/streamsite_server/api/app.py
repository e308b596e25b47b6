"""
FastAPI application factory for the public StreamSite API.

Read-only endpoints used by the public site:
- Announcements, stream settings, stream channels, themes
- Health and backup status

All write operations belong to the admin panel and are not served here.
"""

from __future__ import annotations

from typing import Any, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from ..backup.scheduler import BackupScheduler
from ..config import HttpConfig
from ..storage.base import StateStore
from .routes import router


def create_app(
    store: StateStore,
    scheduler: Optional[BackupScheduler] = None,
    config: Optional[HttpConfig] = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        store: State store served by the API
        scheduler: Backup scheduler reported on /api/backups/status
        config: HTTP configuration (CORS origins)
    """
    config = config or HttpConfig()

    app = FastAPI(
        title="StreamSite API",
        description="Read-only public API for announcements, streams and themes.",
        version="1.0.0",
    )
    app.state.store = store
    app.state.scheduler = scheduler

    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(config.cors_origins),
        allow_methods=["GET", "OPTIONS"],
        allow_headers=["*"],
    )

    app.include_router(router, prefix="/api")

    @app.get("/health")
    async def health() -> dict[str, Any]:
        running = scheduler.is_running if scheduler else False
        return {"status": "healthy", "service": "streamsite", "backups_running": running}

    return app
