"""
API routes for the public StreamSite API.

Entities are returned in their camelCase JSON form, the same shape the
backup subsystem writes to snapshot files.
"""

import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel, Field

from ..backup.retention import list_snapshot_files
from ..backup.snapshot import parse_snapshot_timestamp
from ..storage.base import StateStore

logger = logging.getLogger(__name__)

router = APIRouter(tags=["StreamSite"])


# --- Response Models ---


class SnapshotFileResponse(BaseModel):
    """A snapshot file on disk."""

    name: str
    timestamp_ms: int


class BackupStatusResponse(BaseModel):
    """Backup scheduler state."""

    enabled: bool
    stats: dict[str, Any] = Field(default_factory=dict)
    snapshots: list[SnapshotFileResponse] = Field(
        default_factory=list, description="Snapshot files, newest first"
    )


# --- Dependencies ---


def get_store(request: Request) -> StateStore:
    """Get the state store from app state."""
    return request.app.state.store


def _not_found(detail: str) -> HTTPException:
    return HTTPException(status_code=404, detail=detail)


# --- Announcement Routes ---


@router.get("/announcements")
async def list_announcements(store: StateStore = Depends(get_store)):
    """All announcements, newest first."""
    return [a.to_dict() for a in await store.get_announcements()]


@router.get("/announcements/featured")
async def get_featured_announcement(store: StateStore = Depends(get_store)):
    announcement = await store.get_featured_announcement()
    if announcement is None:
        raise _not_found("No featured announcement")
    return announcement.to_dict()


@router.get("/announcements/{announcement_id}")
async def get_announcement(announcement_id: int, store: StateStore = Depends(get_store)):
    announcement = await store.get_announcement(announcement_id)
    if announcement is None:
        raise _not_found(f"Announcement {announcement_id} not found")
    return announcement.to_dict()


# --- Stream Routes ---


@router.get("/stream-settings")
async def get_stream_settings(store: StateStore = Depends(get_store)):
    settings = await store.get_stream_settings()
    if settings is None:
        raise _not_found("Stream settings not configured")
    return settings.to_dict()


@router.get("/stream-channels")
async def list_stream_channels(store: StateStore = Depends(get_store)):
    return [c.to_dict() for c in await store.get_stream_channels()]


@router.get("/stream-channels/{channel_id}")
async def get_stream_channel(channel_id: int, store: StateStore = Depends(get_store)):
    channel = await store.get_stream_channel(channel_id)
    if channel is None:
        raise _not_found(f"Stream channel {channel_id} not found")
    return channel.to_dict()


# --- Theme Routes ---


@router.get("/themes")
async def list_themes(store: StateStore = Depends(get_store)):
    return [t.to_dict() for t in await store.get_themes()]


@router.get("/themes/active")
async def get_active_theme(store: StateStore = Depends(get_store)):
    """
    Get the theme the site should render with.

    Returns 404 if no theme is active, the front-end falls back to its defaults.
    """
    theme = await store.get_active_theme()
    if theme is None:
        raise _not_found("No active theme")
    return theme.to_dict()


@router.get("/themes/{theme_id}")
async def get_theme(theme_id: int, store: StateStore = Depends(get_store)):
    theme = await store.get_theme(theme_id)
    if theme is None:
        raise _not_found(f"Theme {theme_id} not found")
    return theme.to_dict()


# --- Backup Routes ---


@router.get("/backups/status", response_model=BackupStatusResponse)
async def get_backup_status(request: Request):
    """
    Report backup scheduler statistics and the snapshot files on disk.
    """
    scheduler = request.app.state.scheduler
    if scheduler is None:
        return BackupStatusResponse(enabled=False)

    try:
        files = list_snapshot_files(scheduler.directory)
    except OSError as e:
        logger.error(f"Error listing snapshots: {e}")
        files = []

    snapshots = [
        SnapshotFileResponse(name=path.name, timestamp_ms=parse_snapshot_timestamp(path.name))
        for path in reversed(files)
    ]
    return BackupStatusResponse(enabled=True, stats=scheduler.stats, snapshots=snapshots)
