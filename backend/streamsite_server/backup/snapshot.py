"""
Snapshot model and file codec.

A Snapshot is a self-contained copy of all mutable application state at one
instant. On disk each snapshot is one JSON file:

    <backup_dir>/backup_<epoch_ms>.json

    {
      "announcements": [...],
      "streamSettings": {...} | null,
      "streamChannels": [...],
      "themeSettings": [...],
      "activeThemeId": 3 | null,
      "timestamp": "2024-05-01T12:00:00.000Z"
    }

Invariants:
    - Snapshots are never modified after being written
    - Entity objects use exactly the live entity JSON field names
    - File names sort chronologically by their embedded timestamp

How to change safely:
    - Add new top-level keys as optional, old files must keep loading
    - Never change the file name pattern, retention parses it
"""

from __future__ import annotations

import asyncio
import json
import logging
import re
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from ..storage.models import (
    Announcement,
    StreamChannel,
    StreamSetting,
    ThemeSetting,
    format_timestamp,
    parse_timestamp,
)

logger = logging.getLogger(__name__)

SNAPSHOT_PREFIX = "backup_"
SNAPSHOT_SUFFIX = ".json"
_SNAPSHOT_NAME_RE = re.compile(r"^backup_(\d+)\.json$")


class BackupError(Exception):
    """Base exception for backup and restore operations."""
    pass


class SnapshotWriteError(BackupError):
    """Capturing state or writing the snapshot file failed."""
    pass


class SnapshotReadError(BackupError):
    """The snapshot file is missing or unreadable."""
    pass


class SnapshotSerializationError(BackupError):
    """The snapshot file is not valid snapshot JSON."""
    pass


class RestoreError(BackupError):
    """A restore step failed.

    Attributes:
        step: Name of the step that failed
    """

    def __init__(self, step: str, message: str) -> None:
        super().__init__(f"Restore failed during {step}: {message}")
        self.step = step


def snapshot_file_name(timestamp_ms: int) -> str:
    """File name for a snapshot created at the given epoch milliseconds."""
    return f"{SNAPSHOT_PREFIX}{timestamp_ms}{SNAPSHOT_SUFFIX}"


def parse_snapshot_timestamp(name: str) -> Optional[int]:
    """Extract the epoch milliseconds from a snapshot file name.

    Returns:
        Milliseconds, or None if the name is not a snapshot file name
    """
    match = _SNAPSHOT_NAME_RE.match(name)
    if not match:
        return None
    return int(match.group(1))


@dataclass(frozen=True)
class Snapshot:
    """Full application state at one instant.

    Attributes:
        announcements: Announcements in store order
        stream_settings: Stream settings record, or None if the store had none
        stream_channels: Stream channels in store order
        theme_settings: Themes in store order
        active_theme_id: Identifier of the active theme at capture time
        created_at: Capture time (UTC)
    """

    created_at: datetime
    announcements: List[Announcement] = field(default_factory=list)
    stream_settings: Optional[StreamSetting] = None
    stream_channels: List[StreamChannel] = field(default_factory=list)
    theme_settings: List[ThemeSetting] = field(default_factory=list)
    active_theme_id: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the on-disk JSON shape."""
        return {
            "announcements": [a.to_dict() for a in self.announcements],
            "streamSettings": self.stream_settings.to_dict() if self.stream_settings else None,
            "streamChannels": [c.to_dict() for c in self.stream_channels],
            "themeSettings": [t.to_dict() for t in self.theme_settings],
            "activeThemeId": self.active_theme_id,
            "timestamp": format_timestamp(self.created_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Snapshot:
        """Create from the on-disk JSON shape.

        Raises:
            SnapshotSerializationError: If the data does not have the snapshot shape
        """
        if not isinstance(data, dict):
            raise SnapshotSerializationError(
                f"Snapshot must be a JSON object, got {type(data).__name__}"
            )
        try:
            settings = data.get("streamSettings")
            active_theme_id = data.get("activeThemeId")
            if active_theme_id is not None and (
                isinstance(active_theme_id, bool) or not isinstance(active_theme_id, int)
            ):
                raise ValueError(f"activeThemeId must be an integer, got {active_theme_id!r}")
            return cls(
                created_at=parse_timestamp(data["timestamp"]),
                announcements=[
                    Announcement.from_dict(a) for a in _as_list(data, "announcements")
                ],
                stream_settings=StreamSetting.from_dict(settings) if settings else None,
                stream_channels=[
                    StreamChannel.from_dict(c) for c in _as_list(data, "streamChannels")
                ],
                theme_settings=[
                    ThemeSetting.from_dict(t) for t in _as_list(data, "themeSettings")
                ],
                active_theme_id=active_theme_id,
            )
        except (KeyError, TypeError, ValueError) as e:
            raise SnapshotSerializationError(f"Invalid snapshot data: {e}") from e

    def to_json(self) -> str:
        """Serialize to the indented JSON written to disk."""
        return json.dumps(self.to_dict(), indent=2)

    @classmethod
    def from_json(cls, text: str) -> Snapshot:
        """Parse snapshot JSON.

        Raises:
            SnapshotSerializationError: If the text is not valid snapshot JSON
        """
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise SnapshotSerializationError(f"Malformed snapshot JSON: {e}") from e
        return cls.from_dict(data)


def _as_list(data: Dict[str, Any], key: str) -> List[Any]:
    value = data.get(key)
    if value is None:
        return []
    if not isinstance(value, list):
        raise ValueError(f"{key} must be an array, got {type(value).__name__}")
    return value


def _read_text(path: str) -> str:
    with open(path, "r", encoding="utf-8") as f:
        return f.read()


async def load_snapshot(path: Union[str, Path]) -> Snapshot:
    """Read and parse a snapshot file.

    Args:
        path: Snapshot file path

    Returns:
        The parsed Snapshot

    Raises:
        SnapshotReadError: If the file cannot be read
        SnapshotSerializationError: If the content is not a valid snapshot
    """
    try:
        text = await asyncio.get_running_loop().run_in_executor(None, _read_text, str(path))
    except (OSError, UnicodeDecodeError) as e:
        raise SnapshotReadError(f"Cannot read snapshot {path}: {e}") from e
    return Snapshot.from_json(text)
