"""
Snapshot writer.

Captures the current state store contents into one new snapshot file.

Invariants:
    - Every call writes exactly one new file or raises
    - Snapshot timestamps are strictly increasing per writer
    - Files appear atomically (temp file + rename), earlier snapshots are never touched
"""

from __future__ import annotations

import asyncio
import logging
import os
import tempfile
import time
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Callable, Optional, Union

from ..storage.base import StateStore, StoreError
from .snapshot import Snapshot, SnapshotWriteError, snapshot_file_name

logger = logging.getLogger(__name__)


def _current_millis() -> int:
    return int(time.time() * 1000)


class SnapshotWriter:
    """Writes snapshots of a state store to a directory.

    Attributes:
        store: State store to capture
        directory: Snapshot directory (created on first write)

    Example:
        >>> writer = SnapshotWriter(store, "/var/lib/streamsite/backups")
        >>> path = await writer.write()
    """

    def __init__(
        self,
        store: StateStore,
        directory: Union[str, Path],
        clock: Optional[Callable[[], int]] = None,
    ) -> None:
        """Initialize the writer.

        Args:
            store: State store to capture
            directory: Snapshot directory
            clock: Returns current epoch milliseconds (defaults to wall clock)
        """
        self.store = store
        self.directory = Path(directory)
        self._clock = clock or _current_millis
        self._last_ms = 0

    def _next_timestamp_ms(self) -> int:
        # Two snapshots within one millisecond would otherwise share a file name
        timestamp_ms = max(self._clock(), self._last_ms + 1)
        self._last_ms = timestamp_ms
        return timestamp_ms

    async def capture(self, timestamp_ms: Optional[int] = None) -> Snapshot:
        """Read the full store state into a Snapshot.

        Args:
            timestamp_ms: Creation time in epoch milliseconds (defaults to now)

        Raises:
            SnapshotWriteError: If any store read fails
        """
        try:
            announcements = await self.store.get_announcements()
            stream_settings = await self.store.get_stream_settings()
            stream_channels = await self.store.get_stream_channels()
            theme_settings = await self.store.get_themes()
            active_theme = await self.store.get_active_theme()
        except StoreError as e:
            raise SnapshotWriteError(f"Failed to read store state: {e}") from e

        if timestamp_ms is None:
            timestamp_ms = self._next_timestamp_ms()
        created_at = datetime.fromtimestamp(timestamp_ms // 1000, tz=timezone.utc)
        return Snapshot(
            created_at=created_at + timedelta(milliseconds=timestamp_ms % 1000),
            announcements=list(announcements),
            stream_settings=stream_settings,
            stream_channels=list(stream_channels),
            theme_settings=list(theme_settings),
            active_theme_id=active_theme.id if active_theme else None,
        )

    async def write(self) -> Path:
        """Capture the store and write a new snapshot file.

        Returns:
            Path of the file written

        Raises:
            SnapshotWriteError: If reading the store, serializing or writing fails
        """
        timestamp_ms = self._next_timestamp_ms()
        snapshot = await self.capture(timestamp_ms)
        path = self.directory / snapshot_file_name(timestamp_ms)

        try:
            content = snapshot.to_json()
        except (TypeError, ValueError) as e:
            raise SnapshotWriteError(f"Failed to serialize snapshot: {e}") from e

        try:
            await asyncio.get_running_loop().run_in_executor(
                None, self._write_atomic, path, content
            )
        except OSError as e:
            raise SnapshotWriteError(f"Failed to write snapshot {path}: {e}") from e

        logger.info(
            "Created snapshot",
            extra={
                "snapshot": path.name,
                "announcements": len(snapshot.announcements),
                "stream_channels": len(snapshot.stream_channels),
                "themes": len(snapshot.theme_settings),
            },
        )
        return path

    def _write_atomic(self, path: Path, content: str) -> None:
        """Write content to a temp file in the target directory, then rename."""
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            prefix=".tmp_", suffix=".json", dir=str(path.parent)
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(content)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, path)
        except BaseException:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise
