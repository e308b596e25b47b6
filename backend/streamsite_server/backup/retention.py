"""
Snapshot retention.

Keeps only the N most recent snapshot files in the snapshot directory.
Pruning is best-effort: it logs problems and never raises.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional, Union

from .snapshot import parse_snapshot_timestamp

logger = logging.getLogger(__name__)

DEFAULT_RETENTION_COUNT = 10


def list_snapshot_files(directory: Union[str, Path]) -> List[Path]:
    """List snapshot files ordered oldest first.

    Files are ordered by embedded timestamp, ties broken by name. Files that
    do not match the snapshot naming scheme are ignored.

    Args:
        directory: Snapshot directory

    Returns:
        Snapshot paths, oldest first (empty if the directory does not exist)
    """
    directory = Path(directory)
    try:
        entries = list(directory.iterdir())
    except FileNotFoundError:
        return []

    snapshots = []
    for entry in entries:
        timestamp_ms = parse_snapshot_timestamp(entry.name)
        if timestamp_ms is None:
            continue
        snapshots.append((timestamp_ms, entry.name, entry))

    snapshots.sort(key=lambda item: (item[0], item[1]))
    return [entry for _, _, entry in snapshots]


def latest_snapshot(directory: Union[str, Path]) -> Optional[Path]:
    """Newest snapshot file in the directory, or None if there is none."""
    files = list_snapshot_files(directory)
    return files[-1] if files else None


class RetentionPruner:
    """Deletes the oldest snapshots beyond a retention count.

    Attributes:
        directory: Snapshot directory
        retention_count: Number of most recent snapshots to keep
    """

    def __init__(
        self,
        directory: Union[str, Path],
        retention_count: int = DEFAULT_RETENTION_COUNT,
    ) -> None:
        if retention_count < 1:
            raise ValueError("retention_count must be at least 1")
        self.directory = Path(directory)
        self.retention_count = retention_count

    def prune(self, keep: Optional[int] = None) -> List[Path]:
        """Delete the oldest snapshots so at most ``keep`` remain.

        Args:
            keep: Override for the retention count

        Returns:
            Paths that were deleted
        """
        keep = self.retention_count if keep is None else keep
        if keep < 1:
            raise ValueError("keep must be at least 1")

        try:
            files = list_snapshot_files(self.directory)
        except OSError as e:
            logger.error(f"Error listing snapshots in {self.directory}: {e}")
            return []

        excess = len(files) - keep
        if excess <= 0:
            return []

        deleted = []
        for path in files[:excess]:
            try:
                path.unlink()
            except FileNotFoundError:
                logger.warning(f"Snapshot already removed: {path.name}")
                continue
            except OSError as e:
                logger.error(f"Failed to delete old snapshot {path.name}: {e}")
                continue
            deleted.append(path)
            logger.info("Deleted old snapshot", extra={"snapshot": path.name})

        return deleted
