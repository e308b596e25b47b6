"""
Backup module for StreamSite.

This module periodically snapshots all mutable state to local JSON files for:
- Recovery of the in-memory store
- A continuous self-check of the restore path
- Manual inspection of historical state

Invariants:
    - Snapshots are written atomically and never modified afterwards
    - Only the most recent N snapshots are kept
    - Restore always re-creates rows with fresh identifiers
"""

from .restore import RestoreEngine, RestoreResult
from .retention import RetentionPruner, latest_snapshot, list_snapshot_files
from .scheduler import BackupScheduler, CycleResult
from .snapshot import (
    BackupError,
    RestoreError,
    Snapshot,
    SnapshotReadError,
    SnapshotSerializationError,
    SnapshotWriteError,
    load_snapshot,
    parse_snapshot_timestamp,
    snapshot_file_name,
)
from .writer import SnapshotWriter

__all__ = [
    # Model and codec
    "Snapshot",
    "load_snapshot",
    "snapshot_file_name",
    "parse_snapshot_timestamp",
    # Errors
    "BackupError",
    "SnapshotWriteError",
    "SnapshotReadError",
    "SnapshotSerializationError",
    "RestoreError",
    # Components
    "SnapshotWriter",
    "RetentionPruner",
    "RestoreEngine",
    "RestoreResult",
    "BackupScheduler",
    "CycleResult",
    "list_snapshot_files",
    "latest_snapshot",
]
