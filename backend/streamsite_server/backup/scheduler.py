"""
Backup scheduler.

Drives the snapshot writer, retention pruner and restore engine:

    start ──(initial_delay)──▶ one snapshot
          ──(interval)──▶ cycle ──(interval)──▶ cycle ...

    cycle = write snapshot ──▶ prune old snapshots ──▶ restore from newest

Restoring from the snapshot that was just written is deliberate: it exercises
the restore path every cycle. It can be turned off with restore_after_backup.

Invariants:
    - Cycles never overlap; a cycle that finds another in flight is skipped
    - No exception escapes a cycle, the next firing always proceeds
    - A failed write aborts its cycle, restore never uses a stale snapshot

How to change safely:
    - Keep write -> prune -> restore ordering
    - Store writers outside the scheduler are not locked out during restore
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, List, Optional, Union

from ..storage.base import StateStore
from .restore import RestoreEngine, RestoreResult
from .retention import DEFAULT_RETENTION_COUNT, RetentionPruner, latest_snapshot
from .writer import SnapshotWriter

logger = logging.getLogger(__name__)


@dataclass
class CycleResult:
    """Outcome of one backup cycle.

    Attributes:
        snapshot_path: Snapshot written by this cycle
        pruned: Snapshot files deleted by retention
        restored_from: Snapshot the store was restored from
        restore: Restore details, if a restore ran
        skipped: True if another cycle was in flight
        error: Error message if a step failed
    """

    snapshot_path: Optional[Path] = None
    pruned: List[Path] = field(default_factory=list)
    restored_from: Optional[Path] = None
    restore: Optional[RestoreResult] = None
    skipped: bool = False
    error: Optional[str] = None

    @property
    def success(self) -> bool:
        return not self.skipped and self.error is None


class BackupScheduler:
    """Runs periodic backup/prune/restore cycles against a state store.

    Attributes:
        store: State store to back up and restore
        directory: Snapshot directory
        interval_seconds: Interval between cycles
        initial_delay_seconds: Delay before the startup snapshot
        retention_count: Number of snapshots kept on disk
        restore_after_backup: Whether each cycle ends with a restore

    Example:
        >>> scheduler = BackupScheduler(store, "/var/lib/streamsite/backups")
        >>> await scheduler.start()
        >>> ...
        >>> await scheduler.stop()
    """

    def __init__(
        self,
        store: StateStore,
        directory: Union[str, Path],
        interval_seconds: float = 300.0,
        initial_delay_seconds: float = 10.0,
        retention_count: int = DEFAULT_RETENTION_COUNT,
        restore_after_backup: bool = True,
        writer: Optional[SnapshotWriter] = None,
    ) -> None:
        """Initialize the scheduler.

        Args:
            store: State store to back up and restore
            directory: Snapshot directory (created on first snapshot)
            interval_seconds: Interval between backup cycles
            initial_delay_seconds: Delay before the startup snapshot
            retention_count: Number of most recent snapshots to keep
            restore_after_backup: Restore from the newest snapshot after each backup
            writer: Custom snapshot writer (defaults to one over store/directory)
        """
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")

        self.store = store
        self.directory = Path(directory)
        self.interval_seconds = interval_seconds
        self.initial_delay_seconds = initial_delay_seconds
        self.retention_count = retention_count
        self.restore_after_backup = restore_after_backup

        self.writer = writer or SnapshotWriter(store, self.directory)
        self.pruner = RetentionPruner(self.directory, retention_count)
        self.restore_engine = RestoreEngine(store)

        self._running = False
        self._cycle_lock = asyncio.Lock()
        self._tasks: List[asyncio.Task] = []

        self._cycle_count = 0
        self._snapshot_count = 0
        self._restore_count = 0
        self._failure_count = 0
        self._last_snapshot: Optional[Path] = None
        self._last_error: Optional[str] = None

    @property
    def is_running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Start the startup snapshot timer and the recurring cycle loop."""
        if self._running:
            logger.warning("Backup scheduler already running")
            return

        self._running = True
        logger.info(
            f"Initializing automated backup system with "
            f"{self.interval_seconds / 60:g} minute interval",
            extra={
                "backup_dir": str(self.directory),
                "retention_count": self.retention_count,
                "restore_after_backup": self.restore_after_backup,
            },
        )

        self._tasks = [
            asyncio.create_task(self._initial_snapshot(), name="backup-initial"),
            asyncio.create_task(self._cycle_loop(), name="backup-cycle"),
        ]

    async def stop(self) -> None:
        """Cancel the background tasks. Used on process shutdown."""
        if not self._running:
            return

        logger.info("Stopping backup scheduler")
        for task in self._tasks:
            task.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks = []
        self._running = False

    async def _initial_snapshot(self) -> None:
        await asyncio.sleep(self.initial_delay_seconds)
        async with self._cycle_lock:
            try:
                path = await self.writer.write()
            except Exception as e:
                self._record_failure(f"Error creating initial backup: {e}")
                return
            self._snapshot_count += 1
            self._last_snapshot = path
            logger.info("Initial backup created", extra={"snapshot": path.name})

    async def _cycle_loop(self) -> None:
        try:
            while self._running:
                await asyncio.sleep(self.interval_seconds)
                try:
                    await self.run_cycle()
                except Exception as e:
                    self._record_failure(f"Unexpected error in backup cycle: {e}")
        except asyncio.CancelledError:
            logger.info("Backup scheduler cancelled")
            raise

    async def run_cycle(self) -> CycleResult:
        """Run one write -> prune -> restore cycle.

        Never raises for step failures; they are logged and reported in the
        returned CycleResult.
        """
        if self._cycle_lock.locked():
            logger.warning("Backup cycle still in progress, skipping this run")
            return CycleResult(skipped=True)

        async with self._cycle_lock:
            self._cycle_count += 1
            result = CycleResult()

            try:
                result.snapshot_path = await self.writer.write()
            except Exception as e:
                result.error = f"Error in backup/restore cycle: {e}"
                self._record_failure(result.error)
                return result

            self._snapshot_count += 1
            self._last_snapshot = result.snapshot_path
            logger.info("Scheduled backup created", extra={"snapshot": result.snapshot_path.name})

            result.pruned = self.pruner.prune()

            if not self.restore_after_backup:
                return result

            try:
                latest = latest_snapshot(self.directory)
            except OSError as e:
                result.error = f"Error listing snapshots in {self.directory}: {e}"
                self._record_failure(result.error)
                return result

            if latest is None:
                result.error = "No snapshot available to restore from"
                self._record_failure(result.error, exc_info=False)
                return result

            try:
                result.restore = await self.restore_engine.restore(latest)
            except Exception as e:
                result.error = f"Error restoring from {latest.name}: {e}"
                self._record_failure(result.error)
                return result

            result.restored_from = latest
            self._restore_count += 1
            logger.info("Restored from latest backup", extra={"snapshot": latest.name})
            return result

    def _record_failure(self, message: str, exc_info: bool = True) -> None:
        self._failure_count += 1
        self._last_error = message
        logger.error(message, exc_info=exc_info)

    @property
    def stats(self) -> dict[str, Any]:
        """Get scheduler statistics."""
        return {
            "running": self._running,
            "cycle_count": self._cycle_count,
            "snapshot_count": self._snapshot_count,
            "restore_count": self._restore_count,
            "failure_count": self._failure_count,
            "last_snapshot": self._last_snapshot.name if self._last_snapshot else None,
            "last_error": self._last_error,
            "interval_seconds": self.interval_seconds,
            "retention_count": self.retention_count,
        }
