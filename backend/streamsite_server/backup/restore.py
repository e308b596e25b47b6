"""
Restore engine.

Replaces every live entity in the state store with the contents of a snapshot.

The restore runs as an ordered list of steps:
1. Audit log entry recording the snapshot's creation time
2. Announcements: delete all, re-create from the snapshot
3. Stream settings: upsert (skipped when the snapshot has none)
4. Stream channels: delete all, re-create from the snapshot
5. Themes: delete all, re-create, then re-activate the snapshot's active theme

Invariants:
    - Re-created rows always get fresh identifiers from the store
    - Re-creation follows the snapshot's stored order
    - A failing step aborts the rest; earlier steps are NOT rolled back

How to change safely:
    - Keep step order; later steps may depend on earlier entity types
    - New entity types need a step here and a field in the writer
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Awaitable, Callable, Dict, List, Optional, Tuple, Union

from ..storage.base import StateStore, StoreError
from ..storage.models import format_timestamp
from .snapshot import RestoreError, Snapshot, load_snapshot

logger = logging.getLogger(__name__)

RESTORE_LOG_ACTION = "System Restore"
RESTORE_LOG_CATEGORY = "system"


@dataclass
class RestoreResult:
    """Outcome of a successful restore.

    Attributes:
        snapshot_created_at: Creation timestamp of the restored snapshot (ISO-8601)
        announcements: Announcements re-created
        stream_settings_restored: Whether stream settings were written
        stream_channels: Stream channels re-created
        themes: Themes re-created
        active_theme_id: New identifier of the re-activated theme, if any
        duration_ms: Total restore duration
        steps: Names of the steps that completed
    """

    snapshot_created_at: str
    announcements: int = 0
    stream_settings_restored: bool = False
    stream_channels: int = 0
    themes: int = 0
    active_theme_id: Optional[int] = None
    duration_ms: int = 0
    steps: List[str] = field(default_factory=list)


class RestoreEngine:
    """Restores a state store from snapshots.

    Example:
        >>> engine = RestoreEngine(store)
        >>> result = await engine.restore("/backups/backup_1714564800000.json")
        >>> print(f"Restored {result.announcements} announcements")
    """

    def __init__(self, store: StateStore) -> None:
        self.store = store

    async def restore(self, source: Union[Snapshot, str, Path]) -> RestoreResult:
        """Replace all live entities with the snapshot's contents.

        Args:
            source: A loaded Snapshot, or a path to a snapshot file

        Returns:
            RestoreResult with per-entity counts

        Raises:
            SnapshotReadError: If the file cannot be read (store untouched)
            SnapshotSerializationError: If the file is malformed (store untouched)
            RestoreError: If a restore step fails (store partially restored)
        """
        start_time = time.time()

        if isinstance(source, Snapshot):
            snapshot = source
            label = format_timestamp(snapshot.created_at)
        else:
            snapshot = await load_snapshot(source)
            label = Path(source).name

        logger.info(f"Restoring from snapshot: {label}")
        result = RestoreResult(snapshot_created_at=format_timestamp(snapshot.created_at))

        steps: List[Tuple[str, Callable[[Snapshot, RestoreResult], Awaitable[None]]]] = [
            ("audit_log", self._record_audit_log),
            ("announcements", self._restore_announcements),
            ("stream_settings", self._restore_stream_settings),
            ("stream_channels", self._restore_stream_channels),
            ("themes", self._restore_themes),
        ]

        for step_name, step in steps:
            try:
                await step(snapshot, result)
            except StoreError as e:
                logger.error(
                    f"Restore step {step_name} failed: {e}",
                    extra={"step": step_name, "completed_steps": list(result.steps)},
                )
                raise RestoreError(step_name, str(e)) from e
            result.steps.append(step_name)

        result.duration_ms = int((time.time() - start_time) * 1000)
        logger.info(
            "Restore completed successfully",
            extra={
                "announcements": result.announcements,
                "stream_channels": result.stream_channels,
                "themes": result.themes,
                "duration_ms": result.duration_ms,
            },
        )
        return result

    async def _record_audit_log(self, snapshot: Snapshot, result: RestoreResult) -> None:
        await self.store.create_log(
            {
                "action": RESTORE_LOG_ACTION,
                "details": (
                    f"Restored system from backup created at {result.snapshot_created_at}"
                ),
                "category": RESTORE_LOG_CATEGORY,
            }
        )

    async def _restore_announcements(self, snapshot: Snapshot, result: RestoreResult) -> None:
        for announcement in await self.store.get_announcements():
            await self.store.delete_announcement(announcement.id)

        for announcement in snapshot.announcements:
            await self.store.create_announcement(announcement.fields())
            result.announcements += 1

    async def _restore_stream_settings(self, snapshot: Snapshot, result: RestoreResult) -> None:
        if snapshot.stream_settings is None:
            logger.info("Snapshot has no stream settings, keeping current settings")
            return
        await self.store.update_stream_settings(snapshot.stream_settings.fields())
        result.stream_settings_restored = True

    async def _restore_stream_channels(self, snapshot: Snapshot, result: RestoreResult) -> None:
        for channel in await self.store.get_stream_channels():
            await self.store.delete_stream_channel(channel.id)

        for channel in snapshot.stream_channels:
            await self.store.create_stream_channel(channel.fields())
            result.stream_channels += 1

    async def _restore_themes(self, snapshot: Snapshot, result: RestoreResult) -> None:
        # The store refuses to delete the active theme
        active = await self.store.get_active_theme()
        if active is not None:
            await self.store.update_theme(active.id, {"is_active": False})

        for theme in await self.store.get_themes():
            await self.store.delete_theme(theme.id)

        # Maps snapshot position -> newly assigned id
        new_ids: Dict[int, int] = {}
        for position, theme in enumerate(snapshot.theme_settings):
            created = await self.store.create_theme(theme.fields())
            new_ids[position] = created.id
            result.themes += 1

        if snapshot.active_theme_id is None:
            return

        position = next(
            (
                i
                for i, theme in enumerate(snapshot.theme_settings)
                if theme.id == snapshot.active_theme_id
            ),
            None,
        )
        if position is None:
            logger.warning(
                f"Active theme {snapshot.active_theme_id} is not among the snapshot's themes, "
                "leaving activation flags as restored"
            )
            return

        activated = await self.store.set_active_theme(new_ids[position])
        result.active_theme_id = activated.id
