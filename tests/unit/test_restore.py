"""
Unit tests for the restore engine.

Tests cover:
- Full restore from a written snapshot
- Fresh identifiers and preserved values
- Active theme re-activation by snapshot position
- Absent stream settings
- Audit log entry
- Malformed files and partial failure
"""

from datetime import datetime, timezone

import pytest

from backend.streamsite_server.backup import (
    RestoreEngine,
    RestoreError,
    Snapshot,
    SnapshotReadError,
    SnapshotSerializationError,
    SnapshotWriter,
)
from backend.streamsite_server.backup.restore import (
    RESTORE_LOG_ACTION,
    RESTORE_LOG_CATEGORY,
)
from backend.streamsite_server.storage import InMemoryStateStore, StoreError
from backend.streamsite_server.storage.models import ThemeSetting
from tests.helpers import THEME_BASE, channel_data, populate, theme_data


class FailingChannelStore(InMemoryStateStore):
    """Store that cannot create stream channels."""

    async def create_stream_channel(self, data):
        raise StoreError("channel table is read-only")


def without_id(entities):
    return [entity.fields() for entity in entities]


class TestRestore:
    """Tests for restoring from a snapshot file."""

    @pytest.mark.asyncio
    async def test_restore_written_snapshot(self, store, tmp_path):
        """Restoring a snapshot reproduces every entity by value."""
        await populate(store)
        path = await SnapshotWriter(store, tmp_path).write()
        before = await SnapshotWriter(store, tmp_path).capture()

        target = InMemoryStateStore()
        result = await RestoreEngine(target).restore(path)

        assert without_id(await target.get_announcements()) == without_id(before.announcements)
        assert (await target.get_stream_settings()).fields() == before.stream_settings.fields()
        assert without_id(await target.get_stream_channels()) == without_id(
            before.stream_channels
        )
        assert without_id(await target.get_themes()) == without_id(before.theme_settings)
        assert (await target.get_active_theme()).name == "Midnight"
        assert result.announcements == 2
        assert result.stream_channels == 2
        assert result.themes == 2
        assert result.stream_settings_restored is True
        assert result.steps == [
            "audit_log",
            "announcements",
            "stream_settings",
            "stream_channels",
            "themes",
        ]

    @pytest.mark.asyncio
    async def test_restore_into_same_store(self, store, tmp_path):
        """Restoring into the source store replaces rows with fresh identifiers."""
        await populate(store)
        path = await SnapshotWriter(store, tmp_path).write()
        old_ids = {a.id for a in await store.get_announcements()}
        old_titles = [a.title for a in await store.get_announcements()]

        await RestoreEngine(store).restore(path)

        announcements = await store.get_announcements()
        assert [a.title for a in announcements] == old_titles
        assert {a.id for a in announcements}.isdisjoint(old_ids)
        assert len(await store.get_stream_channels()) == 2
        assert len(await store.get_themes()) == 2

    @pytest.mark.asyncio
    async def test_dates_preserved(self, store, tmp_path):
        """Announcement dates survive to the millisecond."""
        await populate(store)
        path = await SnapshotWriter(store, tmp_path).write()

        await RestoreEngine(store).restore(path)

        dates = sorted(a.date for a in await store.get_announcements())
        assert dates == [
            datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc),
            datetime(2024, 2, 1, 12, 0, 0, 250000, tzinfo=timezone.utc),
        ]

    @pytest.mark.asyncio
    async def test_featured_announcement_preserved(self, store, tmp_path):
        """The featured flag stays on the same announcement."""
        await populate(store)
        path = await SnapshotWriter(store, tmp_path).write()

        await RestoreEngine(store).restore(path)

        assert (await store.get_featured_announcement()).title == "Newer post"

    @pytest.mark.asyncio
    async def test_main_channel_preserved(self, store, tmp_path):
        """The main channel flag stays on the same channel."""
        await populate(store)
        path = await SnapshotWriter(store, tmp_path).write()

        await RestoreEngine(store).restore(path)

        main = [c.name for c in await store.get_stream_channels() if c.is_main]
        assert main == ["rennsz"]

    @pytest.mark.asyncio
    async def test_restored_state_removes_later_changes(self, store, tmp_path):
        """Entities created after the snapshot are gone after restore."""
        await populate(store)
        path = await SnapshotWriter(store, tmp_path).write()

        await store.create_announcement({"title": "Later", "content": ""})
        await store.create_stream_channel(channel_data("extra"))
        await store.create_theme(theme_data("Extra", is_active=True))

        await RestoreEngine(store).restore(path)

        assert "Later" not in [a.title for a in await store.get_announcements()]
        assert "extra" not in [c.name for c in await store.get_stream_channels()]
        assert (await store.get_active_theme()).name == "Midnight"

    @pytest.mark.asyncio
    async def test_restore_twice(self, store, tmp_path):
        """Restoring the same snapshot twice yields the same values."""
        await populate(store)
        path = await SnapshotWriter(store, tmp_path).write()
        engine = RestoreEngine(store)

        await engine.restore(path)
        first = without_id(await store.get_themes())
        await engine.restore(path)

        assert without_id(await store.get_themes()) == first
        active = [t for t in await store.get_themes() if t.is_active]
        assert len(active) == 1

    @pytest.mark.asyncio
    async def test_audit_log_entry(self, store, tmp_path):
        """Each restore records one system log entry."""
        await populate(store)
        path = await SnapshotWriter(store, tmp_path, clock=lambda: 1714564800000).write()

        await RestoreEngine(store).restore(path)

        logs = await store.get_logs()
        assert len(logs) == 1
        assert logs[0].action == RESTORE_LOG_ACTION
        assert logs[0].category == RESTORE_LOG_CATEGORY
        assert logs[0].details == (
            "Restored system from backup created at 2024-05-01T12:00:00.000Z"
        )


class TestRestoreEdgeCases:
    """Tests for unusual snapshots and failures."""

    @pytest.mark.asyncio
    async def test_null_stream_settings_left_unchanged(self, store):
        """A snapshot without stream settings keeps the current settings."""
        await store.update_stream_settings({"featured_channel": "keepme"})
        snapshot = Snapshot(created_at=datetime(2024, 5, 1, tzinfo=timezone.utc))

        result = await RestoreEngine(store).restore(snapshot)

        assert (await store.get_stream_settings()).featured_channel == "keepme"
        assert result.stream_settings_restored is False
        assert "stream_settings" in result.steps

    @pytest.mark.asyncio
    async def test_empty_snapshot_clears_collections(self, store):
        """An empty snapshot deletes every collection row."""
        await populate(store)
        snapshot = Snapshot(created_at=datetime(2024, 5, 1, tzinfo=timezone.utc))

        await RestoreEngine(store).restore(snapshot)

        assert await store.get_announcements() == []
        assert await store.get_stream_channels() == []
        assert await store.get_themes() == []

    @pytest.mark.asyncio
    async def test_active_theme_matched_by_position(self, store):
        """The active theme is re-activated by its position in the snapshot."""
        themes = [
            ThemeSetting(id=41, name="A", **THEME_BASE),
            ThemeSetting(id=42, name="B", **THEME_BASE),
        ]
        snapshot = Snapshot(
            created_at=datetime(2024, 5, 1, tzinfo=timezone.utc),
            theme_settings=themes,
            active_theme_id=42,
        )

        result = await RestoreEngine(store).restore(snapshot)

        active = await store.get_active_theme()
        assert active.name == "B"
        assert active.id == result.active_theme_id
        assert active.id != 42

    @pytest.mark.asyncio
    async def test_unknown_active_theme_id(self, store):
        """An active id that matches no snapshot theme activates nothing."""
        snapshot = Snapshot(
            created_at=datetime(2024, 5, 1, tzinfo=timezone.utc),
            theme_settings=[ThemeSetting(id=1, name="A", **THEME_BASE)],
            active_theme_id=99,
        )

        result = await RestoreEngine(store).restore(snapshot)

        assert await store.get_active_theme() is None
        assert result.active_theme_id is None
        assert result.themes == 1

    @pytest.mark.asyncio
    async def test_missing_file_leaves_store_untouched(self, store, tmp_path):
        """An unreadable file fails before any mutation."""
        await populate(store)

        with pytest.raises(SnapshotReadError):
            await RestoreEngine(store).restore(tmp_path / "backup_1.json")

        assert len(await store.get_announcements()) == 2
        assert await store.get_logs() == []

    @pytest.mark.asyncio
    async def test_malformed_file_leaves_store_untouched(self, store, tmp_path):
        """A malformed file fails before any mutation."""
        await populate(store)
        path = tmp_path / "backup_1.json"
        path.write_text("{\"announcements\": [")

        with pytest.raises(SnapshotSerializationError):
            await RestoreEngine(store).restore(path)

        assert len(await store.get_announcements()) == 2
        assert await store.get_logs() == []

    @pytest.mark.asyncio
    async def test_partial_failure(self, tmp_path):
        """A failing step stops the restore without rolling back earlier steps."""
        source = await populate(InMemoryStateStore())
        path = await SnapshotWriter(source, tmp_path).write()

        target = FailingChannelStore()
        await target.create_announcement({"title": "Stale", "content": ""})
        await target.create_theme(theme_data("Untouched", is_active=True))

        with pytest.raises(RestoreError) as exc_info:
            await RestoreEngine(target).restore(path)

        assert exc_info.value.step == "stream_channels"
        titles = sorted(a.title for a in await target.get_announcements())
        assert titles == ["Newer post", "Older post"]
        assert (await target.get_stream_settings()).featured_channel == "rennszino"
        assert (await target.get_active_theme()).name == "Untouched"
