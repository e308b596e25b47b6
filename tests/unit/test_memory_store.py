"""
Unit tests for the in-memory state store.

Tests cover:
- Announcement, channel and theme CRUD
- Featured/main/active uniqueness
- Stream settings upsert
- Error handling for missing and protected entities
- Seed data
"""

from datetime import datetime, timezone

import pytest

from backend.streamsite_server.storage import (
    ActiveThemeDeletionError,
    EntityNotFoundError,
    InMemoryStateStore,
    InvalidEntityError,
)
from tests.helpers import channel_data, theme_data


class TestAnnouncements:
    """Tests for announcement operations."""

    @pytest.mark.asyncio
    async def test_create_assigns_increasing_ids(self, store):
        """Each created announcement gets the next identifier."""
        first = await store.create_announcement({"title": "A", "content": "a"})
        second = await store.create_announcement({"title": "B", "content": "b"})

        assert first.id == 1
        assert second.id == 2

    @pytest.mark.asyncio
    async def test_ids_not_reused_after_delete(self, store):
        """Deleting the newest row does not free its identifier."""
        first = await store.create_announcement({"title": "A", "content": "a"})
        await store.delete_announcement(first.id)

        second = await store.create_announcement({"title": "B", "content": "b"})
        assert second.id == 2

    @pytest.mark.asyncio
    async def test_create_keeps_supplied_date(self, store):
        """An explicit date is stored as given."""
        date = datetime(2023, 6, 1, 8, 30, tzinfo=timezone.utc)
        announcement = await store.create_announcement(
            {"title": "A", "content": "a", "date": date}
        )
        assert announcement.date == date

    @pytest.mark.asyncio
    async def test_list_newest_first(self, store):
        """Announcements are listed by date descending."""
        await store.create_announcement(
            {"title": "old", "content": "", "date": datetime(2020, 1, 1, tzinfo=timezone.utc)}
        )
        await store.create_announcement(
            {"title": "new", "content": "", "date": datetime(2021, 1, 1, tzinfo=timezone.utc)}
        )

        titles = [a.title for a in await store.get_announcements()]
        assert titles == ["new", "old"]

    @pytest.mark.asyncio
    async def test_single_featured(self, store):
        """Featuring an announcement un-features the others."""
        first = await store.create_announcement({"title": "A", "content": "", "featured": True})
        second = await store.create_announcement({"title": "B", "content": "", "featured": True})

        assert (await store.get_announcement(first.id)).featured is False
        assert (await store.get_featured_announcement()).id == second.id

        await store.set_featured_announcement(first.id)
        assert (await store.get_featured_announcement()).id == first.id
        assert (await store.get_announcement(second.id)).featured is False

    @pytest.mark.asyncio
    async def test_update_partial(self, store):
        """Update changes only the given fields."""
        created = await store.create_announcement({"title": "A", "content": "body"})
        updated = await store.update_announcement(created.id, {"title": "A2"})

        assert updated.title == "A2"
        assert updated.content == "body"
        assert updated.date == created.date

    @pytest.mark.asyncio
    async def test_missing_ids_raise(self, store):
        """Operations on unknown ids raise EntityNotFoundError."""
        with pytest.raises(EntityNotFoundError):
            await store.update_announcement(42, {"title": "x"})
        with pytest.raises(EntityNotFoundError):
            await store.delete_announcement(42)
        with pytest.raises(EntityNotFoundError):
            await store.set_featured_announcement(42)

    @pytest.mark.asyncio
    async def test_unknown_field_rejected(self, store):
        """Unknown attributes are rejected."""
        with pytest.raises(InvalidEntityError):
            await store.create_announcement({"title": "A", "content": "", "author": "me"})

    @pytest.mark.asyncio
    async def test_missing_required_field_rejected(self, store):
        """Missing required attributes are rejected."""
        with pytest.raises(InvalidEntityError):
            await store.create_announcement({"title": "A"})


class TestStreamSettings:
    """Tests for the stream settings singleton."""

    @pytest.mark.asyncio
    async def test_upsert_creates_with_defaults(self, store):
        """First update creates the record with defaults for omitted fields."""
        assert await store.get_stream_settings() is None

        settings = await store.update_stream_settings({"featured_channel": "rennszino"})

        assert settings.id == 1
        assert settings.featured_channel == "rennszino"
        assert settings.auto_detect is True
        assert settings.offline_behavior == "message"

    @pytest.mark.asyncio
    async def test_upsert_updates_in_place(self, store):
        """Later updates patch the same record."""
        await store.update_stream_settings({"featured_channel": "a"})
        settings = await store.update_stream_settings({"auto_detect": False})

        assert settings.id == 1
        assert settings.featured_channel == "a"
        assert settings.auto_detect is False


class TestStreamChannels:
    """Tests for stream channel operations."""

    @pytest.mark.asyncio
    async def test_single_main_channel(self, store):
        """Creating a main channel demotes the previous one."""
        first = await store.create_stream_channel(channel_data("one", is_main=True))
        second = await store.create_stream_channel(channel_data("two", is_main=True))

        assert (await store.get_stream_channel(first.id)).is_main is False
        assert (await store.get_stream_channel(second.id)).is_main is True

    @pytest.mark.asyncio
    async def test_list_in_insertion_order(self, store):
        """Channels are listed in creation order."""
        await store.create_stream_channel(channel_data("one"))
        await store.create_stream_channel(channel_data("two"))

        assert [c.name for c in await store.get_stream_channels()] == ["one", "two"]

    @pytest.mark.asyncio
    async def test_delete(self, store):
        """Deleted channels are gone."""
        channel = await store.create_stream_channel(channel_data("one"))
        await store.delete_stream_channel(channel.id)

        assert await store.get_stream_channel(channel.id) is None
        with pytest.raises(EntityNotFoundError):
            await store.delete_stream_channel(channel.id)


class TestThemes:
    """Tests for theme operations."""

    @pytest.mark.asyncio
    async def test_set_active_deactivates_others(self, store):
        """Exactly one theme is active after activation."""
        first = await store.create_theme(theme_data("first", is_active=True))
        second = await store.create_theme(theme_data("second"))

        await store.set_active_theme(second.id)

        active = [t for t in await store.get_themes() if t.is_active]
        assert [t.id for t in active] == [second.id]
        assert (await store.get_theme(first.id)).is_active is False

    @pytest.mark.asyncio
    async def test_active_theme_cannot_be_deleted(self, store):
        """Deleting the active theme is refused."""
        theme = await store.create_theme(theme_data("only", is_active=True))

        with pytest.raises(ActiveThemeDeletionError):
            await store.delete_theme(theme.id)
        assert await store.get_theme(theme.id) is not None

    @pytest.mark.asyncio
    async def test_deactivated_theme_can_be_deleted(self, store):
        """A theme can be deleted once it is no longer active."""
        theme = await store.create_theme(theme_data("only", is_active=True))
        await store.update_theme(theme.id, {"is_active": False})

        await store.delete_theme(theme.id)
        assert await store.get_themes() == []

    @pytest.mark.asyncio
    async def test_set_active_unknown(self, store):
        """Activating an unknown theme raises."""
        with pytest.raises(EntityNotFoundError):
            await store.set_active_theme(7)


class TestActivityLogs:
    """Tests for activity logs."""

    @pytest.mark.asyncio
    async def test_create_log_sets_timestamp(self, store):
        """Logs get a timestamp and optional fields default to None."""
        entry = await store.create_log({"action": "Test", "category": "system"})

        assert entry.id == 1
        assert entry.timestamp is not None
        assert entry.details is None
        assert entry.admin_id is None
        assert await store.get_logs() == [entry]


class TestSeedData:
    """Tests for default content."""

    @pytest.mark.asyncio
    async def test_seeded_store(self):
        """Seeded store has the default site content."""
        store = InMemoryStateStore(seed=True)

        settings = await store.get_stream_settings()
        assert settings.featured_channel == "rennsz"

        channels = await store.get_stream_channels()
        assert [c.name for c in channels] == ["rennsz", "rennszino"]
        assert channels[0].is_main is True

        active = await store.get_active_theme()
        assert active.name == "Premium Dark"
        assert len(await store.get_themes()) == 2

        featured = await store.get_featured_announcement()
        assert featured.title.startswith("Welcome")

    @pytest.mark.asyncio
    async def test_seeded_ids_continue(self):
        """New rows continue after the seeded identifiers."""
        store = InMemoryStateStore(seed=True)

        theme = await store.create_theme(theme_data("new"))
        assert theme.id == 3
