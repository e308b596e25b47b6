"""
In-memory state store implementation.

Holds every collection in dictionaries keyed by identifier with one
auto-increment counter per collection. This is the live store of the server
process; all data is lost on exit unless the backup subsystem restores it.

Invariants:
    - Counters only increase, identifiers are never reused
    - Returned entities are immutable, callers cannot alias store state
    - Setting a featured/main/active flag clears it on every other row

How to change safely:
    - Keep method semantics in sync with the StateStore protocol
    - Seed data is part of the first-boot experience, change it deliberately
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import fields as dataclass_fields, replace
from typing import Any, Dict, List, Optional, Type, TypeVar

from .base import (
    ActiveThemeDeletionError,
    EntityNotFoundError,
    InvalidEntityError,
)
from .models import (
    ActivityLog,
    Announcement,
    StreamChannel,
    StreamSetting,
    ThemeSetting,
    utc_now,
)

logger = logging.getLogger(__name__)

E = TypeVar("E")

STREAM_SETTINGS_ID = 1


def _build(entity_cls: Type[E], entity_id: int, data: Dict[str, Any]) -> E:
    """Construct an entity from attribute data, rejecting unknown keys."""
    allowed = {f.name for f in dataclass_fields(entity_cls)} - {"id"}
    unknown = set(data) - allowed
    if unknown:
        raise InvalidEntityError(
            f"Unknown {entity_cls.__name__} fields: {', '.join(sorted(unknown))}"
        )
    try:
        return entity_cls(id=entity_id, **data)
    except TypeError as e:
        raise InvalidEntityError(f"Invalid {entity_cls.__name__}: {e}") from e


def _patch(entity: E, data: Dict[str, Any]) -> E:
    """Apply a partial update to an entity."""
    allowed = {f.name for f in dataclass_fields(entity)} - {"id"}
    unknown = set(data) - allowed
    if unknown:
        raise InvalidEntityError(
            f"Unknown {type(entity).__name__} fields: {', '.join(sorted(unknown))}"
        )
    return replace(entity, **data)


class InMemoryStateStore:
    """In-memory implementation of StateStore.

    Attributes:
        seed: Whether default content was loaded at construction

    Thread safety:
        Mutations run under an asyncio lock. Safe to use from multiple
        coroutines on one event loop.

    Example:
        >>> store = InMemoryStateStore(seed=True)
        >>> theme = await store.get_active_theme()
        >>> theme.name
        'Premium Dark'
    """

    def __init__(self, seed: bool = False) -> None:
        """Initialize the store.

        Args:
            seed: Load default stream settings, channels, themes and a welcome post
        """
        self.seed = seed
        self._announcements: Dict[int, Announcement] = {}
        self._stream_settings: Optional[StreamSetting] = None
        self._stream_channels: Dict[int, StreamChannel] = {}
        self._themes: Dict[int, ThemeSetting] = {}
        self._logs: Dict[int, ActivityLog] = {}

        self._next_ids: Dict[str, int] = {
            "announcement": 1,
            "stream_channel": 1,
            "theme": 1,
            "log": 1,
        }
        self._lock = asyncio.Lock()

        if seed:
            self._seed_data()

    def _allocate_id(self, collection: str) -> int:
        entity_id = self._next_ids[collection]
        self._next_ids[collection] = entity_id + 1
        return entity_id

    def _seed_data(self) -> None:
        self._stream_settings = StreamSetting(
            id=STREAM_SETTINGS_ID,
            featured_channel="rennsz",
            auto_detect=True,
            offline_behavior="message",
        )

        for data in (
            {
                "name": "rennsz",
                "url": "https://www.twitch.tv/rennsz",
                "display_name": "RENNSZ - IRL Adventures",
                "type": "IRL",
                "schedule": "Streams every Tue, Thu, Sat",
                "is_main": True,
            },
            {
                "name": "rennszino",
                "url": "https://www.twitch.tv/rennszino",
                "display_name": "RENNSZINO - Gaming & Chill",
                "type": "Gaming",
                "schedule": "Streams every Mon, Wed, Sun",
                "is_main": False,
            },
        ):
            channel_id = self._allocate_id("stream_channel")
            self._stream_channels[channel_id] = _build(StreamChannel, channel_id, data)

        for data in (
            {
                "name": "Premium Dark",
                "primary_color": "#111111",
                "secondary_color": "#222222",
                "accent_color": "#D4AF37",
                "text_color": "#FFFFFF",
                "background_type": "image",
                "background_value": "https://images.unsplash.com/photo-1533134486753-c833f0ed4866",
                "heading_font": "Montserrat",
                "body_font": "Poppins",
                "is_active": True,
            },
            {
                "name": "Halloween Theme",
                "primary_color": "#000000",
                "secondary_color": "#1a1a1a",
                "accent_color": "#ff6600",
                "text_color": "#FFFFFF",
                "background_type": "gradient",
                "background_value": "linear-gradient(90deg, #000000, #300000, #000000)",
                "heading_font": "Montserrat",
                "body_font": "Poppins",
                "is_active": False,
            },
        ):
            theme_id = self._allocate_id("theme")
            self._themes[theme_id] = _build(ThemeSetting, theme_id, data)

        announcement_id = self._allocate_id("announcement")
        self._announcements[announcement_id] = Announcement(
            id=announcement_id,
            title="Welcome to the Official RENNSZ Website",
            content=(
                "Welcome to the official RENNSZ website! Join us for our weekly IRL stream "
                "this Saturday at 3PM EST where we'll be exploring downtown with some "
                "special guests!"
            ),
            date=utc_now(),
            featured=True,
        )

    # =========================================================================
    # Announcements
    # =========================================================================

    async def get_announcements(self) -> List[Announcement]:
        """All announcements, newest first."""
        return sorted(self._announcements.values(), key=lambda a: a.date, reverse=True)

    async def get_announcement(self, announcement_id: int) -> Optional[Announcement]:
        return self._announcements.get(announcement_id)

    async def create_announcement(self, data: Dict[str, Any]) -> Announcement:
        """Create an announcement.

        ``date`` defaults to now. A featured announcement un-features all others.
        """
        data = dict(data)
        data.setdefault("date", utc_now())
        async with self._lock:
            announcement_id = self._allocate_id("announcement")
            announcement = _build(Announcement, announcement_id, data)
            if announcement.featured:
                self._clear_featured()
            self._announcements[announcement_id] = announcement
        return announcement

    async def update_announcement(
        self, announcement_id: int, data: Dict[str, Any]
    ) -> Announcement:
        async with self._lock:
            existing = self._announcements.get(announcement_id)
            if existing is None:
                raise EntityNotFoundError("Announcement", announcement_id)
            updated = _patch(existing, data)
            if updated.featured and not existing.featured:
                self._clear_featured()
            self._announcements[announcement_id] = updated
        return updated

    async def delete_announcement(self, announcement_id: int) -> None:
        async with self._lock:
            if self._announcements.pop(announcement_id, None) is None:
                raise EntityNotFoundError("Announcement", announcement_id)

    async def get_featured_announcement(self) -> Optional[Announcement]:
        return next((a for a in self._announcements.values() if a.featured), None)

    async def set_featured_announcement(self, announcement_id: int) -> Announcement:
        async with self._lock:
            existing = self._announcements.get(announcement_id)
            if existing is None:
                raise EntityNotFoundError("Announcement", announcement_id)
            self._clear_featured()
            featured = replace(existing, featured=True)
            self._announcements[announcement_id] = featured
        return featured

    def _clear_featured(self) -> None:
        for key, announcement in self._announcements.items():
            if announcement.featured:
                self._announcements[key] = replace(announcement, featured=False)

    # =========================================================================
    # Stream settings
    # =========================================================================

    async def get_stream_settings(self) -> Optional[StreamSetting]:
        return self._stream_settings

    async def update_stream_settings(self, data: Dict[str, Any]) -> StreamSetting:
        """Upsert the singleton stream settings record."""
        async with self._lock:
            if self._stream_settings is None:
                defaults: Dict[str, Any] = {
                    "featured_channel": "rennsz",
                    "auto_detect": True,
                    "offline_behavior": "message",
                }
                defaults.update(data)
                self._stream_settings = _build(StreamSetting, STREAM_SETTINGS_ID, defaults)
            else:
                self._stream_settings = _patch(self._stream_settings, data)
            return self._stream_settings

    # =========================================================================
    # Stream channels
    # =========================================================================

    async def get_stream_channels(self) -> List[StreamChannel]:
        return list(self._stream_channels.values())

    async def get_stream_channel(self, channel_id: int) -> Optional[StreamChannel]:
        return self._stream_channels.get(channel_id)

    async def create_stream_channel(self, data: Dict[str, Any]) -> StreamChannel:
        async with self._lock:
            channel_id = self._allocate_id("stream_channel")
            channel = _build(StreamChannel, channel_id, data)
            if channel.is_main:
                self._clear_main()
            self._stream_channels[channel_id] = channel
        return channel

    async def update_stream_channel(
        self, channel_id: int, data: Dict[str, Any]
    ) -> StreamChannel:
        async with self._lock:
            existing = self._stream_channels.get(channel_id)
            if existing is None:
                raise EntityNotFoundError("StreamChannel", channel_id)
            updated = _patch(existing, data)
            if updated.is_main and not existing.is_main:
                self._clear_main()
            self._stream_channels[channel_id] = updated
        return updated

    async def delete_stream_channel(self, channel_id: int) -> None:
        async with self._lock:
            if self._stream_channels.pop(channel_id, None) is None:
                raise EntityNotFoundError("StreamChannel", channel_id)

    def _clear_main(self) -> None:
        for key, channel in self._stream_channels.items():
            if channel.is_main:
                self._stream_channels[key] = replace(channel, is_main=False)

    # =========================================================================
    # Themes
    # =========================================================================

    async def get_themes(self) -> List[ThemeSetting]:
        return list(self._themes.values())

    async def get_theme(self, theme_id: int) -> Optional[ThemeSetting]:
        return self._themes.get(theme_id)

    async def get_active_theme(self) -> Optional[ThemeSetting]:
        return next((t for t in self._themes.values() if t.is_active), None)

    async def create_theme(self, data: Dict[str, Any]) -> ThemeSetting:
        async with self._lock:
            theme_id = self._allocate_id("theme")
            theme = _build(ThemeSetting, theme_id, data)
            if theme.is_active:
                self._clear_active()
            self._themes[theme_id] = theme
        return theme

    async def update_theme(self, theme_id: int, data: Dict[str, Any]) -> ThemeSetting:
        async with self._lock:
            existing = self._themes.get(theme_id)
            if existing is None:
                raise EntityNotFoundError("ThemeSetting", theme_id)
            updated = _patch(existing, data)
            if updated.is_active and not existing.is_active:
                self._clear_active()
            self._themes[theme_id] = updated
        return updated

    async def delete_theme(self, theme_id: int) -> None:
        """Delete a theme.

        Raises:
            EntityNotFoundError: If the theme does not exist
            ActiveThemeDeletionError: If the theme is the active one
        """
        async with self._lock:
            theme = self._themes.get(theme_id)
            if theme is None:
                raise EntityNotFoundError("ThemeSetting", theme_id)
            if theme.is_active:
                raise ActiveThemeDeletionError(theme_id)
            del self._themes[theme_id]

    async def set_active_theme(self, theme_id: int) -> ThemeSetting:
        async with self._lock:
            theme = self._themes.get(theme_id)
            if theme is None:
                raise EntityNotFoundError("ThemeSetting", theme_id)
            self._clear_active()
            active = replace(theme, is_active=True)
            self._themes[theme_id] = active
        return active

    def _clear_active(self) -> None:
        for key, theme in self._themes.items():
            if theme.is_active:
                self._themes[key] = replace(theme, is_active=False)

    # =========================================================================
    # Activity logs
    # =========================================================================

    async def get_logs(self) -> List[ActivityLog]:
        """All activity log entries, newest first."""
        return sorted(self._logs.values(), key=lambda entry: entry.timestamp, reverse=True)

    async def create_log(self, data: Dict[str, Any]) -> ActivityLog:
        data = dict(data)
        data.setdefault("timestamp", utc_now())
        async with self._lock:
            log_id = self._allocate_id("log")
            entry = _build(ActivityLog, log_id, data)
            self._logs[log_id] = entry
        logger.debug(
            "Activity logged",
            extra={"action": entry.action, "category": entry.category},
        )
        return entry
