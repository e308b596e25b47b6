"""
Base protocol and errors for the state store.

The StateStore protocol is the capability contract the backup subsystem and
the HTTP API depend on. Its internal representation is irrelevant to callers.

Invariants:
    - All operations are coroutines and may raise StoreError
    - Identifiers are assigned by the store and never reused
    - At most one featured announcement, one main channel and one active theme

How to change safely:
    - Protocol changes require updating all implementations
    - The backup writer and restore engine must cover every mutable collection
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Protocol, runtime_checkable

from .models import ActivityLog, Announcement, StreamChannel, StreamSetting, ThemeSetting


class StoreError(Exception):
    """Base exception for state store operations."""
    pass


class EntityNotFoundError(StoreError):
    """The referenced entity does not exist."""

    def __init__(self, entity: str, entity_id: int) -> None:
        super().__init__(f"{entity} {entity_id} not found")
        self.entity = entity
        self.entity_id = entity_id


class InvalidEntityError(StoreError):
    """Entity data is missing required fields or has unknown ones."""
    pass


class ActiveThemeDeletionError(StoreError):
    """The active theme cannot be deleted."""

    def __init__(self, theme_id: int) -> None:
        super().__init__(f"Theme {theme_id} is active and cannot be deleted")
        self.theme_id = theme_id


@runtime_checkable
class StateStore(Protocol):
    """Protocol for the application state store.

    Create and update methods take snake_case attribute dictionaries without
    an ``id`` key. Update methods accept partial dictionaries.
    """

    # Announcements
    async def get_announcements(self) -> List[Announcement]: ...

    async def get_announcement(self, announcement_id: int) -> Optional[Announcement]: ...

    async def create_announcement(self, data: Dict[str, Any]) -> Announcement: ...

    async def update_announcement(
        self, announcement_id: int, data: Dict[str, Any]
    ) -> Announcement: ...

    async def delete_announcement(self, announcement_id: int) -> None: ...

    async def get_featured_announcement(self) -> Optional[Announcement]: ...

    async def set_featured_announcement(self, announcement_id: int) -> Announcement: ...

    # Stream settings (singleton)
    async def get_stream_settings(self) -> Optional[StreamSetting]: ...

    async def update_stream_settings(self, data: Dict[str, Any]) -> StreamSetting: ...

    # Stream channels
    async def get_stream_channels(self) -> List[StreamChannel]: ...

    async def get_stream_channel(self, channel_id: int) -> Optional[StreamChannel]: ...

    async def create_stream_channel(self, data: Dict[str, Any]) -> StreamChannel: ...

    async def update_stream_channel(
        self, channel_id: int, data: Dict[str, Any]
    ) -> StreamChannel: ...

    async def delete_stream_channel(self, channel_id: int) -> None: ...

    # Themes
    async def get_themes(self) -> List[ThemeSetting]: ...

    async def get_theme(self, theme_id: int) -> Optional[ThemeSetting]: ...

    async def get_active_theme(self) -> Optional[ThemeSetting]: ...

    async def create_theme(self, data: Dict[str, Any]) -> ThemeSetting: ...

    async def update_theme(self, theme_id: int, data: Dict[str, Any]) -> ThemeSetting: ...

    async def delete_theme(self, theme_id: int) -> None: ...

    async def set_active_theme(self, theme_id: int) -> ThemeSetting: ...

    # Activity logs
    async def get_logs(self) -> List[ActivityLog]: ...

    async def create_log(self, data: Dict[str, Any]) -> ActivityLog: ...
