"""
State store for StreamSite.

The store holds the live application entities:
- Announcements
- Stream settings (singleton)
- Stream channels
- Theme settings
- Activity logs

Invariants:
    - Callers depend on the StateStore protocol, not on a concrete store
    - There is no module-level store instance; the server owns one
"""

from .base import (
    ActiveThemeDeletionError,
    EntityNotFoundError,
    InvalidEntityError,
    StateStore,
    StoreError,
)
from .memory import InMemoryStateStore
from .models import ActivityLog, Announcement, StreamChannel, StreamSetting, ThemeSetting

__all__ = [
    # Protocol and errors
    "StateStore",
    "StoreError",
    "EntityNotFoundError",
    "InvalidEntityError",
    "ActiveThemeDeletionError",
    # Implementation
    "InMemoryStateStore",
    # Entities
    "Announcement",
    "StreamSetting",
    "StreamChannel",
    "ThemeSetting",
    "ActivityLog",
]
