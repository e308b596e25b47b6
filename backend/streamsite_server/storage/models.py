"""
Entity types for the StreamSite state store.

Entities are immutable records. Their Python attributes are snake_case; the
JSON form used by snapshot files and the HTTP API keeps the camelCase names
the site front-end was built against.

Invariants:
    - to_dict() and from_dict() are inverse for every entity
    - Timestamps are UTC with millisecond precision
    - fields() never includes the primary identifier

How to change safely:
    - New fields need a default so old snapshot files still load
    - Never rename a JSON key, snapshots on disk depend on it
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, fields as dataclass_fields
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Union, get_args, get_origin, get_type_hints


def utc_now() -> datetime:
    """Current UTC time truncated to milliseconds."""
    now = datetime.now(timezone.utc)
    return now.replace(microsecond=(now.microsecond // 1000) * 1000)


def format_timestamp(value: datetime) -> str:
    """Format a datetime as ISO-8601 with millisecond precision and a Z suffix."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    value = value.astimezone(timezone.utc)
    return value.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_timestamp(value: str) -> datetime:
    """Parse an ISO-8601 timestamp, accepting a trailing Z.

    Raises:
        ValueError: If the value is not a valid timestamp
    """
    if not isinstance(value, str):
        raise ValueError(f"Timestamp must be a string, got {type(value).__name__}")
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def _type_names(types: tuple) -> str:
    return " or ".join("null" if t is type(None) else t.__name__ for t in types)


class _Entity:
    """Shared serialization helpers.

    Subclasses declare JSON_FIELDS mapping attribute name -> JSON key.
    """

    JSON_FIELDS: Dict[str, str] = {}

    def fields(self) -> Dict[str, Any]:
        """Attribute values without the primary identifier."""
        data = asdict(self)
        data.pop("id", None)
        return data

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the camelCase JSON shape."""
        result: Dict[str, Any] = {}
        for attr, key in self.JSON_FIELDS.items():
            value = getattr(self, attr)
            if isinstance(value, datetime):
                value = format_timestamp(value)
            result[key] = value
        return result

    @classmethod
    def _kwargs_from_dict(cls, data: Dict[str, Any]) -> Dict[str, Any]:
        if not isinstance(data, dict):
            raise ValueError(f"{cls.__name__} must be an object, got {type(data).__name__}")
        known = {f.name for f in dataclass_fields(cls)}
        kwargs: Dict[str, Any] = {}
        for attr, key in cls.JSON_FIELDS.items():
            if key in data and attr in known:
                kwargs[attr] = data[key]
        return kwargs

    @classmethod
    def _checked(cls, kwargs: Dict[str, Any]):
        """Construct from JSON values after checking them against the annotations.

        Raises:
            ValueError: If a value has the wrong JSON type
        """
        hints = get_type_hints(cls)
        for attr, value in kwargs.items():
            expected = hints[attr]
            allowed = get_args(expected) if get_origin(expected) is Union else (expected,)
            # bool is an int subclass, JSON true/false must not pass as a number
            if not isinstance(value, allowed) or (isinstance(value, bool) and bool not in allowed):
                raise ValueError(
                    f"{cls.__name__}.{attr} must be {_type_names(allowed)}, "
                    f"got {type(value).__name__}"
                )
        return cls(**kwargs)


@dataclass(frozen=True)
class Announcement(_Entity):
    """A news post shown on the public site.

    Attributes:
        id: Store-assigned identifier
        title: Headline
        content: Body text
        date: Publication time
        featured: Whether this is the highlighted announcement (at most one)
    """

    id: int
    title: str
    content: str
    date: datetime
    featured: bool = False

    JSON_FIELDS = {
        "id": "id",
        "title": "title",
        "content": "content",
        "date": "date",
        "featured": "featured",
    }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Announcement:
        """Create from the JSON shape."""
        kwargs = cls._kwargs_from_dict(data)
        kwargs["date"] = parse_timestamp(data["date"])
        return cls._checked(kwargs)


@dataclass(frozen=True)
class StreamSetting(_Entity):
    """Singleton record controlling which stream the site embeds."""

    id: int
    featured_channel: str
    auto_detect: bool = True
    offline_behavior: str = "message"

    JSON_FIELDS = {
        "id": "id",
        "featured_channel": "featuredChannel",
        "auto_detect": "autoDetect",
        "offline_behavior": "offlineBehavior",
    }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> StreamSetting:
        """Create from the JSON shape."""
        return cls._checked(cls._kwargs_from_dict(data))


@dataclass(frozen=True)
class StreamChannel(_Entity):
    """A Twitch channel listed on the site."""

    id: int
    name: str
    url: str
    display_name: str
    type: str
    schedule: Optional[str] = None
    is_main: bool = False

    JSON_FIELDS = {
        "id": "id",
        "name": "name",
        "url": "url",
        "display_name": "displayName",
        "type": "type",
        "schedule": "schedule",
        "is_main": "isMain",
    }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> StreamChannel:
        """Create from the JSON shape."""
        return cls._checked(cls._kwargs_from_dict(data))


@dataclass(frozen=True)
class ThemeSetting(_Entity):
    """A visual theme preset. At most one theme is active."""

    id: int
    name: str
    primary_color: str
    secondary_color: str
    accent_color: str
    text_color: str
    background_type: str
    background_value: str
    heading_font: str
    body_font: str
    is_active: bool = False

    JSON_FIELDS = {
        "id": "id",
        "name": "name",
        "primary_color": "primaryColor",
        "secondary_color": "secondaryColor",
        "accent_color": "accentColor",
        "text_color": "textColor",
        "background_type": "backgroundType",
        "background_value": "backgroundValue",
        "heading_font": "headingFont",
        "body_font": "bodyFont",
        "is_active": "isActive",
    }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> ThemeSetting:
        """Create from the JSON shape."""
        return cls._checked(cls._kwargs_from_dict(data))


@dataclass(frozen=True)
class ActivityLog(_Entity):
    """Audit trail entry for admin and system actions."""

    id: int
    action: str
    category: str
    timestamp: datetime
    details: Optional[str] = None
    admin_id: Optional[int] = None

    JSON_FIELDS = {
        "id": "id",
        "action": "action",
        "details": "details",
        "admin_id": "adminId",
        "timestamp": "timestamp",
        "category": "category",
    }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> ActivityLog:
        """Create from the JSON shape."""
        kwargs = cls._kwargs_from_dict(data)
        kwargs["timestamp"] = parse_timestamp(data["timestamp"])
        return cls._checked(kwargs)
