"""
Builders for populating a state store in tests.
"""

from datetime import datetime, timezone

from backend.streamsite_server.storage import InMemoryStateStore

THEME_BASE = {
    "primary_color": "#111111",
    "secondary_color": "#222222",
    "accent_color": "#D4AF37",
    "text_color": "#FFFFFF",
    "background_type": "color",
    "background_value": "#000000",
    "heading_font": "Montserrat",
    "body_font": "Poppins",
}


def theme_data(name: str, is_active: bool = False) -> dict:
    """Theme attributes with sensible defaults."""
    return {**THEME_BASE, "name": name, "is_active": is_active}


def channel_data(name: str, is_main: bool = False) -> dict:
    """Stream channel attributes with sensible defaults."""
    return {
        "name": name,
        "url": f"https://www.twitch.tv/{name}",
        "display_name": name.upper(),
        "type": "IRL",
        "schedule": "Weekends",
        "is_main": is_main,
    }


async def populate(store: InMemoryStateStore) -> InMemoryStateStore:
    """Two announcements, settings, two channels, two themes (second active)."""
    await store.create_announcement(
        {
            "title": "Older post",
            "content": "First",
            "date": datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc),
            "featured": False,
        }
    )
    await store.create_announcement(
        {
            "title": "Newer post",
            "content": "Second",
            "date": datetime(2024, 2, 1, 12, 0, 0, 250000, tzinfo=timezone.utc),
            "featured": True,
        }
    )
    await store.update_stream_settings(
        {"featured_channel": "rennszino", "auto_detect": False, "offline_behavior": "hide"}
    )
    await store.create_stream_channel(channel_data("rennsz", is_main=True))
    await store.create_stream_channel(channel_data("rennszino"))
    await store.create_theme(theme_data("Classic"))
    await store.create_theme(theme_data("Midnight", is_active=True))
    return store
