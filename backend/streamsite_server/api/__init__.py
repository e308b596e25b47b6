"""
Public HTTP API for StreamSite.

Read-only FastAPI application over the state store.
"""

from .app import create_app
from .routes import router

__all__ = ["create_app", "router"]
