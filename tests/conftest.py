"""
Shared fixtures for StreamSite tests.
"""

import pytest

from backend.streamsite_server.storage import InMemoryStateStore


@pytest.fixture
def store():
    """Create an empty store."""
    return InMemoryStateStore()
