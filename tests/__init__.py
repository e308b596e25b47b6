"""
StreamSite Test Suite.

This package contains:
- unit/: Unit tests (in-memory store, temporary snapshot directories)
- integration/: Integration tests (scheduler cycles, HTTP API)
"""
