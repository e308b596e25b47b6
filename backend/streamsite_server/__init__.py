"""
StreamSite Server - backend for a streaming personality's marketing site.

This package implements:
- An in-memory State Store for announcements, stream settings, stream
  channels, themes and activity logs
- A snapshot subsystem that periodically writes the full state to disk,
  prunes old snapshots and restores from the newest one
- A read-only public HTTP API over the store

Architecture:
    ┌─────────────┐     ┌─────────────┐     ┌─────────────────┐
    │  Public UI  │────▶│  HTTP API   │────▶│   State Store   │
    └─────────────┘     └─────────────┘     └────────┬────────┘
                                                     │
                                                     ▼
                        ┌─────────────────────────────────────────┐
                        │            Backup Scheduler             │
                        │   write ──▶ prune ──▶ restore (latest)  │
                        └────────────────────┬────────────────────┘
                                             ▼
                                  backups/backup_<ms>.json

Invariants:
    - The State Store is passed explicitly, there is no global instance
    - Snapshots are write-once and only deleted by retention
    - Restore re-creates rows, identifiers are never reused from a snapshot

How to change safely:
    - Snapshot field names mirror the entity JSON names, keep them in sync
    - Add new entity types to both the writer and the restore engine
"""

from ._version import __version__

__all__ = ["__version__"]
