"""
Backup CLI tool for StreamSite.

Offline inspection and maintenance of the snapshot directory:
1. list  - snapshot files, newest first
2. show  - load a snapshot and print a summary
3. prune - apply the retention policy

Usage:
    streamsite-backup [--backup-dir <path>] list
    streamsite-backup show latest
    streamsite-backup prune --keep 5

Invariants:
    - The tool never modifies snapshot contents
    - show validates the file with the same codec the restore engine uses

How to change safely:
    - Keep exit codes stable, scripts check them
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional

from ..backup.retention import RetentionPruner, latest_snapshot, list_snapshot_files
from ..backup.snapshot import BackupError, load_snapshot, parse_snapshot_timestamp
from ..config import BackupConfig
from ..storage.models import format_timestamp

logger = logging.getLogger(__name__)


def _cmd_list(directory: Path) -> int:
    try:
        files = list_snapshot_files(directory)
    except OSError as e:
        print(f"Cannot list snapshots in {directory}: {e}")
        return 1

    if not files:
        print(f"No snapshots in {directory}")
        return 0

    for path in reversed(files):
        timestamp_ms = parse_snapshot_timestamp(path.name)
        created_at = datetime.fromtimestamp(timestamp_ms / 1000, tz=timezone.utc)
        print(f"{path.name}  {format_timestamp(created_at)}")
    return 0


def _cmd_show(directory: Path, target: str) -> int:
    if target == "latest":
        try:
            path = latest_snapshot(directory)
        except OSError as e:
            print(f"Cannot list snapshots in {directory}: {e}")
            return 1
        if path is None:
            print(f"No snapshots in {directory}")
            return 1
    else:
        path = Path(target)

    try:
        snapshot = asyncio.run(load_snapshot(path))
    except BackupError as e:
        print(f"Invalid snapshot: {e}")
        return 1

    print(f"Snapshot: {path.name}")
    print(f"  Created at: {format_timestamp(snapshot.created_at)}")
    print(f"  Announcements: {len(snapshot.announcements)}")
    print(f"  Stream settings: {'present' if snapshot.stream_settings else 'none'}")
    print(f"  Stream channels: {len(snapshot.stream_channels)}")
    print(f"  Themes: {len(snapshot.theme_settings)}")
    print(f"  Active theme id: {snapshot.active_theme_id}")
    return 0


def _cmd_prune(directory: Path, keep: int) -> int:
    pruner = RetentionPruner(directory, keep)
    deleted = pruner.prune()
    print(f"Deleted {len(deleted)} snapshot(s), kept at most {keep}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Inspect and prune StreamSite snapshots")
    parser.add_argument(
        "--backup-dir",
        help="Snapshot directory (defaults to BACKUP_DIR or the install default)",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose output")

    subparsers = parser.add_subparsers(dest="command", required=True)
    subparsers.add_parser("list", help="List snapshots, newest first")

    show = subparsers.add_parser("show", help="Summarize a snapshot")
    show.add_argument("target", help="Snapshot file path, or 'latest'")

    prune = subparsers.add_parser("prune", help="Delete snapshots beyond the retention count")
    prune.add_argument("--keep", type=int, help="Number of snapshots to keep")

    return parser


def main(argv: Optional[List[str]] = None) -> None:
    """CLI entry point for the backup tool."""
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s - %(levelname)s - %(message)s",
    )

    try:
        backup_config = BackupConfig.from_env()
    except ValueError as e:
        print(f"Configuration error: {e}")
        sys.exit(2)

    directory = Path(args.backup_dir or backup_config.directory)

    if args.command == "list":
        code = _cmd_list(directory)
    elif args.command == "show":
        code = _cmd_show(directory, args.target)
    else:
        keep = args.keep if args.keep is not None else backup_config.retention_count
        if keep < 1:
            print("--keep must be at least 1")
            sys.exit(2)
        code = _cmd_prune(directory, keep)

    sys.exit(code)


if __name__ == "__main__":
    main()
