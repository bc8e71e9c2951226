#!/usr/bin/env python3
"""
Copy a patient collection between the flat-file and SQLite backends.

Usage:
    meditrack-migrate --from flat --to sqlite [--source PATH] [--target PATH]
                      [--dry-run] [--backup] [--force]

Options:
    --from BACKEND    Backend to read ("flat" or "sqlite")
    --to BACKEND      Backend to write ("flat" or "sqlite")
    --source PATH     Source file (default: configured path for the backend)
    --target PATH     Target file (default: configured path for the backend)
    --dry-run         Load and report without writing the target
    --backup          Copy the target file aside before overwriting it
    --force           Save even if the source load reported errors (dangerous)
"""
import argparse
import os
import shutil
import sys
from datetime import datetime
from typing import List, Optional

from meditrack.core.config import settings
from meditrack.core.dependencies import get_repository
from meditrack.core.exceptions import PersistenceError
from meditrack.core.logging_config import setup_logging
from meditrack.services.migration import migrate

BACKENDS = ("flat", "sqlite")


def default_path(backend: str) -> str:
    return settings.flat_file_path if backend == "flat" else settings.database_path


def backup_file(path: str) -> str:
    """
    Copy a data file next to itself with a timestamp suffix.

    Args:
        path: File to back up.

    Returns:
        Path to the backup file.
    """
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    backup_path = f"{path}.backup_{timestamp}"

    print(f"Creating backup: {backup_path}")
    shutil.copy2(path, backup_path)
    print("✅ Backup created successfully")

    return backup_path


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="meditrack-migrate",
        description="Copy MediTrack patients from one storage backend to another",
    )
    parser.add_argument("--from", dest="source_backend", choices=BACKENDS, required=True,
                        help="Backend to read from")
    parser.add_argument("--to", dest="target_backend", choices=BACKENDS, required=True,
                        help="Backend to write to")
    parser.add_argument("--source", type=str, default=None,
                        help="Source file path (default: configured path for the backend)")
    parser.add_argument("--target", type=str, default=None,
                        help="Target file path (default: configured path for the backend)")
    parser.add_argument("--dry-run", action="store_true",
                        help="Show what would be migrated without making changes")
    parser.add_argument("--backup", action="store_true",
                        help="Create a backup of the target before overwriting it")
    parser.add_argument("--force", action="store_true",
                        help="Save even if the source load reported errors (dangerous)")
    parser.add_argument("--log-level", type=str, default="WARNING",
                        help="Log level for stderr output (default: WARNING)")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Entry point for the meditrack-migrate console script."""
    args = build_parser().parse_args(argv)
    setup_logging(level=args.log_level)

    source_path = args.source or default_path(args.source_backend)
    target_path = args.target or default_path(args.target_backend)

    if os.path.abspath(source_path) == os.path.abspath(target_path):
        print(f"❌ Source and target are the same file: {source_path}")
        return 2

    if not os.path.exists(source_path):
        print(f"❌ Source file not found: {source_path}")
        return 1

    print(f"Source: {args.source_backend} ({source_path})")
    print(f"Target: {args.target_backend} ({target_path})")

    backup_path = None
    if args.backup and not args.dry_run and os.path.exists(target_path):
        backup_path = backup_file(target_path)
        print(f"💾 Backup saved to: {backup_path}\n")

    try:
        with get_repository(args.source_backend, source_path) as source, \
                get_repository(args.target_backend, target_path) as target:
            summary = migrate(source, target, force=args.force, dry_run=args.dry_run)
    except PersistenceError as e:
        print(f"\n❌ Migration failed: {e.detail}")
        if backup_path:
            print(f"\n💡 A backup was created before migration: {backup_path}")
        return 1

    for error in summary.errors:
        print(f"⚠️  {error.detail}")

    if summary.dry_run:
        print("🔍 DRY RUN MODE - No changes were made")
        print(f"Would migrate {summary.loaded} patients ({summary.records} records)")
        return 1 if summary.errors and not args.force else 0

    if summary.refused:
        print(f"\n❌ Source load reported {len(summary.errors)} error(s); nothing was written")
        print("   Rerun with --force to save the patients that did load.")
        return 1

    print(f"\n✅ Migrated {summary.saved} patients ({summary.records} records)")
    return 0


if __name__ == "__main__":
    sys.exit(main())
