"""
Restore CLI tool for the vault server.

This tool replaces live collections with the contents of:
1. An exported backup file (manual backup artifact)
2. A stored automated backup (--snapshot-id)

Usage:
    vault-restore backup.json [--collections users,timeEntries] [--dry-run]
    vault-restore backup-1718000000000-abc123def --snapshot-id --yes

Invariants:
    - The source is validated before anything is deleted
    - A real restore pauses before the first deletion unless --yes is given
    - Per-collection failures are reported but leave the exit code at 0

How to change safely:
    - Keep the pause in front of every destructive run
    - Add new source kinds in restore/sources.py, not here
"""

from __future__ import annotations

import argparse
import sys

from ..restore import StoredSnapshot
from ..service import VaultService


def parse_collections(raw: str | None) -> list[str] | None:
    """Split a comma-separated collection list (None means all)."""
    if not raw:
        return None
    names = [name.strip() for name in raw.split(",") if name.strip()]
    return names or None


def add_restore_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("source", help="Backup file path, or snapshot id with --snapshot-id")
    parser.add_argument(
        "--snapshot-id",
        action="store_true",
        help="Treat SOURCE as the id of a stored backup",
    )
    parser.add_argument("--collections", help="Comma-separated collections to restore")
    parser.add_argument("--dry-run", action="store_true", help="Don't make changes")
    parser.add_argument("--yes", "-y", action="store_true", help="Skip the confirmation pause")


async def run_restore(service: VaultService, args: argparse.Namespace) -> int:
    source = StoredSnapshot(args.source) if args.snapshot_id else args.source
    if args.yes:
        service.restorer.confirm_delay_seconds = 0

    if not args.dry_run and not args.yes:
        print("WARNING: This will overwrite existing data in your database!")
        print(
            f"  Press Ctrl+C to cancel, or wait "
            f"{service.restorer.confirm_delay_seconds:g} seconds to continue..."
        )

    report = await service.restore_from_source(
        source,
        collection_filter=parse_collections(args.collections),
        dry_run=args.dry_run,
    )

    if report.dry_run:
        print("Dry run completed")
        print(f"  Would restore: {report.total_documents} documents")
    else:
        print("Restore completed")
        print(f"  Documents restored: {report.total_documents}")
    print(
        f"  Collections: {len(report.successful_collections)} succeeded, "
        f"{len(report.failed_collections)} failed, "
        f"{len(report.skipped_collections)} skipped"
    )
    print(f"  Duration: {report.duration_ms}ms")

    for name, result in report.per_collection.items():
        line = f"    {name}: {result.action.value} ({result.count} documents)"
        if result.reason:
            line += f" - {result.reason}"
        print(line)

    return 0


def main() -> None:
    """CLI entry point for the restore tool."""
    from ..main import run

    sys.exit(run(["restore", *sys.argv[1:]]))


if __name__ == "__main__":
    main()
