"""
Backup CLI for the vault server.

Commands:
    backup     Export a manual backup to a directory or S3
    automated  Run a durable backup as the admin identity (cron entry point)
    list       List stored backups
    health     Print the backup health report as JSON
    restore    Restore collections (see tools/restore.py)

Usage:
    vault backup --output ./backups [--collections users,timeEntries]
    vault automated
    vault health

Invariants:
    - Output goes to stdout, logs go to stderr
    - Handlers return 0 even when individual collections failed
"""

from __future__ import annotations

import argparse
import json
import os
import sys

from ..export import LocalFileSink, S3ArtifactSink
from ..service import VaultService
from .restore import add_restore_arguments, parse_collections, run_restore


async def run_backup(service: VaultService, args: argparse.Namespace) -> int:
    artifact = await service.create_manual_backup(parse_collections(args.collections))

    if args.s3:
        sink = S3ArtifactSink(service.config.s3)
    else:
        sink = LocalFileSink(args.output)
    location = await sink.write(artifact)

    collections = artifact.document.collections
    failed_names = [name for name, entry in collections.items() if entry.status == "failed"]

    print("Backup completed")
    print(f"  File: {location}")
    print(f"  Documents: {artifact.total_documents}")
    print(f"  Size: {artifact.size_bytes} bytes")
    if failed_names:
        print(f"  Failed collections: {', '.join(failed_names)}")
    return 0


async def run_automated(service: VaultService, args: argparse.Namespace) -> int:
    actor = args.actor or service.config.access.admin_identity
    outcome = await service.create_automated_backup(actor)
    print(json.dumps(outcome.to_dict(), indent=2))
    return 0


async def run_list(service: VaultService, args: argparse.Namespace) -> int:
    snapshots = await service.list_snapshots(limit=args.limit)
    if not snapshots:
        print("No backups found")
        return 0

    for metadata in snapshots:
        failed = metadata.failed_collections
        print(
            f"{metadata.snapshot_id}  {metadata.kind.value:<9}  {metadata.status.value:<11}  "
            f"{metadata.started_at.isoformat()}  {metadata.total_documents} docs"
            + (f"  failed: {', '.join(failed)}" if failed else "")
        )
    return 0


async def run_health(service: VaultService, args: argparse.Namespace) -> int:
    report = await service.get_health_report()
    print(json.dumps(report.to_dict(), indent=2, default=str))
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="vault",
        description="Backup, restore and health reporting for the document store",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose output")
    subparsers = parser.add_subparsers(dest="command", required=True)

    # backup command
    backup_parser = subparsers.add_parser("backup", help="Export a manual backup")
    destination = backup_parser.add_mutually_exclusive_group()
    destination.add_argument(
        "--output", "-o", default=os.getcwd(), help="Directory for the artifact (default: cwd)"
    )
    destination.add_argument("--s3", action="store_true", help="Upload the artifact to S3")
    backup_parser.add_argument("--collections", help="Comma-separated collections to back up")
    backup_parser.set_defaults(handler=run_backup)

    # automated command
    automated_parser = subparsers.add_parser(
        "automated", help="Run a durable backup with retention"
    )
    automated_parser.add_argument(
        "--actor", help="Identity requesting the backup (default: ADMIN_IDENTITY)"
    )
    automated_parser.set_defaults(handler=run_automated)

    # list command
    list_parser = subparsers.add_parser("list", help="List stored backups")
    list_parser.add_argument("--limit", type=int, default=20, help="Maximum backups to show")
    list_parser.set_defaults(handler=run_list)

    # health command
    health_parser = subparsers.add_parser("health", help="Print the backup health report")
    health_parser.set_defaults(handler=run_health)

    # restore command
    restore_parser = subparsers.add_parser("restore", help="Restore collections from a backup")
    add_restore_arguments(restore_parser)
    restore_parser.set_defaults(handler=run_restore)

    return parser


def main() -> None:
    """CLI entry point for the backup tool."""
    from ..main import run

    sys.exit(run())


if __name__ == "__main__":
    main()
