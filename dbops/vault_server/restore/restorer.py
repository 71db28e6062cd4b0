"""
Restore of live collections from a snapshot.

A restore replaces whole collections: for every target collection all
existing documents are deleted and the snapshot's documents bulk-inserted.

    resolve source -> validate -> select targets -> pause -> replace each

Invariants:
    - The source is fully validated before any collection is touched
    - Dry-run never mutates the store and can be repeated
    - One failing collection never aborts the others
    - There is no rollback across collections
    - An empty collection filter restores nothing
    - Cancelling during the pause leaves the store untouched

How to change safely:
    - Keep the confirmation pause and the event-loop yield after it ahead of
      the first mutation
    - Never restore a collection that is not a configured dataset
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Any

from ..datasets import CollectionDescriptor
from ..errors import PerCollectionError
from ..model import utcnow
from ..snapshot.artifact import SnapshotDocument, SuccessfulCollection
from .sources import SnapshotSource, describe, resolve

if TYPE_CHECKING:
    from ..snapshot.backup_store import BackupStore

logger = logging.getLogger(__name__)


class RestoreAction(str, Enum):
    RESTORED = "restored"
    WOULD_RESTORE = "would_restore"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass
class CollectionRestore:
    """Outcome of restoring one collection.

    Attributes:
        name: Collection name
        action: What happened to the collection
        count: Documents restored (or that would be restored)
        reason: Why the collection was skipped or failed
    """

    name: str
    action: RestoreAction
    count: int = 0
    reason: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"action": self.action.value, "count": self.count}
        if self.reason is not None:
            data["reason"] = self.reason
        return data


@dataclass
class RestoreReport:
    """Result of one restore run.

    Attributes:
        source: Human-readable description of the source
        dry_run: Whether the run was a dry run
        per_collection: Outcome per requested collection
        started_at: When the run started
        duration_ms: Total duration in milliseconds
    """

    source: str
    dry_run: bool
    per_collection: dict[str, CollectionRestore] = field(default_factory=dict)
    started_at: datetime = field(default_factory=utcnow)
    duration_ms: int = 0

    def _with(self, *actions: RestoreAction) -> list[CollectionRestore]:
        return [c for c in self.per_collection.values() if c.action in actions]

    @property
    def total_documents(self) -> int:
        return sum(
            c.count for c in self._with(RestoreAction.RESTORED, RestoreAction.WOULD_RESTORE)
        )

    @property
    def successful_collections(self) -> list[str]:
        return [c.name for c in self._with(RestoreAction.RESTORED, RestoreAction.WOULD_RESTORE)]

    @property
    def failed_collections(self) -> list[str]:
        return [c.name for c in self._with(RestoreAction.FAILED)]

    @property
    def skipped_collections(self) -> list[str]:
        return [c.name for c in self._with(RestoreAction.SKIPPED)]

    @property
    def success(self) -> bool:
        return not self.failed_collections

    def to_dict(self) -> dict[str, Any]:
        return {
            "source": self.source,
            "dry_run": self.dry_run,
            "success": self.success,
            "total_documents": self.total_documents,
            "started_at": self.started_at.isoformat(),
            "duration_ms": self.duration_ms,
            "collections": {name: c.to_dict() for name, c in self.per_collection.items()},
        }


class Restorer:
    """Replaces live collections with the contents of a snapshot.

    Attributes:
        descriptors: Datasets that may be restored
        confirm_delay_seconds: Blocking pause before the first mutation
        backup_store: Used to resolve StoredSnapshot sources

    Example:
        >>> restorer = Restorer(build_descriptors(store), confirm_delay_seconds=5)
        >>> report = await restorer.restore("backup.json", dry_run=True)
        >>> print(report.total_documents)
    """

    def __init__(
        self,
        descriptors: list[CollectionDescriptor],
        confirm_delay_seconds: float = 5.0,
        backup_store: BackupStore | None = None,
        pause: Callable[[float], None] = time.sleep,
    ) -> None:
        """Initialize the restorer.

        Args:
            descriptors: Datasets that may be restored
            confirm_delay_seconds: Pause before mutating (0 disables it)
            backup_store: Backup history, for restoring stored snapshots
            pause: Blocking sleep used for the confirmation pause
        """
        self.descriptors = {d.name: d for d in descriptors}
        self.confirm_delay_seconds = confirm_delay_seconds
        self.backup_store = backup_store
        self._pause = pause

    async def restore(
        self,
        source: SnapshotSource,
        collection_filter: list[str] | None = None,
        dry_run: bool = False,
    ) -> RestoreReport:
        """Restore collections from a snapshot source.

        Args:
            source: File path, raw content, dict or StoredSnapshot
            collection_filter: Only restore these collections
            dry_run: Report what would be restored without mutating

        Returns:
            RestoreReport with one entry per requested collection

        Raises:
            ValidationError: If the source is unreadable or malformed
            SnapshotNotFoundError: If a stored snapshot does not exist
        """
        label = describe(source)
        start = time.monotonic()
        report = RestoreReport(source=label, dry_run=dry_run)

        logger.info(
            f"Starting restore from {label}",
            extra={
                "dry_run": dry_run,
                "collections": "all" if collection_filter is None else collection_filter,
            },
        )

        document = await resolve(source, self.backup_store)
        targets = self._select(document, collection_filter, report)

        if targets and not dry_run:
            self._confirm(targets)
            # A Ctrl+C during the pause is only a pending cancel, it must fire before any delete
            await asyncio.sleep(0)

        for name, entry in targets:
            if dry_run:
                count = len(entry.documents)
                logger.info(f"Would restore {count} documents into {name}")
                report.per_collection[name] = CollectionRestore(
                    name, RestoreAction.WOULD_RESTORE, count=count
                )
            else:
                report.per_collection[name] = await self._restore_one(name, entry)

        report.duration_ms = int((time.monotonic() - start) * 1000)
        logger.info(
            "Restore finished",
            extra={
                "dry_run": dry_run,
                "total_documents": report.total_documents,
                "failed_collections": report.failed_collections,
                "skipped_collections": report.skipped_collections,
                "duration_ms": report.duration_ms,
            },
        )
        return report

    def _select(
        self,
        document: SnapshotDocument,
        collection_filter: list[str] | None,
        report: RestoreReport,
    ) -> list[tuple[str, SuccessfulCollection]]:
        """Pick restorable collections, recording skips on the report."""
        names = list(document.collections) if collection_filter is None else list(collection_filter)

        targets = []
        for name in dict.fromkeys(names):
            entry = document.collections.get(name)
            if entry is None:
                reason = "not present in backup"
            elif name not in self.descriptors:
                reason = "unknown collection"
            elif not isinstance(entry, SuccessfulCollection):
                reason = f"failed in backup: {entry.error or 'unknown error'}"
            else:
                targets.append((name, entry))
                continue

            logger.warning(f"Skipping {name}: {reason}")
            report.per_collection[name] = CollectionRestore(
                name, RestoreAction.SKIPPED, reason=reason
            )
        return targets

    def _confirm(self, targets: list[tuple[str, SuccessfulCollection]]) -> None:
        if self.confirm_delay_seconds <= 0:
            return
        logger.warning(
            f"Restore will overwrite {len(targets)} collection(s), "
            f"continuing in {self.confirm_delay_seconds:g} seconds (Ctrl+C to cancel)",
            extra={"collections": [name for name, _ in targets]},
        )
        self._pause(self.confirm_delay_seconds)

    async def _restore_one(self, name: str, entry: SuccessfulCollection) -> CollectionRestore:
        accessor = self.descriptors[name].accessor
        try:
            removed = await accessor.delete_all()
            inserted = await accessor.insert_many(entry.documents) if entry.documents else 0
        except Exception as e:
            error = PerCollectionError(f"Failed to restore {name}: {e}", collection=name)
            logger.error(error.message, exc_info=True)
            return CollectionRestore(name, RestoreAction.FAILED, reason=str(e) or type(e).__name__)

        logger.info(f"Restored {inserted} documents into {name} (replaced {removed})")
        return CollectionRestore(name, RestoreAction.RESTORED, count=inserted)
