"""
Durable and exportable persistence of snapshots.

Manual backups become one exportable JSON artifact and never touch the
durable store. Automated backups become a metadata row plus one chunk per
successfully captured collection:

    insert metadata (in_progress)
      -> capture
      -> write chunks
      -> update metadata (completed | failed)

Invariants:
    - Metadata is written before any chunk
    - A snapshot is completed even when some collections failed
    - A snapshot is failed only when capture could not run at all
    - A crash mid-run leaves the row in_progress, nothing repairs it

How to change safely:
    - Keep the metadata-first ordering, health checks rely on stale rows
    - delete() must remove metadata and chunks together
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable

from ..errors import SnapshotNotFoundError
from ..model import (
    CollectionOutcome,
    CollectionStatus,
    SnapshotChunk,
    SnapshotKind,
    SnapshotMetadata,
    SnapshotStatus,
)
from ..store.base import DocumentStore
from .artifact import (
    ArtifactMetadata,
    ExportedArtifact,
    FailedCollection,
    SnapshotDocument,
    SuccessfulCollection,
    artifact_filename,
    to_json_safe,
)
from .snapshotter import CaptureResult

logger = logging.getLogger(__name__)


class BackupStore:
    """Persists snapshots and exposes the backup history.

    Example:
        >>> backups = BackupStore(store)
        >>> metadata = await backups.persist_automated(snapshotter.capture_all)
        >>> latest = await backups.list_snapshots(limit=1)
    """

    def __init__(self, store: DocumentStore) -> None:
        self.store = store

    def persist_manual(self, result: CaptureResult) -> ExportedArtifact:
        """Serialize a capture into one downloadable artifact.

        Args:
            result: Capture to export

        Returns:
            ExportedArtifact with filename and JSON content
        """
        collections = {}
        for name, capture in result.per_collection.items():
            if capture.succeeded:
                collections[name] = SuccessfulCollection(
                    status="success",
                    count=capture.count,
                    documents=to_json_safe(capture.documents),
                )
            else:
                collections[name] = FailedCollection(
                    status="failed",
                    count=0,
                    error=capture.error,
                )

        document = SnapshotDocument(
            metadata=ArtifactMetadata(
                timestamp=result.started_at.isoformat(),
                type=SnapshotKind.MANUAL.value,
                total_documents=result.total_documents,
            ),
            collections=collections,
        )
        content = document.to_json().encode("utf-8")

        logger.info(
            "Prepared manual backup artifact",
            extra={
                "total_documents": result.total_documents,
                "size_bytes": len(content),
                "failed_collections": result.failed_collections,
            },
        )

        return ExportedArtifact(
            filename=artifact_filename(result.started_at),
            document=document,
            content=content,
        )

    async def persist_automated(
        self,
        capture: Callable[[], Awaitable[CaptureResult]],
    ) -> SnapshotMetadata:
        """Run a capture and persist it durably.

        Args:
            capture: Coroutine factory performing the capture

        Returns:
            Final metadata (completed or failed)

        Raises:
            ConnectivityError: If the initial metadata row cannot be written
        """
        metadata = SnapshotMetadata.begin(SnapshotKind.AUTOMATED)
        await self.store.insert_snapshot(metadata)
        logger.info(f"Started automated backup {metadata.snapshot_id}")

        try:
            result = await capture()
        except Exception as e:
            logger.error(f"Backup {metadata.snapshot_id} could not run: {e}", exc_info=True)
            metadata.fail(str(e) or type(e).__name__)
            await self._save_final(metadata)
            return metadata

        outcomes: dict[str, CollectionOutcome] = {}
        total_size = 0
        for name, collection in result.per_collection.items():
            if not collection.succeeded:
                outcomes[name] = collection.outcome()
                continue

            try:
                await self.store.insert_chunk(
                    SnapshotChunk(
                        snapshot_id=metadata.snapshot_id,
                        collection_name=name,
                        documents=collection.documents,
                    )
                )
            except Exception as e:
                logger.error(
                    f"Failed to store chunk {name} for {metadata.snapshot_id}: {e}",
                    exc_info=True,
                )
                outcomes[name] = CollectionOutcome(
                    status=CollectionStatus.FAILED,
                    count=0,
                    error=f"chunk write failed: {e}",
                )
                continue

            outcomes[name] = collection.outcome()
            total_size += collection.size_bytes

        metadata.complete(outcomes, total_size_bytes=total_size)
        await self._save_final(metadata)

        logger.info(
            f"Completed automated backup {metadata.snapshot_id}",
            extra={
                "snapshot_id": metadata.snapshot_id,
                "total_documents": metadata.total_documents,
                "total_size_bytes": metadata.total_size_bytes,
                "failed_collections": metadata.failed_collections,
            },
        )
        return metadata

    async def _save_final(self, metadata: SnapshotMetadata) -> None:
        try:
            await self.store.update_snapshot(metadata)
        except Exception:
            # The row stays in_progress and surfaces as stale in health reports
            logger.error(
                f"Failed to record final status of {metadata.snapshot_id}",
                exc_info=True,
            )
            raise

    async def list_snapshots(self, **filters) -> list[SnapshotMetadata]:
        """List snapshots newest first. See DocumentStore.list_snapshots()."""
        return await self.store.list_snapshots(**filters)

    async def list_completed(self) -> list[SnapshotMetadata]:
        return await self.store.list_snapshots(status=SnapshotStatus.COMPLETED)

    async def get_snapshot(self, snapshot_id: str) -> SnapshotMetadata:
        """Fetch metadata by id.

        Raises:
            SnapshotNotFoundError: If no such snapshot exists
        """
        metadata = await self.store.get_snapshot(snapshot_id)
        if metadata is None:
            raise SnapshotNotFoundError(snapshot_id)
        return metadata

    async def get_chunks(self, snapshot_id: str) -> list[SnapshotChunk]:
        return await self.store.get_chunks(snapshot_id)

    async def delete(self, snapshot_id: str) -> bool:
        """Delete a snapshot's metadata and all of its chunks."""
        deleted = await self.store.delete_snapshot(snapshot_id)
        if deleted:
            logger.info(f"Deleted backup {snapshot_id}")
        return deleted

    async def load_document(self, snapshot_id: str) -> SnapshotDocument:
        """Rebuild a restorable snapshot document from metadata and chunks.

        Raises:
            SnapshotNotFoundError: If no such snapshot exists
        """
        metadata = await self.get_snapshot(snapshot_id)
        chunks = {c.collection_name: c for c in await self.get_chunks(snapshot_id)}

        collections = {}
        for name, outcome in metadata.per_collection.items():
            chunk = chunks.get(name)
            if outcome.status == CollectionStatus.SUCCESS and chunk is not None:
                collections[name] = SuccessfulCollection(
                    status="success",
                    count=len(chunk.documents),
                    documents=chunk.documents,
                )
            elif outcome.status == CollectionStatus.SUCCESS:
                collections[name] = FailedCollection(
                    status="failed",
                    error=f"chunk missing for {name}",
                )
            else:
                collections[name] = FailedCollection(status="failed", error=outcome.error)

        return SnapshotDocument(
            metadata=ArtifactMetadata(
                timestamp=metadata.started_at.isoformat(),
                type=metadata.kind.value,
                total_documents=metadata.total_documents,
                snapshot_id=metadata.snapshot_id,
                status=metadata.status.value,
            ),
            collections=collections,
        )
