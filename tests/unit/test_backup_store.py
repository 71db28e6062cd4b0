"""
Unit tests for the backup store.

Tests cover:
- Manual export artifact format
- Automated persistence lifecycle
- Chunk write failures
- Capture that cannot run
- Rebuilding a restorable document
"""

import json
import re

import pytest

from dbops.vault_server.datasets import build_descriptors
from dbops.vault_server.errors import SnapshotNotFoundError
from dbops.vault_server.model import CollectionStatus, SnapshotKind, SnapshotStatus
from dbops.vault_server.snapshot import BackupStore, Snapshotter
from dbops.vault_server.snapshot.artifact import FailedCollection, SuccessfulCollection
from tests.factories import SAMPLE_DATA


class TestManualBackup:
    """Tests for BackupStore.persist_manual()."""

    @pytest.mark.asyncio
    async def test_artifact_format(self, seeded_store):
        seeded_store.fail_collection("feedback", RuntimeError("boom"))
        result = await Snapshotter(build_descriptors(seeded_store)).capture_all()

        artifact = BackupStore(seeded_store).persist_manual(result)
        payload = json.loads(artifact.content)

        assert re.fullmatch(r"time-track-backup-\d{4}-\d{2}-\d{2}-\d{2}-\d{2}-\d{2}\.json", artifact.filename)
        assert payload["metadata"]["type"] == "manual"
        assert payload["metadata"]["version"] == "1.0.0"
        assert payload["metadata"]["source"] == "time-track-app"
        assert payload["metadata"]["totalDocuments"] == result.total_documents
        assert payload["collections"]["users"] == {
            "status": "success",
            "count": 2,
            "documents": SAMPLE_DATA["users"],
        }
        assert payload["collections"]["feedback"]["status"] == "failed"
        assert payload["collections"]["feedback"]["error"] == "boom"
        assert artifact.size_bytes == len(artifact.content)

    @pytest.mark.asyncio
    async def test_manual_backup_is_not_stored(self, seeded_store):
        result = await Snapshotter(build_descriptors(seeded_store)).capture_all()

        BackupStore(seeded_store).persist_manual(result)

        assert await seeded_store.list_snapshots() == []
        assert seeded_store.chunk_count() == 0


class TestAutomatedBackup:
    """Tests for BackupStore.persist_automated()."""

    @pytest.mark.asyncio
    async def test_completed_with_chunks(self, seeded_store):
        backups = BackupStore(seeded_store)
        snapshotter = Snapshotter(build_descriptors(seeded_store))

        metadata = await backups.persist_automated(snapshotter.capture_all)

        stored = await backups.get_snapshot(metadata.snapshot_id)
        assert stored.status == SnapshotStatus.COMPLETED
        assert stored.kind == SnapshotKind.AUTOMATED
        assert stored.finished_at is not None
        assert stored.total_documents == sum(len(docs) for docs in SAMPLE_DATA.values())
        assert seeded_store.chunk_count(metadata.snapshot_id) == len(SAMPLE_DATA)

    @pytest.mark.asyncio
    async def test_metadata_written_before_capture(self, seeded_store):
        backups = BackupStore(seeded_store)
        seen = []

        async def capture():
            seen.extend(await seeded_store.list_snapshots(status=SnapshotStatus.IN_PROGRESS))
            return await Snapshotter(build_descriptors(seeded_store)).capture_all()

        await backups.persist_automated(capture)

        assert len(seen) == 1

    @pytest.mark.asyncio
    async def test_failing_collection_still_completes(self, seeded_store):
        """One failing collection leaves the snapshot completed."""
        seeded_store.fail_collection("userGoals", RuntimeError("boom"))
        backups = BackupStore(seeded_store)

        metadata = await backups.persist_automated(
            Snapshotter(build_descriptors(seeded_store)).capture_all
        )

        assert metadata.status == SnapshotStatus.COMPLETED
        assert metadata.failed_collections == ["userGoals"]
        assert seeded_store.chunk_count(metadata.snapshot_id) == len(SAMPLE_DATA) - 1
        successful = sum(
            o.count for o in metadata.per_collection.values() if o.status == CollectionStatus.SUCCESS
        )
        assert metadata.total_documents == successful

    @pytest.mark.asyncio
    async def test_chunk_write_failure_demotes_collection(self, seeded_store):
        seeded_store.fail_collection("users", RuntimeError("document too large"), ("insert_chunk",))
        backups = BackupStore(seeded_store)

        metadata = await backups.persist_automated(
            Snapshotter(build_descriptors(seeded_store)).capture_all
        )

        users = metadata.per_collection["users"]
        assert metadata.status == SnapshotStatus.COMPLETED
        assert users.status == CollectionStatus.FAILED
        assert users.count == 0
        assert "document too large" in users.error
        assert metadata.total_documents == sum(
            len(docs) for name, docs in SAMPLE_DATA.items() if name != "users"
        )

    @pytest.mark.asyncio
    async def test_capture_that_cannot_run_fails_snapshot(self, store):
        backups = BackupStore(store)

        async def capture():
            raise RuntimeError("no collections reachable")

        metadata = await backups.persist_automated(capture)

        stored = await backups.get_snapshot(metadata.snapshot_id)
        assert stored.status == SnapshotStatus.FAILED
        assert stored.error == "no collections reachable"
        assert store.chunk_count() == 0


class TestBackupHistory:
    """Tests for history queries and document rebuild."""

    @pytest.mark.asyncio
    async def test_unknown_snapshot(self, store):
        with pytest.raises(SnapshotNotFoundError):
            await BackupStore(store).get_snapshot("backup-0-nothing")

    @pytest.mark.asyncio
    async def test_delete_removes_chunks(self, seeded_store):
        backups = BackupStore(seeded_store)
        metadata = await backups.persist_automated(
            Snapshotter(build_descriptors(seeded_store)).capture_all
        )

        assert await backups.delete(metadata.snapshot_id)

        assert seeded_store.chunk_count() == 0
        assert await backups.list_snapshots() == []

    @pytest.mark.asyncio
    async def test_load_document(self, seeded_store):
        seeded_store.fail_collection("feedback", RuntimeError("boom"))
        backups = BackupStore(seeded_store)
        metadata = await backups.persist_automated(
            Snapshotter(build_descriptors(seeded_store)).capture_all
        )

        document = await backups.load_document(metadata.snapshot_id)

        assert isinstance(document.collections["users"], SuccessfulCollection)
        assert document.collections["users"].documents == SAMPLE_DATA["users"]
        assert isinstance(document.collections["feedback"], FailedCollection)
        assert document.metadata.type == "automated"
        assert document.metadata.total_documents == metadata.total_documents
