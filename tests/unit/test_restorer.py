"""
Unit tests for the restorer and snapshot sources.

Tests cover:
- Source validation before any mutation
- Dry-run idempotence
- Collection filters and skips
- Confirmation pause
- Per-collection failure isolation
- Stored snapshot sources
"""

import asyncio
import json
import tempfile
from pathlib import Path

import pytest

from dbops.vault_server.datasets import build_descriptors
from dbops.vault_server.errors import SnapshotNotFoundError, ValidationError
from dbops.vault_server.restore import RestoreAction, Restorer, StoredSnapshot, parse_document
from dbops.vault_server.snapshot import BackupStore, Snapshotter
from tests.factories import SAMPLE_DATA, snapshot_document, success_entry

BACKUP_USERS = [{"_id": "u9", "email": "restored@example.com"}]
BACKUP_ENTRIES = [{"_id": "t9", "minutes": 15}, {"_id": "t10", "minutes": 20}]


def backup_payload():
    return snapshot_document(
        {
            "users": success_entry(BACKUP_USERS),
            "timeEntries": success_entry(BACKUP_ENTRIES),
            "feedback": {"status": "failed", "count": 0, "error": "cursor killed", "documents": []},
            "invoices": success_entry([{"_id": "i1"}]),
        }
    )


class TestParseDocument:
    """Tests for snapshot source validation."""

    def test_valid_document(self):
        document = parse_document(json.dumps(backup_payload()))

        assert set(document.collections) == {"users", "timeEntries", "feedback", "invoices"}
        assert document.metadata.total_documents == 4

    def test_not_json(self):
        with pytest.raises(ValidationError):
            parse_document(b"not json")

    def test_missing_collections(self):
        with pytest.raises(ValidationError) as exc_info:
            parse_document({"metadata": {"timestamp": "2024-06-15T12:00:00+00:00"}})

        assert "missing collections" in exc_info.value.message

    def test_bad_collection_entry(self):
        with pytest.raises(ValidationError) as exc_info:
            parse_document({"collections": {"users": {"status": "partial", "documents": []}}})

        assert exc_info.value.errors

    def test_metadata_is_optional(self):
        document = parse_document({"collections": {"users": success_entry(BACKUP_USERS)}})

        assert document.metadata is None


class TestRestorer:
    """Tests for Restorer.restore()."""

    @pytest.fixture
    def pauses(self):
        return []

    @pytest.fixture
    def restorer(self, seeded_store, pauses):
        return Restorer(
            build_descriptors(seeded_store),
            confirm_delay_seconds=5,
            backup_store=BackupStore(seeded_store),
            pause=pauses.append,
        )

    @pytest.mark.asyncio
    async def test_restore_replaces_collections(self, seeded_store, restorer, pauses):
        report = await restorer.restore(backup_payload())

        assert seeded_store.documents("users") == BACKUP_USERS
        assert seeded_store.documents("timeEntries") == BACKUP_ENTRIES
        # Failed and unknown collections are left alone
        assert seeded_store.documents("feedback") == SAMPLE_DATA["feedback"]
        assert report.per_collection["users"].action == RestoreAction.RESTORED
        assert report.per_collection["feedback"].action == RestoreAction.SKIPPED
        assert report.per_collection["invoices"].action == RestoreAction.SKIPPED
        assert report.total_documents == 3
        assert report.success
        assert pauses == [5]

    @pytest.mark.asyncio
    async def test_dry_run_does_not_mutate(self, seeded_store, restorer, pauses):
        """Dry-run can be repeated and never changes the store."""
        first = await restorer.restore(backup_payload(), dry_run=True)
        second = await restorer.restore(backup_payload(), dry_run=True)

        for name, documents in SAMPLE_DATA.items():
            assert seeded_store.documents(name) == documents
        assert first.to_dict()["collections"] == second.to_dict()["collections"]
        assert first.per_collection["timeEntries"].action == RestoreAction.WOULD_RESTORE
        assert first.total_documents == 3
        assert pauses == []

    @pytest.mark.asyncio
    async def test_collection_filter(self, seeded_store, restorer):
        report = await restorer.restore(backup_payload(), collection_filter=["timeEntries", "userGoals"])

        assert seeded_store.documents("timeEntries") == BACKUP_ENTRIES
        assert seeded_store.documents("users") == SAMPLE_DATA["users"]
        assert report.per_collection["userGoals"].action == RestoreAction.SKIPPED
        assert report.per_collection["userGoals"].reason == "not present in backup"
        assert "users" not in report.per_collection

    @pytest.mark.asyncio
    async def test_invalid_source_mutates_nothing(self, seeded_store, restorer, pauses):
        with pytest.raises(ValidationError):
            await restorer.restore({"collections": []})

        assert seeded_store.documents("users") == SAMPLE_DATA["users"]
        assert pauses == []

    @pytest.mark.asyncio
    async def test_failure_does_not_abort_others(self, seeded_store, restorer):
        seeded_store.fail_collection("users", RuntimeError("duplicate key"), ("insert_many",))

        report = await restorer.restore(backup_payload())

        assert report.per_collection["users"].action == RestoreAction.FAILED
        assert report.per_collection["users"].reason == "duplicate key"
        assert report.per_collection["timeEntries"].action == RestoreAction.RESTORED
        assert seeded_store.documents("timeEntries") == BACKUP_ENTRIES
        assert not report.success
        assert report.failed_collections == ["users"]

    @pytest.mark.asyncio
    async def test_no_pause_without_targets(self, restorer, pauses):
        await restorer.restore(backup_payload(), collection_filter=["feedback"])

        assert pauses == []

    @pytest.mark.asyncio
    async def test_zero_delay_skips_pause(self, seeded_store, pauses):
        restorer = Restorer(build_descriptors(seeded_store), confirm_delay_seconds=0, pause=pauses.append)

        await restorer.restore(backup_payload())

        assert pauses == []

    @pytest.mark.asyncio
    async def test_empty_filter_restores_nothing(self, seeded_store, restorer, pauses):
        report = await restorer.restore(backup_payload(), collection_filter=[])

        assert report.per_collection == {}
        assert report.total_documents == 0
        assert pauses == []
        assert seeded_store.documents("users") == SAMPLE_DATA["users"]
        assert seeded_store.documents("timeEntries") == SAMPLE_DATA["timeEntries"]

    @pytest.mark.asyncio
    async def test_cancel_during_pause_leaves_store_untouched(self, seeded_store):
        """A cancel requested while paused (Ctrl+C under asyncio.run) aborts before any delete."""

        def interrupted_pause(seconds):
            asyncio.current_task().cancel()

        restorer = Restorer(
            build_descriptors(seeded_store),
            confirm_delay_seconds=5,
            pause=interrupted_pause,
        )

        task = asyncio.create_task(restorer.restore(backup_payload()))
        with pytest.raises(asyncio.CancelledError):
            await task

        assert seeded_store.documents("users") == SAMPLE_DATA["users"]
        assert seeded_store.documents("timeEntries") == SAMPLE_DATA["timeEntries"]

    @pytest.mark.asyncio
    async def test_restore_from_file(self, seeded_store, restorer):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "backup.json"
            path.write_text(json.dumps(backup_payload()))

            report = await restorer.restore(str(path), dry_run=True)

        assert report.source == str(path)
        assert report.total_documents == 3

    @pytest.mark.asyncio
    async def test_missing_file(self, restorer):
        with pytest.raises(ValidationError):
            await restorer.restore("/nonexistent/backup.json")

    @pytest.mark.asyncio
    async def test_restore_from_stored_snapshot(self, seeded_store, restorer):
        backups = BackupStore(seeded_store)
        metadata = await backups.persist_automated(
            Snapshotter(build_descriptors(seeded_store)).capture_all
        )
        seeded_store.seed("users", [])

        report = await restorer.restore(StoredSnapshot(metadata.snapshot_id))

        assert seeded_store.documents("users") == SAMPLE_DATA["users"]
        assert report.source == f"snapshot:{metadata.snapshot_id}"

    @pytest.mark.asyncio
    async def test_unknown_stored_snapshot(self, restorer):
        with pytest.raises(SnapshotNotFoundError):
            await restorer.restore(StoredSnapshot("backup-0-missing"))
